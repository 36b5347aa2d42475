"""
Mock handler — universal test double for all handler operations.

Used in mock mode to simulate handler behavior without touching
external tools. Configurable to fail specific dependencies or to
report them as missing in Test mode.
"""

from __future__ import annotations

from depctl.adapters.base import Handler, HandlerContext, HandlerError


class MockHandler(Handler):
    """Universal mock handler for testing.

    By default, every action succeeds and every test reports the
    dependency as present.
    """

    description = "Simulates every action without side effects"

    def __init__(
        self,
        handler_name: str = "mock",
        available: bool = True,
        default_exists: bool = True,
    ):
        self._name = handler_name
        self._available = available
        self._default_exists = default_exists
        self._failures: dict[str, str] = {}
        self._exists: dict[str, bool] = {}
        self._call_log: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[tuple[str, str]]:
        """(action, dependency key) pairs in call order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def calls_for(self, key: str) -> list[str]:
        """Actions invoked for one dependency key."""
        return [action for action, dep_key in self._call_log if dep_key == key]

    def is_available(self) -> bool:
        return self._available

    def set_failure(self, key: str, error: str = "Mock failure") -> None:
        """Configure a dependency key to fail on every action."""
        self._failures[key] = error

    def set_exists(self, key: str, exists: bool) -> None:
        """Configure the Test-mode result for a dependency key."""
        self._exists[key] = exists

    def _record(self, action: str, context: HandlerContext) -> None:
        key = context.dependency.key
        self._call_log.append((action, key))
        if key in self._failures:
            raise HandlerError(self._failures[key])

    def install(self, context: HandlerContext) -> None:
        self._record("install", context)

    def import_(self, context: HandlerContext) -> None:
        self._record("import", context)

    def test(self, context: HandlerContext) -> bool:
        self._record("test", context)
        return self._exists.get(context.dependency.key, self._default_exists)

    def reset(self) -> None:
        """Clear call log and configured responses."""
        self._call_log.clear()
        self._failures.clear()
        self._exists.clear()
