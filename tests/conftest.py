"""
Shared test fixtures and configuration.
"""

import logging
import textwrap
from pathlib import Path

import pytest

from depctl.adapters.base import Handler, HandlerContext, HandlerError
from depctl.adapters.mock import MockHandler
from depctl.adapters.registry import HandlerRegistry
from depctl.core.models.dependency import Dependency


class RecordingHandler(Handler):
    """Handler that records calls into a shared journal.

    ``results`` maps dependency key → Test result; ``failures`` maps
    key → error message raised on any action.
    """

    description = "Records calls for assertions"

    def __init__(self, name="recording", journal=None, results=None, failures=None):
        self._name = name
        self.journal = journal if journal is not None else []
        self.results = results or {}
        self.failures = failures or {}

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return True

    def _call(self, action: str, context: HandlerContext) -> None:
        key = context.dependency.key
        self.journal.append(f"{action}:{key}")
        if key in self.failures:
            raise HandlerError(self.failures[key])

    def install(self, context: HandlerContext) -> None:
        self._call("install", context)

    def import_(self, context: HandlerContext) -> None:
        self._call("import", context)

    def test(self, context: HandlerContext) -> bool:
        self._call("test", context)
        return self.results.get(context.dependency.key, True)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """CLI tests reconfigure the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def make_dep(tmp_path: Path):
    """Build a Dependency whose definition file lives in tmp_path."""

    def _make(key: str, type: str = "mock", **kwargs) -> Dependency:
        kwargs.setdefault("names", (key,))
        kwargs.setdefault("definition_file", tmp_path / "depend.yml")
        return Dependency(key=key, type=type, **kwargs)

    return _make


@pytest.fixture
def write_definition(tmp_path: Path):
    """Write a dedented YAML definition file and return its path."""

    def _write(content: str, name: str = "depend.yml", directory: Path | None = None) -> Path:
        directory = directory or tmp_path
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text(textwrap.dedent(content))
        return path

    return _write


@pytest.fixture
def mock_registry() -> HandlerRegistry:
    """Registry with a MockHandler under the 'mock' type."""
    registry = HandlerRegistry()
    registry.register(MockHandler(), type_name="mock")
    return registry
