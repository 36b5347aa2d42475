"""
Handler base — the protocol contract between the pipeline and handlers.

This defines the abstract interface that every dependency handler must
implement. The pipeline only talks to handlers through the registry,
never directly.

Unlike receipt-returning adapters, handlers signal failure by raising
``HandlerError``. The pipeline contains those failures per dependency.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from depctl.core.models.action import Action, ActionSet
from depctl.core.models.dependency import Dependency


class HandlerError(Exception):
    """Raised when a handler cannot complete an action."""


class HandlerNotFoundError(HandlerError):
    """Raised when no handler is registered for a dependency type."""


class UnsupportedPlatformError(HandlerError):
    """Raised when a handler does not support the current platform."""


class UnsupportedActionError(HandlerError):
    """Raised when a handler does not implement a requested action."""


class HandlerContext(BaseModel):
    """Everything a handler needs to act on a dependency."""

    model_config = ConfigDict(frozen=True)

    dependency: Dependency
    actions: ActionSet = frozenset()
    quiet: bool = False

    @property
    def params(self) -> dict:
        return self.dependency.parameters

    @property
    def working_dir(self) -> Path:
        """Directory relative paths in the dependency resolve against."""
        return self.dependency.base_dir

    @property
    def target_path(self) -> Path | None:
        """Resolved target, or None when the dependency declares none."""
        target = self.dependency.target
        if not target:
            return None
        path = Path(target).expanduser()
        if not path.is_absolute():
            path = self.working_dir / path
        return path

    def resolve(self, raw: str) -> Path:
        """Resolve a path relative to the definition directory."""
        path = Path(raw).expanduser()
        if not path.is_absolute():
            path = self.working_dir / path
        return path

    def wants(self, action: Action) -> bool:
        return action in self.actions


class Handler(ABC):
    """Abstract base class for all dependency handlers.

    To create a new handler:
        1. Subclass Handler
        2. Implement name, is_available, install, test
        3. Map a type name to it in the type map
    """

    description: str = ""

    @property
    @abstractmethod
    def name(self) -> str:
        """The handler identifier (e.g., 'pip', 'git')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the handler's underlying tool is available.

        Should be fast and never raise.
        """

    def validate(self, context: HandlerContext) -> tuple[bool, str]:
        """Validate that the dependency can be handled.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """
        return True, ""

    @abstractmethod
    def install(self, context: HandlerContext) -> None:
        """Install the dependency. Raise HandlerError on failure."""

    def import_(self, context: HandlerContext) -> None:
        """Make an installed dependency usable in this process.

        Handlers with nothing to import keep the default no-op.
        """

    def test(self, context: HandlerContext) -> bool:
        """Return True when the dependency is already satisfied."""
        raise UnsupportedActionError(
            f"Handler '{self.name}' does not support the test action"
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


def prepend_path(path: Path | str, env_var: str = "PATH") -> bool:
    """Prepend a directory to a path-style environment variable.

    Returns False when the directory is already present.
    """
    entry = str(path)
    current = os.environ.get(env_var, "")
    parts = current.split(os.pathsep) if current else []
    if entry in parts:
        return False
    os.environ[env_var] = os.pathsep.join([entry, *parts])
    return True
