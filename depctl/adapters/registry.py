"""
Handler registry — central dispatch for all dependency handlers.

The registry is the single point of handler management. It maps
dependency type names to handlers, handles mock mode, and invokes the
requested actions. The pipeline never talks to handlers directly —
always through the registry.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from depctl.adapters.base import (
    Handler,
    HandlerContext,
    HandlerError,
    HandlerNotFoundError,
    UnsupportedPlatformError,
)
from depctl.adapters.mock import MockHandler
from depctl.core.config.type_map import (
    TypeMapEntry,
    current_platform,
    import_handler,
    load_type_map,
)
from depctl.core.models.action import Action, ActionSet
from depctl.core.models.dependency import Dependency

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Central registry and dispatcher for handlers.

    Features:
        - Register/unregister handlers by type name
        - Build from a type map file
        - Mock mode: route every type to a mock that always succeeds
        - Invoke Install/Import/Test through the appropriate handler
    """

    def __init__(self, mock_mode: bool = False):
        self._handlers: dict[str, Handler] = {}
        self._entries: dict[str, TypeMapEntry] = {}
        self._mock_mode = mock_mode
        self._mock_handler: Handler | None = None

    @classmethod
    def from_type_map(cls, path: Path | None = None, mock_mode: bool = False) -> HandlerRegistry:
        """Build a registry from a type map file (None = bundled map).

        Raises:
            ConfigError: If the map is invalid or a handler can't be imported.
        """
        registry = cls(mock_mode=mock_mode)
        for name, entry in load_type_map(path).items():
            registry.register(import_handler(entry), type_name=name, entry=entry)
        return registry

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_handler: Handler | None = None) -> None:
        """Enable or disable mock mode.

        Args:
            enabled: Whether to use mock mode.
            mock_handler: Optional custom mock handler. If None, uses default.
        """
        self._mock_mode = enabled
        self._mock_handler = mock_handler

    def register(
        self,
        handler: Handler,
        type_name: str | None = None,
        entry: TypeMapEntry | None = None,
    ) -> None:
        """Register a handler under a type name (default: handler.name)."""
        name = type_name or handler.name
        if name in self._handlers:
            logger.warning("Overwriting existing handler for type: %s", name)
        self._handlers[name] = handler
        if entry is not None:
            self._entries[name] = entry
        logger.debug("Registered handler %s for type %s", handler.__class__.__name__, name)

    def unregister(self, name: str) -> None:
        """Remove a handler from the registry."""
        self._handlers.pop(name, None)
        self._entries.pop(name, None)

    def get(self, name: str) -> Handler | None:
        """Look up a handler by type name."""
        return self._handlers.get(name)

    def list_types(self) -> list[str]:
        """List all registered type names."""
        return list(self._handlers.keys())

    def entry(self, name: str) -> TypeMapEntry | None:
        return self._entries.get(name)

    def handler_status(self) -> dict[str, dict[str, Any]]:
        """Availability and platform support of all registered handlers."""
        platform = current_platform()
        status = {}
        for name, handler in self._handlers.items():
            try:
                available = handler.is_available()
            except Exception:
                available = False
            entry = self._entries.get(name)
            status[name] = {
                "name": name,
                "handler": handler.__class__.__name__,
                "description": (entry.description if entry else "") or handler.description,
                "supports": entry.supports if entry else [],
                "supported": entry.supports_platform(platform) if entry else True,
                "available": available,
            }
        return status

    def resolve(self, type_name: str) -> Handler:
        """Resolve the handler for a dependency type.

        Raises:
            HandlerNotFoundError: If the type is not registered.
            UnsupportedPlatformError: If the type does not run on this platform.
        """
        if self._mock_mode:
            if self._mock_handler is None:
                self._mock_handler = MockHandler()
            return self._mock_handler

        handler = self._handlers.get(type_name)
        if handler is None:
            known = ", ".join(sorted(self._handlers)) or "none"
            raise HandlerNotFoundError(
                f"No handler registered for dependency type '{type_name}' (known: {known})"
            )

        entry = self._entries.get(type_name)
        if entry is not None and not entry.supports_platform():
            raise UnsupportedPlatformError(
                f"Dependency type '{type_name}' does not support {current_platform()} "
                f"(supports: {', '.join(entry.supports)})"
            )
        return handler

    def invoke(
        self,
        actions: ActionSet,
        dependency: Dependency,
        quiet: bool = False,
    ) -> bool | None:
        """Run the requested actions for one dependency.

        This is the main dispatch method. It:
        1. Resolves the handler (or mock)
        2. Validates the dependency
        3. Runs Test, or Install then Import

        Returns:
            The Test result when Test was requested, otherwise None.

        Raises:
            HandlerError: (or anything the handler raises) on failure.
        """
        handler = self.resolve(dependency.type)
        context = HandlerContext(dependency=dependency, actions=actions, quiet=quiet)

        is_valid, error_msg = handler.validate(context)
        if not is_valid:
            raise HandlerError(f"Validation failed for '{dependency.display_name}': {error_msg}")

        if Action.TEST in actions:
            exists = bool(handler.test(context))
            if not quiet:
                logger.info(
                    "%s %s (%s) %s",
                    "✓" if exists else "✗",
                    dependency.display_name,
                    dependency.type,
                    "is satisfied" if exists else "is missing",
                )
            return exists

        if Action.INSTALL in actions:
            logger.debug("Installing %s via %s", dependency.display_name, handler.name)
            handler.install(context)
        if Action.IMPORT in actions:
            logger.debug("Importing %s via %s", dependency.display_name, handler.name)
            handler.import_(context)
        return None
