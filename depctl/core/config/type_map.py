"""
Type map loader — maps dependency type names to handler classes.

The type map is a YAML mapping::

    pip:
      handler: depctl.adapters.languages.python:PipHandler
      description: Install Python packages with pip
      supports: [linux, darwin, windows]

The bundled map lives in depctl/data/depend_map.yml. Users can point
``--type-map`` at their own file to add or replace handlers.
"""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from pydantic import BaseModel, Field, ValidationError

from depctl.core.config.loader import ConfigError

if TYPE_CHECKING:
    from depctl.adapters.base import Handler

logger = logging.getLogger(__name__)

ALL_PLATFORMS = ("linux", "darwin", "windows")

DEFAULT_TYPE_MAP = Path(__file__).resolve().parent.parent.parent / "data" / "depend_map.yml"


class TypeMapEntry(BaseModel):
    """One dependency type and the handler that implements it."""

    name: str
    handler: str                      # "package.module:ClassName"
    description: str = ""
    supports: list[str] = Field(default_factory=lambda: list(ALL_PLATFORMS))

    def supports_platform(self, platform: str | None = None) -> bool:
        return (platform or current_platform()) in self.supports


def current_platform() -> str:
    """Normalized platform name: linux, darwin, or windows."""
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "darwin"
    return "linux"


def load_type_map(path: Path | None = None) -> dict[str, TypeMapEntry]:
    """Load and validate a type map.

    Args:
        path: Type map file. None loads the bundled default.

    Returns:
        Entries keyed by type name, in file order.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    path = path or DEFAULT_TYPE_MAP
    if not path.is_file():
        raise ConfigError(f"Type map not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    entries: dict[str, TypeMapEntry] = {}
    for name, raw in data.items():
        if isinstance(raw, str):
            raw = {"handler": raw}
        if not isinstance(raw, dict):
            raise ConfigError(f"Type '{name}' in {path} must be a mapping")
        try:
            entries[str(name)] = TypeMapEntry.model_validate({**raw, "name": str(name)})
        except ValidationError as e:
            raise ConfigError(f"Invalid type '{name}' in {path}: {e}") from e

    logger.debug("Loaded %d dependency types from %s", len(entries), path)
    return entries


def import_handler(entry: TypeMapEntry) -> Handler:
    """Import and instantiate the handler class named by a type map entry.

    Raises:
        ConfigError: If the handler cannot be imported or is not a Handler.
    """
    from depctl.adapters.base import Handler

    module_name, sep, class_name = entry.handler.partition(":")
    if not sep or not module_name or not class_name:
        raise ConfigError(
            f"Type '{entry.name}': handler must look like 'module:Class', got '{entry.handler}'"
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Type '{entry.name}': cannot import {module_name}: {e}") from e

    cls = getattr(module, class_name, None)
    if cls is None:
        raise ConfigError(f"Type '{entry.name}': {module_name} has no attribute {class_name}")
    if not (isinstance(cls, type) and issubclass(cls, Handler)):
        raise ConfigError(f"Type '{entry.name}': {entry.handler} is not a Handler subclass")

    return cls()
