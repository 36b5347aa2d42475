"""
Listing use cases — show parsed dependencies and registered types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from depctl.adapters.registry import HandlerRegistry
from depctl.core.config.loader import ConfigError, parse
from depctl.core.models.dependency import Dependency
from depctl.core.use_cases.invoke import collect_definitions


@dataclass
class ListResult:
    """Parsed, filtered and ordered dependencies."""

    definition_files: list[Path] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "definition_files": [str(p) for p in self.definition_files],
            "dependencies": [d.to_dict() for d in self.dependencies],
            "warnings": list(self.warnings),
        }


def list_dependencies(
    paths: list[Path] | None = None,
    recurse: bool = True,
    tags: list[str] | None = None,
) -> ListResult:
    """Parse definitions without running anything."""
    result = ListResult()
    roots = [Path(p) for p in (paths or [Path(".")])]
    result.definition_files = collect_definitions(roots, recurse, result.warnings)
    try:
        result.dependencies = parse(result.definition_files, tags=tags)
    except ConfigError as e:
        result.error = str(e)
    return result


@dataclass
class TypesResult:
    """Registered dependency types and their handler status."""

    types: dict[str, dict[str, Any]] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {"types": self.types}


def list_types(type_map: Path | None = None) -> TypesResult:
    """Load the type map and report each type's handler status."""
    result = TypesResult()
    try:
        registry = HandlerRegistry.from_type_map(type_map)
    except ConfigError as e:
        result.error = str(e)
        return result
    result.types = registry.handler_status()
    return result
