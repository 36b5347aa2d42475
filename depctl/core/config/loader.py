"""
Definition loader — reads dependency definition files into Dependency records.

A definition file is a YAML mapping of dependency key → entry. Entries
are either a version string (shorthand) or a mapping validated against
``DefinitionEntry``. The reserved ``options`` key holds defaults for
every entry in the same file.

Example::

    options:
      type: pip
      target: ./vendor

    requests: "2.31.0"

    tools/linters:
      type: git
      source: https://github.com/example/linters.git
      version: v1.2.0
      tags: [dev]
      depends_on: [requests]
      pre_scripts: ["./scripts/prepare.sh"]
      post_scripts: ["echo linters ready"]
"""

from __future__ import annotations

import heapq
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from depctl.core.models.dependency import DEFAULT_VERSION, Dependency

logger = logging.getLogger(__name__)

OPTIONS_KEY = "options"
DEFAULT_TYPE = "pip"


class ConfigError(Exception):
    """Raised when a definition file or type map is invalid or missing."""


def _as_list(value: Any) -> list[str]:
    """Accept a scalar or a list where a list of strings is expected."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def _as_str(value: Any) -> str | None:
    # YAML turns `version: 1.10` into a float; keep what the user typed where we can
    if value is None:
        return None
    return str(value)


class DefinitionOptions(BaseModel):
    """File-wide defaults under the ``options`` key."""

    model_config = ConfigDict(extra="forbid")

    type: str | None = None
    version: str | None = None
    target: str | None = None
    source: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    add_to_path: bool | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_lists(cls, value: Any) -> list[str]:
        return _as_list(value)

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, value: Any) -> str | None:
        return _as_str(value)


class DefinitionEntry(BaseModel):
    """One entry of a definition file, before defaults are applied."""

    model_config = ConfigDict(extra="forbid")

    name: list[str] = Field(default_factory=list)
    type: str | None = None
    version: str | None = None
    source: str | None = None
    target: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    pre_scripts: list[str] = Field(default_factory=list)
    post_scripts: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    depends_on: list[str] = Field(default_factory=list)
    add_to_path: bool | None = None

    @field_validator("name", "pre_scripts", "post_scripts", "tags", "depends_on", mode="before")
    @classmethod
    def coerce_lists(cls, value: Any) -> list[str]:
        return _as_list(value)

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, value: Any) -> str | None:
        return _as_str(value)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def _resolve_target(target: str | None, base_dir: Path) -> str | None:
    if not target:
        return None
    path = Path(target).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return str(path)


def _build_dependency(
    key: str,
    entry: DefinitionEntry,
    options: DefinitionOptions,
    path: Path,
    raw: dict[str, Any],
) -> Dependency:
    """Apply file-wide options to an entry and produce the record."""
    tags = list(entry.tags)
    tags.extend(t for t in options.tags if t not in tags)

    add_to_path = entry.add_to_path
    if add_to_path is None:
        add_to_path = bool(options.add_to_path)

    return Dependency(
        key=key,
        names=tuple(entry.name or [key]),
        type=entry.type or options.type or DEFAULT_TYPE,
        version=entry.version or options.version or DEFAULT_VERSION,
        source=entry.source or options.source,
        target=_resolve_target(entry.target or options.target, path.parent),
        parameters={**options.parameters, **entry.parameters},
        pre_scripts=tuple(entry.pre_scripts),
        post_scripts=tuple(entry.post_scripts),
        tags=tuple(tags),
        depends_on=tuple(entry.depends_on),
        add_to_path=add_to_path,
        definition_file=path,
        raw=raw,
    )


def load_definition_file(path: Path) -> list[Dependency]:
    """Load every dependency declared in one definition file.

    Returns:
        Dependencies in declaration order.

    Raises:
        ConfigError: If the file is unreadable or an entry is invalid.
    """
    path = path.resolve()
    data = _read_yaml(path)
    logger.debug("Loading dependency definitions from %s", path)

    try:
        options = DefinitionOptions.model_validate(data.get(OPTIONS_KEY) or {})
    except ValidationError as e:
        raise ConfigError(f"Invalid '{OPTIONS_KEY}' in {path}: {e}") from e

    dependencies: list[Dependency] = []
    for key, value in data.items():
        if key == OPTIONS_KEY:
            continue
        key = str(key)

        if value is None:
            raw: dict[str, Any] = {}
        elif isinstance(value, dict):
            raw = value
        elif isinstance(value, (str, int, float)) and not isinstance(value, bool):
            raw = {"version": str(value)}
        else:
            raise ConfigError(
                f"Dependency '{key}' in {path} must be a version string or a mapping"
            )

        try:
            entry = DefinitionEntry.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid dependency '{key}' in {path}: {e}") from e

        dependencies.append(_build_dependency(key, entry, options, path, raw))

    return dependencies


def sort_dependencies(dependencies: list[Dependency]) -> list[Dependency]:
    """Order dependencies so each comes after everything it depends on.

    Stable: among dependencies that are ready at the same time, the
    declaration order wins. Unknown ``depends_on`` keys are ignored
    with a warning.

    Raises:
        ConfigError: If ``depends_on`` forms a cycle.
    """
    by_key: dict[str, list[int]] = defaultdict(list)
    for index, dep in enumerate(dependencies):
        by_key[dep.key].append(index)

    dependents: dict[int, list[int]] = defaultdict(list)
    indegree = [0] * len(dependencies)

    for index, dep in enumerate(dependencies):
        for needed in dep.depends_on:
            if needed not in by_key:
                logger.warning(
                    "Dependency '%s' depends on '%s', which is not defined (or filtered out)",
                    dep.key, needed,
                )
                continue
            for provider in by_key[needed]:
                if provider == index:
                    continue
                dependents[provider].append(index)
                indegree[index] += 1

    ready = [i for i, degree in enumerate(indegree) if degree == 0]
    heapq.heapify(ready)
    ordered: list[int] = []

    while ready:
        index = heapq.heappop(ready)
        ordered.append(index)
        for nxt in dependents[index]:
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                heapq.heappush(ready, nxt)

    if len(ordered) < len(dependencies):
        stuck = sorted({dependencies[i].key for i, d in enumerate(indegree) if d > 0})
        raise ConfigError(f"Circular depends_on between: {', '.join(stuck)}")

    return [dependencies[i] for i in ordered]


def parse(paths: list[Path], tags: list[str] | None = None) -> list[Dependency]:
    """Parse definition files into an ordered, tag-filtered dependency list.

    Args:
        paths: Definition files, in the order they should be read.
        tags: Only keep dependencies carrying every one of these tags.

    Returns:
        Dependencies in execution order.

    Raises:
        ConfigError: If any file is invalid or ordering is impossible.
    """
    dependencies: list[Dependency] = []
    for path in paths:
        dependencies.extend(load_definition_file(Path(path)))

    if tags:
        dependencies = [d for d in dependencies if d.matches_tags(tags)]

    ordered = sort_dependencies(dependencies)
    logger.info(
        "Parsed %d dependencies from %d definition file(s)", len(ordered), len(paths)
    )
    return ordered
