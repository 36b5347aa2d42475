"""
Dependency model — one parsed unit from a definition file.

Dependencies are produced by the definition parser and consumed
read-only by the execution pipeline. They carry everything a handler
needs (type, version, source, target, parameters) plus the hooks the
pipeline runs around the handler.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_VERSION = "latest"


class Dependency(BaseModel):
    """A single dependency record.

    Immutable once parsed. ``key`` is the definition key (what
    ``depends_on`` refers to); ``names`` holds one or more identifiers
    the handler acts on.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    names: tuple[str, ...]
    type: str
    version: str = DEFAULT_VERSION
    source: str | None = None
    target: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    pre_scripts: tuple[str, ...] = ()
    post_scripts: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    depends_on: tuple[str, ...] = ()
    add_to_path: bool = False

    definition_file: Path | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def name(self) -> str:
        """Primary identifier."""
        return self.names[0] if self.names else self.key

    @property
    def display_name(self) -> str:
        """All identifiers joined for messages and prompts."""
        return ", ".join(self.names) if self.names else self.key

    @property
    def is_latest(self) -> bool:
        return not self.version or self.version.lower() == DEFAULT_VERSION

    @property
    def base_dir(self) -> Path:
        """Directory the definition file lives in (cwd if unknown)."""
        if self.definition_file is not None:
            return self.definition_file.parent
        return Path.cwd()

    def matches_tags(self, tags: list[str] | tuple[str, ...] | None) -> bool:
        """True when every requested tag is present on this dependency."""
        if not tags:
            return True
        return all(tag in self.tags for tag in tags)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "names": list(self.names),
            "type": self.type,
            "version": self.version,
            "source": self.source,
            "target": self.target,
            "tags": list(self.tags),
            "depends_on": list(self.depends_on),
            "pre_scripts": list(self.pre_scripts),
            "post_scripts": list(self.post_scripts),
            "definition_file": str(self.definition_file) if self.definition_file else None,
        }
