"""
Filesystem handler — copy files and directories into place.

Definition example::

    config-templates:
      type: file_system
      source: ./templates
      target: ~/.config/myapp
      parameters:
        mirror: true
"""

from __future__ import annotations

import filecmp
import logging
import shutil
from pathlib import Path

from depctl.adapters.base import Handler, HandlerContext, HandlerError, prepend_path

logger = logging.getLogger(__name__)


class FileSystemHandler(Handler):
    """Copy a file or directory from ``source`` into ``target``.

    A source file lands at ``target/<file name>``; a source directory's
    contents are merged into ``target``.

    Parameters:
        mirror (bool): Remove the existing destination before copying.
    """

    description = "Copy files or directories into a target directory"

    @property
    def name(self) -> str:
        return "file_system"

    def is_available(self) -> bool:
        return True  # filesystem is always available

    def _source(self, context: HandlerContext) -> Path:
        return context.resolve(context.dependency.source or "")

    def _destination(self, context: HandlerContext) -> Path:
        source = self._source(context)
        target = context.target_path
        assert target is not None  # guaranteed by validate()
        return target if source.is_dir() else target / source.name

    def validate(self, context: HandlerContext) -> tuple[bool, str]:
        if not context.dependency.source:
            return False, "Missing required field: 'source'"
        if context.target_path is None:
            return False, "Missing required field: 'target'"
        source = self._source(context)
        if not source.exists():
            return False, f"Source not found: {source}"
        return True, ""

    def install(self, context: HandlerContext) -> None:
        source = self._source(context)
        destination = self._destination(context)
        mirror = bool(context.params.get("mirror", False))

        try:
            if mirror and destination.exists():
                logger.debug("Mirroring: removing %s", destination)
                if destination.is_dir():
                    shutil.rmtree(destination)
                else:
                    destination.unlink()

            if source.is_dir():
                shutil.copytree(source, destination, dirs_exist_ok=True)
            else:
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, destination)
        except OSError as e:
            raise HandlerError(f"Cannot copy {source} to {destination}: {e}") from e

        logger.info("Copied %s → %s", source, destination)

    def import_(self, context: HandlerContext) -> None:
        if context.dependency.add_to_path and context.target_path is not None:
            if prepend_path(context.target_path):
                logger.debug("Added %s to PATH", context.target_path)

    def test(self, context: HandlerContext) -> bool:
        source = self._source(context)
        destination = self._destination(context)

        if source.is_file():
            return destination.is_file() and filecmp.cmp(source, destination, shallow=False)

        if not destination.is_dir():
            return False
        for path in source.rglob("*"):
            if not path.is_file():
                continue
            copied = destination / path.relative_to(source)
            if not (copied.is_file() and filecmp.cmp(path, copied, shallow=False)):
                return False
        return True
