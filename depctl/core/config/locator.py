"""
Definition locator — finds dependency definition files.

A definition file is named ``depend.yml`` / ``depend.yaml`` or ends in
``.depend.yml`` / ``.depend.yaml``. An explicit file path is always
accepted, whatever its name.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFINITION_FILE_NAMES = ("depend.yml", "depend.yaml")
DEFINITION_SUFFIXES = (".depend.yml", ".depend.yaml")

# Directories never searched for definitions
_SKIP_DIRS = {".git", "node_modules", "__pycache__", ".venv", "venv"}


def is_definition_file(path: Path) -> bool:
    """Whether a file name marks it as a dependency definition."""
    name = path.name.lower()
    return name in DEFINITION_FILE_NAMES or name.endswith(DEFINITION_SUFFIXES)


def discover(root: Path | str, recurse: bool = True) -> list[Path]:
    """Find definition files under a root path.

    Args:
        root: A definition file or a directory to search.
        recurse: Search subdirectories too.

    Returns:
        Sorted definition file paths. Empty (with a warning) when
        nothing is found; never raises for an empty result.
    """
    root = Path(root)

    if root.is_file():
        return [root]

    if not root.is_dir():
        logger.warning("Definition path does not exist: %s", root)
        return []

    found: list[Path] = []
    if recurse:
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
            for filename in filenames:
                candidate = Path(dirpath) / filename
                if is_definition_file(candidate):
                    found.append(candidate)
    else:
        found = [p for p in root.iterdir() if p.is_file() and is_definition_file(p)]

    found.sort()

    if not found:
        logger.warning("No dependency definition files found in %s", root)
    else:
        logger.debug("Found %d definition file(s) in %s", len(found), root)

    return found
