"""
Hook runner — pre/post scripts around a dependency's handler.

Pre-scripts run before the handler, post-scripts after a successful
install. Both run under ``strict_errors()`` so a failing script is a
real failure; the previous strictness is restored when the block
exits, however it exits.

Flow:
    pre-scripts → StageResult → (handler) → post-scripts → error list
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from depctl.adapters.shell.command import run_command
from depctl.core.context import is_strict, strict_errors
from depctl.core.models.dependency import Dependency

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Where a dependency stands after its pre-scripts."""

    READY_FOR_HANDLER = "ready_for_handler"
    SKIPPED_DUE_TO_HOOK_FAILURE = "skipped_due_to_hook_failure"


@dataclass(frozen=True)
class StageResult:
    """Outcome of the pre-script stage for one dependency."""

    stage: Stage = Stage.READY_FOR_HANDLER
    error: str | None = None

    @property
    def ready(self) -> bool:
        return self.stage is Stage.READY_FOR_HANDLER


def _script_env(dependency: Dependency) -> dict[str, str]:
    return {
        "DEPCTL_DEPENDENCY_NAME": dependency.name,
        "DEPCTL_DEPENDENCY_KEY": dependency.key,
        "DEPCTL_DEPENDENCY_TYPE": dependency.type,
        "DEPCTL_DEPENDENCY_VERSION": dependency.version,
        "DEPCTL_DEPENDENCY_TARGET": dependency.target or "",
    }


def _script_command(script: str, base_dir: Path) -> str | list[str]:
    """Turn a hook entry into something run_command accepts.

    An existing file (relative to the definition directory) runs as a
    script; anything else is a shell command.
    """
    candidate = Path(script).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate

    try:
        is_file = candidate.is_file()
    except OSError:
        # Long shell one-liners can exceed the OS path limit
        is_file = False

    if not is_file:
        return script

    suffix = candidate.suffix.lower()
    if suffix == ".py":
        return [sys.executable, str(candidate)]
    if suffix == ".sh":
        return ["sh", "-e", str(candidate)] if is_strict() else ["sh", str(candidate)]
    return [str(candidate)]


def run_script(script: str, dependency: Dependency) -> None:
    """Run one hook script for a dependency.

    Raises:
        CommandError: The script failed while strict errors are on.
        HandlerError: The script could not be started.
    """
    base_dir = dependency.base_dir
    command = _script_command(script, base_dir)
    logger.debug("Running hook for %s: %s", dependency.key, script)

    result = run_command(command, cwd=base_dir, env=_script_env(dependency))
    if result.stdout and result.stdout.strip():
        logger.info("[%s] %s", dependency.key, result.stdout.strip())


def run_pre_scripts(dependency: Dependency) -> StageResult:
    """Run a dependency's pre-scripts in order.

    The first failure stops the block. Failures never raise; they come
    back as ``SKIPPED_DUE_TO_HOOK_FAILURE`` so the caller skips the
    handler.
    """
    if not dependency.pre_scripts:
        return StageResult()

    with strict_errors():
        for script in dependency.pre_scripts:
            try:
                run_script(script, dependency)
            except Exception as e:
                logger.error(
                    "Pre-script failed for %s, skipping its handler: %s",
                    dependency.display_name, e,
                )
                return StageResult(Stage.SKIPPED_DUE_TO_HOOK_FAILURE, f"{script}: {e}")

    return StageResult()


def run_post_scripts(dependency: Dependency) -> list[str]:
    """Run a dependency's post-scripts in order.

    Returns:
        Error messages; empty when every script succeeded. The first
        failure stops the block. The install itself is left in place.
    """
    errors: list[str] = []
    if not dependency.post_scripts:
        return errors

    with strict_errors():
        for script in dependency.post_scripts:
            try:
                run_script(script, dependency)
            except Exception as e:
                logger.error("Post-script failed for %s: %s", dependency.display_name, e)
                errors.append(f"{script}: {e}")
                break

    return errors
