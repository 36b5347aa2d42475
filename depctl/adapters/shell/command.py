"""
Shell command handler — run arbitrary shell commands as a dependency.

This is the most fundamental handler: it runs commands and captures
their output. ``run_command`` is also what the hook runner uses to
execute pre/post scripts.

Definition example::

    build-protoc:
      type: command
      source: make -C third_party/protoc install
      parameters:
        test: test -x third_party/protoc/bin/protoc
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import time
from pathlib import Path

from depctl.adapters.base import Handler, HandlerContext, HandlerError
from depctl.core.context import is_strict

logger = logging.getLogger(__name__)

_IS_WINDOWS = sys.platform.startswith("win")


class CommandError(HandlerError):
    """Raised when a command exits non-zero under strict errors."""

    def __init__(self, command: str, returncode: int, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else ""
        message = f"Command exited with code {returncode}: {command}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


def run_command(
    command: str | list[str],
    cwd: Path | str | None = None,
    env: dict[str, str] | None = None,
    timeout: int | None = None,
) -> subprocess.CompletedProcess:
    """Run a command, honoring the current error strictness.

    A string runs through the shell; under strict errors it is prefixed
    with ``set -e`` (POSIX) so every failing line counts. A list runs
    directly.

    Raises:
        CommandError: Non-zero exit (or timeout) while strict errors are on.
        HandlerError: The command could not be started at all.
    """
    strict = is_strict()
    use_shell = isinstance(command, str)
    display = command if use_shell else " ".join(command)

    if use_shell and strict and not _IS_WINDOWS:
        command = f"set -e\n{command}"

    run_env = {**os.environ, **env} if env else None

    logger.debug("Executing: %s (cwd=%s, strict=%s)", display, cwd, strict)
    start = time.monotonic()
    try:
        result = subprocess.run(
            command,
            shell=use_shell,
            cwd=str(cwd) if cwd else None,
            env=run_env,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        if strict:
            raise CommandError(display, -1, f"timed out after {timeout}s") from e
        logger.warning("Command timed out after %ss: %s", timeout, display)
        return subprocess.CompletedProcess(display, -1, "", f"timed out after {timeout}s")
    except OSError as e:
        raise HandlerError(f"Cannot run '{display}': {e}") from e

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.debug("Finished in %dms with code %d: %s", elapsed_ms, result.returncode, display)

    if result.returncode != 0:
        if strict:
            raise CommandError(display, result.returncode, result.stderr)
        logger.warning(
            "Command exited with code %d: %s", result.returncode, display
        )

    return result


class CommandHandler(Handler):
    """Run shell commands to satisfy a dependency.

    Dependency fields:
        source (str): Command to run on install.

    Parameters:
        commands (list[str]): Further commands, run after ``source``.
        test (str): Command whose zero exit means "already satisfied".
        cwd (str): Working directory (default: target, else definition dir).
        timeout (int): Per-command timeout in seconds (default: none).
    """

    description = "Run arbitrary shell commands"

    @property
    def name(self) -> str:
        return "command"

    def is_available(self) -> bool:
        if _IS_WINDOWS:
            return shutil.which("cmd") is not None
        return shutil.which("sh") is not None

    def _commands(self, context: HandlerContext) -> list[str]:
        commands = []
        if context.dependency.source:
            commands.append(context.dependency.source)
        extra = context.params.get("commands") or []
        if isinstance(extra, str):
            extra = [extra]
        commands.extend(str(c) for c in extra)
        return commands

    def _cwd(self, context: HandlerContext) -> Path:
        raw = context.params.get("cwd")
        if raw:
            return context.resolve(str(raw))
        target = context.target_path
        if target is not None and target.is_dir():
            return target
        return context.working_dir

    def validate(self, context: HandlerContext) -> tuple[bool, str]:
        if not self._commands(context) and not context.params.get("test"):
            return False, "Missing 'source' or 'parameters.commands'"
        cwd = self._cwd(context)
        if not cwd.is_dir():
            return False, f"Working directory does not exist: {cwd}"
        return True, ""

    def install(self, context: HandlerContext) -> None:
        cwd = self._cwd(context)
        timeout = context.params.get("timeout")
        for command in self._commands(context):
            result = run_command(command, cwd=cwd, timeout=timeout)
            if result.returncode != 0:
                raise CommandError(command, result.returncode, result.stderr)
            if result.stdout.strip():
                logger.info("[%s] %s", context.dependency.name, result.stdout.strip())

    def test(self, context: HandlerContext) -> bool:
        check = context.params.get("test")
        if not check:
            # Nothing to probe: a command dependency is never known to be satisfied
            return False
        result = run_command(
            str(check),
            cwd=self._cwd(context),
            timeout=context.params.get("timeout"),
        )
        return result.returncode == 0
