"""
Git handler — clone repositories and pin them to a ref.

Uses the git CLI — never raw API calls.

Definition example::

    example/linters:
      type: git
      version: v1.2.0
      target: ./vendor
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from depctl.adapters.base import Handler, HandlerContext, HandlerError, prepend_path

logger = logging.getLogger(__name__)

GITHUB_URL = "https://github.com/{name}.git"


class GitHandler(Handler):
    """Git repositories.

    Dependency fields:
        name: ``owner/repo`` (GitHub shorthand) or a bare repo name.
        source: Clone URL (default: GitHub URL built from the name).
        version: Branch, tag or commit to check out, or 'latest'.
        target: Parent directory of the checkout (default: definition dir).

    Parameters:
        depth (int): Shallow clone depth (only used for 'latest').
        timeout (int): Timeout in seconds (default: 300).
    """

    description = "Clone git repositories and check out a ref"

    @property
    def name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return shutil.which("git") is not None

    def _url(self, context: HandlerContext) -> str:
        dep = context.dependency
        if dep.source:
            return dep.source
        return GITHUB_URL.format(name=dep.name)

    def _checkout_dir(self, context: HandlerContext) -> Path:
        repo = context.dependency.name.rstrip("/").split("/")[-1]
        if repo.endswith(".git"):
            repo = repo[: -len(".git")]
        base = context.target_path or context.working_dir
        return base / repo

    def validate(self, context: HandlerContext) -> tuple[bool, str]:
        dep = context.dependency
        if not dep.source and "/" not in dep.name:
            return False, "Set 'source' or name the repository as 'owner/repo'"
        return True, ""

    def install(self, context: HandlerContext) -> None:
        dep = context.dependency
        checkout = self._checkout_dir(context)
        timeout = context.params.get("timeout", 300)

        if (checkout / ".git").is_dir():
            logger.debug("Updating existing checkout %s", checkout)
            self._git(["fetch", "--tags", "origin"], checkout, timeout)
            if dep.is_latest:
                self._git(["pull", "--ff-only"], checkout, timeout)
        else:
            checkout.parent.mkdir(parents=True, exist_ok=True)
            cmd = ["clone"]
            depth = context.params.get("depth")
            if depth and dep.is_latest:
                cmd.extend(["--depth", str(depth)])
            cmd.extend([self._url(context), str(checkout)])
            self._git(cmd, checkout.parent, timeout)

        if not dep.is_latest:
            self._git(["checkout", "--quiet", dep.version], checkout, timeout)

        logger.info("Checked out %s (%s) at %s", dep.name, dep.version, checkout)

    def import_(self, context: HandlerContext) -> None:
        if context.dependency.add_to_path:
            checkout = self._checkout_dir(context)
            if prepend_path(checkout):
                logger.debug("Added %s to PATH", checkout)

    def test(self, context: HandlerContext) -> bool:
        dep = context.dependency
        checkout = self._checkout_dir(context)
        if not (checkout / ".git").exists():
            return False
        if dep.is_latest:
            return True

        try:
            head = self._git(["rev-parse", "HEAD"], checkout).strip()
            wanted = self._git(["rev-parse", f"{dep.version}^{{commit}}"], checkout).strip()
        except HandlerError as e:
            logger.debug("Cannot resolve %s in %s: %s", dep.version, checkout, e)
            return False
        return head == wanted

    # ── Helpers ─────────────────────────────────────────────────

    def _git(self, args: list[str], cwd: Path, timeout: int = 30) -> str:
        """Run a git command and return stdout."""
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=str(cwd),
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise HandlerError(f"git {args[0]} timed out after {timeout}s") from e
        except OSError as e:
            raise HandlerError(f"Cannot run git: {e}") from e
        if result.returncode != 0:
            raise HandlerError(result.stderr.strip() or f"git {args[0]} failed")
        return result.stdout
