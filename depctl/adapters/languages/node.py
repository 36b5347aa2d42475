"""
Node.js handler — install npm packages.

Definition example::

    prettier:
      type: npm
      version: 3.3.3
      target: ./tools
      add_to_path: true
"""

from __future__ import annotations

import json
import logging
import shutil

from depctl.adapters.base import Handler, HandlerContext, HandlerError, prepend_path
from depctl.adapters.shell.command import CommandError, run_command

logger = logging.getLogger(__name__)


class NpmHandler(Handler):
    """npm packages.

    Dependency fields:
        name: Package name(s) on the registry.
        version: Exact version or range, or 'latest'.
        target: Install prefix (default: the definition directory).

    Parameters:
        global (bool): Install globally (``--global``), ignoring target.
        extra_args (list[str]): Appended to ``npm install``.
        timeout (int): Timeout in seconds (default: 600).
    """

    description = "Install Node.js packages with npm"

    @property
    def name(self) -> str:
        return "npm"

    def is_available(self) -> bool:
        return shutil.which("npm") is not None

    def _scope_args(self, context: HandlerContext) -> list[str]:
        if context.params.get("global"):
            return ["--global"]
        target = context.target_path
        if target is not None:
            return ["--prefix", str(target)]
        return []

    def _packages(self, context: HandlerContext) -> list[str]:
        dep = context.dependency
        if dep.is_latest:
            return list(dep.names)
        return [f"{name}@{dep.version}" for name in dep.names]

    def install(self, context: HandlerContext) -> None:
        target = context.target_path
        if target is not None and not context.params.get("global"):
            target.mkdir(parents=True, exist_ok=True)

        cmd = ["npm", "install", *self._packages(context), *self._scope_args(context)]
        extra = context.params.get("extra_args") or []
        if isinstance(extra, str):
            extra = extra.split()
        cmd.extend(str(a) for a in extra)

        result = run_command(
            cmd,
            cwd=context.working_dir,
            timeout=context.params.get("timeout", 600),
        )
        if result.returncode != 0:
            raise CommandError(" ".join(cmd), result.returncode, result.stderr)
        logger.info("Installed %s", ", ".join(self._packages(context)))

    def import_(self, context: HandlerContext) -> None:
        if not context.dependency.add_to_path:
            return
        base = context.target_path or context.working_dir
        bin_dir = base / "node_modules" / ".bin"
        if prepend_path(bin_dir):
            logger.debug("Added %s to PATH", bin_dir)

    def _installed(self, context: HandlerContext) -> dict[str, str]:
        """Installed top-level packages → version, per ``npm ls``."""
        cmd = ["npm", "ls", *context.dependency.names, "--json", "--depth=0"]
        cmd.extend(self._scope_args(context))
        # npm ls exits 1 when a package is missing; the JSON is still valid
        result = run_command(cmd, cwd=context.working_dir, timeout=60)
        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise HandlerError(f"Unexpected 'npm ls' output: {e}") from e
        return {
            name: info.get("version", "")
            for name, info in (data.get("dependencies") or {}).items()
            if isinstance(info, dict)
        }

    def test(self, context: HandlerContext) -> bool:
        dep = context.dependency
        installed = self._installed(context)
        for name in dep.names:
            version = installed.get(name)
            if not version:
                return False
            if not dep.is_latest and version != dep.version.lstrip("v"):
                return False
        return True
