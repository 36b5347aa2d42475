"""
Python handler — install Python packages with pip.

Always uses the running interpreter (``python -m pip``) so packages
land in the environment depctl itself runs in, unless a ``target``
directory is given.
"""

from __future__ import annotations

import importlib
import importlib.metadata
import logging
import re
import subprocess
import sys

from depctl.adapters.base import Handler, HandlerContext, HandlerError
from depctl.adapters.shell.command import CommandError, run_command

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    """PEP 503 normalization: 'Foo_Bar.baz' → 'foo-bar-baz'."""
    return re.sub(r"[-_.]+", "-", name).lower()


class PipHandler(Handler):
    """Python packages via pip.

    Dependency fields:
        name: Distribution name(s) on the index.
        version: Exact version, or 'latest'.
        source: Index URL (passed as ``--index-url``).
        target: Install into this directory instead of the environment.

    Parameters:
        extra_args (list[str]): Appended to ``pip install``.
        import_name (str): Module to import (default: the name with
            dashes turned into underscores).
        timeout (int): Timeout in seconds (default: 600).
    """

    description = "Install Python packages with pip"

    @property
    def name(self) -> str:
        return "pip"

    def is_available(self) -> bool:
        try:
            result = subprocess.run(
                [sys.executable, "-m", "pip", "--version"],
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=10,
            )
            return result.returncode == 0
        except (subprocess.TimeoutExpired, OSError):
            return False

    def _requirements(self, context: HandlerContext) -> list[str]:
        dep = context.dependency
        if dep.is_latest:
            return list(dep.names)
        return [f"{name}=={dep.version}" for name in dep.names]

    def install(self, context: HandlerContext) -> None:
        dep = context.dependency
        cmd = [sys.executable, "-m", "pip", "install", "--disable-pip-version-check"]
        if dep.is_latest:
            cmd.append("--upgrade")
        cmd.extend(self._requirements(context))

        target = context.target_path
        if target is not None:
            target.mkdir(parents=True, exist_ok=True)
            cmd.extend(["--target", str(target)])
        if dep.source:
            cmd.extend(["--index-url", dep.source])

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
        logger.info("Installed %s", ", ".join(self._requirements(context)))

    def import_(self, context: HandlerContext) -> None:
        dep = context.dependency
        target = context.target_path
        if dep.add_to_path and target is not None and str(target) not in sys.path:
            sys.path.insert(0, str(target))
            importlib.invalidate_caches()

        module_name = context.params.get("import_name")
        modules = [module_name] if module_name else [
            n.replace("-", "_").lower() for n in dep.names
        ]
        for module in modules:
            try:
                importlib.import_module(module)
            except ImportError as e:
                raise HandlerError(f"Cannot import '{module}': {e}") from e
            logger.debug("Imported %s", module)

    def _installed_version(self, name: str, context: HandlerContext) -> str | None:
        target = context.target_path
        wanted = normalize_name(name)
        if target is not None:
            if not target.is_dir():
                return None
            for dist in importlib.metadata.distributions(path=[str(target)]):
                if normalize_name(dist.metadata["Name"] or "") == wanted:
                    return dist.version
            return None
        try:
            return importlib.metadata.version(name)
        except importlib.metadata.PackageNotFoundError:
            return None

    def test(self, context: HandlerContext) -> bool:
        dep = context.dependency
        for name in dep.names:
            installed = self._installed_version(name, context)
            if installed is None:
                logger.debug("%s is not installed", name)
                return False
            if not dep.is_latest and installed != dep.version:
                logger.debug("%s %s installed, %s wanted", name, installed, dep.version)
                return False
        return True
