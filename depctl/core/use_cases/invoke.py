"""
Invoke use case — discover, parse and run dependency definitions.

This is the top-level orchestrator: it locates definition files,
parses and filters them, builds the handler registry from the type
map, and runs every dependency through the execution pipeline.
The full vertical slice from user intent to installed dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from depctl.adapters.registry import HandlerRegistry
from depctl.core.config.loader import ConfigError, parse
from depctl.core.config.locator import discover
from depctl.core.engine.executor import (
    ConfirmCallback,
    InvocationReport,
    invoke_dependencies,
    resolve_actions,
)
from depctl.core.models.dependency import Dependency

logger = logging.getLogger(__name__)


@dataclass
class InvokeResult:
    """Result of invoking dependency definitions."""

    report: InvocationReport | None = None
    definition_files: list[Path] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def verdict(self) -> bool | None:
        """Quiet-test verdict; None outside quiet-test mode or on error."""
        return self.report.verdict if self.report else None

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["definition_files"] = [str(p) for p in self.definition_files]
        result["dependencies"] = [d.key for d in self.dependencies]
        result["warnings"] = list(self.warnings)
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def collect_definitions(
    paths: list[Path],
    recurse: bool = True,
    warnings: list[str] | None = None,
) -> list[Path]:
    """Discover definition files under every root, in root order.

    Roots with nothing to offer add a warning and are skipped.
    """
    found: list[Path] = []
    for root in paths:
        files = discover(root, recurse=recurse)
        if not files and warnings is not None:
            warnings.append(f"No dependency definition files found in {root}")
        for path in files:
            if path not in found:
                found.append(path)
    return found


def run_invoke(
    paths: list[Path] | None = None,
    recurse: bool = True,
    tags: list[str] | None = None,
    type_map: Path | None = None,
    force: bool = False,
    dry_run: bool = False,
    install: bool = True,
    import_: bool = False,
    test: bool = False,
    quiet: bool = False,
    mock_mode: bool = False,
    confirm: ConfirmCallback | None = None,
    registry: HandlerRegistry | None = None,
) -> InvokeResult:
    """Install, import or test the dependencies defined under ``paths``.

    Args:
        paths: Definition files or directories (default: current dir).
        recurse: Search directories recursively.
        tags: Only run dependencies carrying every one of these tags.
        type_map: Type map file (default: the bundled map).
        force: Don't ask for confirmation.
        dry_run: Describe what would happen; change nothing.
        install: Install each dependency.
        import_: Import each dependency after installing it.
        test: Test whether each dependency is satisfied instead.
        quiet: With ``test``, fold the results into ``result.verdict``.
        mock_mode: Route every type to the mock handler.
        confirm: Per-dependency confirmation callback.
        registry: Optional pre-configured handler registry.

    Returns:
        InvokeResult with the execution report.
    """
    result = InvokeResult()
    roots = [Path(p) for p in (paths or [Path(".")])]
    try:
        actions = resolve_actions(install=install, import_=import_, test=test)
    except ValueError as e:
        result.error = str(e)
        return result

    # ── Discover and parse ───────────────────────────────────────
    result.definition_files = collect_definitions(roots, recurse, result.warnings)
    try:
        result.dependencies = parse(result.definition_files, tags=tags)
    except ConfigError as e:
        result.error = str(e)
        return result

    if not result.dependencies:
        logger.warning("No dependencies found")
        result.warnings.append("No dependencies found")

    # ── Set up handler registry ──────────────────────────────────
    if registry is None:
        try:
            registry = HandlerRegistry.from_type_map(type_map, mock_mode=mock_mode)
        except ConfigError as e:
            result.error = str(e)
            return result
    elif mock_mode:
        registry.set_mock_mode(True)

    # ── Execute ──────────────────────────────────────────────────
    result.report = invoke_dependencies(
        result.dependencies,
        registry,
        actions,
        force=force,
        dry_run=dry_run,
        quiet=quiet and test,
        confirm=confirm,
    )
    return result
