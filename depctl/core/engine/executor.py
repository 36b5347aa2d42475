"""
Engine executor — the central orchestration loop.

The executor takes the ordered dependencies produced by the parser and
runs each one through the handler registry. Per dependency it decides
whether to proceed (force, confirmation, dry-run), runs pre-scripts,
dispatches the handler, runs post-scripts, and records one outcome.

Flow:
    dependency → gate → pre-scripts → handler → post-scripts → outcome

A failing dependency never aborts the run. In quiet-test mode the
per-dependency Test results are folded into one verdict.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from depctl.adapters.base import HandlerNotFoundError, UnsupportedPlatformError
from depctl.adapters.registry import HandlerRegistry
from depctl.core.engine.hooks import run_post_scripts, run_pre_scripts
from depctl.core.models.action import Action, ActionSet, ExecutionOutcome, format_actions
from depctl.core.models.dependency import Dependency

logger = logging.getLogger(__name__)

# Receives a human-readable description, returns whether to proceed.
ConfirmCallback = Callable[[str], bool]


def resolve_actions(
    install: bool = True,
    import_: bool = False,
    test: bool = False,
) -> ActionSet:
    """Derive the run's action set from the mode flags.

    Test wins only when explicitly selected; callers must not mix it
    with Install/Import (the CLI rejects that combination). Without
    flags the result is Install only.

    Raises:
        ValueError: If no action is selected at all.
    """
    if test:
        return frozenset({Action.TEST})

    actions = set()
    if install:
        actions.add(Action.INSTALL)
    if import_:
        actions.add(Action.IMPORT)
    if not actions:
        raise ValueError("No action selected: enable install, import or test")
    return frozenset(actions)


def describe_action(dependency: Dependency, actions: ActionSet) -> str:
    """Message shown when asking whether to process a dependency."""
    verbs = format_actions(actions).capitalize()
    version = "" if dependency.is_latest else f" {dependency.version}"
    target = f" into {dependency.target}" if dependency.target else ""
    return (
        f"{verbs} dependency '{dependency.display_name}' "
        f"({dependency.type}{version}){target}"
    )


def _default_confirm(dry_run: bool) -> ConfirmCallback:
    def confirm(message: str) -> bool:
        if dry_run:
            logger.info("[dry-run] %s", message)
            return False
        return True

    return confirm


def should_process(
    dependency: Dependency,
    actions: ActionSet,
    *,
    force: bool = False,
    dry_run: bool = False,
    confirm: ConfirmCallback | None = None,
) -> bool:
    """Decide whether a dependency runs at all.

    Priority:
        1. Test mode always proceeds (read-only, no prompt).
        2. Force without dry-run proceeds without prompting.
        3. Otherwise the confirmation callback decides.
    """
    if Action.TEST in actions:
        return True
    if force and not dry_run:
        return True

    callback = confirm or _default_confirm(dry_run)
    return bool(callback(describe_action(dependency, actions)))


def execute_dependency(
    dependency: Dependency,
    actions: ActionSet,
    registry: HandlerRegistry,
    *,
    quiet: bool = False,
) -> ExecutionOutcome:
    """Run hooks and the handler for one dependency.

    Never raises for hook or handler failures; they are logged and
    recorded in the returned outcome.
    """
    started_at = datetime.now(UTC).isoformat()
    start = time.monotonic()
    install = Action.INSTALL in actions
    testing = Action.TEST in actions
    # A dependency that fails in Test mode counts as not satisfied
    missing = False if testing else None

    def finish(outcome: ExecutionOutcome) -> ExecutionOutcome:
        outcome.started_at = started_at
        outcome.ended_at = datetime.now(UTC).isoformat()
        outcome.duration_ms = int((time.monotonic() - start) * 1000)
        return outcome

    if install:
        stage = run_pre_scripts(dependency)
        if not stage.ready:
            return finish(ExecutionOutcome.failure(
                dependency.key,
                dependency.type,
                stage.error or "pre-script failed",
                reason="pre_script_failed",
                exists=missing,
            ))

    try:
        result = registry.invoke(actions, dependency, quiet=quiet)
    except HandlerNotFoundError as e:
        logger.error("%s: %s", dependency.display_name, e)
        return finish(ExecutionOutcome.failure(
            dependency.key, dependency.type, str(e), reason="handler_missing",
            exists=missing,
        ))
    except UnsupportedPlatformError as e:
        logger.error("%s: %s", dependency.display_name, e)
        return finish(ExecutionOutcome.failure(
            dependency.key, dependency.type, str(e), reason="unsupported_platform",
            exists=missing,
        ))
    except Exception as e:
        logger.error("Failed to %s %s: %s", format_actions(actions), dependency.display_name, e)
        return finish(ExecutionOutcome.failure(
            dependency.key, dependency.type, str(e),
            exists=missing,
        ))

    post_errors = run_post_scripts(dependency) if install else []
    return finish(ExecutionOutcome.success(
        dependency.key,
        dependency.type,
        exists=result if testing else None,
        post_script_errors=post_errors,
    ))


def aggregate_results(results: Iterable[bool]) -> bool:
    """Fold quiet-test results: logical AND, vacuously True when empty."""
    return all(results)


@dataclass
class InvocationReport:
    """Result of running the pipeline over a dependency sequence."""

    actions: ActionSet = frozenset()
    quiet: bool = False
    outcomes: list[ExecutionOutcome] = field(default_factory=list)
    test_results: list[bool] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def processed(self) -> int:
        """Dependencies that passed the gate (succeeded or failed)."""
        return sum(1 for o in self.outcomes if not o.skipped)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.failed)

    @property
    def errors(self) -> int:
        """Errors reported, post-script failures included."""
        return sum(o.error_count for o in self.outcomes)

    @property
    def all_ok(self) -> bool:
        return self.errors == 0

    @property
    def status(self) -> str:
        if self.errors == 0:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    @property
    def verdict(self) -> bool | None:
        """Quiet-test verdict; None outside quiet-test mode."""
        if not (self.quiet and Action.TEST in self.actions):
            return None
        return aggregate_results(self.test_results)

    def to_dict(self) -> dict:
        return {
            "actions": [a.value for a in Action if a in self.actions],
            "status": self.status,
            "total": self.total,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": self.errors,
            "verdict": self.verdict,
            "outcomes": [o.model_dump(mode="json") for o in self.outcomes],
        }


def invoke_dependencies(
    dependencies: Iterable[Dependency],
    registry: HandlerRegistry,
    actions: ActionSet,
    *,
    force: bool = False,
    dry_run: bool = False,
    quiet: bool = False,
    confirm: ConfirmCallback | None = None,
) -> InvocationReport:
    """Run every dependency through the pipeline, in the given order.

    Args:
        dependencies: Ordered dependencies from the parser.
        registry: Handler registry for dispatch.
        actions: The run's action set (see ``resolve_actions``).
        force: Skip confirmation (ignored under dry-run).
        dry_run: Describe instead of doing; the callback decides.
        quiet: Collect Test results into a verdict instead of logging them.
        confirm: Confirmation callback. None denies under dry-run and
            grants otherwise.

    Returns:
        InvocationReport with one outcome per dependency.
    """
    report = InvocationReport(actions=actions, quiet=quiet)
    collect = quiet and Action.TEST in actions

    for dependency in dependencies:
        if not should_process(
            dependency, actions, force=force, dry_run=dry_run, confirm=confirm
        ):
            logger.debug("Skipping %s (not confirmed)", dependency.display_name)
            report.outcomes.append(
                ExecutionOutcome.skip(dependency.key, dependency.type)
            )
            continue

        outcome = execute_dependency(dependency, actions, registry, quiet=quiet)
        report.outcomes.append(outcome)
        if collect:
            report.test_results.append(bool(outcome.exists))

        if not quiet:
            passed = outcome.exists if Action.TEST in actions else outcome.ok
            state = outcome.status
            if Action.TEST in actions and outcome.ok:
                state = "present" if outcome.exists else "missing"
            logger.info(
                "%s %s (%s) → %s",
                "✓" if passed else "✗",
                dependency.display_name,
                dependency.type,
                state,
            )

    return report
