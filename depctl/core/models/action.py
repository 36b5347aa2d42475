"""
Action and outcome models — the execution contract.

Actions say what a run should do to every dependency (install,
import, test). Outcomes record what actually happened to each one.
The pipeline produces exactly one outcome per dependency it visits.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Action(str, Enum):
    """A requested action for a dependency."""

    INSTALL = "install"
    IMPORT = "import"
    TEST = "test"


# Held for a whole run. Test never appears together with Install/Import.
ActionSet = frozenset[Action]


def format_actions(actions: ActionSet) -> str:
    """Stable, human-readable list of actions (install, import, test order)."""
    ordered = [a.value for a in Action if a in actions]
    return ", ".join(ordered) if ordered else "nothing"


OutcomeReason = Literal[
    "",
    "declined",
    "pre_script_failed",
    "handler_missing",
    "handler_failed",
    "unsupported_platform",
]


class ExecutionOutcome(BaseModel):
    """Result of running one dependency through the pipeline.

    ``exists`` is meaningful in Test mode, ``error`` and
    ``post_script_errors`` in Install/Import mode.
    """

    dependency: str
    type: str
    status: Literal["ok", "skipped", "failed"] = "ok"
    reason: OutcomeReason = ""

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    exists: bool | None = None
    output: str = ""
    error: str | None = None
    post_script_errors: list[str] = Field(default_factory=list)

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @property
    def error_count(self) -> int:
        """Errors reported for this dependency (handler/hook plus post-scripts)."""
        return (1 if self.failed else 0) + len(self.post_script_errors)

    @classmethod
    def success(
        cls,
        dependency: str,
        type: str,
        output: str = "",
        **kwargs: Any,
    ) -> ExecutionOutcome:
        """Create a success outcome."""
        return cls(
            dependency=dependency,
            type=type,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        dependency: str,
        type: str,
        error: str,
        reason: OutcomeReason = "handler_failed",
        **kwargs: Any,
    ) -> ExecutionOutcome:
        """Create a failure outcome."""
        return cls(
            dependency=dependency,
            type=type,
            status="failed",
            reason=reason,
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        dependency: str,
        type: str,
        reason: OutcomeReason = "declined",
        **kwargs: Any,
    ) -> ExecutionOutcome:
        """Create a skip outcome."""
        return cls(
            dependency=dependency,
            type=type,
            status="skipped",
            reason=reason,
            **kwargs,
        )
