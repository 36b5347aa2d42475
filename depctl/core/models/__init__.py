"""
Domain models — Pydantic types for depctl.

All models are re-exported here for convenient access:

    from depctl.core.models import Dependency, Action, ExecutionOutcome
"""

from depctl.core.models.action import Action, ActionSet, ExecutionOutcome, format_actions
from depctl.core.models.dependency import DEFAULT_VERSION, Dependency

__all__ = [
    # action.py
    "Action",
    "ActionSet",
    "DEFAULT_VERSION",
    # dependency.py
    "Dependency",
    "ExecutionOutcome",
    "format_actions",
]
