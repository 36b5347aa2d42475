"""Handlers — tool bindings for each dependency type.

Public re-exports for convenient access.
"""

from depctl.adapters.base import (
    Handler,
    HandlerContext,
    HandlerError,
    HandlerNotFoundError,
    UnsupportedActionError,
    UnsupportedPlatformError,
)
from depctl.adapters.mock import MockHandler
from depctl.adapters.registry import HandlerRegistry

__all__ = [
    "Handler",
    "HandlerContext",
    "HandlerError",
    "HandlerNotFoundError",
    "HandlerRegistry",
    "MockHandler",
    "UnsupportedActionError",
    "UnsupportedPlatformError",
]
