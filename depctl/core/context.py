"""
Process context — error strictness for external scripts and commands.

Commands run through ``depctl.adapters.shell.command.run_command``
consult this flag: under strict errors a shell script runs with
``set -e`` and any non-zero exit raises; otherwise the failure is
logged and the caller decides what to do.

Hooks run under ``strict_errors()`` so a failing pre/post script is a
real failure. The override is scoped: the previous value is restored
on every exit path, so one dependency's hooks never change how the
next dependency is evaluated.

Design notes:
    - Module-level flag (not a class), same as other process-wide
      context. Single-threaded by contract.
    - ``strict_errors()`` nests: inner scopes restore the outer value.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

_strict_errors: bool = False


def is_strict() -> bool:
    """Whether failures of external commands currently raise."""
    return _strict_errors


@contextmanager
def strict_errors(enabled: bool = True) -> Iterator[None]:
    """Override error strictness for the duration of the block."""
    global _strict_errors
    previous = _strict_errors
    _strict_errors = enabled
    try:
        yield
    finally:
        _strict_errors = previous
