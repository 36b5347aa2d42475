"""
Logging setup for the depctl CLI.

``depctl.main`` calls ``setup_logging`` once per process; modules only
ever do ``logger = logging.getLogger(__name__)``.

Console level: ``--debug`` / ``--verbose`` flags, then ``DEPCTL_LOG_LEVEL``,
then WARNING. A log file (``DEPCTL_LOG_FILE``) can run at its own level
(``DEPCTL_LOG_FILE_LEVEL``) and always gets the detailed format.
"""

from __future__ import annotations

import logging
import sys

_DETAILED = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"

# (max level, format, datefmt), checked in order
_CONSOLE_FORMATS = (
    (logging.DEBUG, _DETAILED, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_CONSOLE_DEFAULT = ("%(levelname)s: %(message)s", None)

# Chatty below WARNING when pip or index lookups run in-process
_NOISY_LOGGERS = ("urllib3", "pip", "charset_normalizer")


def _console_formatter(level: int) -> logging.Formatter:
    for max_level, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= max_level:
            return logging.Formatter(fmt, datefmt=datefmt)
    fmt, datefmt = _CONSOLE_DEFAULT
    return logging.Formatter(fmt, datefmt=datefmt)


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers with depctl's console (and file) output.

    Calling it again reconfigures from scratch. ``log_file_level``
    defaults to ``level``.
    """
    console_level = _parse_level(level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_console_formatter(console_level))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(_DETAILED, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(file_handler)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # A closed stream (e.g. after CliRunner) must not print tracebacks
    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Level name → number; unknown or empty names mean WARNING."""
    numeric = getattr(logging, level.upper(), None) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
