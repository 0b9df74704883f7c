"""
structlog setup.

srpflow modules only call structlog.get_logger(); applications and the test
suite call configure_logging() once at startup.
"""

from __future__ import annotations

import structlog

LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


def level_number(name: str) -> int:
    """Map a level name ("info", "DEBUG", ...) to its numeric level.

    Raises:
        ValueError: If the name is not a known level.
    """
    key = name.lower()
    if key not in LOG_LEVELS:
        raise ValueError(f"Unknown log level {name!r}, expected one of {', '.join(LOG_LEVELS)}")
    return structlog.stdlib.NAME_TO_LEVEL[key]


def configure_logging(level: str = "info") -> None:
    """Configure structlog console output filtered at `level`."""
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_number(level)),
    )
