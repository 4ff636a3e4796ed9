from __future__ import annotations

from enum import Enum
from typing import Literal

LogLevelName = Literal[
    'trace',
    'debug',
    'info',
    'warn',
    'warning',
    'error',
    'critical',
    'fatal',
]


class LogLevel(Enum):
    """Severity of a log entry, ordered from TRACE to FATAL."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    FATAL = "FATAL"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def at_least(self, threshold: LogLevel) -> bool:
        return self.rank >= threshold.rank

    @classmethod
    def to_level(cls, level_name: LogLevelName | str) -> LogLevel:
        """Parse a level name. Unknown names fall back to INFO."""
        name = level_name.strip().upper()
        if name == "WARNING":
            return cls.WARN

        return cls.__members__.get(name, cls.INFO)


_RANKS = {level: rank for rank, level in enumerate(LogLevel)}
