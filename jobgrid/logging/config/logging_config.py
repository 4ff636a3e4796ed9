"""
Process-wide logging settings.

Settings live in a single context variable holding an immutable
snapshot, so a task that changes them only affects itself and the
tasks it spawns afterwards.
"""

import contextvars
from typing import Literal

import msgspec

from jobgrid.logging.models import LogLevel, LogLevelName

from .stream_type import StreamType

LogOutput = Literal['stdout', 'stderr']


class LoggingSettings(msgspec.Struct, frozen=True, kw_only=True):
    level: LogLevel = LogLevel.INFO
    output: StreamType = StreamType.STDOUT
    directory: str | None = None
    disabled: frozenset[str] = frozenset()


_logging_settings: contextvars.ContextVar[LoggingSettings] = contextvars.ContextVar(
    "_logging_settings",
    default=LoggingSettings(),
)


class LoggingConfig:
    """Read and update the logging settings of the current context."""

    def update(
        self,
        log_directory: str | None = None,
        log_level: LogLevelName | None = None,
        log_output: LogOutput | None = None,
    ):
        changes = {}

        if log_directory:
            changes["directory"] = log_directory

        if log_level:
            changes["level"] = LogLevel.to_level(log_level)

        if log_output:
            changes["output"] = StreamType(log_output)

        if changes:
            _logging_settings.set(
                msgspec.structs.replace(_logging_settings.get(), **changes)
            )

    def disable(self, logger_name: str):
        settings = _logging_settings.get()
        _logging_settings.set(
            msgspec.structs.replace(
                settings,
                disabled=settings.disabled | {logger_name},
            )
        )

    def enabled(self, logger_name: str, log_level: LogLevel) -> bool:
        settings = _logging_settings.get()
        return (
            logger_name not in settings.disabled
            and log_level.at_least(settings.level)
        )

    @property
    def settings(self) -> LoggingSettings:
        return _logging_settings.get()

    @property
    def level(self) -> LogLevel:
        return _logging_settings.get().level

    @property
    def output(self) -> StreamType:
        return _logging_settings.get().output

    @property
    def directory(self) -> str | None:
        return _logging_settings.get().directory
