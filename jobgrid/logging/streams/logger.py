from __future__ import annotations

import pathlib
import sys
from typing import Callable, Dict, TypeVar

from jobgrid.logging.models import Entry, Log

from .logger_stream import LoggerStream

T = TypeVar('T', bound=Entry)


class Logger:
    """
    Named structured-log streams.

    Entries are rendered through a template to stdout/stderr, or
    appended as JSON lines when a log file or directory is configured.
    `log()` is the async path, `emit()` writes inline for callers that
    must not suspend.
    """

    def __init__(self) -> None:
        self._streams: Dict[str, LoggerStream] = {}

    def __getitem__(self, name: str) -> LoggerStream:
        stream = self._streams.get(name)
        if stream is None:
            stream = self._streams[name] = LoggerStream(name=name)

        return stream

    def configure(
        self,
        name: str = 'default',
        template: str | None = None,
        path: str | None = None,
    ) -> LoggerStream:
        """
        Replace the named stream. A `path` with a suffix is a log file,
        otherwise a directory holding `<name>.json`.
        """
        filename: str | None = None
        directory: str | None = None

        if path:
            logfile_path = pathlib.Path(path).absolute()
            if logfile_path.suffix:
                filename = logfile_path.name
                directory = str(logfile_path.parent)

            else:
                directory = str(logfile_path)

        if (existing := self._streams.get(name)) is not None:
            existing.close()

        stream = self._streams[name] = LoggerStream(
            name=name,
            template=template,
            filename=filename,
            directory=directory,
        )
        return stream

    async def log(
        self,
        entry: T,
        name: str = 'default',
        template: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        await self[name].log(
            Log.from_frame(entry, name, sys._getframe(1)),
            template=template,
            filter=filter,
        )

    def emit(
        self,
        entry: T,
        name: str = 'default',
        template: str | None = None,
    ):
        self[name].emit(
            Log.from_frame(entry, name, sys._getframe(1)),
            template=template,
        )

    def close(self):
        for stream in self._streams.values():
            stream.close()

        self._streams.clear()
