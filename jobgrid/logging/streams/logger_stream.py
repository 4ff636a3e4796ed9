import asyncio
import datetime
import io
import os
import pathlib
import sys
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, TypeVar

import msgspec

from jobgrid.logging.config import LoggingConfig, StreamType
from jobgrid.logging.models import Entry, Log

T = TypeVar('T', bound=Entry)


DEFAULT_TEMPLATE = "{timestamp} - {level} - {thread_id} - {filename}:{function_name}.{line_number} - {message}"
ERROR_TEMPLATE = "{timestamp} - {level} - {thread_id}.{filename}:{function_name}.{line_number} - {error}"


class LoggerStream:
    """
    One named log destination.

    Writes go to stdout/stderr unless a log file or directory is set,
    either on the stream or globally through LoggingConfig, in which
    case each Log is appended to the file as one JSON line.
    """

    def __init__(
        self,
        name: str = "default",
        template: str | None = None,
        filename: str | None = None,
        directory: str | None = None,
    ) -> None:
        self._name = name
        self._template = template or DEFAULT_TEMPLATE
        self._filename = filename
        self._directory = directory

        self._config = LoggingConfig()
        self._files: Dict[str, io.BufferedWriter] = {}
        self._file_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    def enabled(self, entry: Entry) -> bool:
        return not self._closed and self._config.enabled(self._name, entry.level)

    async def log(
        self,
        log: Log,
        template: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        if not self.enabled(log.entry):
            return

        if filter and not filter(log.entry):
            return

        logfile_path = self._resolve_logfile_path()
        if logfile_path is None:
            self._write_to_stream(log, template=template)
            return

        loop = asyncio.get_running_loop()
        async with self._file_locks[logfile_path]:
            await loop.run_in_executor(
                None,
                self._write_to_file,
                log,
                logfile_path,
            )

    def emit(
        self,
        log: Log,
        template: str | None = None,
    ):
        if not self.enabled(log.entry):
            return

        logfile_path = self._resolve_logfile_path()
        if logfile_path is None:
            self._write_to_stream(log, template=template)

        else:
            self._write_to_file(log, logfile_path)

    def close(self):
        self._closed = True

        for logfile in self._files.values():
            if not logfile.closed:
                logfile.close()

        self._files.clear()

    def _resolve_logfile_path(self) -> str | None:
        directory = self._config.directory or self._directory
        if self._filename is None and directory is None:
            return None

        filename = self._filename or f"{self._name}.json"
        if pathlib.Path(filename).suffix != ".json":
            raise ValueError(f"Log file {filename} must be a .json file")

        return os.path.join(directory or os.getcwd(), filename)

    def _call_site(self, log: Log) -> Dict[str, Any]:
        return {
            "stream": log.stream,
            "filename": log.filename,
            "function_name": log.function_name,
            "line_number": log.line_number,
        }

    def _write_to_stream(
        self,
        log: Log,
        template: str | None = None,
    ):
        stream = sys.stdout if self._config.output == StreamType.STDOUT else sys.stderr

        try:
            stream.write(
                log.entry.to_template(
                    template or self._template,
                    context={
                        **self._call_site(log),
                        "thread_id": log.thread_id,
                        "timestamp": log.timestamp,
                    },
                )
                + "\n"
            )
            stream.flush()

        except (KeyError, ValueError, OSError) as err:
            # Bad template or closed stream: report on stderr instead.
            sys.stderr.write(
                log.entry.to_template(
                    ERROR_TEMPLATE,
                    context={
                        **self._call_site(log),
                        "error": repr(err),
                        "thread_id": threading.get_native_id(),
                        "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
                    },
                )
                + "\n"
            )

    def _write_to_file(
        self,
        log: Log,
        logfile_path: str,
    ):
        logfile = self._files.get(logfile_path)
        if logfile is None or logfile.closed:
            pathlib.Path(logfile_path).parent.mkdir(parents=True, exist_ok=True)
            logfile = self._files[logfile_path] = open(logfile_path, "ab")

        logfile.write(msgspec.json.encode(log) + b"\n")
        logfile.flush()
