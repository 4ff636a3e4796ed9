"""
Registry watch -> domain event pipeline.

Subscribes to a recursive watch on the job subtree and forwards the
event derived from each notification, in arrival order, onto the
shared event queue.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from jobgrid.env import Env
from jobgrid.logging import Logger
from jobgrid.models import Event

from .events import derive_event
from .keys import RegistryKeys
from .logging_models import RegistryDebug, RegistryWarning

if TYPE_CHECKING:
    from jobgrid.store import CoordinationStore, WatchStream


class RegistryEventStream:
    """
    One task per instance feeding watch notifications through the
    event filters.

    The task exits only after close(). It does not drain notifications
    still queued in the watch; wait_closed() returns once the task has
    actually stopped.
    """

    __slots__ = (
        "_store",
        "_logger",
        "_keys",
        "_close",
        "_closed",
        "_task",
    )

    def __init__(
        self,
        store: CoordinationStore,
        logger: Logger | None = None,
        env: Env | None = None,
    ) -> None:
        if env is None:
            env = Env()

        if logger is None:
            logger = Logger()

        self._store = store
        self._logger = logger
        self._keys = RegistryKeys(env.JOBGRID_REGISTRY_KEY_PREFIX)
        self._close = asyncio.Event()
        self._closed = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, event_queue: asyncio.Queue[Event]) -> asyncio.Task:
        """Subscribe to the job subtree and start forwarding events."""
        if self._task is not None:
            raise RuntimeError("RegistryEventStream already started")

        watch = self._store.watch(self._keys.jobs(), recursive=True)
        self._task = asyncio.create_task(self.stream(watch, event_queue))
        return self._task

    async def stream(
        self,
        watch: WatchStream,
        event_queue: asyncio.Queue[Event],
    ) -> None:
        close_waiter = asyncio.ensure_future(self._close.wait())

        try:
            while True:
                next_notification = asyncio.ensure_future(anext(watch))
                done, _ = await asyncio.wait(
                    {close_waiter, next_notification},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if next_notification not in done:
                    next_notification.cancel()
                    return

                try:
                    notification = next_notification.result()

                except StopAsyncIteration:
                    # Watch ended, nothing more to forward until closed.
                    await close_waiter
                    return

                except Exception as err:
                    await self._logger.log(RegistryWarning(
                        message=f"Watch on {self._keys.jobs()} failed, no further events until closed: {err!r}",
                        key=self._keys.jobs(),
                    ))
                    await close_waiter
                    return

                event = derive_event(
                    notification,
                    logger=self._logger,
                    keys=self._keys,
                )
                if event is None:
                    continue

                await self._logger.log(RegistryDebug(
                    message=f"Translated {notification.action} on {notification.key} to event(Type={event.type.value})",
                    key=notification.key,
                ))

                put_event = asyncio.ensure_future(event_queue.put(event))
                done, _ = await asyncio.wait(
                    {close_waiter, put_event},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if put_event not in done:
                    put_event.cancel()
                    return

        finally:
            close_waiter.cancel()
            watch.close()

    def close(self) -> None:
        """
        Signal the stream to stop.

        Must be called at most once.
        """
        if self._closed:
            raise RuntimeError("RegistryEventStream already closed")

        self._closed = True
        self._close.set()

    async def wait_closed(self) -> None:
        """Wait until the forwarding task has exited."""
        if self._task is None:
            return

        try:
            await asyncio.shield(self._task)

        except asyncio.CancelledError:
            # Absorb the stream task's own cancellation, not the caller's.
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
