"""
Service manager status -> domain event bridge.

Translates each batch of unit status snapshots delivered by the local
service manager into UnitStateUpdated events on the shared event
queue.

Ordering:
- Events from one batch carry no ordering guarantee between units
  (their current order is an artifact of the input mapping)
- Batches are forwarded in the order they arrive

Lifecycle:
- start() runs the loop as one task owned by this instance
- The loop exits only after close(); an idle or abandoned inbound
  queue keeps it waiting
- A shut-down inbound queue or a malformed batch is logged; neither
  ends the loop
- Nothing is forwarded once close() is signalled, even mid-batch
- wait_closed() returns once the task has actually exited
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

import msgspec

from jobgrid.logging import Logger
from jobgrid.models import Event, EventType, UnitState, UnitStatus

from .logging_models import UnitStreamDebug, UnitStreamWarning

UnitStatusBatch = Mapping[str, UnitStatus | Mapping[str, Any] | None]


def translate_unit_status_events(
    changes: UnitStatusBatch,
    logger: Logger | None = None,
) -> list[Event]:
    """
    Translate one status batch into one event per unit.

    Events follow the iteration order of `changes`. That order is
    incidental: no ordering between units of one batch is guaranteed
    and consumers must not depend on it.

    A None status means the unit disappeared and yields an event with
    no state. Raw mappings are decoded as UnitStatus; one that fails to
    decode is logged and dropped without affecting the other units.
    """
    events: list[Event] = []

    for unit_name, status in changes.items():
        state: UnitState | None = None

        if status is not None:
            try:
                if not isinstance(status, UnitStatus):
                    status = msgspec.convert(status, type=UnitStatus)

                state = UnitState.from_status(status)

            except msgspec.ValidationError as err:
                if logger:
                    logger.emit(UnitStreamWarning(
                        message=f"Dropped undecodable status for unit {unit_name}: {err}",
                        unit_name=unit_name,
                    ))
                continue

        events.append(
            Event(
                type=EventType.UNIT_STATE_UPDATED,
                payload=state,
                context=unit_name,
            )
        )

    return events


class UnitEventStream:
    __slots__ = (
        "_logger",
        "_close",
        "_closed",
        "_task",
    )

    def __init__(self, logger: Logger | None = None) -> None:
        if logger is None:
            logger = Logger()

        self._logger = logger
        self._close = asyncio.Event()
        self._closed = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(
        self,
        unit_queue: asyncio.Queue[UnitStatusBatch],
        event_queue: asyncio.Queue[Event],
    ) -> asyncio.Task:
        if self._task is not None:
            raise RuntimeError("UnitEventStream already started")

        self._task = asyncio.create_task(self.stream(unit_queue, event_queue))
        return self._task

    async def stream(
        self,
        unit_queue: asyncio.Queue[UnitStatusBatch],
        event_queue: asyncio.Queue[Event],
    ) -> None:
        close_waiter = asyncio.ensure_future(self._close.wait())

        try:
            while True:
                next_batch = asyncio.ensure_future(unit_queue.get())
                done, _ = await asyncio.wait(
                    {close_waiter, next_batch},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if close_waiter in done:
                    next_batch.cancel()
                    return

                try:
                    units = next_batch.result()

                except Exception as err:
                    # Inbound queue shut down, nothing more to forward until closed.
                    await self._logger.log(UnitStreamWarning(
                        message=f"Service manager status queue closed: {err!r}",
                    ))
                    await close_waiter
                    return

                if not isinstance(units, Mapping):
                    await self._logger.log(UnitStreamWarning(
                        message=f"Dropped malformed status batch of type {type(units).__name__}",
                    ))
                    continue

                await self._logger.log(UnitStreamDebug(
                    message=f"Received status batch for {len(units)} units from service manager",
                ))

                for event in translate_unit_status_events(units, logger=self._logger):
                    if self._close.is_set():
                        return

                    put_event = asyncio.ensure_future(event_queue.put(event))
                    done, _ = await asyncio.wait(
                        {close_waiter, put_event},
                        return_when=asyncio.FIRST_COMPLETED,
                    )

                    if put_event not in done:
                        put_event.cancel()
                        return

                    await self._logger.log(UnitStreamDebug(
                        message=f"Translated service manager status to event(Type={event.type.value})",
                        unit_name=event.context,
                    ))

        finally:
            close_waiter.cancel()

    def close(self) -> None:
        """
        Signal the loop to stop.

        Must be called at most once.
        """
        if self._closed:
            raise RuntimeError("UnitEventStream already closed")

        self._closed = True
        self._close.set()

    async def wait_closed(self) -> None:
        """Wait until the loop task has exited."""
        if self._task is None:
            return

        try:
            await asyncio.shield(self._task)

        except asyncio.CancelledError:
            # Absorb the loop task's own cancellation, not the caller's.
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
