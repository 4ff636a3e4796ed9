"""
Node-local wiring of the coordination core.

Builds the registry, its event stream and the unit status bridge from
one Env, and owns the shared event queue they publish to.
"""

from __future__ import annotations

import asyncio

from jobgrid.env import Env
from jobgrid.logging import Logger, LoggingConfig
from jobgrid.models import Event
from jobgrid.registry import Registry, RegistryEventStream
from jobgrid.store import CoordinationStore, MemoryStore
from jobgrid.units import UnitEventStream, UnitStatusBatch


class JobGridNode:
    """
    Lifecycle for one node's registry, event stream and bridge.

    Example usage:
        node = JobGridNode(env=load_env())
        await node.start()

        await node.registry.create_job(job)
        event = await node.events.get()

        await node.stop()

    When no store is given an in-process MemoryStore is created and its
    expiry task is run for the lifetime of the node.
    """

    def __init__(
        self,
        store: CoordinationStore | None = None,
        env: Env | None = None,
        logger: Logger | None = None,
    ) -> None:
        if env is None:
            env = Env()

        if logger is None:
            logger = Logger()

        self._env = env
        self._logger = logger
        self._logging_config: LoggingConfig | None = None

        self._owns_store = store is None
        if store is None:
            store = MemoryStore(
                logger=logger,
                cleanup_interval=env.store_cleanup_interval_seconds,
            )

        self.store = store
        self.registry = Registry(store, logger=logger, env=env)
        self.events: asyncio.Queue[Event] = asyncio.Queue(
            maxsize=env.JOBGRID_EVENT_QUEUE_SIZE,
        )
        self.unit_statuses: asyncio.Queue[UnitStatusBatch] = asyncio.Queue()

        self._registry_stream = RegistryEventStream(store, logger=logger, env=env)
        self._unit_stream = UnitEventStream(logger=logger)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def setup_logging_config(self) -> None:
        """Set up logging configuration from environment."""
        if self._logging_config is None:
            self._logging_config = LoggingConfig()
            self._logging_config.update(**self._env.get_logging_config())

    async def start(self) -> None:
        if self._running:
            raise RuntimeError("JobGridNode already started")

        self.setup_logging_config()

        if self._owns_store and isinstance(self.store, MemoryStore):
            await self.store.start_cleanup_task()

        self._registry_stream.start(self.events)
        self._unit_stream.start(self.unit_statuses, self.events)
        self._running = True

    async def stop(self) -> None:
        """Close both streams and wait for them to exit."""
        if not self._running:
            return

        self._running = False

        self._registry_stream.close()
        self._unit_stream.close()

        await self._registry_stream.wait_closed()
        await self._unit_stream.wait_closed()

        if self._owns_store and isinstance(self.store, MemoryStore):
            await self.store.stop_cleanup_task()
            self.store.close()
