"""
Tests for JobGridNode wiring.

Covers:
1. Registry mutations and unit status batches reach the shared queue
2. Event queue bound comes from the environment
3. Stop closes both streams and is idempotent
"""

import asyncio

import pytest

from jobgrid.env import Env
from jobgrid.logging import Logger
from jobgrid.models import EventType, UnitStatus
from jobgrid.node import JobGridNode
from jobgrid.store import MemoryStore


class TestJobGridNode:
    """Tests for node start/stop and event delivery."""

    @pytest.mark.asyncio
    async def test_events_from_both_sources(self, env: Env, logger: Logger, job_factory) -> None:
        node = JobGridNode(env=env, logger=logger)
        await node.start()

        await node.registry.create_job(job_factory("foo"))
        created = await asyncio.wait_for(node.events.get(), timeout=1.0)

        await node.unit_statuses.put({
            "foo": UnitStatus(load_state="loaded", active_state="active", sub_state="running"),
        })
        updated = await asyncio.wait_for(node.events.get(), timeout=1.0)

        await node.stop()

        assert created.type == EventType.JOB_CREATED
        assert updated.type == EventType.UNIT_STATE_UPDATED
        assert updated.context == "foo"
        assert not node.running

    @pytest.mark.asyncio
    async def test_queue_size_and_cleanup_interval_from_env(self, logger: Logger) -> None:
        env = Env(
            JOBGRID_EVENT_QUEUE_SIZE=8,
            JOBGRID_STORE_CLEANUP_INTERVAL="0.02s",
        )
        node = JobGridNode(env=env, logger=logger)

        assert node.events.maxsize == 8
        assert isinstance(node.store, MemoryStore)

        await node.start()
        await node.store.create("/lease", "holder", ttl=0.01)
        await asyncio.sleep(0.1)

        assert "/lease" not in node.store.expire_keys()
        await node.stop()

    @pytest.mark.asyncio
    async def test_shared_store_is_left_running(self, store: MemoryStore, env: Env, logger: Logger) -> None:
        node = JobGridNode(store=store, env=env, logger=logger)
        await node.start()
        await node.stop()

        await store.create("/after", "value")
        assert (await store.get("/after")).value == "value"

    @pytest.mark.asyncio
    async def test_start_twice_and_stop_twice(self, env: Env, logger: Logger) -> None:
        node = JobGridNode(env=env, logger=logger)
        await node.start()

        with pytest.raises(RuntimeError):
            await node.start()

        await node.stop()
        await node.stop()
