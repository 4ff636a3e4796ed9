"""
Pytest configuration and shared fixtures.

Registry, lock and stream tests run against an in-process
MemoryStore. FailingStore wraps one to inject transient failures.
"""

import pytest

from jobgrid.env import Env
from jobgrid.logging import Logger
from jobgrid.models import Job, JobPayload
from jobgrid.registry import Registry, ResourceLock
from jobgrid.store import MemoryStore, StoreUnavailableError


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


class FailingStore:
    """
    MemoryStore wrapper that raises StoreUnavailableError on demand.

    Set `fail_reads` / `fail_writes` to simulate the store being
    unreachable for that class of operation.
    """

    def __init__(self, store: MemoryStore) -> None:
        self.store = store
        self.fail_reads = False
        self.fail_writes = False

    def _check(self, fail: bool, key: str) -> None:
        if fail:
            raise StoreUnavailableError("store unavailable", key=key)

    async def get(self, key, recursive=False, consistent=True):
        self._check(self.fail_reads, key)
        return await self.store.get(key, recursive=recursive, consistent=consistent)

    async def create(self, key, value, ttl=None):
        self._check(self.fail_writes, key)
        return await self.store.create(key, value, ttl=ttl)

    async def update(self, key, value, ttl=None):
        self._check(self.fail_writes, key)
        return await self.store.update(key, value, ttl=ttl)

    async def compare_and_swap(self, key, value, prev_index, ttl=None):
        self._check(self.fail_writes, key)
        return await self.store.compare_and_swap(key, value, prev_index, ttl=ttl)

    async def compare_and_delete(self, key, prev_index):
        self._check(self.fail_writes, key)
        return await self.store.compare_and_delete(key, prev_index)

    async def delete(self, key, recursive=False):
        self._check(self.fail_writes, key)
        return await self.store.delete(key, recursive=recursive)

    def watch(self, prefix, recursive=True):
        return self.store.watch(prefix, recursive=recursive)


@pytest.fixture
def env() -> Env:
    return Env(JOBGRID_REGISTRY_KEY_PREFIX="/test/registry", JOBGRID_LOCK_TTL="30s")


@pytest.fixture
def logger() -> Logger:
    logger = Logger()
    yield logger
    logger.close()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def failing_store(store: MemoryStore) -> FailingStore:
    return FailingStore(store)


@pytest.fixture
def registry(store: MemoryStore, logger: Logger, env: Env) -> Registry:
    return Registry(store, logger=logger, env=env)


@pytest.fixture
def locks(store: MemoryStore, logger: Logger, env: Env) -> ResourceLock:
    return ResourceLock(store, logger=logger, env=env)


@pytest.fixture
def sample_payload() -> JobPayload:
    return JobPayload(
        name="web.service",
        unit="[Service]\nExecStart=/usr/bin/web\n",
    )


@pytest.fixture
def job_factory(sample_payload: JobPayload):
    def create_job(
        name: str = "web.service",
        payload: JobPayload | None = None,
    ) -> Job:
        return Job(name=name, payload=payload or sample_payload)

    return create_job
