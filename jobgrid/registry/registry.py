"""
Job and payload registry.

The system of record for job definitions, payload templates and
machine assignments. All state lives in the coordination store; the
registry keeps none of its own and takes no client-side locks. The
store's atomic create and compare-and-swap are the only cross-process
guarantees relied on:

- create_payload and schedule_job are create-only writes
- create_job is create-only while the job is unscheduled and a
  compare-and-swap on the object leaf once it is scheduled

Reads come in two forms. `lookup_*` returns a tagged result that
separates "absent" from "store unreachable". `get_*` collapses both
into an empty result for callers that only care about presence.

No operation retries. Write paths propagate store errors to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import msgspec

from jobgrid.env import Env
from jobgrid.logging import Logger
from jobgrid.models import Job, JobPayload, JobRecord
from jobgrid.store.errors import (
    KeyNotFoundError,
    NodeExistsError,
    StoreError,
)

from .errors import JobAlreadyExistsError
from .keys import RegistryKeys
from .lock import LockHandle, ResourceLock
from .logging_models import RegistryDebug, RegistryInfo, RegistryWarning
from .lookup import Found, LookupResult, NotFound, TransientError

if TYPE_CHECKING:
    from jobgrid.store import CoordinationStore, Node


class Registry:
    """
    CRUD and scheduling operations over the registry key-space.

    Example usage:
        registry = Registry(store)

        await registry.create_payload(JobPayload(name="web", unit=unit_text))
        await registry.create_job(Job(name="web.service", payload=payload))
        await registry.schedule_job("web.service", boot_id)

        jobs = await registry.get_all_jobs_by_machine(boot_id)
    """

    __slots__ = (
        "_store",
        "_logger",
        "_keys",
        "_locks",
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
        self._locks = ResourceLock(store, logger=logger, env=env)

    @property
    def keys(self) -> RegistryKeys:
        return self._keys

    # =========================================================================
    # Payloads
    # =========================================================================

    async def get_all_payloads(self) -> list[JobPayload]:
        """
        List every stored payload.

        Returns an empty list if the payload subtree cannot be read.
        Entries that fail to decode are logged and skipped.
        """
        try:
            node = await self._store.get(self._keys.payloads(), recursive=True)

        except StoreError:
            return []

        payloads: list[JobPayload] = []
        for child in node.nodes:
            payload = await self._decode(child, JobPayload)
            if payload is not None:
                payloads.append(payload)

        return payloads

    async def create_payload(self, payload: JobPayload) -> None:
        """
        Store a new payload.

        Raises NodeExistsError if a payload of the same name exists.
        """
        await self._store.create(
            self._keys.payload(payload.name),
            self._encode(payload),
        )

    async def lookup_payload(self, payload_name: str) -> LookupResult[JobPayload]:
        return await self._lookup(self._keys.payload(payload_name), JobPayload)

    async def get_payload(self, payload_name: str) -> JobPayload | None:
        result = await self.lookup_payload(payload_name)
        if isinstance(result, Found):
            return result.value

        return None

    async def destroy_payload(self, payload_name: str) -> None:
        """Delete a payload. A missing payload is not an error."""
        try:
            await self._store.delete(self._keys.payload(payload_name))

        except KeyNotFoundError:
            pass

    # =========================================================================
    # Jobs
    # =========================================================================

    async def get_all_jobs(self) -> list[Job]:
        """
        List every job that resolves to a valid definition.

        Returns an empty list if the job subtree cannot be read.
        """
        try:
            node = await self._store.get(self._keys.jobs(), recursive=True)

        except StoreError:
            return []

        jobs: list[Job] = []
        for child in node.nodes:
            job = await self.get_job(child.name)
            if job is not None:
                jobs.append(job)

        return jobs

    async def get_all_jobs_by_machine(self, machine_boot_id: str) -> list[Job]:
        """List the jobs currently scheduled to the given machine."""
        jobs: list[Job] = []
        for job in await self.get_all_jobs():
            target = await self.get_job_target(job.name)
            if target and target == machine_boot_id:
                jobs.append(job)

        return jobs

    async def lookup_job(self, job_name: str) -> LookupResult[Job]:
        result = await self._lookup(self._keys.job_object(job_name), JobRecord)
        if not isinstance(result, Found):
            return result

        job = result.value.to_job()
        if job is None:
            await self._logger.log(RegistryWarning(
                message=f"Job {job_name} has no payload, treating as absent",
                name=job_name,
                key=self._keys.job_object(job_name),
            ))
            return NotFound(reason="job record has no payload")

        return Found(job)

    async def get_job(self, job_name: str) -> Job | None:
        result = await self.lookup_job(job_name)
        if isinstance(result, Found):
            return result.value

        return None

    async def create_job(self, job: Job) -> None:
        """
        Create a job, or redefine it in place if it is scheduled.

        An unscheduled job can only be created once: a second create
        raises JobAlreadyExistsError. A scheduled job's definition is
        replaced with a compare-and-swap against the version just read,
        so its assignment is never disturbed and a concurrent
        redefinition or stop is reported (CompareFailedError or
        KeyNotFoundError) rather than silently overwritten.
        """
        key = self._keys.job_object(job.name)
        value = self._encode(job)

        try:
            await self._store.create(key, value)
            return

        except NodeExistsError:
            pass

        target = await self.lookup_job_target(job.name)
        if isinstance(target, TransientError):
            raise target.cause

        if isinstance(target, NotFound):
            raise JobAlreadyExistsError(job.name)

        current = await self._store.get(key)
        await self._store.compare_and_swap(
            key,
            value,
            prev_index=current.modified_index,
        )

        await self._logger.log(RegistryInfo(
            message=f"Redefined scheduled job {job.name}",
            name=job.name,
            key=key,
        ))

    async def stop_job(self, job_name: str) -> None:
        """
        Remove a job together with its assignment.

        A missing job is not an error.
        """
        try:
            await self._store.delete(self._keys.job(job_name), recursive=True)

        except KeyNotFoundError:
            pass

    # =========================================================================
    # Scheduling
    # =========================================================================

    async def lookup_job_target(self, job_name: str) -> LookupResult[str]:
        key = self._keys.job_target(job_name)
        try:
            node = await self._store.get(key)

        except KeyNotFoundError:
            return NotFound()

        except StoreError as err:
            return TransientError(cause=err)

        if node.dir or node.value is None:
            return NotFound(reason="target is not a leaf")

        return Found(node.value)

    async def get_job_target(self, job_name: str) -> str:
        """
        Get the boot ID of the machine the job is scheduled to.

        Returns an empty string if the job is unscheduled or the
        target could not be read.
        """
        result = await self.lookup_job_target(job_name)
        if isinstance(result, Found):
            return result.value

        return ""

    async def job_scheduled(self, job_name: str) -> bool:
        return isinstance(await self.lookup_job_target(job_name), Found)

    async def schedule_job(self, job_name: str, machine_boot_id: str) -> None:
        """
        Assign a job to a machine.

        Raises NodeExistsError if the job already has an assignment.
        Reassignment requires unschedule_job first.
        """
        await self._store.create(self._keys.job_target(job_name), machine_boot_id)

    async def unschedule_job(self, job_name: str) -> None:
        """Remove a job's assignment. A missing assignment is not an error."""
        try:
            await self._store.delete(self._keys.job_target(job_name), recursive=True)

        except KeyNotFoundError:
            pass

    # =========================================================================
    # Locking
    # =========================================================================

    async def lock_job(self, job_name: str, context: str) -> LockHandle | None:
        """Acquire the lock serializing multi-step mutations of a job."""
        return await self._locks.acquire("job", job_name, context)

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _encode(self, value: Job | JobPayload) -> str:
        return msgspec.json.encode(value).decode()

    async def _lookup(
        self,
        key: str,
        model: type[JobRecord] | type[JobPayload],
    ) -> LookupResult:
        try:
            node = await self._store.get(key)

        except KeyNotFoundError:
            return NotFound()

        except StoreError as err:
            await self._logger.log(RegistryDebug(
                message=f"Failed to read {key}: {err}",
                key=key,
            ))
            return TransientError(cause=err)

        decoded = await self._decode(node, model)
        if decoded is None:
            return NotFound(reason="stored value could not be decoded")

        return Found(decoded)

    async def _decode(
        self,
        node: Node,
        model: type[JobRecord] | type[JobPayload],
    ):
        if node.dir or node.value is None:
            return None

        try:
            return msgspec.json.decode(node.value, type=model)

        except msgspec.DecodeError as err:
            await self._logger.log(RegistryWarning(
                message=f"Failed to deserialize {model.__name__} at {node.key}: {err}",
                name=node.name,
                key=node.key,
            ))
            return None
