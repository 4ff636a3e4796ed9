"""
Lease-bound resource locks stored in the coordination store.

A lock is a create-only write of `<root>/lock/<class>/<name>` with a
TTL. The store expires the key if the holder neither renews nor
releases it, so a crashed holder cannot block other mutators forever.

Design Principles:
1. Acquisition is a single atomic store call - no client-side state
   decides ownership
2. Release and renewal are compare-and-delete/swap on the index the
   holder last wrote, so a holder whose lease expired and was taken
   over can never release or extend the new holder's lock
3. Locks are advisory and not reentrant: a second acquire by the same
   caller fails like any other
4. Expiry tracking on the handle uses monotonic time and is an
   approximation of the store's own TTL

Usage:
    locks = ResourceLock(store)

    handle = await locks.acquire("job", "web.service", context="reschedule")
    if handle:
        async with handle:
            ...
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

import msgspec

from jobgrid.env import Env
from jobgrid.logging import Logger
from jobgrid.store.errors import (
    CompareFailedError,
    KeyNotFoundError,
    NodeExistsError,
)

from .keys import RegistryKeys
from .logging_models import RegistryDebug

if TYPE_CHECKING:
    from jobgrid.store import CoordinationStore


def _check_ttl(ttl: float) -> None:
    if ttl <= 0:
        raise ValueError(f"Lock TTL must be positive, got {ttl}")


class LockRecord(msgspec.Struct, kw_only=True, rename="pascal"):
    """Stored value of a lock key. Context is for diagnostics only."""
    holder: str
    context: str = ""


class LockHandle:
    """
    Possession of one resource lock.

    Attributes:
        resource_class: Class of the locked resource (e.g. "job")
        name: Name of the locked resource
        context: Caller-supplied diagnostic string
        holder: Unique token identifying this acquisition
        ttl: Lease duration in seconds
    """

    __slots__ = (
        "_store",
        "_logger",
        "_key",
        "_value",
        "_index",
        "_released",
        "resource_class",
        "name",
        "context",
        "holder",
        "ttl",
        "acquired_at",
        "expires_at",
    )

    def __init__(
        self,
        store: CoordinationStore,
        logger: Logger,
        key: str,
        value: str,
        index: int,
        resource_class: str,
        name: str,
        context: str,
        holder: str,
        ttl: float,
    ) -> None:
        self._store = store
        self._logger = logger
        self._key = key
        self._value = value
        self._index = index
        self._released = False

        self.resource_class = resource_class
        self.name = name
        self.context = context
        self.holder = holder
        self.ttl = ttl
        self.acquired_at = time.monotonic()
        self.expires_at = self.acquired_at + ttl

    @property
    def key(self) -> str:
        return self._key

    @property
    def released(self) -> bool:
        return self._released

    def is_expired(self) -> bool:
        """Check whether the lease has lapsed or the lock was released."""
        if self._released:
            return True
        return time.monotonic() >= self.expires_at

    def remaining_seconds(self) -> float:
        """Get remaining time until expiry (0 if expired)."""
        if self.is_expired():
            return 0.0
        return max(0.0, self.expires_at - time.monotonic())

    async def renew(self, ttl: float | None = None) -> bool:
        """
        Extend the lease if this handle still holds the lock.

        Returns False if the lock was released, expired, or taken over.
        """
        if self._released:
            return False

        if ttl is None:
            ttl = self.ttl

        _check_ttl(ttl)

        try:
            node = await self._store.compare_and_swap(
                self._key,
                self._value,
                prev_index=self._index,
                ttl=ttl,
            )

        except (KeyNotFoundError, CompareFailedError):
            await self._logger.log(RegistryDebug(
                message=f"Lost lock {self.resource_class}/{self.name} before renewal",
                name=self.name,
                key=self._key,
            ))
            return False

        self._index = node.modified_index
        self.ttl = ttl
        self.expires_at = time.monotonic() + ttl
        return True

    async def release(self) -> bool:
        """
        Release the lock early.

        Returns False if this handle no longer held it.
        """
        if self._released:
            return False

        try:
            await self._store.compare_and_delete(
                self._key,
                prev_index=self._index,
            )

        except (KeyNotFoundError, CompareFailedError):
            self._released = True
            return False

        self._released = True
        return True

    async def __aenter__(self) -> LockHandle:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.release()

    def __repr__(self) -> str:
        return (
            f"LockHandle(resource_class={self.resource_class!r}, "
            f"name={self.name!r}, context={self.context!r})"
        )


class ResourceLock:
    """Acquires class-scoped, lease-bound locks on named resources."""

    __slots__ = (
        "_store",
        "_logger",
        "_keys",
        "_default_ttl",
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
        self._default_ttl = env.lock_ttl_seconds

    async def acquire(
        self,
        resource_class: str,
        name: str,
        context: str = "",
        ttl: float | None = None,
    ) -> LockHandle | None:
        """
        Attempt to acquire the lock on (resource_class, name).

        Returns None if another holder has it. Store failures other
        than the create conflict propagate.
        Raises ValueError if the TTL is not positive.
        """
        if ttl is None:
            ttl = self._default_ttl

        _check_ttl(ttl)

        key = self._keys.lock(resource_class, name)
        holder = uuid.uuid4().hex
        value = msgspec.json.encode(
            LockRecord(holder=holder, context=context)
        ).decode()

        try:
            node = await self._store.create(key, value, ttl=ttl)

        except NodeExistsError:
            await self._logger.log(RegistryDebug(
                message=f"Lock {resource_class}/{name} is held, could not acquire for {context}",
                name=name,
                key=key,
            ))
            return None

        return LockHandle(
            self._store,
            self._logger,
            key=key,
            value=value,
            index=node.modified_index,
            resource_class=resource_class,
            name=name,
            context=context,
            holder=holder,
            ttl=ttl,
        )

    async def holder_context(
        self,
        resource_class: str,
        name: str,
    ) -> str | None:
        """
        Get the diagnostic context of the current holder, if any.
        """
        try:
            node = await self._store.get(self._keys.lock(resource_class, name))

        except KeyNotFoundError:
            return None

        if node.value is None:
            return None

        try:
            return msgspec.json.decode(node.value, type=LockRecord).context

        except msgspec.DecodeError:
            return None
