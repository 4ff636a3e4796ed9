"""
In-process coordination store.

Implements the CoordinationStore protocol on a single event loop:
- Hierarchical keys with implicit parent directories
- A global, monotonically increasing modification index
- Atomic create-only, compare-and-swap and compare-and-delete writes
- TTL expiry on monotonic time, applied lazily before every operation
  and optionally by a background cleanup task
- Watches that receive every notification under their prefix

Every operation runs without suspending between its precondition
check and its write, so each one is atomic with respect to every
other coroutine sharing the store.

Usage:
    store = MemoryStore()
    await store.create("/job/web/object", payload)

    async with store.watch("/job") as changes:
        async for notification in changes:
            ...
"""

from __future__ import annotations

import asyncio
import posixpath
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import (
    CompareFailedError,
    KeyNotFoundError,
    NodeExistsError,
    NotAFileError,
)
from .logging_models import StoreDebug
from .models import Node, Notification, StoreAction

if TYPE_CHECKING:
    from jobgrid.logging import Logger


@dataclass(slots=True)
class StoreEntry:
    """Internal record for one key."""
    key: str
    value: str | None
    dir: bool
    created_index: int
    modified_index: int
    ttl: float | None = None
    expires_at: float | None = None  # time.monotonic()

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class StoreWatch:
    """
    Async iterator over notifications for one watched prefix.

    Registered with the store on construction, so nothing written after
    `MemoryStore.watch()` returns is missed.
    """

    __slots__ = (
        "_store",
        "_prefix",
        "_recursive",
        "_queue",
        "_closed",
    )

    def __init__(
        self,
        store: MemoryStore,
        prefix: str,
        recursive: bool,
    ) -> None:
        self._store = store
        self._prefix = prefix
        self._recursive = recursive
        self._queue: asyncio.Queue[Notification | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, key: str) -> bool:
        if key == self._prefix:
            return True

        if self._recursive:
            base = self._prefix.rstrip("/")
            return key.startswith(f"{base}/")

        return posixpath.dirname(key) == self._prefix

    def push(self, notification: Notification) -> None:
        if not self._closed:
            self._queue.put_nowait(notification)

    def close(self) -> None:
        if self._closed:
            return

        self._closed = True
        self._store._unregister_watch(self)
        self._queue.put_nowait(None)

    def __aiter__(self) -> StoreWatch:
        return self

    async def __anext__(self) -> Notification:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration

        notification = await self._queue.get()
        if notification is None:
            raise StopAsyncIteration

        return notification

    async def __aenter__(self) -> StoreWatch:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MemoryStore:
    """
    Single-process CoordinationStore.

    Suitable for tests and single-node deployments. Multiple registries
    sharing one MemoryStore observe the same atomicity guarantees a
    replicated store gives separate processes.
    """

    __slots__ = (
        "_entries",
        "_index",
        "_watches",
        "_logger",
        "_cleanup_interval",
        "_cleanup_task",
        "_running",
    )

    def __init__(
        self,
        logger: Logger | None = None,
        cleanup_interval: float = 1.0,
    ) -> None:
        self._entries: dict[str, StoreEntry] = {
            "/": StoreEntry(
                key="/",
                value=None,
                dir=True,
                created_index=0,
                modified_index=0,
            ),
        }
        self._index = 0
        self._watches: list[StoreWatch] = []
        self._logger = logger
        self._cleanup_interval = cleanup_interval
        self._cleanup_task: asyncio.Task | None = None
        self._running = False

    @property
    def index(self) -> int:
        """Index of the most recent modification."""
        return self._index

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(
        self,
        key: str,
        recursive: bool = False,
        consistent: bool = True,
    ) -> Node:
        self.expire_keys()

        key = self._normalize(key)
        entry = self._entries.get(key)
        if entry is None:
            raise KeyNotFoundError(f"Key not found: {key}", key=key, index=self._index)

        return self._to_node(entry, recursive=recursive, depth=0)

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(
        self,
        key: str,
        value: str,
        ttl: float | None = None,
    ) -> Node:
        self.expire_keys()
        self._check_ttl(ttl)

        key = self._normalize(key)
        if key in self._entries:
            raise NodeExistsError(f"Key already exists: {key}", key=key, index=self._index)

        self._ensure_parents(key)

        index = self._next_index()
        entry = StoreEntry(
            key=key,
            value=value,
            dir=False,
            created_index=index,
            modified_index=index,
        )
        self._apply_ttl(entry, ttl)
        self._entries[key] = entry

        self._notify(StoreAction.CREATE, key, value=value)
        return self._to_node(entry)

    async def update(
        self,
        key: str,
        value: str,
        ttl: float | None = None,
    ) -> Node:
        self.expire_keys()
        self._check_ttl(ttl)

        entry = self._get_leaf(key)
        prev_value = self._write(entry, value, ttl)

        self._notify(StoreAction.UPDATE, entry.key, value=value, prev_value=prev_value)
        return self._to_node(entry)

    async def compare_and_swap(
        self,
        key: str,
        value: str,
        prev_index: int,
        ttl: float | None = None,
    ) -> Node:
        self.expire_keys()
        self._check_ttl(ttl)

        entry = self._get_leaf(key)
        if entry.modified_index != prev_index:
            raise CompareFailedError(
                f"Compare failed: [{prev_index} != {entry.modified_index}]",
                key=entry.key,
                index=self._index,
            )

        prev_value = self._write(entry, value, ttl)

        self._notify(StoreAction.COMPARE_AND_SWAP, entry.key, value=value, prev_value=prev_value)
        return self._to_node(entry)

    async def compare_and_delete(
        self,
        key: str,
        prev_index: int,
    ) -> Node:
        self.expire_keys()

        entry = self._get_leaf(key)
        if entry.modified_index != prev_index:
            raise CompareFailedError(
                f"Compare failed: [{prev_index} != {entry.modified_index}]",
                key=entry.key,
                index=self._index,
            )

        self._remove_tree(entry.key)
        self._next_index()

        self._notify(StoreAction.COMPARE_AND_DELETE, entry.key, prev_value=entry.value)
        return self._to_node(entry)

    async def delete(
        self,
        key: str,
        recursive: bool = False,
    ) -> Node:
        self.expire_keys()

        key = self._normalize(key)
        entry = self._entries.get(key)
        if entry is None:
            raise KeyNotFoundError(f"Key not found: {key}", key=key, index=self._index)

        if key == "/" or (entry.dir and not recursive):
            raise NotAFileError(f"Not a file: {key}", key=key, index=self._index)

        self._remove_tree(key)
        self._next_index()

        self._notify(StoreAction.DELETE, key, prev_value=entry.value)
        return self._to_node(entry)

    # =========================================================================
    # Watches
    # =========================================================================

    def watch(
        self,
        prefix: str,
        recursive: bool = True,
    ) -> StoreWatch:
        store_watch = StoreWatch(
            self,
            self._normalize(prefix),
            recursive,
        )
        self._watches.append(store_watch)
        return store_watch

    def _unregister_watch(self, store_watch: StoreWatch) -> None:
        if store_watch in self._watches:
            self._watches.remove(store_watch)

    def close(self) -> None:
        """Close every open watch."""
        for store_watch in list(self._watches):
            store_watch.close()

    # =========================================================================
    # Expiry
    # =========================================================================

    def expire_keys(self) -> list[str]:
        """
        Remove every key whose TTL has elapsed.

        Emits one EXPIRE notification per expired key, in key order.
        Returns the expired keys.
        """
        now = time.monotonic()
        expired = sorted(
            key
            for key, entry in self._entries.items()
            if entry.is_expired(now)
        )

        for key in expired:
            entry = self._entries.get(key)
            if entry is None:
                continue

            self._remove_tree(key)
            self._next_index()
            self._notify(StoreAction.EXPIRE, key, prev_value=entry.value)

            if self._logger:
                self._logger.emit(StoreDebug(
                    message=f"Expired key {key}",
                    key=key,
                    action=StoreAction.EXPIRE.value,
                    index=self._index,
                ))

        return expired

    async def start_cleanup_task(self) -> None:
        """Start the background expiry task."""
        if self._running:
            return

        self._running = True

        async def cleanup_loop():
            while self._running:
                self.expire_keys()
                await asyncio.sleep(self._cleanup_interval)

        self._cleanup_task = asyncio.create_task(cleanup_loop())

    async def stop_cleanup_task(self) -> None:
        """Stop the background expiry task."""
        self._running = False
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _normalize(self, key: str) -> str:
        return posixpath.normpath(f"/{key}").replace("//", "/")

    def _next_index(self) -> int:
        self._index += 1
        return self._index

    def _get_leaf(self, key: str) -> StoreEntry:
        key = self._normalize(key)
        entry = self._entries.get(key)
        if entry is None:
            raise KeyNotFoundError(f"Key not found: {key}", key=key, index=self._index)

        if entry.dir:
            raise NotAFileError(f"Not a file: {key}", key=key, index=self._index)

        return entry

    def _write(
        self,
        entry: StoreEntry,
        value: str,
        ttl: float | None,
    ) -> str | None:
        prev_value = entry.value
        entry.value = value
        entry.modified_index = self._next_index()
        self._apply_ttl(entry, ttl)
        return prev_value

    def _check_ttl(self, ttl: float | None) -> None:
        if ttl is not None and ttl <= 0:
            raise ValueError(f"TTL must be positive, got {ttl}")

    def _apply_ttl(self, entry: StoreEntry, ttl: float | None) -> None:
        entry.ttl = ttl
        entry.expires_at = time.monotonic() + ttl if ttl is not None else None

    def _ensure_parents(self, key: str) -> None:
        parent = posixpath.dirname(key)
        missing: list[str] = []

        while parent not in self._entries:
            missing.append(parent)
            parent = posixpath.dirname(parent)

        if not self._entries[parent].dir:
            raise NotAFileError(f"Not a directory: {parent}", key=parent, index=self._index)

        for directory in reversed(missing):
            index = self._next_index()
            self._entries[directory] = StoreEntry(
                key=directory,
                value=None,
                dir=True,
                created_index=index,
                modified_index=index,
            )

    def _remove_tree(self, key: str) -> None:
        prefix = f"{key}/"
        for child in [
            child_key for child_key in self._entries
            if child_key.startswith(prefix)
        ]:
            del self._entries[child]

        self._entries.pop(key, None)

    def _children(self, key: str) -> list[StoreEntry]:
        return sorted(
            (
                entry for entry_key, entry in self._entries.items()
                if entry_key != "/" and posixpath.dirname(entry_key) == key
            ),
            key=lambda entry: entry.key,
        )

    def _to_node(
        self,
        entry: StoreEntry,
        recursive: bool = False,
        depth: int = 0,
    ) -> Node:
        nodes: list[Node] = []
        if entry.dir and (recursive or depth == 0):
            nodes = [
                self._to_node(child, recursive=recursive, depth=depth + 1)
                for child in self._children(entry.key)
            ]

        return Node(
            key=entry.key,
            value=entry.value,
            dir=entry.dir,
            nodes=nodes,
            created_index=entry.created_index,
            modified_index=entry.modified_index,
            ttl=entry.ttl,
        )

    def _notify(
        self,
        action: StoreAction,
        key: str,
        value: str | None = None,
        prev_value: str | None = None,
    ) -> None:
        notification = Notification(
            action=action,
            key=key,
            value=value,
            prev_value=prev_value,
            index=self._index,
        )

        for store_watch in list(self._watches):
            if store_watch.matches(key):
                store_watch.push(notification)
