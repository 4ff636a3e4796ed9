from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import Node, Notification


@runtime_checkable
class WatchStream(Protocol):
    """Notifications for one watched prefix, in store order."""

    def __aiter__(self) -> WatchStream: ...

    async def __anext__(self) -> Notification: ...

    def close(self) -> None: ...


@runtime_checkable
class CoordinationStore(Protocol):
    """
    The consensus-backed key-value store the registry is built on.

    Implementations must make `create`, `compare_and_swap` and
    `compare_and_delete` atomic across every client of the store, and
    must expire keys written with a `ttl` once it elapses. Failures are
    reported by raising the StoreError subclasses in
    `jobgrid.store.errors`.
    """

    async def get(
        self,
        key: str,
        recursive: bool = False,
        consistent: bool = True,
    ) -> Node: ...

    async def create(
        self,
        key: str,
        value: str,
        ttl: float | None = None,
    ) -> Node: ...

    async def update(
        self,
        key: str,
        value: str,
        ttl: float | None = None,
    ) -> Node: ...

    async def compare_and_swap(
        self,
        key: str,
        value: str,
        prev_index: int,
        ttl: float | None = None,
    ) -> Node: ...

    async def compare_and_delete(
        self,
        key: str,
        prev_index: int,
    ) -> Node: ...

    async def delete(
        self,
        key: str,
        recursive: bool = False,
    ) -> Node: ...

    def watch(
        self,
        prefix: str,
        recursive: bool = True,
    ) -> WatchStream: ...
