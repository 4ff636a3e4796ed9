"""
Tests for the in-process MemoryStore.

Covers:
1. Create-only writes and implicit parent directories
2. Update, compare-and-swap and compare-and-delete preconditions
3. Recursive and non-recursive reads and deletes
4. TTL expiry and EXPIRE notifications
5. Watch prefix matching and ordering
"""

import asyncio

import pytest

from jobgrid.store import (
    CompareFailedError,
    CoordinationStore,
    KeyNotFoundError,
    MemoryStore,
    NodeExistsError,
    NotAFileError,
    StoreAction,
    WatchStream,
)


# =============================================================================
# Test Writes
# =============================================================================


class TestCreate:
    """Tests for create-only writes."""

    @pytest.mark.asyncio
    async def test_create_then_get(self, store: MemoryStore) -> None:
        await store.create("/a/b/c", "value")

        node = await store.get("/a/b/c")
        assert node.value == "value"
        assert not node.dir
        assert node.key == "/a/b/c"
        assert node.name == "c"

    @pytest.mark.asyncio
    async def test_create_conflict(self, store: MemoryStore) -> None:
        await store.create("/a", "first")

        with pytest.raises(NodeExistsError):
            await store.create("/a", "second")

        node = await store.get("/a")
        assert node.value == "first"

    @pytest.mark.asyncio
    async def test_create_makes_parent_directories(self, store: MemoryStore) -> None:
        await store.create("/job/web/object", "{}")

        node = await store.get("/job/web")
        assert node.dir
        assert node.value is None
        assert [child.key for child in node.nodes] == ["/job/web/object"]

    @pytest.mark.asyncio
    async def test_create_under_leaf_fails(self, store: MemoryStore) -> None:
        await store.create("/a", "leaf")

        with pytest.raises(NotAFileError):
            await store.create("/a/b", "nested")

    @pytest.mark.asyncio
    async def test_normalizes_keys(self, store: MemoryStore) -> None:
        await store.create("job//web/", "value")

        node = await store.get("/job/web")
        assert node.value == "value"

    def test_satisfies_protocol(self, store: MemoryStore) -> None:
        assert isinstance(store, CoordinationStore)

    def test_watch_satisfies_stream_protocol(self, store: MemoryStore) -> None:
        watch = store.watch("/a")

        assert isinstance(watch, WatchStream)
        watch.close()


class TestUpdateAndCompare:
    """Tests for update, compare-and-swap and compare-and-delete."""

    @pytest.mark.asyncio
    async def test_update_missing_key(self, store: MemoryStore) -> None:
        with pytest.raises(KeyNotFoundError):
            await store.update("/missing", "value")

    @pytest.mark.asyncio
    async def test_update_bumps_index(self, store: MemoryStore) -> None:
        created = await store.create("/a", "one")
        updated = await store.update("/a", "two")

        assert updated.modified_index > created.modified_index
        assert updated.created_index == created.created_index
        assert (await store.get("/a")).value == "two"

    @pytest.mark.asyncio
    async def test_update_directory_fails(self, store: MemoryStore) -> None:
        await store.create("/dir/leaf", "value")

        with pytest.raises(NotAFileError):
            await store.update("/dir", "value")

    @pytest.mark.asyncio
    async def test_compare_and_swap_matching_index(self, store: MemoryStore) -> None:
        created = await store.create("/a", "one")

        swapped = await store.compare_and_swap("/a", "two", prev_index=created.modified_index)

        assert swapped.value == "two"

    @pytest.mark.asyncio
    async def test_compare_and_swap_stale_index(self, store: MemoryStore) -> None:
        created = await store.create("/a", "one")
        await store.update("/a", "two")

        with pytest.raises(CompareFailedError):
            await store.compare_and_swap("/a", "three", prev_index=created.modified_index)

        assert (await store.get("/a")).value == "two"

    @pytest.mark.asyncio
    async def test_compare_and_delete(self, store: MemoryStore) -> None:
        created = await store.create("/a", "one")

        with pytest.raises(CompareFailedError):
            await store.compare_and_delete("/a", prev_index=created.modified_index + 100)

        await store.compare_and_delete("/a", prev_index=created.modified_index)

        with pytest.raises(KeyNotFoundError):
            await store.get("/a")


# =============================================================================
# Test Reads and Deletes
# =============================================================================


class TestReadsAndDeletes:
    """Tests for hierarchical reads and deletes."""

    @pytest.mark.asyncio
    async def test_get_missing(self, store: MemoryStore) -> None:
        with pytest.raises(KeyNotFoundError):
            await store.get("/missing")

    @pytest.mark.asyncio
    async def test_recursive_get_includes_nested_nodes(self, store: MemoryStore) -> None:
        await store.create("/job/a/object", "a")
        await store.create("/job/a/target", "machine")
        await store.create("/job/b/object", "b")

        shallow = await store.get("/job")
        assert [child.name for child in shallow.nodes] == ["a", "b"]
        assert all(child.nodes == [] for child in shallow.nodes)

        deep = await store.get("/job", recursive=True)
        assert [leaf.name for leaf in deep.nodes[0].nodes] == ["object", "target"]

    @pytest.mark.asyncio
    async def test_delete_directory_requires_recursive(self, store: MemoryStore) -> None:
        await store.create("/job/a/object", "a")

        with pytest.raises(NotAFileError):
            await store.delete("/job/a")

        await store.delete("/job/a", recursive=True)

        with pytest.raises(KeyNotFoundError):
            await store.get("/job/a/object")

    @pytest.mark.asyncio
    async def test_delete_missing(self, store: MemoryStore) -> None:
        with pytest.raises(KeyNotFoundError):
            await store.delete("/missing")


# =============================================================================
# Test Expiry
# =============================================================================


class TestExpiry:
    """Tests for TTL expiry."""

    @pytest.mark.asyncio
    async def test_key_expires_after_ttl(self, store: MemoryStore) -> None:
        await store.create("/lease", "holder", ttl=0.05)
        assert (await store.get("/lease")).ttl == 0.05

        await asyncio.sleep(0.1)

        with pytest.raises(KeyNotFoundError):
            await store.get("/lease")

    @pytest.mark.asyncio
    async def test_expired_key_can_be_recreated(self, store: MemoryStore) -> None:
        await store.create("/lease", "first", ttl=0.05)
        await asyncio.sleep(0.1)

        await store.create("/lease", "second")
        assert (await store.get("/lease")).value == "second"

    @pytest.mark.asyncio
    async def test_update_without_ttl_clears_expiry(self, store: MemoryStore) -> None:
        await store.create("/lease", "holder", ttl=0.05)
        await store.update("/lease", "holder")

        await asyncio.sleep(0.1)

        assert (await store.get("/lease")).value == "holder"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ttl", [0, -0.5])
    async def test_non_positive_ttl_rejected(self, store: MemoryStore, ttl: float) -> None:
        with pytest.raises(ValueError):
            await store.create("/lease/holder", "value", ttl=ttl)

        with pytest.raises(KeyNotFoundError):
            await store.get("/lease")

        await store.create("/lease/holder", "value")
        with pytest.raises(ValueError):
            await store.update("/lease/holder", "value", ttl=ttl)

    @pytest.mark.asyncio
    async def test_cleanup_task_expires_keys(self) -> None:
        store = MemoryStore(cleanup_interval=0.02)
        await store.create("/lease", "holder", ttl=0.05)

        watch = store.watch("/lease")
        await store.start_cleanup_task()

        notification = await asyncio.wait_for(anext(watch), timeout=1.0)
        await store.stop_cleanup_task()
        watch.close()

        assert notification.action == StoreAction.EXPIRE
        assert notification.key == "/lease"


# =============================================================================
# Test Watches
# =============================================================================


class TestWatch:
    """Tests for watch notifications."""

    @pytest.mark.asyncio
    async def test_recursive_watch_sees_nested_changes_in_order(self, store: MemoryStore) -> None:
        watch = store.watch("/job")

        await store.create("/job/a/object", "a")
        await store.create("/job/a/target", "machine")
        await store.delete("/job/a", recursive=True)
        await store.create("/payload/a", "ignored")
        watch.close()

        notifications = [notification async for notification in watch]

        assert [(n.action, n.key) for n in notifications] == [
            (StoreAction.CREATE, "/job/a/object"),
            (StoreAction.CREATE, "/job/a/target"),
            (StoreAction.DELETE, "/job/a"),
        ]
        assert notifications[1].value == "machine"

    @pytest.mark.asyncio
    async def test_non_recursive_watch_sees_direct_children_only(self, store: MemoryStore) -> None:
        watch = store.watch("/job", recursive=False)

        await store.create("/job/a/object", "a")
        await store.create("/job/b", "b")
        watch.close()

        keys = [notification.key async for notification in watch]
        assert keys == ["/job/b"]

    @pytest.mark.asyncio
    async def test_watch_as_context_manager(self, store: MemoryStore) -> None:
        async with store.watch("/a") as watch:
            await store.create("/a/b", "value")
            notification = await anext(watch)

        assert notification.value == "value"
        assert watch.closed

    @pytest.mark.asyncio
    async def test_update_carries_previous_value(self, store: MemoryStore) -> None:
        await store.create("/a", "one")
        watch = store.watch("/a")

        await store.update("/a", "two")
        notification = await anext(watch)
        watch.close()

        assert notification.action == StoreAction.UPDATE
        assert notification.prev_value == "one"
        assert notification.value == "two"
