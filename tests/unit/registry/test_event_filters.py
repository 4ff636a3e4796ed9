"""
Tests for deriving domain events from registry notifications.

Covers:
1. JobCreated from a create of a job object leaf
2. JobScheduled from a create of a job target leaf
3. JobStopped from delete or expiry of a whole job entry
4. Notifications that must not produce any event
5. Job names that collide with layout segments
6. Malformed notifications are dropped, never raised
"""

import msgspec
import pytest

from jobgrid.models import EventType, Job, JobPayload
from jobgrid.registry import (
    RegistryKeys,
    derive_event,
    filter_event_job_created,
    filter_event_job_scheduled,
    filter_event_job_stopped,
)
from jobgrid.store import Notification, StoreAction


ROOT = "/test/registry"
KEYS = RegistryKeys(ROOT)


def job_json(name: str = "foo") -> str:
    job = Job(name=name, payload=JobPayload(name=name, unit="[Service]\n"))
    return msgspec.json.encode(job).decode()


def notify(action: StoreAction, key: str, value: str | None = None) -> Notification:
    return Notification(action=action, key=f"{ROOT}{key}", value=value)


# =============================================================================
# Test Individual Filters
# =============================================================================


class TestJobCreated:
    """Tests for the JobCreated filter."""

    def test_create_of_object_leaf(self) -> None:
        event = filter_event_job_created(
            notify(StoreAction.CREATE, "/job/foo/object", job_json("foo")),
            keys=KEYS,
        )

        assert event is not None
        assert event.type == EventType.JOB_CREATED
        assert event.payload.name == "foo"
        assert event.payload.payload.unit == "[Service]\n"
        assert event.context is None

    def test_update_of_object_leaf_is_ignored(self) -> None:
        notification = notify(StoreAction.UPDATE, "/job/foo/object", job_json("foo"))

        assert filter_event_job_created(notification, keys=KEYS) is None

    def test_undecodable_object_yields_nothing(self, logger) -> None:
        notification = notify(StoreAction.CREATE, "/job/foo/object", "not json")

        assert filter_event_job_created(notification, logger=logger, keys=KEYS) is None

    def test_object_without_value_yields_nothing(self) -> None:
        notification = notify(StoreAction.CREATE, "/job/foo/object")

        assert filter_event_job_created(notification, keys=KEYS) is None

    def test_object_outside_registry_root_is_ignored(self) -> None:
        notification = Notification(
            action=StoreAction.CREATE,
            key="/elsewhere/job/foo/object",
            value=job_json("foo"),
        )

        assert filter_event_job_created(notification, keys=KEYS) is None


class TestJobScheduled:
    """Tests for the JobScheduled filter."""

    def test_create_of_target_leaf(self) -> None:
        event = filter_event_job_scheduled(
            notify(StoreAction.CREATE, "/job/foo/target", "XXX"),
            keys=KEYS,
        )

        assert event is not None
        assert event.type == EventType.JOB_SCHEDULED
        assert event.payload == "XXX"
        assert event.context == "foo"

    def test_update_of_target_leaf_is_ignored(self) -> None:
        notification = notify(StoreAction.UPDATE, "/job/foo/target", "YYY")

        assert filter_event_job_scheduled(notification, keys=KEYS) is None


class TestJobStopped:
    """Tests for the JobStopped filter."""

    @pytest.mark.parametrize("action", [StoreAction.DELETE, StoreAction.EXPIRE])
    def test_removal_of_job_entry(self, action: StoreAction) -> None:
        event = filter_event_job_stopped(notify(action, "/job/foo"), keys=KEYS)

        assert event is not None
        assert event.type == EventType.JOB_STOPPED
        assert event.context == "foo"
        assert event.payload is None

    def test_removal_of_target_only_is_ignored(self) -> None:
        notification = notify(StoreAction.DELETE, "/job/foo/target")

        assert filter_event_job_stopped(notification, keys=KEYS) is None

    def test_removal_of_job_subtree_root_is_ignored(self) -> None:
        notification = notify(StoreAction.DELETE, "/job")

        assert filter_event_job_stopped(notification, keys=KEYS) is None

    def test_default_keys_use_configured_prefix(self) -> None:
        notification = Notification(
            action=StoreAction.DELETE,
            key="/_jobgrid/registry/job/foo",
        )

        event = filter_event_job_stopped(notification)

        assert event is not None
        assert event.context == "foo"


# =============================================================================
# Test Colliding Job Names
# =============================================================================


class TestCollidingJobNames:
    """Tests for jobs named after segments of the key layout."""

    def test_target_removal_of_job_named_job_is_ignored(self) -> None:
        notification = notify(StoreAction.DELETE, "/job/job/target")

        assert derive_event(notification, keys=KEYS) is None

    def test_entry_removal_of_job_named_job(self) -> None:
        event = derive_event(notify(StoreAction.DELETE, "/job/job"), keys=KEYS)

        assert event.type == EventType.JOB_STOPPED
        assert event.context == "job"

    def test_schedule_of_job_named_job(self) -> None:
        event = derive_event(
            notify(StoreAction.CREATE, "/job/job/target", "XXX"),
            keys=KEYS,
        )

        assert (event.type, event.context) == (EventType.JOB_SCHEDULED, "job")

    @pytest.mark.parametrize("name", ["target", "object"])
    def test_creation_of_job_named_after_leaf(self, name: str) -> None:
        event = derive_event(
            notify(StoreAction.CREATE, f"/job/{name}/object", job_json(name)),
            keys=KEYS,
        )

        assert event.type == EventType.JOB_CREATED
        assert event.payload.name == name


# =============================================================================
# Test Derivation
# =============================================================================


class TestDeriveEvent:
    """Tests for the combined derivation."""

    def test_first_matching_filter_wins(self) -> None:
        created = derive_event(
            notify(StoreAction.CREATE, "/job/foo/object", job_json()),
            keys=KEYS,
        )
        scheduled = derive_event(
            notify(StoreAction.CREATE, "/job/foo/target", "XXX"),
            keys=KEYS,
        )
        stopped = derive_event(notify(StoreAction.DELETE, "/job/foo"), keys=KEYS)

        assert created.type == EventType.JOB_CREATED
        assert scheduled.type == EventType.JOB_SCHEDULED
        assert stopped.type == EventType.JOB_STOPPED

    @pytest.mark.parametrize(
        "action,key,value",
        [
            (StoreAction.CREATE, "/job/foo/object/extra", job_json()),
            (StoreAction.CREATE, "/job/foo/other", "x"),
            (StoreAction.SET, "/job/foo/object", job_json()),
            (StoreAction.COMPARE_AND_SWAP, "/job/foo/object", job_json()),
            (StoreAction.DELETE, "/job/foo/object", None),
            (StoreAction.EXPIRE, "/job/foo/target", None),
            (StoreAction.GET, "/job/foo", None),
            (StoreAction.DELETE, "/payload/foo", None),
        ],
    )
    def test_irrelevant_notifications(
        self,
        action: StoreAction,
        key: str,
        value: str | None,
    ) -> None:
        assert derive_event(notify(action, key, value), keys=KEYS) is None

    def test_unknown_action_yields_nothing(self) -> None:
        notification = Notification(action="bogus", key=f"{ROOT}/job/foo")

        assert derive_event(notification, keys=KEYS) is None

    def test_malformed_notification_is_dropped(self, logger) -> None:
        assert derive_event(object(), logger=logger, keys=KEYS) is None
