"""
Derive domain events from registry watch notifications.

Each filter inspects one notification and returns an Event or None.
They are pure, never suspend, and never raise: a malformed
notification yields no event.

Keys are matched by their position under the registry root, so a
job whose name collides with a layout segment (a job named "job" or
"target") is still recognized correctly.
"""

from __future__ import annotations

import posixpath
from typing import TYPE_CHECKING

import msgspec

from jobgrid.env import Env
from jobgrid.models import Event, EventType, Job
from jobgrid.store.models import StoreAction

from .keys import JOB_OBJECT, JOB_TARGET, RegistryKeys
from .logging_models import RegistryDebug, RegistryWarning

if TYPE_CHECKING:
    from jobgrid.logging import Logger
    from jobgrid.store.models import Notification


STOP_ACTIONS = (StoreAction.DELETE, StoreAction.EXPIRE)


def _registry_keys(keys: RegistryKeys | None) -> RegistryKeys:
    if keys is None:
        return RegistryKeys(Env().JOBGRID_REGISTRY_KEY_PREFIX)

    return keys


def _split(key: str) -> tuple[str, str]:
    key = posixpath.normpath(key)
    return posixpath.dirname(key), posixpath.basename(key)


def _job_leaf(key: str, keys: RegistryKeys, leaf: str) -> str | None:
    """Return the job name if key is `<root>/job/<name>/<leaf>`."""
    job_key, base_name = _split(key)
    if base_name != leaf:
        return None

    jobs, job_name = _split(job_key)
    if jobs != keys.jobs():
        return None

    return job_name


def filter_event_job_created(
    notification: Notification,
    logger: Logger | None = None,
    keys: RegistryKeys | None = None,
) -> Event | None:
    if notification.action != StoreAction.CREATE:
        return None

    if _job_leaf(notification.key, _registry_keys(keys), JOB_OBJECT) is None:
        return None

    try:
        job = msgspec.json.decode(notification.value, type=Job)

    except (msgspec.DecodeError, TypeError) as err:
        if logger:
            logger.emit(RegistryDebug(
                message=f"Failed to deserialize Job: {err}",
                key=notification.key,
            ))
        return None

    return Event(type=EventType.JOB_CREATED, payload=job)


def filter_event_job_scheduled(
    notification: Notification,
    keys: RegistryKeys | None = None,
) -> Event | None:
    if notification.action != StoreAction.CREATE:
        return None

    job_name = _job_leaf(notification.key, _registry_keys(keys), JOB_TARGET)
    if job_name is None:
        return None

    return Event(
        type=EventType.JOB_SCHEDULED,
        payload=notification.value,
        context=job_name,
    )


def filter_event_job_stopped(
    notification: Notification,
    keys: RegistryKeys | None = None,
) -> Event | None:
    # Only removal of the whole job entry counts, not of a leaf under it.
    if notification.action not in STOP_ACTIONS:
        return None

    directory, job_name = _split(notification.key)
    if directory != _registry_keys(keys).jobs():
        return None

    return Event(type=EventType.JOB_STOPPED, context=job_name)


def derive_event(
    notification: Notification,
    logger: Logger | None = None,
    keys: RegistryKeys | None = None,
) -> Event | None:
    """
    Map one notification to at most one event.

    Filters are tried in order (created, scheduled, stopped) and the
    first match wins. `keys` gives the registry root the notification
    keys are matched under, defaulting to the configured prefix.
    """
    try:
        keys = _registry_keys(keys)
        return (
            filter_event_job_created(notification, logger=logger, keys=keys)
            or filter_event_job_scheduled(notification, keys=keys)
            or filter_event_job_stopped(notification, keys=keys)
        )

    except Exception as err:
        if logger:
            logger.emit(RegistryWarning(
                message=f"Dropped malformed notification: {err}",
                key=str(getattr(notification, "key", "")),
            ))
        return None
