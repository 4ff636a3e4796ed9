from enum import Enum
from typing import Any

import msgspec


class EventType(str, Enum):
    """Kinds of domain events pushed onto the shared event bus."""

    JOB_CREATED = "EventJobCreated"
    JOB_SCHEDULED = "EventJobScheduled"
    JOB_STOPPED = "EventJobStopped"
    UNIT_STATE_UPDATED = "EventUnitStateUpdated"


class Event(msgspec.Struct, frozen=True, kw_only=True):
    """
    A normalized job or unit lifecycle transition.

    Payload and context vary per event type:
    - JOB_CREATED: payload is the Job
    - JOB_SCHEDULED: payload is the machine boot ID, context the job name
    - JOB_STOPPED: context is the job name
    - UNIT_STATE_UPDATED: payload is the UnitState (None when the unit
      disappeared), context the unit name
    """

    type: EventType
    payload: Any = None
    context: Any = None
