from .event import (
    Event as Event,
    EventType as EventType,
)
from .job import (
    Job as Job,
    JobPayload as JobPayload,
    JobRecord as JobRecord,
)
from .unit import (
    UnitState as UnitState,
    UnitStatus as UnitStatus,
)
