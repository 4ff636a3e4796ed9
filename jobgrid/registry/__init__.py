"""
Job and payload registry.

The system of record for jobs, payloads and machine assignments, the
resource locks serializing multi-step job mutations, and the filters
deriving domain events from registry watch notifications.
"""

from .errors import (
    InvalidNameError as InvalidNameError,
    JobAlreadyExistsError as JobAlreadyExistsError,
    RegistryError as RegistryError,
)
from .event_stream import RegistryEventStream as RegistryEventStream
from .events import (
    derive_event as derive_event,
    filter_event_job_created as filter_event_job_created,
    filter_event_job_scheduled as filter_event_job_scheduled,
    filter_event_job_stopped as filter_event_job_stopped,
)
from .keys import RegistryKeys as RegistryKeys
from .lock import (
    LockHandle as LockHandle,
    LockRecord as LockRecord,
    ResourceLock as ResourceLock,
)
from .lookup import (
    Found as Found,
    LookupResult as LookupResult,
    NotFound as NotFound,
    TransientError as TransientError,
)
from .registry import Registry as Registry
