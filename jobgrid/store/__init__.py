"""
Coordination store interface.

The registry, lock and event stream consume any CoordinationStore
implementation. MemoryStore is the in-process implementation.
"""

from .coordination_store import (
    CoordinationStore as CoordinationStore,
    WatchStream as WatchStream,
)
from .errors import (
    CompareFailedError as CompareFailedError,
    KeyNotFoundError as KeyNotFoundError,
    NodeExistsError as NodeExistsError,
    NotAFileError as NotAFileError,
    StoreError as StoreError,
    StoreUnavailableError as StoreUnavailableError,
)
from .memory_store import (
    MemoryStore as MemoryStore,
    StoreWatch as StoreWatch,
)
from .models import (
    Node as Node,
    Notification as Notification,
    StoreAction as StoreAction,
)
