"""
Tagged results for registry lookups.

A lookup either found the value, established that it is absent (or
unreadable as stored), or failed to reach the store. Callers that only
care about presence can use the collapsing `get_*` accessors instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(slots=True, frozen=True)
class NotFound:
    reason: str = ""


@dataclass(slots=True, frozen=True)
class TransientError:
    """The store could not be read. The lookup may be retried."""
    cause: Exception


LookupResult = Union[Found[T], NotFound, TransientError]
