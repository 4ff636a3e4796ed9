from __future__ import annotations

import msgspec


class JobPayload(msgspec.Struct, kw_only=True, rename="pascal"):
    """
    A reusable unit definition referenced by jobs.

    The unit text and requirements are carried as opaque data and
    never interpreted by the registry.
    """

    name: str
    unit: str = ""
    requirements: dict[str, list[str]] = msgspec.field(default_factory=dict)


class Job(msgspec.Struct, kw_only=True, rename="pascal"):
    """A named request to run a payload somewhere in the cluster."""

    name: str
    payload: JobPayload


class JobRecord(msgspec.Struct, kw_only=True, rename="pascal"):
    """
    Stored form of a job object.

    The payload is optional here so a record written without one
    decodes and can be recognized as corrupt, rather than failing
    decode outright.
    """

    name: str
    payload: JobPayload | None = None

    def to_job(self) -> Job | None:
        if self.payload is None:
            return None

        return Job(name=self.name, payload=self.payload)
