from .unit_event_stream import (
    UnitEventStream as UnitEventStream,
    UnitStatusBatch as UnitStatusBatch,
    translate_unit_status_events as translate_unit_status_events,
)
