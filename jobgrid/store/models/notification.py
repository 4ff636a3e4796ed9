import msgspec


class Notification(msgspec.Struct, frozen=True, kw_only=True):
    """A single change delivered by a store watch."""

    action: str
    key: str
    value: str | None = None
    prev_value: str | None = None
    index: int = 0
