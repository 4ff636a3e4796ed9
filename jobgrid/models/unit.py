import msgspec


class UnitStatus(msgspec.Struct, kw_only=True, rename="pascal"):
    """Status snapshot for one unit as reported by the service manager."""

    load_state: str
    active_state: str
    sub_state: str
    name: str | None = None
    description: str | None = None


class UnitState(msgspec.Struct, frozen=True, kw_only=True):
    load_state: str
    active_state: str
    sub_state: str

    @classmethod
    def from_status(cls, status: UnitStatus) -> "UnitState":
        return cls(
            load_state=status.load_state,
            active_state=status.active_state,
            sub_state=status.sub_state,
        )
