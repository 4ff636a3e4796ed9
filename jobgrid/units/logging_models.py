from jobgrid.logging.models import Entry, LogLevel


class UnitStreamDebug(Entry, kw_only=True):
    """Debug-level logging for the unit status bridge."""
    unit_name: str = ""
    level: LogLevel = LogLevel.DEBUG


class UnitStreamWarning(Entry, kw_only=True):
    """Warning-level logging for the unit status bridge."""
    unit_name: str = ""
    level: LogLevel = LogLevel.WARN
