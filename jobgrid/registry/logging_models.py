"""
Structured logging models for registry operations.

Each level variant carries the job (or payload) name and the store
key involved.
"""

from jobgrid.logging.models import Entry, LogLevel


class RegistryDebug(Entry, kw_only=True):
    """Debug-level logging for registry operations."""
    name: str = ""
    key: str = ""
    level: LogLevel = LogLevel.DEBUG


class RegistryInfo(Entry, kw_only=True):
    """Info-level logging for registry operations."""
    name: str = ""
    key: str = ""
    level: LogLevel = LogLevel.INFO


class RegistryWarning(Entry, kw_only=True):
    """Warning-level logging for registry operations."""
    name: str = ""
    key: str = ""
    level: LogLevel = LogLevel.WARN
