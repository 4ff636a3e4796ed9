"""
Structured logging models for coordination store operations.
"""

from jobgrid.logging.models import Entry, LogLevel


class StoreDebug(Entry, kw_only=True):
    """Debug-level logging for store operations."""
    key: str = ""
    action: str = ""
    index: int = 0
    level: LogLevel = LogLevel.DEBUG

