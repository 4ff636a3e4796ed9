"""
Coordination store exceptions.

Every failure a store implementation reports is a StoreError
subclass. Callers match on the subclass to tell conflicts and
absence apart from transport failures.
"""


class StoreError(Exception):
    def __init__(self, message: str, key: str | None = None, index: int = 0) -> None:
        super().__init__(message)
        self.key = key
        self.index = index


class KeyNotFoundError(StoreError):
    """Raised when the requested key does not exist."""
    pass


class NodeExistsError(StoreError):
    """Raised by create-only writes when the key already exists."""
    pass


class CompareFailedError(StoreError):
    """Raised when a compare-and-swap/delete precondition does not hold."""
    pass


class NotAFileError(StoreError):
    """Raised when a leaf operation targets a directory."""
    pass


class StoreUnavailableError(StoreError):
    """Transient failure reaching the store. Safe to retry."""
    pass
