from enum import Enum


class StoreAction(str, Enum):
    """Action carried by a store response or watch notification."""

    GET = "get"
    CREATE = "create"
    SET = "set"
    UPDATE = "update"
    DELETE = "delete"
    EXPIRE = "expire"
    COMPARE_AND_SWAP = "compareAndSwap"
    COMPARE_AND_DELETE = "compareAndDelete"
