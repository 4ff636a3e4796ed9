from __future__ import annotations

import msgspec


class Node(msgspec.Struct, kw_only=True):
    """
    A key in the store hierarchy.

    Directories carry child nodes in `nodes` (populated on recursive
    reads) and never carry a value.
    """

    key: str
    value: str | None = None
    dir: bool = False
    nodes: list[Node] = msgspec.field(default_factory=list)
    created_index: int = 0
    modified_index: int = 0
    ttl: float | None = None

    @property
    def name(self) -> str:
        return self.key.rstrip("/").rsplit("/", 1)[-1]
