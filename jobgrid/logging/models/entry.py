from typing import Any, Dict

import msgspec

from .log_level import LogLevel


class Entry(msgspec.Struct, kw_only=True):
    """
    Base for structured log entries.

    Subsystems subclass it once per level, adding the fields that
    identify what the entry is about.
    """

    message: str = ""
    level: LogLevel

    def fields(self) -> Dict[str, Any]:
        values = msgspec.structs.asdict(self)
        values["level"] = self.level.value
        return values

    def to_template(
        self,
        template: str,
        context: Dict[str, Any] | None = None,
    ) -> str:
        return template.format_map({**self.fields(), **(context or {})})
