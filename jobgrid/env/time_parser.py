import re
from datetime import timedelta

DURATION_PATTERN = re.compile(r"(?P<val>\d+(\.\d+)?)(?P<unit>[smhdw]?)", flags=re.I)
DURATION_STRING = re.compile(r"\s*(?:\d+(?:\.\d+)?[smhdw]?\s*)+", flags=re.I)


class TimeParser:
    """
    Parse duration strings such as "30s", "1m30s" or "0.5h" into
    seconds. A bare number is seconds.
    """

    def __init__(self, time_amount: str) -> None:
        self._units = {
            "s": "seconds",
            "m": "minutes",
            "h": "hours",
            "d": "days",
            "w": "weeks",
        }
        self.time = self.parse(time_amount)

    def parse(self, time_amount: str) -> float:
        if DURATION_STRING.fullmatch(time_amount) is None:
            raise ValueError(f"Invalid duration: {time_amount!r}")

        durations: dict[str, float] = {}
        for match in DURATION_PATTERN.finditer(time_amount):
            unit = self._units.get(
                match.group("unit").lower(),
                "seconds",
            )
            durations[unit] = durations.get(unit, 0.0) + float(match.group("val"))

        return float(timedelta(**durations).total_seconds())
