from __future__ import annotations

from typing import Callable, Dict, Literal, Union

from pydantic import BaseModel, StrictInt, StrictStr, model_validator

from .time_parser import TimeParser

PrimaryType = Union[str, int, float, bytes, bool]


class Env(BaseModel):
    JOBGRID_REGISTRY_KEY_PREFIX: StrictStr = "/_jobgrid/registry"
    JOBGRID_LOCK_TTL: StrictStr = "30s"
    JOBGRID_STORE_CLEANUP_INTERVAL: StrictStr = "1s"
    JOBGRID_EVENT_QUEUE_SIZE: StrictInt = 0
    JOBGRID_LOG_LEVEL: StrictStr = "info"
    JOBGRID_LOG_OUTPUT: Literal["stdout", "stderr"] = "stdout"
    JOBGRID_LOGS_DIRECTORY: StrictStr | None = None

    @model_validator(mode="after")
    def validate_durations(self) -> Env:
        for name in ("JOBGRID_LOCK_TTL", "JOBGRID_STORE_CLEANUP_INTERVAL"):
            if TimeParser(getattr(self, name)).time <= 0:
                raise ValueError(f"{name} must be a positive duration")

        return self

    @classmethod
    def types_map(cls) -> Dict[str, Callable[[str], PrimaryType]]:
        return {
            "JOBGRID_REGISTRY_KEY_PREFIX": str,
            "JOBGRID_LOCK_TTL": str,
            "JOBGRID_STORE_CLEANUP_INTERVAL": str,
            "JOBGRID_EVENT_QUEUE_SIZE": int,
            "JOBGRID_LOG_LEVEL": str,
            "JOBGRID_LOG_OUTPUT": str,
            "JOBGRID_LOGS_DIRECTORY": str,
        }

    @property
    def lock_ttl_seconds(self) -> float:
        return TimeParser(self.JOBGRID_LOCK_TTL).time

    @property
    def store_cleanup_interval_seconds(self) -> float:
        return TimeParser(self.JOBGRID_STORE_CLEANUP_INTERVAL).time

    def get_logging_config(self) -> dict:
        """Get keyword arguments for LoggingConfig.update()."""
        return {
            'log_directory': self.JOBGRID_LOGS_DIRECTORY,
            'log_level': self.JOBGRID_LOG_LEVEL,
            'log_output': self.JOBGRID_LOG_OUTPUT,
        }
