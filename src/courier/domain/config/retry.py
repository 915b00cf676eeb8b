"""Retry configuration model."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?\s*$", re.IGNORECASE)

_UNIT_MILLIS = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
}


def parse_duration(value: Any) -> Any:
    """Coerce a configured duration into a timedelta.

    Bare numbers are milliseconds. Strings may carry a unit suffix
    (``500ms``, ``2s``, ``1m``). Anything else (ISO-8601 text, timedelta)
    is left for pydantic to handle.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return timedelta(milliseconds=value)
    if isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match:
            amount, unit = match.groups()
            return timedelta(milliseconds=float(amount) * _UNIT_MILLIS[(unit or "ms").lower()])
    return value


class RetryConfig(BaseModel):
    """Configuration for retrying outbound HTTP requests.

    Attributes:
        enabled: Whether retries are enabled around HTTP requests
        max_attempts: Maximum number of attempts to deliver a message
        initial_interval: Duration between the first and second attempt
        multiplier: Multiplier applied to the previous retry interval
        max_interval: Maximum duration between attempts
    """

    enabled: bool = False
    max_attempts: int = Field(3, ge=1)
    initial_interval: timedelta = timedelta(milliseconds=1000)
    multiplier: float = Field(1.0, gt=0.0)
    max_interval: timedelta = timedelta(milliseconds=10000)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("initial_interval", "max_interval", mode="before")
    @classmethod
    def _coerce_duration(cls, value: Any) -> Any:
        return parse_duration(value)

    @field_validator("initial_interval", "max_interval")
    @classmethod
    def _non_negative(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("duration must not be negative")
        return value

    @model_validator(mode="after")
    def _max_interval_not_below_initial(self) -> "RetryConfig":
        if self.max_interval < self.initial_interval:
            raise ValueError("'maxInterval' must not be less than 'initialInterval'")
        return self
