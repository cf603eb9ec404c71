"""Screening configuration.

Every tunable is passed explicitly; there is no module-level mutable state.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone

from orbitrisk.core.errors import ConfigurationError, TimeWindowInvalid
from orbitrisk.utils.constants import (
    DEFAULT_ALIGNED_THRESHOLD_KM,
    DEFAULT_HIGH_PERCENT,
    DEFAULT_MODERATE_PERCENT,
    DEFAULT_SAMPLE_COUNT,
    DEFAULT_SEGMENT_INTERVAL_DAYS,
    DEFAULT_SHAPE_THRESHOLD_KM,
    DEFAULT_STEP_MINUTES,
    DEFAULT_VALIDITY_DAYS,
)

logger = logging.getLogger(__name__)


def require_positive(name: str, value: float) -> float:
    """Return ``value`` if it is a finite number > 0, else raise ConfigurationError."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        logger.error("Rejected configuration %s=%r", name, value)
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return value


def require_positive_int(name: str, value: int) -> int:
    """Return ``value`` if it is an integer > 0, else raise ConfigurationError."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    return int(require_positive(name, value))


def as_utc(t: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t


def validate_window(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    """Normalize a time window to UTC and check that it is non-empty.

    Raises:
        TimeWindowInvalid: If ``end`` is not strictly after ``start``.
    """
    start, end = as_utc(start), as_utc(end)
    if end <= start:
        logger.error("Rejected time window %s -> %s", start.isoformat(), end.isoformat())
        raise TimeWindowInvalid(
            f"end time must be strictly after start time ({start.isoformat()} >= {end.isoformat()})"
        )
    return start, end


@dataclass(frozen=True)
class ScreeningConfig:
    """Tunables for sampling, proximity search and risk classification.

    Attributes:
        sample_count: Points per orbital period in shape mode.
        threshold_km: Proximity threshold for time-aligned search (km).
        shape_threshold_km: Proximity threshold for shape intersection (km).
        step_minutes: Sampling cadence for time-aligned search (minutes).
        validity_days: TLE validity horizon; windows are clamped to it.
        moderate_percent: Probability cutoff for "moderate" risk (%).
        high_percent: Probability cutoff for "high" risk (%).
        segment_interval_days: Spacing of repeated shape checks (days).
    """

    sample_count: int = DEFAULT_SAMPLE_COUNT
    threshold_km: float = DEFAULT_ALIGNED_THRESHOLD_KM
    shape_threshold_km: float = DEFAULT_SHAPE_THRESHOLD_KM
    step_minutes: float = DEFAULT_STEP_MINUTES
    validity_days: float = DEFAULT_VALIDITY_DAYS
    moderate_percent: float = DEFAULT_MODERATE_PERCENT
    high_percent: float = DEFAULT_HIGH_PERCENT
    segment_interval_days: float = DEFAULT_SEGMENT_INTERVAL_DAYS

    def __post_init__(self) -> None:
        require_positive_int("sample_count", self.sample_count)
        for f in dataclasses.fields(self):
            require_positive(f.name, getattr(self, f.name))
        if self.moderate_percent > self.high_percent:
            raise ConfigurationError(
                f"moderate_percent ({self.moderate_percent}) must not exceed "
                f"high_percent ({self.high_percent})"
            )

    def replace(self, **changes: object) -> ScreeningConfig:
        """Return a copy with ``changes`` applied (and re-validated)."""
        return dataclasses.replace(self, **changes)
