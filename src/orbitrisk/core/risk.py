from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Sequence

from orbitrisk.core.errors import ConfigurationError
from orbitrisk.core.screening import ProximityEvent, ScreeningMode
from orbitrisk.data.export import event_rows
from orbitrisk.utils.config import require_positive, validate_window
from orbitrisk.utils.constants import (
    DEFAULT_HIGH_PERCENT,
    DEFAULT_MODERATE_PERCENT,
    DEFAULT_VALIDITY_DAYS,
    WGS84,
    EarthModel,
)

logger = logging.getLogger(__name__)


class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


@dataclass(frozen=True)
class RiskThresholds:
    """Probability cutoffs in percent (inclusive lower bounds)."""

    moderate: float = DEFAULT_MODERATE_PERCENT
    high: float = DEFAULT_HIGH_PERCENT

    def __post_init__(self) -> None:
        require_positive("moderate", self.moderate)
        require_positive("high", self.high)
        if self.moderate > self.high:
            raise ConfigurationError(
                f"moderate cutoff ({self.moderate}) must not exceed high cutoff ({self.high})"
            )


@dataclass(frozen=True)
class RiskReport:
    risk_level: RiskLevel
    probability_percent: float
    valid_until: datetime
    events: tuple[ProximityEvent, ...]
    warnings: tuple[str, ...]
    total_checks: int
    window_start: datetime
    factors: dict = field(default_factory=dict, compare=False)  # inputs behind the level

    def to_dict(self, earth: EarthModel = WGS84) -> dict:
        """JSON-friendly view (probability rounded to 3 decimals).

        Each risky point is located on a spherical Earth at the primary's
        position, as in the diagnostic export.
        """
        return {
            "riskLevel": self.risk_level.value,
            "collisionProbability": round(self.probability_percent, 3),
            "validUntil": self.valid_until.isoformat(),
            "warnings": list(self.warnings),
            "riskyPoints": [
                {
                    "timestamp": row["timestamp"],
                    "latitude": row["latitude"],
                    "longitude": row["longitude"],
                    "altitude": row["altitude"],
                    "otherSatellite": row["other_object"],
                    "distance": row["distance_km"],
                }
                for row in event_rows(self.events, earth)
            ],
        }


def clamp_window(
    start: datetime,
    end: datetime,
    validity_days: float = DEFAULT_VALIDITY_DAYS,
) -> tuple[datetime, datetime, bool]:
    """Clamp ``end`` to ``start + validity_days``.

    Returns:
        Tuple of (start, clamped_end, was_clamped).

    Raises:
        TimeWindowInvalid: If ``end`` is not after ``start``.
        ConfigurationError: If ``validity_days`` is not positive.
    """
    require_positive("validity_days", validity_days)
    start, end = validate_window(start, end)
    horizon = start + timedelta(days=validity_days)
    if end > horizon:
        return start, horizon, True
    return start, end, False


def _categorize(probability_percent: float, thresholds: RiskThresholds) -> RiskLevel:
    if probability_percent >= thresholds.high:
        return RiskLevel.HIGH
    elif probability_percent >= thresholds.moderate:
        return RiskLevel.MODERATE
    else:
        return RiskLevel.LOW


def aggregate(
    events: Sequence[ProximityEvent],
    total_checks: int,
    window_start: datetime,
    window_end: datetime,
    validity_days: float = DEFAULT_VALIDITY_DAYS,
    thresholds: RiskThresholds | None = None,
    warnings: Sequence[str] = (),
) -> RiskReport:
    """
    Summarize time-aligned proximity events into a risk report.

    Args:
        events: Events from time-aligned conjunction search.
        total_checks: Number of position comparisons behind ``events``.
        window_start: Start of the assessed window.
        window_end: Requested end; clamped to the validity horizon.
        validity_days: Horizon of TLE validity in days.
        thresholds: Probability cutoffs for moderate/high risk.
        warnings: Warnings from earlier stages, carried into the report.

    Returns:
        RiskReport whose ``valid_until`` is the clamped window end.

    Raises:
        ValueError: If shape-intersection events are passed in (they are not
            a collision signal) or ``total_checks`` is inconsistent.
        TimeWindowInvalid: If the window is empty.
    """
    thresholds = thresholds or RiskThresholds()
    if any(e.mode is not ScreeningMode.ALIGNED for e in events):
        raise ValueError(
            "aggregate() only accepts time-aligned conjunction events; "
            "shape-intersection results do not measure collision risk"
        )
    if total_checks < 0:
        raise ValueError(f"total_checks must be >= 0, got {total_checks}")
    if total_checks and len(events) > total_checks:
        raise ValueError(f"{len(events)} events cannot come from {total_checks} checks")

    start, valid_until, clamped = clamp_window(window_start, window_end, validity_days)
    report_warnings = list(warnings)
    if clamped:
        report_warnings.append(
            f"Predictions beyond {validity_days:g} days are unreliable. "
            f"Results were clamped to {validity_days:g} days."
        )
        logger.warning("Window clamped to %s (validity %.1f days)", valid_until.isoformat(), validity_days)

    if total_checks == 0:
        probability = 0.0
    else:
        probability = min(100.0, len(events) / total_checks * 100.0)

    level = _categorize(probability, thresholds)

    logger.debug("Risk aggregate: %d/%d checks -> %.3f%% (%s)", len(events), total_checks, probability, level.value)
    return RiskReport(
        risk_level=level,
        probability_percent=probability,
        valid_until=valid_until,
        events=tuple(events),
        warnings=tuple(report_warnings),
        total_checks=total_checks,
        window_start=start,
        factors={
            "event_count": len(events),
            "total_checks": total_checks,
            "moderate_cutoff": thresholds.moderate,
            "high_cutoff": thresholds.high,
            "clamped": clamped,
        },
    )
