"""End-to-end collision risk assessment for one object against a catalog."""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterable

from orbitrisk.core.propagation import Propagator, Target, sgp4_propagate
from orbitrisk.core.risk import RiskReport, RiskThresholds, aggregate, clamp_window
from orbitrisk.core.screening import ScreeningMode, screen_catalog
from orbitrisk.core.tle import TLE, CatalogRecord, load_catalog
from orbitrisk.data.export import write_events_csv
from orbitrisk.utils.config import ScreeningConfig, validate_window

logger = logging.getLogger(__name__)


def _primary_target(primary: Target | tuple[str, str]) -> Target:
    if isinstance(primary, tuple):
        # malformed user input is fatal here, unlike catalog entries
        return TLE.from_lines(*primary)
    return primary


def assess_collision_risk(
    primary: Target | tuple[str, str],
    catalog: Iterable[CatalogRecord],
    start: datetime,
    end: datetime,
    config: ScreeningConfig | None = None,
    propagate: Propagator = sgp4_propagate,
    max_workers: int | None = None,
    deadline: float | None = None,
    cancel_event: threading.Event | None = None,
    export_path: str | Path | None = None,
) -> RiskReport:
    """Assess collision risk of ``primary`` against ``catalog`` over a window.

    The window is clamped to ``config.validity_days``; the primary and every
    catalog object are sampled on the same time grid and compared at
    matching timestamps only.

    Args:
        primary: The user's object (TLE, elements, or a ``(line1, line2)`` pair).
        catalog: Catalog records; malformed TLEs are skipped and counted.
        start: Window start.
        end: Requested window end.
        config: Screening configuration.
        propagate: Propagate capability.
        max_workers: Thread pool size for the catalog scan.
        deadline: ``time.monotonic()`` cutoff for the catalog scan.
        cancel_event: When set, the catalog scan stops before the next object.
        export_path: If given, write the events as diagnostic CSV there.

    Returns:
        RiskReport with warnings for every source of degraded coverage.

    Raises:
        InvalidTLE: If the primary TLE is malformed.
        TimeWindowInvalid: If ``end`` is not after ``start``.
        ConfigurationError: If the configuration is out of range.
    """
    config = config or ScreeningConfig()
    start, end = validate_window(start, end)
    target = _primary_target(primary)

    tles, skipped = load_catalog(catalog)
    warnings: list[str] = []
    if skipped:
        warnings.append(f"{skipped} malformed catalog TLE(s) were skipped.")

    _, scan_end, _ = clamp_window(start, end, config.validity_days)
    scan = screen_catalog(
        target,
        tles,
        start,
        scan_end,
        mode=ScreeningMode.ALIGNED,
        config=config,
        propagate=propagate,
        max_workers=max_workers,
        deadline=deadline,
        cancel_event=cancel_event,
    )
    warnings.extend(scan.warnings)

    report = aggregate(
        scan.events,
        scan.total_checks,
        start,
        end,
        validity_days=config.validity_days,
        thresholds=RiskThresholds(moderate=config.moderate_percent, high=config.high_percent),
        warnings=warnings,
    )

    if export_path is not None:
        try:
            write_events_csv(report.events, export_path)
        except OSError as ex:
            logger.error("Failed to write diagnostic export %s: %s", export_path, ex)

    logger.info(
        "assess_collision_risk: %s (%.3f%%) from %d events, %d checks, %d objects screened",
        report.risk_level.value, report.probability_percent, len(report.events),
        report.total_checks, scan.objects_screened,
    )
    return report
