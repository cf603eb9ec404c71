"""Proximity detection between sampled orbits.

Two modes are kept strictly apart:

* **shape intersection** (:func:`compare_shapes`) compares every sampled
  point of one orbit with every sampled point of another, independent of
  timing. It answers "do these paths ever come close in space" and says
  nothing about collision risk.
* **time-aligned conjunction** (:func:`compare_aligned`) compares positions
  only at identical timestamps. It answers "are these objects near each
  other at the same moment" and is the only mode accepted by the risk
  aggregator.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.spatial import cKDTree

from orbitrisk.core.errors import MisalignedSamplesError, PropagationError
from orbitrisk.core.propagation import Propagator, Target, elements_of, sgp4_propagate
from orbitrisk.core.sampling import (
    OrbitSample,
    SamplePoint,
    positions_array,
    sample_one_period,
    sample_window,
)
from orbitrisk.core.tle import TLE
from orbitrisk.utils.config import (
    ScreeningConfig,
    require_positive,
    require_positive_int,
    validate_window,
)

logger = logging.getLogger(__name__)


class ScreeningMode(Enum):
    """Which question a proximity search answers."""

    SHAPE = "shape"
    ALIGNED = "aligned"


@dataclass(frozen=True)
class ProximityEvent:
    """A pair of sampled positions closer than the search threshold.

    Attributes:
        time_a: Sample time on the first sequence (UTC).
        time_b: Sample time on the second sequence (UTC). Equal to
            ``time_a`` in aligned mode.
        position_a: Position on the first sequence (km).
        position_b: Position on the second sequence (km).
        distance_km: Euclidean distance between the two positions.
        mode: Search mode that produced the event.
        other_id: Identifier of the second object, if known.
    """

    time_a: datetime
    time_b: datetime
    position_a: tuple[float, float, float]
    position_b: tuple[float, float, float]
    distance_km: float
    mode: ScreeningMode
    other_id: str = ""


@dataclass(frozen=True)
class ScanResult:
    """Outcome of screening one primary object against a catalog.

    Attributes:
        mode: Search mode used.
        events: Proximity events, sorted by distance.
        total_checks: Number of position comparisons performed.
        objects_screened: Catalog objects actually compared.
        objects_skipped: Catalog objects not compared (no valid samples,
            propagation error, deadline or cancellation).
        warnings: Human-readable notes on degraded coverage.
    """

    mode: ScreeningMode
    events: tuple[ProximityEvent, ...]
    total_checks: int
    objects_screened: int
    objects_skipped: int
    warnings: tuple[str, ...] = ()


def _materialize(seq: Iterable) -> Sequence:
    if isinstance(seq, OrbitSample):
        return seq.points()
    return seq if isinstance(seq, (list, tuple)) else list(seq)


def _as_tuple(row: NDArray[np.float64]) -> tuple[float, float, float]:
    return float(row[0]), float(row[1]), float(row[2])


def _shape_events(
    points_a: Sequence, points_b: Sequence, threshold_km: float, other_id: str
) -> list[ProximityEvent]:
    if not points_a or not points_b:
        return []
    pos_a = positions_array(points_a)
    pos_b = positions_array(points_b)
    neighbours = cKDTree(pos_a).query_ball_tree(cKDTree(pos_b), r=threshold_km)

    events: list[ProximityEvent] = []
    for i, matches in enumerate(neighbours):
        if not matches:
            continue
        matches = sorted(matches)
        distances = np.linalg.norm(pos_b[matches] - pos_a[i], axis=1)
        for j, dist in zip(matches, distances):
            if dist <= threshold_km:
                events.append(
                    ProximityEvent(
                        time_a=points_a[i][0],
                        time_b=points_b[j][0],
                        position_a=_as_tuple(pos_a[i]),
                        position_b=_as_tuple(pos_b[j]),
                        distance_km=float(dist),
                        mode=ScreeningMode.SHAPE,
                        other_id=other_id,
                    )
                )
    return events


def _aligned_events(
    points_a: Sequence, points_b: Sequence, threshold_km: float, other_id: str
) -> tuple[list[ProximityEvent], int]:
    """Compare positions at shared timestamps. Returns (events, comparisons)."""
    index_b = {p[0]: k for k, p in enumerate(points_b)}
    pairs = [(i, index_b[p[0]]) for i, p in enumerate(points_a) if p[0] in index_b]
    if not pairs:
        return [], 0

    idx_a = [i for i, _ in pairs]
    idx_b = [j for _, j in pairs]
    pos_a = positions_array(points_a)[idx_a]
    pos_b = positions_array(points_b)[idx_b]
    distances = np.linalg.norm(pos_a - pos_b, axis=1)

    events = [
        ProximityEvent(
            time_a=points_a[idx_a[k]][0],
            time_b=points_b[idx_b[k]][0],
            position_a=_as_tuple(pos_a[k]),
            position_b=_as_tuple(pos_b[k]),
            distance_km=float(distances[k]),
            mode=ScreeningMode.ALIGNED,
            other_id=other_id,
        )
        for k in np.flatnonzero(distances <= threshold_km)
    ]
    return events, len(pairs)


def compare_shapes(
    seq_a: Iterable[SamplePoint],
    seq_b: Iterable[SamplePoint],
    threshold_km: float,
    other_id: str = "",
) -> list[ProximityEvent]:
    """All-pairs proximity between two sampled orbit shapes.

    Every point of ``seq_a`` is compared with every point of ``seq_b``
    (via a KD-tree), regardless of time. Use this to ask whether two
    orbital paths cross, never as a collision-risk signal.

    Args:
        seq_a: Sampled points of the first orbit.
        seq_b: Sampled points of the second orbit.
        threshold_km: Maximum distance (inclusive) to report.
        other_id: Identifier recorded on the events for the second orbit.

    Returns:
        Events ordered by index in ``seq_a`` then ``seq_b``.

    Raises:
        ConfigurationError: If ``threshold_km`` is not positive.
    """
    require_positive("threshold_km", threshold_km)
    events = _shape_events(_materialize(seq_a), _materialize(seq_b), threshold_km, other_id)
    logger.debug("compare_shapes: %d pairs within %.3f km", len(events), threshold_km)
    return events


def compare_aligned(
    seq_a: Iterable[SamplePoint],
    seq_b: Iterable[SamplePoint],
    threshold_km: float,
    other_id: str = "",
) -> list[ProximityEvent]:
    """Time-aligned conjunction search between two sampled orbits.

    Positions are compared only at identical timestamps. Both sequences
    should come from :func:`sample_window` with the same start, end and
    step; samples skipped as invalid on either side are not compared.

    Raises:
        ConfigurationError: If ``threshold_km`` is not positive.
        MisalignedSamplesError: If the two samples use different time grids.
    """
    require_positive("threshold_km", threshold_km)
    both_sampled = isinstance(seq_a, OrbitSample) and isinstance(seq_b, OrbitSample)
    if both_sampled and seq_a.grid != seq_b.grid:
        raise MisalignedSamplesError(
            "time-aligned comparison needs samples on the same time grid "
            f"({len(seq_a.grid)} vs {len(seq_b.grid)} timestamps)"
        )
    points_a, points_b = _materialize(seq_a), _materialize(seq_b)
    # on a shared grid, disjoint valid samples just mean nothing to compare
    if not both_sampled and points_a and points_b and not (
        {p[0] for p in points_a} & {p[0] for p in points_b}
    ):
        raise MisalignedSamplesError("the two sequences share no timestamps")

    events, checks = _aligned_events(points_a, points_b, threshold_km, other_id)
    logger.debug(
        "compare_aligned: %d of %d aligned checks within %.3f km", len(events), checks, threshold_km
    )
    return events


def count_shape_pairs(seq_a: Iterable[SamplePoint], seq_b: Iterable[SamplePoint], threshold_km: float) -> int:
    """Number of all-pairs matches within ``threshold_km`` (no events built)."""
    require_positive("threshold_km", threshold_km)
    pos_a = positions_array(_materialize(seq_a))
    pos_b = positions_array(_materialize(seq_b))
    if len(pos_a) == 0 or len(pos_b) == 0:
        return 0
    return int(cKDTree(pos_a).count_neighbors(cKDTree(pos_b), threshold_km))


def _apogee_perigee(target: Target) -> tuple[float, float]:
    """Perigee and apogee altitude in km."""
    elements = elements_of(target)
    return elements.perigee_altitude_km(), elements.apogee_altitude_km()


def _prefilter(targets: list[Target], primary: Target, threshold_km: float) -> list[Target]:
    """Keep targets whose altitude shell overlaps the primary's (within threshold)."""
    primary_perigee, primary_apogee = _apogee_perigee(primary)

    filtered = []
    for target in targets:
        secondary_perigee, secondary_apogee = _apogee_perigee(target)
        if (primary_perigee - threshold_km <= secondary_apogee and
                primary_apogee + threshold_km >= secondary_perigee):
            filtered.append(target)

    return filtered


def _label(target: Target, index: int) -> str:
    if isinstance(target, TLE):
        return target.label
    return f"object-{index}"


def _is_self(target: Target, primary: Target) -> bool:
    if isinstance(target, TLE) and isinstance(primary, TLE):
        return target.norad_id == primary.norad_id
    return target is primary


@dataclass(frozen=True)
class _ObjectOutcome:
    label: str
    events: tuple[ProximityEvent, ...] = ()
    checks: int = 0
    skipped_reason: str | None = None


def screen_catalog(
    primary: Target,
    catalog: Iterable[Target],
    start: datetime,
    end: datetime,
    mode: ScreeningMode = ScreeningMode.ALIGNED,
    config: ScreeningConfig | None = None,
    propagate: Propagator = sgp4_propagate,
    max_workers: int | None = None,
    deadline: float | None = None,
    cancel_event: threading.Event | None = None,
) -> ScanResult:
    """Screen one primary object against a catalog.

    The primary is sampled once; each catalog object is sampled and
    compared independently, spread over a thread pool. ``max_workers=1``
    runs sequentially and gives the same result.

    Args:
        primary: Protected object (TLE or elements).
        catalog: Objects to compare against. Entries with the primary's
            NORAD id are ignored.
        start: Window start (aligned mode) or sampling start (shape mode).
        end: Window end; ignored in shape mode except for validation.
        mode: ALIGNED for conjunction search, SHAPE for path intersection.
        config: Thresholds, sample count and step.
        propagate: Propagate capability.
        max_workers: Thread pool size (None lets the executor decide).
        deadline: ``time.monotonic()`` value after which no further objects
            are compared.
        cancel_event: When set, no further objects are compared.

    Returns:
        ScanResult with events sorted by distance.

    Raises:
        TimeWindowInvalid: If ``end`` is not after ``start``.
        ConfigurationError: If ``max_workers`` is not positive.
        PropagationError: If the primary itself cannot be propagated.
    """
    config = config or ScreeningConfig()
    start, end = validate_window(start, end)
    if max_workers is not None:
        require_positive_int("max_workers", max_workers)

    indexed = [(i, t) for i, t in enumerate(catalog) if not _is_self(t, primary)]

    if mode is ScreeningMode.ALIGNED:
        threshold = config.threshold_km

        def sample(target: Target) -> OrbitSample:
            return sample_window(target, start, end, config.step_minutes, propagate)
    else:
        threshold = config.shape_threshold_km

        def sample(target: Target) -> OrbitSample:
            return sample_one_period(target, start, config.sample_count, propagate)

    primary_points = sample(primary).points()
    if not primary_points:
        logger.warning("screen_catalog: primary has no valid samples in the window")
        return ScanResult(
            mode=mode,
            events=(),
            total_checks=0,
            objects_screened=0,
            objects_skipped=len(indexed),
            warnings=("Primary object could not be propagated in the window; nothing was screened.",),
        )

    if mode is ScreeningMode.SHAPE:
        kept = {id(t) for t in _prefilter([t for _, t in indexed], primary, threshold)}
        items = [(i, t) for i, t in indexed if id(t) in kept]
        logger.debug("Shape prefilter kept %d of %d objects", len(items), len(indexed))
    else:
        items = indexed

    logger.info(
        "screen_catalog: %s mode, %d objects, %d primary samples, %.3f km threshold",
        mode.value, len(items), len(primary_points), threshold,
    )

    def job(item: tuple[int, Target]) -> _ObjectOutcome | None:
        index, target = item
        if (deadline is not None and time.monotonic() >= deadline) or (
            cancel_event is not None and cancel_event.is_set()
        ):
            return None
        label = _label(target, index)
        try:
            points = sample(target).points()
        except PropagationError as ex:
            logger.warning("Skipping %s: %s", label, ex)
            return _ObjectOutcome(label, skipped_reason=str(ex))
        if not points:
            return _ObjectOutcome(label, skipped_reason="no valid samples")
        if mode is ScreeningMode.ALIGNED:
            events, checks = _aligned_events(primary_points, points, threshold, label)
        else:
            events = _shape_events(primary_points, points, threshold, label)
            checks = len(primary_points) * len(points)
        logger.debug("%s: %d events in %d checks", label, len(events), checks)
        return _ObjectOutcome(label, tuple(events), checks)

    if max_workers == 1 or len(items) <= 1:
        outcomes = [job(item) for item in items]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes = list(pool.map(job, items))

    events: list[ProximityEvent] = []
    total_checks = 0
    screened = 0
    unsampled: list[str] = []
    not_reached = 0
    for outcome in outcomes:
        if outcome is None:
            not_reached += 1
        elif outcome.skipped_reason is not None:
            unsampled.append(outcome.label)
        else:
            screened += 1
            total_checks += outcome.checks
            events.extend(outcome.events)

    warnings: list[str] = []
    if unsampled:
        preview = ", ".join(unsampled[:5]) + (", ..." if len(unsampled) > 5 else "")
        warnings.append(
            f"{len(unsampled)} catalog object(s) could not be propagated in the window "
            f"and were skipped: {preview}"
        )
    if not_reached:
        warnings.append(
            f"Scan stopped early (deadline or cancellation): {not_reached} of "
            f"{len(items)} catalog object(s) were not screened."
        )
        logger.warning("screen_catalog: %d objects not screened before cutoff", not_reached)

    events.sort(key=lambda e: e.distance_km)
    logger.info("screen_catalog: %d events over %d checks", len(events), total_checks)
    return ScanResult(
        mode=mode,
        events=tuple(events),
        total_checks=total_checks,
        objects_screened=screened,
        objects_skipped=len(unsampled) + not_reached,
        warnings=tuple(warnings),
    )


def count_shape_intersections(
    target_a: Target,
    target_b: Target,
    start: datetime,
    end: datetime,
    interval_days: float | None = None,
    sample_count: int | None = None,
    threshold_km: float | None = None,
    propagate: Propagator = sgp4_propagate,
    config: ScreeningConfig | None = None,
) -> int:
    """Sum shape-intersection counts over repeated segments of a long horizon.

    Every ``interval_days`` from ``start`` until ``end`` both objects are
    sampled over one period and their paths compared. The count measures
    how often the orbit shapes cross, not a collision probability.

    ``interval_days``, ``sample_count`` and ``threshold_km`` default to
    ``config.segment_interval_days``, ``config.sample_count`` and
    ``config.shape_threshold_km``.
    """
    config = config or ScreeningConfig()
    interval_days = config.segment_interval_days if interval_days is None else interval_days
    sample_count = config.sample_count if sample_count is None else sample_count
    threshold_km = config.shape_threshold_km if threshold_km is None else threshold_km
    require_positive("interval_days", interval_days)
    require_positive("threshold_km", threshold_km)
    start, end = validate_window(start, end)

    total = 0
    segment = start
    step = timedelta(days=interval_days)
    while segment < end:
        path_a = sample_one_period(target_a, segment, sample_count, propagate)
        path_b = sample_one_period(target_b, segment, sample_count, propagate)
        found = count_shape_pairs(path_a, path_b, threshold_km)
        logger.debug("Segment %s: %d shape intersections within %.1f km", segment.isoformat(), found, threshold_km)
        total += found
        segment += step

    logger.info("count_shape_intersections: %d total over %s -> %s", total, start.isoformat(), end.isoformat())
    return total
