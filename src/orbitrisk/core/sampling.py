"""Orbit discretization into sampled position sequences."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterator, NamedTuple

import numpy as np
from numpy.typing import NDArray

from orbitrisk.core.propagation import Propagator, Target, elements_of, sgp4_propagate
from orbitrisk.utils.config import (
    as_utc,
    require_positive,
    require_positive_int,
    validate_window,
)

logger = logging.getLogger(__name__)


class SamplePoint(NamedTuple):
    """One sampled position (km) at a UTC time."""

    time: datetime
    position_km: tuple[float, float, float]


class OrbitSample:
    """A lazy, finite, restartable sequence of :class:`SamplePoint`.

    Iterating re-evaluates the propagator over the requested time grid, so
    identical inputs and a deterministic propagator give identical
    sequences. Times where the propagator reports the object as invalid
    are skipped.
    """

    def __init__(self, target: Target, grid: tuple[datetime, ...], propagate: Propagator) -> None:
        self._target = target
        self._grid = grid
        self._propagate = propagate

    @property
    def target(self) -> Target:
        return self._target

    @property
    def grid(self) -> tuple[datetime, ...]:
        """Requested timestamps, including those later skipped as invalid."""
        return self._grid

    def __iter__(self) -> Iterator[SamplePoint]:
        skipped = 0
        for t in self._grid:
            outcome = self._propagate(self._target, t)
            if not outcome.ok:
                skipped += 1
                continue
            x, y, z = (float(c) for c in outcome.state.position_km)
            yield SamplePoint(t, (x, y, z))
        if skipped:
            logger.debug("Skipped %d/%d invalid samples", skipped, len(self._grid))

    def points(self) -> tuple[SamplePoint, ...]:
        """Materialize the sequence."""
        return tuple(self)

    def positions(self) -> NDArray[np.float64]:
        """Valid positions as an (n, 3) array."""
        return positions_array(self)

    def __repr__(self) -> str:
        return f"OrbitSample(grid={len(self._grid)} times)"


def positions_array(points) -> NDArray[np.float64]:
    """Stack ``(time, position)`` pairs into an (n, 3) float array."""
    coords = [p[1] for p in points]
    if not coords:
        return np.empty((0, 3), dtype=np.float64)
    return np.asarray(coords, dtype=np.float64).reshape(-1, 3)


def sample_one_period(
    target: Target,
    start: datetime,
    sample_count: int,
    propagate: Propagator = sgp4_propagate,
) -> OrbitSample:
    """Sample one orbital period at ``sample_count`` evenly spaced times.

    The period (minutes) is 1440 / mean motion (rev/day); sample i is taken
    at ``start + i * period / sample_count``.

    Raises:
        ConfigurationError: If ``sample_count`` is not a positive integer.
    """
    require_positive_int("sample_count", sample_count)
    period_min = elements_of(target).period_minutes
    start = as_utc(start)
    step = timedelta(minutes=period_min / sample_count)
    grid = tuple(start + i * step for i in range(sample_count))
    return OrbitSample(target, grid, propagate)


def sample_window(
    target: Target,
    start: datetime,
    end: datetime,
    step_minutes: float,
    propagate: Propagator = sgp4_propagate,
) -> OrbitSample:
    """Sample ``[start, end]`` at a fixed cadence.

    Two samples built with the same start, end and step share the same grid
    and can be compared with time-aligned conjunction search.

    Raises:
        TimeWindowInvalid: If ``end`` is not after ``start``.
        ConfigurationError: If ``step_minutes`` is not positive.
    """
    require_positive("step_minutes", step_minutes)
    start, end = validate_window(start, end)
    return OrbitSample(target, window_grid(start, end, step_minutes), propagate)


def window_grid(start: datetime, end: datetime, step_minutes: float) -> tuple[datetime, ...]:
    """Timestamps ``start + k*step`` for every k with the timestamp <= ``end``."""
    step = timedelta(minutes=step_minutes)
    count = int((end - start) / step) + 1
    return tuple(start + k * step for k in range(count))
