"""Shared fixtures: real element sets and a deterministic propagator."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from orbitrisk.core.elements import OrbitalElements
from orbitrisk.core.propagation import PropagationResult, kepler_propagate
from orbitrisk.core.tle import TLE

ISS_LINES = (
    "1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9997",
    "2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439592",
)

CSS_LINES = (
    "1 48274U 21035A   24045.50261574  .00021540  00000-0  25163-3 0  9993",
    "2 48274  41.4681 279.1498 0005372 149.8847 345.3740 15.62096269157015",
)

HUBBLE_LINES = (
    "1 20580U 90037B   24045.55478014  .00001456  00000-0  73052-4 0  9990",
    "2 20580  28.4701  41.0696 0002622 348.3544 140.2428 15.09435694872912",
)

GEO_LINES = (
    "1 36516U 10012A   24045.39583333  .00000112  00000-0  00000+0 0  9990",
    "2 36516   0.0254 268.0254 0000567 142.5432 240.3076  1.00271953 50780",
)

EPOCH = datetime(2024, 2, 14, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def iss_lines() -> tuple[str, str]:
    return ISS_LINES


@pytest.fixture
def iss_tle() -> TLE:
    """ISS TLE for testing."""
    return TLE.from_lines(*ISS_LINES, name="ISS (ZARYA)")


@pytest.fixture
def css_lines() -> tuple[str, str]:
    return CSS_LINES


@pytest.fixture
def css_tle() -> TLE:
    """Chinese Space Station (Tiangong) TLE for testing."""
    return TLE.from_lines(*CSS_LINES, name="CSS (TIANHE)")


@pytest.fixture
def hubble_tle() -> TLE:
    return TLE.from_lines(*HUBBLE_LINES, name="HUBBLE")


@pytest.fixture
def geo_tle() -> TLE:
    return TLE.from_lines(*GEO_LINES, name="SES-1")


@pytest.fixture
def epoch() -> datetime:
    return EPOCH


@pytest.fixture
def leo_elements() -> OrbitalElements:
    """Near-circular LEO element set (a = 6780 km)."""
    return OrbitalElements.from_degrees(6780.0, 0.0007, 51.6, 242.6, 53.5, 306.6, EPOCH)


@pytest.fixture
def circular_pair() -> tuple[OrbitalElements, OrbitalElements]:
    """Two identical coplanar circular orbits at the same phase."""
    a = OrbitalElements.from_degrees(7000.0, 0.0, 45.0, 10.0, 0.0, 0.0, EPOCH)
    b = OrbitalElements.from_degrees(7000.0, 0.0, 45.0, 10.0, 0.0, 0.0, EPOCH)
    return a, b


class DecayAfter:
    """Two-body propagator that reports the object as decayed after a cutoff."""

    def __init__(self, cutoff: datetime) -> None:
        self.cutoff = cutoff
        self.calls = 0

    def __call__(self, target, time: datetime) -> PropagationResult:
        self.calls += 1
        if time > self.cutoff:
            return PropagationResult.invalid("decayed")
        return kepler_propagate(target, time)


@pytest.fixture
def decay_after():
    return DecayAfter
