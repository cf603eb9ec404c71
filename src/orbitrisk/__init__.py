"""
orbitrisk — orbital element conversion and conjunction risk screening.

Converts between state vectors and classical orbital elements, reads and
writes NORAD Two-Line Element sets, samples orbits through a pluggable
propagator, and finds close approaches between sampled orbits to produce
a collision-risk summary. Also ranks upcoming launches by how often their
candidate orbits cross a reference object, and snapshots catalog positions
over a region.
"""

from __future__ import annotations

__version__ = "0.1.0-dev"

from orbitrisk.core.errors import (
    OrbitRiskError,
    InvalidStateVector,
    InvalidTLE,
    PropagationFailure,
    PropagationError,
    TimeWindowInvalid,
    ConfigurationError,
    MisalignedSamplesError,
)
from orbitrisk.core.elements import (
    OrbitalElements,
    StateVector,
    to_elements,
    to_state,
    ellipse_from_two_positions_and_speed,
)
from orbitrisk.core.tle import TLE, encode, decode, tle_checksum, parse_tle, load_catalog
from orbitrisk.core.propagation import (
    PropagationResult,
    sgp4_propagate,
    kepler_propagate,
    propagate,
)
from orbitrisk.core.sampling import OrbitSample, SamplePoint, sample_one_period, sample_window
from orbitrisk.core.screening import (
    ProximityEvent,
    ScanResult,
    ScreeningMode,
    compare_shapes,
    compare_aligned,
    screen_catalog,
    count_shape_intersections,
)
from orbitrisk.core.risk import RiskLevel, RiskReport, RiskThresholds, aggregate
from orbitrisk.core.assessment import assess_collision_risk
from orbitrisk.core.launch import (
    LaunchCandidate,
    LaunchRecord,
    candidate_tle,
    estimate_leo_entry,
    plan_launch_candidates,
    select_launches,
)
from orbitrisk.data.export import write_events_csv
from orbitrisk.data.snapshot import BoundingBox, CatalogSnapshot, ObjectType, catalog_snapshot
from orbitrisk.utils.config import ScreeningConfig
from orbitrisk.utils.constants import EarthModel, WGS84

__all__ = [
    "__version__",
    "OrbitRiskError",
    "InvalidStateVector",
    "InvalidTLE",
    "PropagationFailure",
    "PropagationError",
    "TimeWindowInvalid",
    "ConfigurationError",
    "MisalignedSamplesError",
    "OrbitalElements",
    "StateVector",
    "to_elements",
    "to_state",
    "ellipse_from_two_positions_and_speed",
    "TLE",
    "encode",
    "decode",
    "tle_checksum",
    "parse_tle",
    "load_catalog",
    "PropagationResult",
    "sgp4_propagate",
    "kepler_propagate",
    "propagate",
    "OrbitSample",
    "SamplePoint",
    "sample_one_period",
    "sample_window",
    "ProximityEvent",
    "ScanResult",
    "ScreeningMode",
    "compare_shapes",
    "compare_aligned",
    "screen_catalog",
    "count_shape_intersections",
    "RiskLevel",
    "RiskReport",
    "RiskThresholds",
    "aggregate",
    "assess_collision_risk",
    "estimate_leo_entry",
    "LaunchRecord",
    "LaunchCandidate",
    "select_launches",
    "candidate_tle",
    "plan_launch_candidates",
    "write_events_csv",
    "BoundingBox",
    "CatalogSnapshot",
    "ObjectType",
    "catalog_snapshot",
    "ScreeningConfig",
    "EarthModel",
    "WGS84",
]
