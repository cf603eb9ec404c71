from __future__ import annotations

"""Physical constants and default thresholds for orbital mechanics.

All values in km / s unless otherwise noted.
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class EarthModel:
    """Immutable set of Earth parameters injected into the converters.

    Attributes:
        mu_km3_s2: Gravitational parameter (GM) in km³/s².
        equatorial_radius_km: Equatorial radius in km.
        mean_radius_km: Mean (spherical) radius in km, used for the
            spherical-Earth geodetic approximation and launch estimates.
        surface_rotation_speed_km_s: Equatorial surface speed in km/s.
        orbital_velocity_km_s: Nominal LEO insertion velocity in km/s.
    """

    mu_km3_s2: float = 398600.4418
    equatorial_radius_km: float = 6378.137
    mean_radius_km: float = 6371.0
    surface_rotation_speed_km_s: float = 1670.0 / 3600.0
    orbital_velocity_km_s: float = 7.12


WGS84 = EarthModel()
"""Default Earth model (WGS-84 gravitational parameter and radius)."""

# --- Kept as plain aliases for code that only needs one number ---
EARTH_MU_KM3_S2: float = WGS84.mu_km3_s2
"""Earth gravitational parameter (GM) in km³/s²."""

TWO_PI: float = 2.0 * math.pi

SECONDS_PER_DAY: float = 86400.0

MINUTES_PER_DAY: float = 1440.0

# --- Default screening configuration ---
DEFAULT_SAMPLE_COUNT: int = 500
"""Points sampled per orbital period for shape comparison."""

DEFAULT_ALIGNED_THRESHOLD_KM: float = 1.0
"""Proximity threshold for time-aligned conjunction search in km."""

DEFAULT_SHAPE_THRESHOLD_KM: float = 3.0
"""Proximity threshold for orbit-shape intersection in km."""

DEFAULT_STEP_MINUTES: float = 10.0
"""Sampling cadence for time-aligned conjunction search in minutes."""

DEFAULT_VALIDITY_DAYS: float = 14.0
"""Horizon beyond which TLE-based predictions are considered unreliable."""

DEFAULT_MODERATE_PERCENT: float = 1.0
"""Probability (percent) at or above which risk is moderate."""

DEFAULT_HIGH_PERCENT: float = 5.0
"""Probability (percent) at or above which risk is high."""

DEFAULT_SEGMENT_INTERVAL_DAYS: float = 3.0
"""Spacing of repeated shape checks over a long horizon in days."""

DEFAULT_ASSUMED_SPEED_KM_S: float = 7.48
"""Speed assumed when reconstructing an ellipse from two waypoints."""

DEFAULT_ENTRY_ALTITUDE_KM: float = 400.0
"""Altitude of the waypoints a launch candidate orbit is built through, in km."""

DEFAULT_CANDIDATE_HORIZON_DAYS: float = 183.0
"""Horizon (about six months) over which launch candidates are shape-checked."""
