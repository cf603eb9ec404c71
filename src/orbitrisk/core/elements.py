"""Classical orbital elements and state-vector conversion.

Converts between ECI/TEME Cartesian state vectors and classical orbital
elements (COE) for elliptical orbits, following the standard RV2COE /
COE2RV formulation (Vallado, *Fundamentals of Astrodynamics and
Applications*, algorithms 9 and 10).

Degenerate geometries are handled by one code path with internal
fallbacks rather than separate variants:

* circular orbits (|e| ≈ 0): the argument of perigee is set to 0 and the
  anomaly is measured from the ascending node (argument of latitude);
* equatorial orbits (|n| ≈ 0): the RAAN is set to 0; for eccentric orbits
  the argument of perigee carries the longitude of perigee, for circular
  ones the anomaly is the true longitude.

These are documented approximations: the converted elements reproduce the
input position and velocity, but angles that are undefined for the
geometry are conventional.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone

import numpy as np
from numpy.typing import ArrayLike, NDArray

from orbitrisk.core.errors import InvalidStateVector
from orbitrisk.utils.constants import (
    DEFAULT_ASSUMED_SPEED_KM_S,
    MINUTES_PER_DAY,
    SECONDS_PER_DAY,
    TWO_PI,
    WGS84,
    EarthModel,
)

logger = logging.getLogger(__name__)

# Relative tolerance for "≈ 0" on normalized quantities (|e|, sin i).
_DEGENERATE_TOL = 1e-10

_K_HAT = np.array([0.0, 0.0, 1.0])


def normalize_angle(angle_rad: float) -> float:
    """Wrap an angle into [0, 2π)."""
    wrapped = math.fmod(angle_rad, TWO_PI)
    if wrapped < 0.0:
        wrapped += TWO_PI
    # fmod of a value just below 0 can round up to exactly 2π
    if wrapped >= TWO_PI:
        wrapped = 0.0
    return wrapped


def mean_motion_from_sma(semi_major_axis_km: float, earth: EarthModel = WGS84) -> float:
    """Mean motion in rev/day for a semi-major axis in km."""
    n_rad_s = math.sqrt(earth.mu_km3_s2 / semi_major_axis_km**3)
    return n_rad_s * SECONDS_PER_DAY / TWO_PI


def sma_from_mean_motion(mean_motion_rev_per_day: float, earth: EarthModel = WGS84) -> float:
    """Semi-major axis in km for a mean motion in rev/day."""
    n_rad_s = mean_motion_rev_per_day * TWO_PI / SECONDS_PER_DAY
    return (earth.mu_km3_s2 / n_rad_s**2) ** (1.0 / 3.0)


def solve_kepler(mean_anomaly_rad: float, eccentricity: float, tol: float = 1e-12) -> float:
    """Solve Kepler's equation M = E - e·sin(E) for the eccentric anomaly.

    Newton iteration, started from M (or π for high eccentricity).
    """
    m = normalize_angle(mean_anomaly_rad)
    e_anom = m if eccentricity < 0.8 else math.pi
    for _ in range(50):
        f = e_anom - eccentricity * math.sin(e_anom) - m
        step = f / (1.0 - eccentricity * math.cos(e_anom))
        e_anom -= step
        if abs(step) < tol:
            break
    return normalize_angle(e_anom)


def true_from_eccentric(eccentric_anomaly_rad: float, eccentricity: float) -> float:
    """True anomaly from eccentric anomaly (half-angle form)."""
    half = eccentric_anomaly_rad / 2.0
    nu = 2.0 * math.atan2(
        math.sqrt(1.0 + eccentricity) * math.sin(half),
        math.sqrt(1.0 - eccentricity) * math.cos(half),
    )
    return normalize_angle(nu)


def eccentric_from_true(true_anomaly_rad: float, eccentricity: float) -> float:
    """Eccentric anomaly from true anomaly (half-angle form)."""
    half = true_anomaly_rad / 2.0
    e_anom = 2.0 * math.atan2(
        math.sqrt(1.0 - eccentricity) * math.sin(half),
        math.sqrt(1.0 + eccentricity) * math.cos(half),
    )
    return normalize_angle(e_anom)


@dataclass(frozen=True)
class StateVector:
    """Position and velocity in an Earth-centred inertial frame (ECI/TEME).

    Attributes:
        position_km: [x, y, z] position in km.
        velocity_km_s: [vx, vy, vz] velocity in km/s.
        epoch: Time of this state vector (UTC).
    """

    position_km: NDArray[np.float64]  # shape (3,)
    velocity_km_s: NDArray[np.float64]  # shape (3,)
    epoch: datetime

    def __post_init__(self) -> None:
        pos = np.asarray(self.position_km, dtype=np.float64).reshape(3)
        vel = np.asarray(self.velocity_km_s, dtype=np.float64).reshape(3)
        pos.setflags(write=False)
        vel.setflags(write=False)
        object.__setattr__(self, "position_km", pos)
        object.__setattr__(self, "velocity_km_s", vel)


@dataclass(frozen=True)
class OrbitalElements:
    """Classical (Keplerian) orbital elements of an elliptical orbit.

    Angles are radians, normalized to [0, 2π) on construction.

    Attributes:
        semi_major_axis_km: Semi-major axis (km, > 0).
        eccentricity: Eccentricity in [0, 1).
        inclination_rad: Inclination in [0, π].
        raan_rad: Right ascension of the ascending node.
        arg_perigee_rad: Argument of perigee.
        mean_anomaly_rad: Mean anomaly at epoch.
        mean_motion_rev_per_day: Mean motion (rev/day, > 0).
        epoch: Epoch of the elements (UTC).
        approximate: True when the elements come from a low-fidelity
            reconstruction (see :func:`ellipse_from_two_positions_and_speed`).
    """

    semi_major_axis_km: float
    eccentricity: float
    inclination_rad: float
    raan_rad: float
    arg_perigee_rad: float
    mean_anomaly_rad: float
    mean_motion_rev_per_day: float
    epoch: datetime
    approximate: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        if not self.semi_major_axis_km > 0:
            raise ValueError(f"semi-major axis must be positive, got {self.semi_major_axis_km}")
        if not 0.0 <= self.eccentricity < 1.0:
            raise ValueError(f"eccentricity must be in [0, 1), got {self.eccentricity}")
        if not 0.0 <= self.inclination_rad <= math.pi:
            raise ValueError(f"inclination must be in [0, π], got {self.inclination_rad}")
        if not self.mean_motion_rev_per_day > 0:
            raise ValueError(f"mean motion must be positive, got {self.mean_motion_rev_per_day}")
        for name in ("raan_rad", "arg_perigee_rad", "mean_anomaly_rad"):
            object.__setattr__(self, name, normalize_angle(float(getattr(self, name))))
        if self.epoch.tzinfo is None:
            object.__setattr__(self, "epoch", self.epoch.replace(tzinfo=timezone.utc))

    @classmethod
    def from_degrees(
        cls,
        semi_major_axis_km: float,
        eccentricity: float,
        inclination_deg: float,
        raan_deg: float,
        arg_perigee_deg: float,
        mean_anomaly_deg: float,
        epoch: datetime,
        earth: EarthModel = WGS84,
    ) -> OrbitalElements:
        """Build elements from angles in degrees; mean motion follows from a."""
        return cls(
            semi_major_axis_km=semi_major_axis_km,
            eccentricity=eccentricity,
            inclination_rad=math.radians(inclination_deg),
            raan_rad=math.radians(raan_deg),
            arg_perigee_rad=math.radians(arg_perigee_deg),
            mean_anomaly_rad=math.radians(mean_anomaly_deg),
            mean_motion_rev_per_day=mean_motion_from_sma(semi_major_axis_km, earth),
            epoch=epoch,
        )

    @classmethod
    def from_mean_motion(
        cls,
        mean_motion_rev_per_day: float,
        eccentricity: float,
        inclination_deg: float,
        raan_deg: float,
        arg_perigee_deg: float,
        mean_anomaly_deg: float,
        epoch: datetime,
        earth: EarthModel = WGS84,
    ) -> OrbitalElements:
        """Build elements from TLE-style fields; a follows from the mean motion."""
        if not mean_motion_rev_per_day > 0:
            raise ValueError(f"mean motion must be positive, got {mean_motion_rev_per_day}")
        return cls(
            semi_major_axis_km=sma_from_mean_motion(mean_motion_rev_per_day, earth),
            eccentricity=eccentricity,
            inclination_rad=math.radians(inclination_deg),
            raan_rad=math.radians(raan_deg),
            arg_perigee_rad=math.radians(arg_perigee_deg),
            mean_anomaly_rad=math.radians(mean_anomaly_deg),
            mean_motion_rev_per_day=mean_motion_rev_per_day,
            epoch=epoch,
        )

    @property
    def inclination_deg(self) -> float:
        return math.degrees(self.inclination_rad)

    @property
    def raan_deg(self) -> float:
        return math.degrees(self.raan_rad)

    @property
    def arg_perigee_deg(self) -> float:
        return math.degrees(self.arg_perigee_rad)

    @property
    def mean_anomaly_deg(self) -> float:
        return math.degrees(self.mean_anomaly_rad)

    @property
    def period_minutes(self) -> float:
        """Orbital period in minutes (1440 / mean motion)."""
        return MINUTES_PER_DAY / self.mean_motion_rev_per_day

    @property
    def true_anomaly_rad(self) -> float:
        """True anomaly at epoch, solved from the mean anomaly."""
        e_anom = solve_kepler(self.mean_anomaly_rad, self.eccentricity)
        return true_from_eccentric(e_anom, self.eccentricity)

    def perigee_altitude_km(self, earth: EarthModel = WGS84) -> float:
        return self.semi_major_axis_km * (1.0 - self.eccentricity) - earth.equatorial_radius_km

    def apogee_altitude_km(self, earth: EarthModel = WGS84) -> float:
        return self.semi_major_axis_km * (1.0 + self.eccentricity) - earth.equatorial_radius_km


def _angle_between(u: NDArray[np.float64], v: NDArray[np.float64]) -> float:
    """Unsigned angle in [0, π]; atan2 form keeps precision near 0 and π."""
    return math.atan2(float(np.linalg.norm(np.cross(u, v))), float(np.dot(u, v)))


def to_elements(state: StateVector, earth: EarthModel = WGS84) -> OrbitalElements:
    """Convert a Cartesian state vector to classical orbital elements.

    Args:
        state: Position (km), velocity (km/s) and epoch.
        earth: Earth model supplying the gravitational parameter.

    Returns:
        Osculating elements at the state's epoch.

    Raises:
        InvalidStateVector: If |r| ≈ 0, the angular momentum vanishes, or the
            orbit is not elliptical (a ≤ 0 or e ≥ 1).
    """
    mu = earth.mu_km3_s2
    r = np.asarray(state.position_km, dtype=np.float64)
    v = np.asarray(state.velocity_km_s, dtype=np.float64)

    r_mag = float(np.linalg.norm(r))
    v_mag = float(np.linalg.norm(v))
    if r_mag < 1e-9:
        raise InvalidStateVector("position magnitude is zero")

    energy = v_mag**2 / 2.0 - mu / r_mag
    if energy >= 0.0:
        raise InvalidStateVector(
            f"state is not elliptical (specific energy {energy:.6g} km²/s² >= 0)"
        )
    a = -mu / (2.0 * energy)
    if a <= 0.0:
        raise InvalidStateVector(f"non-positive semi-major axis {a:.6g} km")

    h = np.cross(r, v)
    h_mag = float(np.linalg.norm(h))
    if h_mag < 1e-9 * r_mag * max(v_mag, 1e-12):
        raise InvalidStateVector("angular momentum is zero (rectilinear trajectory)")

    e_vec = np.cross(v, h) / mu - r / r_mag
    e = float(np.linalg.norm(e_vec))
    if e >= 1.0:
        raise InvalidStateVector(f"eccentricity {e:.6g} is not elliptical")

    n_vec = np.cross(_K_HAT, h)
    n_mag = float(np.linalg.norm(n_vec))

    inclination = _angle_between(_K_HAT, h)
    equatorial = n_mag < _DEGENERATE_TOL * h_mag
    circular = e < _DEGENERATE_TOL
    # +1 prograde, -1 retrograde; only used for in-plane angles of equatorial orbits
    sense = 1.0 if h[2] >= 0.0 else -1.0

    if equatorial:
        raan = 0.0
    else:
        raan = _angle_between(np.array([1.0, 0.0, 0.0]), n_vec)
        if n_vec[1] < 0.0:
            raan = TWO_PI - raan

    if circular:
        arg_perigee = 0.0
        if equatorial:
            # true longitude
            nu = math.atan2(sense * r[1], r[0])
        else:
            # argument of latitude
            nu = _angle_between(n_vec, r)
            if r[2] < 0.0:
                nu = TWO_PI - nu
    else:
        if equatorial:
            # longitude of perigee
            arg_perigee = math.atan2(sense * e_vec[1], e_vec[0])
        else:
            arg_perigee = _angle_between(n_vec, e_vec)
            if e_vec[2] < 0.0:
                arg_perigee = TWO_PI - arg_perigee
        nu = _angle_between(e_vec, r)
        if float(np.dot(r, v)) < 0.0:
            nu = TWO_PI - nu

    nu = normalize_angle(nu)
    e_anom = eccentric_from_true(nu, e)
    mean_anomaly = e_anom - e * math.sin(e_anom)

    elements = OrbitalElements(
        semi_major_axis_km=a,
        eccentricity=e,
        inclination_rad=inclination,
        raan_rad=raan,
        arg_perigee_rad=arg_perigee,
        mean_anomaly_rad=mean_anomaly,
        mean_motion_rev_per_day=mean_motion_from_sma(a, earth),
        epoch=state.epoch,
    )
    logger.debug(
        "RV -> COE: a=%.3f km e=%.6f i=%.4f deg (equatorial=%s circular=%s)",
        a, e, elements.inclination_deg, equatorial, circular,
    )
    return elements


def _perifocal_to_eci(raan: float, inclination: float, arg_perigee: float) -> NDArray[np.float64]:
    c_o, s_o = math.cos(raan), math.sin(raan)
    c_w, s_w = math.cos(arg_perigee), math.sin(arg_perigee)
    c_i, s_i = math.cos(inclination), math.sin(inclination)
    return np.array([
        [c_o * c_w - s_o * s_w * c_i, -c_o * s_w - s_o * c_w * c_i, s_o * s_i],
        [s_o * c_w + c_o * s_w * c_i, -s_o * s_w + c_o * c_w * c_i, -c_o * s_i],
        [s_w * s_i, c_w * s_i, c_i],
    ])


def to_state(
    elements: OrbitalElements,
    true_anomaly: float | None = None,
    earth: EarthModel = WGS84,
) -> StateVector:
    """Reconstruct the Cartesian state for a set of elements.

    Args:
        elements: Orbital elements.
        true_anomaly: True anomaly in radians. Defaults to the anomaly
            implied by ``elements.mean_anomaly_rad``.
        earth: Earth model supplying the gravitational parameter.

    Returns:
        StateVector at ``elements.epoch``.
    """
    nu = elements.true_anomaly_rad if true_anomaly is None else true_anomaly
    a, e = elements.semi_major_axis_km, elements.eccentricity
    p = a * (1.0 - e**2)
    r_mag = p / (1.0 + e * math.cos(nu))
    speed_factor = math.sqrt(earth.mu_km3_s2 / p)

    r_pqw = np.array([r_mag * math.cos(nu), r_mag * math.sin(nu), 0.0])
    v_pqw = np.array([-speed_factor * math.sin(nu), speed_factor * (e + math.cos(nu)), 0.0])

    rot = _perifocal_to_eci(elements.raan_rad, elements.inclination_rad, elements.arg_perigee_rad)
    return StateVector(position_km=rot @ r_pqw, velocity_km_s=rot @ v_pqw, epoch=elements.epoch)


def ellipse_from_two_positions_and_speed(
    p1: ArrayLike,
    p2: ArrayLike,
    speed: float = DEFAULT_ASSUMED_SPEED_KM_S,
    epoch: datetime | None = None,
    earth: EarthModel = WGS84,
) -> OrbitalElements:
    """Estimate an ellipse from two waypoints and an assumed speed.

    This is an approximation, not a propagation: the orbital plane is taken
    from p1 × p2 and the velocity at p1 is assumed perpendicular to p1
    (toward p2) with magnitude ``speed``. The returned elements are flagged
    ``approximate=True``.

    Raises:
        InvalidStateVector: If the waypoints are collinear with the Earth's
            centre or the implied orbit is not elliptical.
    """
    if speed <= 0:
        raise InvalidStateVector(f"speed must be positive, got {speed}")
    r1 = np.asarray(p1, dtype=np.float64).reshape(3)
    r2 = np.asarray(p2, dtype=np.float64).reshape(3)
    r1_mag = float(np.linalg.norm(r1))
    if r1_mag < 1e-9:
        raise InvalidStateVector("first waypoint is at the origin")

    normal = np.cross(r1, r2)
    normal_mag = float(np.linalg.norm(normal))
    if normal_mag < 1e-9 * r1_mag * max(float(np.linalg.norm(r2)), 1e-12):
        raise InvalidStateVector("waypoints are collinear with Earth's centre; plane is undefined")
    normal /= normal_mag

    direction = np.cross(normal, r1 / r1_mag)
    velocity = direction * speed

    if epoch is None:
        epoch = datetime.now(timezone.utc)
    elements = to_elements(StateVector(position_km=r1, velocity_km_s=velocity, epoch=epoch), earth)
    logger.warning(
        "Elements estimated from two waypoints and an assumed speed of %.3f km/s; "
        "this is an approximation, not a propagated orbit",
        speed,
    )
    return dataclasses.replace(elements, approximate=True)
