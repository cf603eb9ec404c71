"""Launch ascent estimate and launch-candidate screening.

:func:`estimate_leo_entry` is a small analytical estimate of where a launch
vehicle reaches low Earth orbit. It accounts for the eastward drift of the
launch site during ascent and a crude downrange distance at half the
insertion velocity.

:func:`select_launches` and :func:`plan_launch_candidates` use it to rank
upcoming launches: each launch gets a candidate orbit through its entry
point and a target point, which is then shape-checked against a reference
object over a long horizon.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping

from orbitrisk.core.elements import ellipse_from_two_positions_and_speed
from orbitrisk.core.errors import ConfigurationError, InvalidStateVector
from orbitrisk.core.propagation import Propagator, Target, sgp4_propagate
from orbitrisk.core.screening import count_shape_intersections
from orbitrisk.core.tle import TLE
from orbitrisk.data.export import geodetic_to_eci
from orbitrisk.utils.config import ScreeningConfig, as_utc, require_positive, validate_window
from orbitrisk.utils.constants import (
    DEFAULT_CANDIDATE_HORIZON_DAYS,
    DEFAULT_ENTRY_ALTITUDE_KM,
    WGS84,
    EarthModel,
)

logger = logging.getLogger(__name__)

# Total first + second stage burn time in seconds.
ROCKET_BURN_TIMES_S: dict[str, float] = {
    "Falcon": 162.0 + 348.0,
    "Long March": 170.0 + 430.0,
}

DEFAULT_BURN_TIME_S = 480.0


def _wrap_longitude(lon_deg: float) -> float:
    """Wrap into [-180, 180)."""
    return (lon_deg + 180.0) % 360.0 - 180.0


def estimate_leo_entry(
    latitude_deg: float,
    longitude_deg: float,
    rocket_family: str | None = None,
    azimuth_deg: float = 90.0,
    burn_time_s: float = DEFAULT_BURN_TIME_S,
    earth: EarthModel = WGS84,
) -> tuple[float, float]:
    """Estimate the (latitude, longitude) at which a launch reaches LEO.

    Args:
        latitude_deg: Launch site latitude.
        longitude_deg: Launch site longitude.
        rocket_family: Known family name ("Falcon", "Long March"); its burn
            time overrides ``burn_time_s``.
        azimuth_deg: Launch azimuth, clockwise from north (90 = due east).
        burn_time_s: Total burn time for unknown families.
        earth: Earth model (mean radius, surface rotation speed, nominal
            orbital velocity).

    Returns:
        Tuple of (latitude_deg, longitude_deg). Longitude is wrapped into
        [-180, 180); for an eastward launch the latitude is unchanged.
    """
    burn = ROCKET_BURN_TIMES_S.get(rocket_family or "", None)
    if burn is None:
        burn = require_positive("burn_time_s", burn_time_s)

    rotation_speed = earth.surface_rotation_speed_km_s * math.cos(math.radians(latitude_deg))
    rotation_offset_km = rotation_speed * burn
    # average speed over the ascent is taken as half the insertion velocity
    downrange_km = earth.orbital_velocity_km_s * burn / 2.0
    azimuth = math.radians(azimuth_deg)
    east_km = rotation_offset_km + downrange_km * math.sin(azimuth)
    north_km = downrange_km * math.cos(azimuth)

    km_to_deg = 360.0 / (2.0 * math.pi * earth.mean_radius_km)
    new_lat = max(-90.0, min(90.0, latitude_deg + north_km * km_to_deg))
    new_lon = _wrap_longitude(longitude_deg + east_km * km_to_deg)
    logger.debug(
        "LEO entry for %s from (%.3f, %.3f): (%.3f, %.3f)",
        rocket_family or "generic", latitude_deg, longitude_deg, new_lat, new_lon,
    )
    return new_lat, new_lon


def _parse_time(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def _optional_float(value: Any) -> float | None:
    return None if value in (None, "") else float(value)


@dataclass(frozen=True)
class LaunchRecord:
    """One upcoming launch.

    Attributes:
        name: Launch name.
        provider_type: Launch service provider type ("Commercial", "Government", ...).
        orbit: Target orbit abbreviation ("LEO", "GTO", ...), if announced.
        window_start: Start of the launch window (UTC).
        window_end: End of the launch window (UTC).
        pad_latitude: Launch pad latitude in degrees, if known.
        pad_longitude: Launch pad longitude in degrees, if known.
        rocket_family: Rocket family ("Falcon", "Long March", ...), if known.
    """

    name: str
    provider_type: str
    orbit: str | None
    window_start: datetime
    window_end: datetime
    pad_latitude: float | None = None
    pad_longitude: float | None = None
    rocket_family: str | None = None

    @property
    def launch_time(self) -> datetime:
        """Middle of the launch window."""
        return self.window_start + (self.window_end - self.window_start) / 2

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LaunchRecord:
        """Build a record from a Launch Library style ``launch`` object.

        Raises:
            ValueError: If a required field is missing or malformed.
        """
        try:
            mission = data.get("mission") or {}
            orbit = (mission.get("orbit") or {}).get("abbrev")
            pad = data.get("pad") or {}
            configuration = (data.get("rocket") or {}).get("configuration") or {}
            window_start = _parse_time(data["window_start"])
            window_end = _parse_time(data.get("window_end") or data["window_start"])
            if window_end < window_start:
                raise ValueError(f"launch window ends before it starts ({data['window_end']})")
            return cls(
                name=str(data.get("name", "")),
                provider_type=str(data["launch_service_provider"]["type"]),
                orbit=orbit,
                window_start=window_start,
                window_end=window_end,
                pad_latitude=_optional_float(pad.get("latitude")),
                pad_longitude=_optional_float(pad.get("longitude")),
                rocket_family=configuration.get("family"),
            )
        except (KeyError, TypeError, AttributeError) as ex:
            raise ValueError(f"malformed launch record: missing or invalid {ex}") from ex


def select_launches(
    launches: Iterable[LaunchRecord | Mapping[str, Any]],
    orbit: str,
    start: datetime,
    end: datetime,
    provider_type: str = "Commercial",
) -> list[LaunchRecord]:
    """Keep launches by ``provider_type`` into ``orbit`` whose launch time falls in the window.

    Malformed records are logged and skipped. Window bounds are inclusive.

    Raises:
        TimeWindowInvalid: If ``end`` is not after ``start``.
    """
    start, end = validate_window(start, end)
    selected: list[LaunchRecord] = []
    for launch in launches:
        if not isinstance(launch, LaunchRecord):
            try:
                launch = LaunchRecord.from_dict(launch)
            except ValueError as ex:
                logger.warning("Skipping launch record: %s", ex)
                continue
        if launch.provider_type != provider_type or launch.orbit != orbit:
            continue
        if start <= launch.launch_time <= end:
            selected.append(launch)

    logger.debug("select_launches: %d %s launches into %s in window", len(selected), provider_type, orbit)
    return selected


def candidate_tle(
    point_a: tuple[float, float],
    point_b: tuple[float, float],
    entry_time: datetime,
    altitude_km: float = DEFAULT_ENTRY_ALTITUDE_KM,
    speed_km_s: float | None = None,
    sat_num: int = 99999,
    name: str = "CANDIDATE",
    earth: EarthModel = WGS84,
) -> TLE:
    """TLE of an orbit through two (latitude, longitude) points at ``entry_time``.

    Both points are placed at ``altitude_km`` on a spherical Earth. The
    orbit is the two-waypoint ellipse estimate, so the result is an
    approximation. ``speed_km_s`` defaults to the circular speed at that
    altitude.

    Raises:
        InvalidStateVector: If the points coincide or are antipodal.
    """
    require_positive("altitude_km", altitude_km)
    entry_time = as_utc(entry_time)
    p1 = geodetic_to_eci(point_a[0], point_a[1], altitude_km, entry_time, earth)
    p2 = geodetic_to_eci(point_b[0], point_b[1], altitude_km, entry_time, earth)
    if speed_km_s is None:
        speed_km_s = math.sqrt(earth.mu_km3_s2 / (earth.mean_radius_km + altitude_km))
    elements = ellipse_from_two_positions_and_speed(p1, p2, speed_km_s, entry_time, earth)
    return TLE.from_elements(elements, name=name, sat_num=sat_num)


@dataclass(frozen=True)
class LaunchCandidate:
    """A selected launch with its candidate orbit and shape-crossing count."""

    launch: LaunchRecord
    entry_point: tuple[float, float]
    tle: TLE
    intersections: int


def plan_launch_candidates(
    launches: Iterable[LaunchRecord | Mapping[str, Any]],
    start: datetime,
    end: datetime,
    target_point: tuple[float, float],
    reference: Target,
    orbit: str = "LEO",
    config: ScreeningConfig | None = None,
    propagate: Propagator = sgp4_propagate,
    horizon_days: float = DEFAULT_CANDIDATE_HORIZON_DAYS,
    altitude_km: float = DEFAULT_ENTRY_ALTITUDE_KM,
    earth: EarthModel = WGS84,
) -> list[LaunchCandidate]:
    """Rank upcoming launches by how often their candidate orbit crosses ``reference``.

    For every launch kept by :func:`select_launches`, the LEO entry point
    is estimated from its pad and rocket family, a candidate orbit is built
    through that entry point and ``target_point`` at the launch time, and
    :func:`count_shape_intersections` counts path crossings with
    ``reference`` from the launch time over ``horizon_days``.

    Launches without pad coordinates, or whose entry point makes the
    candidate orbit undefined, are logged and skipped.

    Returns:
        Candidates sorted by intersection count, then launch time.

    Raises:
        ConfigurationError: If ``orbit`` is not "LEO" or a numeric
            argument is out of range.
        TimeWindowInvalid: If ``end`` is not after ``start``.
    """
    if orbit != "LEO":
        raise ConfigurationError(f"only LEO launches can be planned, got {orbit!r}")
    require_positive("horizon_days", horizon_days)
    config = config or ScreeningConfig()

    candidates: list[LaunchCandidate] = []
    for launch in select_launches(launches, orbit, start, end):
        if launch.pad_latitude is None or launch.pad_longitude is None:
            logger.warning("Skipping %s: launch pad location unknown", launch.name)
            continue
        entry = estimate_leo_entry(
            launch.pad_latitude, launch.pad_longitude, launch.rocket_family, earth=earth
        )
        try:
            tle = candidate_tle(
                entry, target_point, launch.launch_time, altitude_km, name=launch.name, earth=earth
            )
        except InvalidStateVector as ex:
            logger.warning("Skipping %s: %s", launch.name, ex)
            continue
        count = count_shape_intersections(
            tle,
            reference,
            launch.launch_time,
            launch.launch_time + timedelta(days=horizon_days),
            propagate=propagate,
            config=config,
        )
        logger.debug("%s: %d shape intersections with the reference", launch.name, count)
        candidates.append(LaunchCandidate(launch, entry, tle, count))

    candidates.sort(key=lambda c: (c.intersections, c.launch.launch_time))
    logger.info("plan_launch_candidates: %d candidates", len(candidates))
    return candidates
