"""Diagnostic CSV export of proximity events.

Each row locates the primary object's position at the event time on a
spherical Earth (GMST rotation, no geodetic datum). The export is a
side channel for inspection and is not needed for risk computation.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import IO, Iterable, Sequence

from sgp4.api import jday

from orbitrisk.core.screening import ProximityEvent
from orbitrisk.utils.config import as_utc
from orbitrisk.utils.constants import TWO_PI, WGS84, EarthModel

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("timestamp", "latitude", "longitude", "altitude", "other_object", "distance_km")


def gmst(t: datetime) -> float:
    """Greenwich mean sidereal time in radians (IAU-82)."""
    t = as_utc(t)
    jd, fr = jday(t.year, t.month, t.day, t.hour, t.minute, t.second + t.microsecond / 1e6)
    tut1 = (jd + fr - 2451545.0) / 36525.0
    seconds = (
        -6.2e-6 * tut1**3
        + 0.093104 * tut1**2
        + (876600.0 * 3600.0 + 8640184.812866) * tut1
        + 67310.54841
    )
    return math.fmod(math.radians(seconds / 240.0), TWO_PI) % TWO_PI


def eci_to_geodetic(
    position_km: Sequence[float], t: datetime, earth: EarthModel = WGS84
) -> tuple[float, float, float]:
    """Spherical-Earth latitude/longitude (deg) and altitude (km) of an ECI position."""
    x, y, z = position_km
    lon = math.atan2(y, x) - gmst(t)
    lon_deg = (math.degrees(lon) + 180.0) % 360.0 - 180.0
    lat_deg = math.degrees(math.atan2(z, math.hypot(x, y)))
    alt_km = math.sqrt(x * x + y * y + z * z) - earth.mean_radius_km
    return lat_deg, lon_deg, alt_km


def geodetic_to_eci(
    latitude_deg: float,
    longitude_deg: float,
    altitude_km: float,
    t: datetime,
    earth: EarthModel = WGS84,
) -> tuple[float, float, float]:
    """ECI position (km) of a spherical-Earth latitude/longitude/altitude. Inverse of :func:`eci_to_geodetic`."""
    r = earth.mean_radius_km + altitude_km
    lat = math.radians(latitude_deg)
    lon = math.radians(longitude_deg) + gmst(t)
    return (
        r * math.cos(lat) * math.cos(lon),
        r * math.cos(lat) * math.sin(lon),
        r * math.sin(lat),
    )


def event_rows(events: Iterable[ProximityEvent], earth: EarthModel = WGS84) -> list[dict]:
    """Tabular rows for a sequence of events."""
    rows = []
    for event in events:
        lat, lon, alt = eci_to_geodetic(event.position_a, event.time_a, earth)
        rows.append({
            "timestamp": as_utc(event.time_a).isoformat(),
            "latitude": round(lat, 4),
            "longitude": round(lon, 4),
            "altitude": round(alt, 2),
            "other_object": event.other_id,
            "distance_km": round(event.distance_km, 3),
        })
    return rows


def write_events_csv(
    events: Iterable[ProximityEvent],
    destination: str | Path | IO[str],
    earth: EarthModel = WGS84,
) -> int:
    """Write events as CSV to a path or an open text stream.

    Returns:
        Number of rows written.
    """
    rows = event_rows(events, earth)
    if isinstance(destination, (str, Path)):
        with open(destination, "w", newline="", encoding="utf-8") as fh:
            _write(rows, fh)
    else:
        _write(rows, destination)
    logger.debug("Wrote %d event rows to %s", len(rows), destination)
    return len(rows)


def events_to_csv(events: Iterable[ProximityEvent], earth: EarthModel = WGS84) -> str:
    """CSV text for a sequence of events."""
    buffer = io.StringIO()
    write_events_csv(events, buffer, earth)
    return buffer.getvalue()


def _write(rows: list[dict], fh: IO[str]) -> None:
    writer = csv.DictWriter(fh, fieldnames=CSV_COLUMNS)
    writer.writeheader()
    writer.writerows(rows)
