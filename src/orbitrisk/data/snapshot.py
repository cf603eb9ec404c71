"""Catalog position snapshot.

Propagates catalog objects to a single timestamp and optionally limits the
result to a latitude/longitude/altitude box, e.g. to feed a heat map of
debris over a region. Positions are located on a spherical Earth, as in
:mod:`orbitrisk.data.export`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Any, Collection, Iterable, Mapping

from orbitrisk.core.errors import InvalidTLE, PropagationError
from orbitrisk.core.propagation import Propagator, sgp4_propagate
from orbitrisk.core.tle import TLE
from orbitrisk.data.export import eci_to_geodetic
from orbitrisk.utils.config import as_utc
from orbitrisk.utils.constants import WGS84, EarthModel

logger = logging.getLogger(__name__)


class ObjectType(IntEnum):
    """Common catalog object type codes (KeepTrack numbering); other codes pass through as ints."""

    UNKNOWN = 0
    PAYLOAD = 1
    ROCKET_BODY = 2
    DEBRIS = 3


@dataclass(frozen=True)
class BoundingBox:
    """Latitude/longitude box (degrees) with an optional altitude band (km).

    A box with ``min_lon > max_lon`` crosses the antimeridian.
    """

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float
    min_alt_km: float | None = None
    max_alt_km: float | None = None

    def __post_init__(self) -> None:
        if not -90.0 <= self.min_lat <= self.max_lat <= 90.0:
            raise ValueError(f"invalid latitude range [{self.min_lat}, {self.max_lat}]")
        for lon in (self.min_lon, self.max_lon):
            if not -180.0 <= lon <= 180.0:
                raise ValueError(f"longitude {lon} outside [-180, 180]")
        if (
            self.min_alt_km is not None
            and self.max_alt_km is not None
            and self.min_alt_km > self.max_alt_km
        ):
            raise ValueError(f"invalid altitude range [{self.min_alt_km}, {self.max_alt_km}]")

    def contains(self, latitude: float, longitude: float, altitude_km: float) -> bool:
        if not self.min_lat <= latitude <= self.max_lat:
            return False
        if self.min_lon <= self.max_lon:
            in_lon = self.min_lon <= longitude <= self.max_lon
        else:
            in_lon = longitude >= self.min_lon or longitude <= self.max_lon
        if not in_lon:
            return False
        if self.min_alt_km is not None and altitude_km < self.min_alt_km:
            return False
        if self.max_alt_km is not None and altitude_km > self.max_alt_km:
            return False
        return True


@dataclass(frozen=True)
class ObjectPosition:
    name: str
    norad_id: int
    object_type: int
    position_km: tuple[float, float, float]
    latitude: float
    longitude: float
    altitude_km: float

    def to_dict(self) -> dict:
        x, y, z = self.position_km
        return {
            "name": self.name,
            "noradId": self.norad_id,
            "type": self.object_type,
            "x": x,
            "y": y,
            "z": z,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude_km,
        }


@dataclass(frozen=True)
class CatalogSnapshot:
    """Positions of the selected catalog objects at ``time``.

    Attributes:
        time: Snapshot time (UTC).
        positions: Objects that passed every filter.
        skipped_invalid: Records with malformed TLEs.
        skipped_unpropagated: Objects that could not be propagated to ``time``.
    """

    time: datetime
    positions: tuple[ObjectPosition, ...]
    skipped_invalid: int = 0
    skipped_unpropagated: int = 0

    def to_dict(self) -> dict:
        return {
            "timestamp": self.time.isoformat(),
            "count": len(self.positions),
            "data": [p.to_dict() for p in self.positions],
        }


def _record_tle(record: TLE | Mapping[str, Any]) -> tuple[TLE, int]:
    if isinstance(record, TLE):
        return record, int(ObjectType.UNKNOWN)
    try:
        tle = TLE.from_lines(record["tle1"], record["tle2"], name=str(record.get("name") or ""))
        object_type = int(record.get("type", ObjectType.UNKNOWN))
    except (KeyError, TypeError, ValueError) as ex:
        raise InvalidTLE(f"malformed catalog record: {ex}") from ex
    return tle, object_type


def catalog_snapshot(
    records: Iterable[TLE | Mapping[str, Any]],
    time: datetime,
    types: Collection[ObjectType | int] | None = None,
    bbox: BoundingBox | None = None,
    propagate: Propagator = sgp4_propagate,
    earth: EarthModel = WGS84,
) -> CatalogSnapshot:
    """Propagate catalog objects to ``time`` and keep those matching the filters.

    Args:
        records: ``TLE`` objects (type unknown) or mappings with ``tle1``,
            ``tle2``, ``name`` and ``type`` keys.
        time: Snapshot time; naive datetimes are UTC.
        types: Object types to keep, e.g. ``{ObjectType.DEBRIS}``. None keeps all.
        bbox: Optional latitude/longitude/altitude box.
        propagate: Propagate capability.
        earth: Earth model for the spherical-Earth location.

    Returns:
        CatalogSnapshot in input order. Positions are rounded to 2 decimals,
        latitude/longitude to 4 and altitude to 2.
    """
    time = as_utc(time)
    wanted = None if types is None else {int(t) for t in types}

    positions: list[ObjectPosition] = []
    invalid = unpropagated = 0
    for record in records:
        try:
            tle, object_type = _record_tle(record)
        except InvalidTLE as ex:
            invalid += 1
            logger.warning("Skipping catalog record: %s", ex)
            continue
        if wanted is not None and object_type not in wanted:
            continue

        try:
            result = propagate(tle, time)
        except PropagationError as ex:
            result = None
            logger.debug("Skipping %s: %s", tle.label, ex)
        if result is None or not result.ok:
            unpropagated += 1
            continue

        position = tuple(round(float(c), 2) for c in result.state.position_km)
        lat, lon, alt = eci_to_geodetic(result.state.position_km, time, earth)
        if bbox is not None and not bbox.contains(lat, lon, alt):
            continue
        positions.append(
            ObjectPosition(
                name=tle.label,
                norad_id=tle.norad_id,
                object_type=object_type,
                position_km=position,
                latitude=round(lat, 4),
                longitude=round(lon, 4),
                altitude_km=round(alt, 2),
            )
        )

    if invalid or unpropagated:
        logger.info(
            "catalog_snapshot: %d malformed and %d unpropagatable objects skipped", invalid, unpropagated
        )
    logger.info("catalog_snapshot: %d objects at %s", len(positions), time.isoformat())
    return CatalogSnapshot(time, tuple(positions), invalid, unpropagated)
