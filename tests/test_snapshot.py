"""Tests for the catalog position snapshot."""
from __future__ import annotations

import pytest

from orbitrisk.core.errors import PropagationError
from orbitrisk.core.propagation import sgp4_propagate
from orbitrisk.data.export import eci_to_geodetic
from orbitrisk.data.snapshot import BoundingBox, ObjectType, catalog_snapshot


@pytest.fixture
def records(iss_tle, css_tle, geo_tle) -> list[dict]:
    return [
        {"name": "ISS", "tle1": iss_tle.line1, "tle2": iss_tle.line2, "type": 1},
        {"name": "FRAGMENT", "tle1": css_tle.line1, "tle2": css_tle.line2, "type": 3},
        {"name": "GEO", "tle1": geo_tle.line1, "tle2": geo_tle.line2, "type": 1},
        {"name": "BROKEN", "tle1": "1 garbage", "tle2": "2 garbage", "type": 3},
        {"name": "HALF", "tle1": iss_tle.line1, "type": 3},
    ]


class TestCatalogSnapshot:
    def test_all_objects(self, records, epoch, iss_tle):
        snapshot = catalog_snapshot(records, epoch)
        assert [p.name for p in snapshot.positions] == ["ISS", "FRAGMENT", "GEO"]
        assert snapshot.skipped_invalid == 2
        assert snapshot.skipped_unpropagated == 0

        iss = snapshot.positions[0]
        expected = sgp4_propagate(iss_tle, epoch).state.position_km
        assert iss.position_km == tuple(round(float(c), 2) for c in expected)
        assert iss.norad_id == 25544
        assert iss.object_type == ObjectType.PAYLOAD
        assert 350.0 < iss.altitude_km < 450.0

    def test_type_filter(self, records, epoch):
        snapshot = catalog_snapshot(records, epoch, types={ObjectType.DEBRIS})
        assert [p.name for p in snapshot.positions] == ["FRAGMENT"]
        assert snapshot.skipped_invalid == 2

    def test_altitude_band(self, records, epoch):
        low = BoundingBox(-90.0, 90.0, -180.0, 180.0, min_alt_km=0.0, max_alt_km=2000.0)
        snapshot = catalog_snapshot(records, epoch, bbox=low)
        assert [p.name for p in snapshot.positions] == ["ISS", "FRAGMENT"]

    def test_region_around_object(self, records, epoch, iss_tle):
        lat, lon, _ = eci_to_geodetic(sgp4_propagate(iss_tle, epoch).state.position_km, epoch)
        west = (lon - 1.0 + 180.0) % 360.0 - 180.0
        east = (lon + 1.0 + 180.0) % 360.0 - 180.0
        box = BoundingBox(max(-90.0, lat - 1.0), min(90.0, lat + 1.0), west, east, max_alt_km=2000.0)
        names = [p.name for p in catalog_snapshot(records, epoch, bbox=box).positions]
        assert "ISS" in names
        assert "GEO" not in names

    def test_unpropagatable_objects_skipped(self, records, epoch, decay_after):
        snapshot = catalog_snapshot(records, epoch, propagate=decay_after(epoch.replace(year=2020)))
        assert snapshot.positions == ()
        assert snapshot.skipped_unpropagated == 3

    def test_propagation_error_skipped(self, records, epoch):
        def failing(target, time):
            raise PropagationError("rejected")

        snapshot = catalog_snapshot(records[:2], epoch, propagate=failing)
        assert snapshot.positions == ()
        assert snapshot.skipped_unpropagated == 2

    def test_tle_objects_have_unknown_type(self, iss_tle, geo_tle, epoch):
        assert len(catalog_snapshot([iss_tle, geo_tle], epoch, types={ObjectType.UNKNOWN}).positions) == 2
        assert catalog_snapshot([iss_tle, geo_tle], epoch, types={ObjectType.DEBRIS}).positions == ()

    def test_other_type_codes_pass_through(self, iss_tle, epoch):
        record = {"name": "SENSOR", "tle1": iss_tle.line1, "tle2": iss_tle.line2, "type": 7}
        assert catalog_snapshot([record], epoch).positions[0].object_type == 7
        assert catalog_snapshot([record], epoch, types=[7]).positions[0].name == "SENSOR"

    def test_naive_time_is_utc(self, records, epoch):
        assert catalog_snapshot(records, epoch.replace(tzinfo=None)).time == epoch

    def test_to_dict(self, records, epoch):
        data = catalog_snapshot(records, epoch, types=[3]).to_dict()
        assert data["timestamp"] == epoch.isoformat()
        assert data["count"] == 1
        assert set(data["data"][0]) == {
            "name", "noradId", "type", "x", "y", "z", "latitude", "longitude", "altitude",
        }
        assert data["data"][0]["type"] == 3


class TestBoundingBox:
    def test_contains(self):
        box = BoundingBox(-10.0, 10.0, -20.0, 20.0, min_alt_km=200.0, max_alt_km=2000.0)
        assert box.contains(0.0, 0.0, 500.0)
        assert not box.contains(11.0, 0.0, 500.0)
        assert not box.contains(0.0, 25.0, 500.0)
        assert not box.contains(0.0, 0.0, 100.0)
        assert not box.contains(0.0, 0.0, 3000.0)

    def test_crosses_antimeridian(self):
        box = BoundingBox(-10.0, 10.0, 170.0, -170.0)
        assert box.contains(0.0, 175.0, 400.0)
        assert box.contains(0.0, -175.0, 400.0)
        assert not box.contains(0.0, 0.0, 400.0)

    @pytest.mark.parametrize(
        "args",
        [
            (10.0, -10.0, -20.0, 20.0),
            (-95.0, 10.0, -20.0, 20.0),
            (-10.0, 10.0, -200.0, 20.0),
            (-10.0, 10.0, -20.0, 20.0, 500.0, 100.0),
        ],
    )
    def test_invalid(self, args):
        with pytest.raises(ValueError):
            BoundingBox(*args)
