"""orbitrisk batch screening — assess one object against a small catalog.

Shows both proximity modes: the time-aligned scan behind the risk report,
and the shape-intersection count, which only says how often two orbital
paths cross.
"""

import logging
from datetime import timedelta

from orbitrisk import (
    ScreeningConfig,
    ScreeningMode,
    assess_collision_risk,
    count_shape_intersections,
    parse_tle,
    screen_catalog,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

CATALOG_TEXT = """
ISS (ZARYA)
1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9997
2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439592
CSS (TIANHE)
1 48274U 21035A   24045.50261574  .00021540  00000-0  25163-3 0  9993
2 48274  41.4681 279.1498 0005372 149.8847 345.3740 15.62096269157015
HUBBLE
1 20580U 90037B   24045.55478014  .00001456  00000-0  73052-4 0  9990
2 20580  28.4701  41.0696 0002622 348.3544 140.2428 15.09435694872912
""".strip()

catalog = parse_tle(CATALOG_TEXT)
iss = catalog[0]
start = iss.epoch

# Time-aligned conjunction search feeding the risk report (window is clamped to 14 days)
report = assess_collision_risk(
    iss,
    catalog,
    start,
    start + timedelta(days=20),
    config=ScreeningConfig(step_minutes=5.0, threshold_km=25.0),
    export_path="iss_events.csv",
)
print(f"Risk level:   {report.risk_level.value}")
print(f"Probability:  {report.probability_percent:.3f}%")
print(f"Valid until:  {report.valid_until.isoformat()}")
for warning in report.warnings:
    print(f"Warning:      {warning}")
for event in report.events[:5]:
    print(f"  {event.time_a.isoformat()} | {event.other_id} | {event.distance_km:.2f} km")

# Shape intersection: do the paths cross at all, regardless of timing?
shape = screen_catalog(
    iss,
    catalog,
    start,
    start + timedelta(days=1),
    mode=ScreeningMode.SHAPE,
    config=ScreeningConfig(shape_threshold_km=50.0),
)
print(f"Shape intersections today: {len(shape.events)} in {shape.total_checks} comparisons")

crossings = count_shape_intersections(iss, catalog[1], start, start + timedelta(days=14), threshold_km=50.0)
print(f"ISS / CSS path crossings over 14 days: {crossings}")
