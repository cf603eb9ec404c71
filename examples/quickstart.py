"""orbitrisk quickstart — parse a TLE, convert its state, and re-encode it."""

from datetime import timedelta

from orbitrisk import encode, parse_tle, sgp4_propagate, to_elements

# ISS (ZARYA) TLE
tle_text = """
ISS (ZARYA)
1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9997
2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439592
""".strip()

# Parse it
tles = parse_tle(tle_text)
iss = tles[0]

print(f"Satellite: {iss.name}")
print(f"NORAD ID:  {iss.norad_id}")
print(f"Epoch:     {iss.epoch}")
print(f"Incl:      {iss.inclination_deg:.4f}°")
print(f"Ecc:       {iss.eccentricity:.7f}")
print(f"Period:    {iss.elements.period_minutes:.1f} min")

# Propagate one hour ahead and convert the state vector back to elements
result = sgp4_propagate(iss, iss.epoch + timedelta(hours=1))
if result.ok:
    osculating = to_elements(result.state)
    print(f"Osculating a = {osculating.semi_major_axis_km:.1f} km, e = {osculating.eccentricity:.5f}")

    line1, line2 = encode(osculating, sat_num=iss.norad_id)
    print(line1)
    print(line2)
else:
    print(f"ISS could not be propagated: {result.reason}")
