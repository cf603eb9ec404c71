"""Tests for TLE encoding, decoding and parsing."""

from datetime import datetime, timezone

import pytest

from orbitrisk.core.elements import OrbitalElements, mean_motion_from_sma
from orbitrisk.core.errors import InvalidTLE
from orbitrisk.core.tle import (
    TLE,
    TLE_LINE_LENGTH,
    _format_exponent,
    _parse_exponent,
    decode,
    encode,
    load_catalog,
    parse_tle,
    tle_checksum,
)

ISS_NAME = "ISS (ZARYA)"
EPOCH = datetime(2024, 2, 14, 12, 0, 0, tzinfo=timezone.utc)


def _reference_elements() -> OrbitalElements:
    return OrbitalElements.from_degrees(6780.0, 0.0007, 51.6, 242.6, 53.5, 306.6, EPOCH)


def _with_checksum(line: str) -> str:
    return line[:68] + str(tle_checksum(line))


class TestChecksum:
    def test_known_line(self, iss_lines) -> None:
        line1, line2 = iss_lines
        assert tle_checksum(line1) == 7
        assert tle_checksum(line2) == 2

    def test_minus_counts_one(self) -> None:
        assert tle_checksum("-" * 68) == 68 % 10

    def test_letters_and_spaces_count_zero(self) -> None:
        assert tle_checksum("1 ABC" + " " * 63) == 1


class TestEncodeReference:
    def test_line_lengths(self) -> None:
        line1, line2 = encode(_reference_elements())
        assert len(line1) == TLE_LINE_LENGTH
        assert len(line2) == TLE_LINE_LENGTH

    def test_line2_fields(self) -> None:
        _, line2 = encode(_reference_elements(), sat_num=99999)
        assert line2[0:7] == "2 99999"
        assert line2[8:16] == " 51.6000"
        assert line2[17:25] == "242.6000"
        assert line2[26:33] == "0007000"
        assert line2[34:42] == " 53.5000"
        assert line2[43:51] == "306.6000"
        assert line2[52:63] == f"{mean_motion_from_sma(6780.0):11.8f}"
        assert 15.5 < float(line2[52:63]) < 15.6

    def test_line1_fields(self) -> None:
        line1, _ = encode(_reference_elements(), sat_num=12345, classification="C")
        assert line1[0:8] == "1 12345C"
        assert line1[18:32] == "24045.50000000"
        assert line1[33:43] == " .00000000"
        assert line1[44:52] == " 00000-0"
        assert line1[53:61] == " 00000+0"
        assert line1[64:68] == " 999"

    def test_explicit_epoch_overrides_elements(self) -> None:
        line1, _ = encode(_reference_elements(), epoch=datetime(1999, 1, 1, tzinfo=timezone.utc))
        assert line1[18:32] == "99001.00000000"

    def test_optional_line1_fields(self) -> None:
        line1, line2 = encode(
            _reference_elements(),
            sat_num=25544,
            intl_designator="98067A",
            mean_motion_dot=0.00016717,
            bstar=3.0093e-4,
            element_set_number=42,
            rev_number=123456,
        )
        assert line1[9:17] == "98067A  "
        assert line1[33:43] == " .00016717"
        assert line1[53:61] == " 30093-3"
        assert line1[64:68] == "  42"
        assert line2[63:68] == "23456"


class TestChecksumProperty:
    @pytest.mark.parametrize(
        "a, e, i, raan, argp, m",
        [
            (6780.0, 0.0007, 51.6, 242.6, 53.5, 306.6),
            (7000.0, 0.0, 0.0, 0.0, 0.0, 0.0),
            (26560.0, 0.01, 55.0, 359.9999, 180.0, 90.0),
            (42164.0, 0.0002, 0.05, 10.0, 20.0, 30.0),
            (24000.0, 0.7, 63.4, 120.0, 270.0, 1.0),
        ],
    )
    def test_last_digit_is_checksum(self, a, e, i, raan, argp, m) -> None:
        el = OrbitalElements.from_degrees(a, e, i, raan, argp, m, EPOCH)
        for line in encode(el, sat_num=1, bstar=-1.1606e-5, mean_motion_dot=-2.182e-5):
            assert len(line) == TLE_LINE_LENGTH
            assert int(line[68]) == tle_checksum(line)


class TestDecodeEncode:
    def test_reproduces_elements(self) -> None:
        el = OrbitalElements.from_degrees(7100.0, 0.0123456, 98.7654, 123.4567, 234.5678, 345.6789, EPOCH)
        tle = decode(*encode(el))
        assert tle.inclination_deg == pytest.approx(el.inclination_deg, abs=1e-4)
        assert tle.raan_deg == pytest.approx(el.raan_deg, abs=1e-4)
        assert tle.arg_perigee_deg == pytest.approx(el.arg_perigee_deg, abs=1e-4)
        assert tle.mean_anomaly_deg == pytest.approx(el.mean_anomaly_deg, abs=1e-4)
        assert tle.mean_motion_rev_per_day == pytest.approx(el.mean_motion_rev_per_day, abs=1e-8)
        assert tle.eccentricity == pytest.approx(el.eccentricity, abs=5e-8)
        assert tle.epoch == EPOCH

    def test_from_elements(self) -> None:
        tle = TLE.from_elements(_reference_elements(), name="TEST SAT", sat_num=12345)
        assert tle.norad_id == 12345
        assert tle.label == "TEST SAT"
        assert tle.elements.semi_major_axis_km == pytest.approx(6780.0, abs=1e-3)


class TestEccentricityField:
    def test_high_eccentricity_keeps_leading_digit(self) -> None:
        el = OrbitalElements.from_degrees(24000.0, 0.165168, 20.0, 0.0, 0.0, 0.0, EPOCH)
        line1, line2 = encode(el)
        assert line2[26:33] == "1651680"
        assert decode(line1, line2).eccentricity == pytest.approx(0.165168, abs=1e-9)

    def test_rounds_rather_than_truncates(self) -> None:
        el = OrbitalElements.from_degrees(24000.0, 0.12345678, 20.0, 0.0, 0.0, 0.0, EPOCH)
        _, line2 = encode(el)
        assert line2[26:33] == "1234568"

    def test_small_eccentricity_zero_padded(self) -> None:
        el = OrbitalElements.from_degrees(7000.0, 0.00001, 20.0, 0.0, 0.0, 0.0, EPOCH)
        _, line2 = encode(el)
        assert line2[26:33] == "0000100"

    def test_eccentricity_rounding_to_one_rejected(self) -> None:
        el = OrbitalElements.from_degrees(90000.0, 0.99999999, 20.0, 0.0, 0.0, 0.0, EPOCH)
        with pytest.raises(ValueError, match="eccentricity"):
            encode(el)


class TestExponentField:
    @pytest.mark.parametrize(
        "value, text",
        [
            (3.0093e-4, " 30093-3"),
            (-1.1606e-5, "-11606-4"),
            (7.3052e-5, " 73052-4"),
            (0.0, " 00000+0"),
        ],
    )
    def test_format(self, value, text) -> None:
        assert _format_exponent(value) == text

    def test_zero_second_derivative_uses_minus_exponent(self) -> None:
        assert _format_exponent(0.0, zero_exponent="-0") == " 00000-0"

    @pytest.mark.parametrize(
        "value, text",
        [
            (8.835e-11, " 08835-9"),
            (-1.2e-13, "-00012-9"),
            (1e-16, " 00000-0"),
            (-4e-15, " 00000-0"),
        ],
    )
    def test_tiny_values_use_smallest_exponent(self, value, text) -> None:
        assert _format_exponent(value) == text

    def test_tiny_second_derivative_encodes(self) -> None:
        line1, line2 = encode(_reference_elements(), mean_motion_ddot=8.835e-11)
        assert line1[44:52] == " 08835-9"
        assert len(line1) == TLE_LINE_LENGTH
        assert decode(line1, line2).mean_motion_ddot == pytest.approx(8.835e-11, rel=1e-9)

    def test_huge_value_rejected(self) -> None:
        with pytest.raises(ValueError, match="exponent field"):
            _format_exponent(5e9)

    @pytest.mark.parametrize(
        "text, value", [(" 30093-3", 3.0093e-4), ("-11606-4", -1.1606e-5), (" 00000-0", 0.0)]
    )
    def test_parse(self, text, value) -> None:
        assert _parse_exponent(text) == pytest.approx(value, rel=1e-12, abs=0.0)


class TestEncodeErrors:
    def test_satellite_number_range(self) -> None:
        with pytest.raises(ValueError, match="satellite number"):
            encode(_reference_elements(), sat_num=100000)

    def test_classification_length(self) -> None:
        with pytest.raises(ValueError, match="classification"):
            encode(_reference_elements(), classification="UU")

    def test_epoch_range(self) -> None:
        with pytest.raises(ValueError, match="1957-2056"):
            encode(_reference_elements(), epoch=datetime(2060, 1, 1, tzinfo=timezone.utc))


class TestTLEFromLines:
    def test_parse_basic(self, iss_lines) -> None:
        tle = TLE.from_lines(*iss_lines, name=ISS_NAME)
        assert tle.norad_id == 25544
        assert tle.name == ISS_NAME
        assert tle.intl_designator == "98067A"
        assert tle.classification == "U"

    def test_orbital_elements_reasonable(self, iss_tle) -> None:
        assert 51.0 < iss_tle.inclination_deg < 52.0
        assert 0.0 < iss_tle.eccentricity < 0.01
        assert 15.0 < iss_tle.mean_motion_rev_per_day < 16.0
        assert 6700.0 < iss_tle.elements.semi_major_axis_km < 6800.0

    def test_epoch_parsed(self, iss_tle) -> None:
        assert iss_tle.epoch.year == 2024
        assert iss_tle.epoch.month == 2  # day 45 ~ Feb 14
        assert iss_tle.epoch.tzinfo == timezone.utc

    def test_drag_terms(self, iss_tle) -> None:
        assert abs(iss_tle.bstar - 3.0093e-4) < 1e-10
        assert iss_tle.mean_motion_dot == pytest.approx(0.00016717)
        assert iss_tle.mean_motion_ddot == 0.0

    def test_satrec_available(self, iss_tle) -> None:
        assert iss_tle.satrec is not None

    def test_str_roundtrip(self, iss_lines, iss_tle) -> None:
        text = str(iss_tle)
        assert iss_lines[0] in text
        assert iss_lines[1] in text
        assert ISS_NAME in text

    def test_invalid_line1_raises(self, iss_lines) -> None:
        with pytest.raises(InvalidTLE, match="Invalid TLE line 1"):
            TLE.from_lines("garbage", iss_lines[1])

    def test_invalid_line2_raises(self, iss_lines) -> None:
        with pytest.raises(ValueError, match="Invalid TLE line 2"):
            TLE.from_lines(iss_lines[0], "garbage")

    def test_bad_checksum_raises(self, iss_lines) -> None:
        line1 = iss_lines[0][:68] + "3"
        with pytest.raises(InvalidTLE, match="checksum"):
            TLE.from_lines(line1, iss_lines[1])

    def test_checksum_verification_can_be_disabled(self, iss_lines) -> None:
        line1 = iss_lines[0][:68] + "3"
        tle = TLE.from_lines(line1, iss_lines[1], verify_checksum=False)
        assert tle.norad_id == 25544

    def test_mismatched_satellite_numbers(self, iss_lines, css_lines) -> None:
        with pytest.raises(InvalidTLE, match="satellite numbers differ"):
            TLE.from_lines(iss_lines[0], css_lines[1])

    def test_non_printable_rejected(self, iss_lines) -> None:
        line1 = iss_lines[0][:8] + "\t" + iss_lines[0][9:]
        with pytest.raises(InvalidTLE, match="non-printable"):
            TLE.from_lines(line1, iss_lines[1])

    def test_unparseable_field(self, iss_lines) -> None:
        line2 = _with_checksum(iss_lines[1][:8] + " 51.6X12" + iss_lines[1][16:])
        with pytest.raises(InvalidTLE, match="fields"):
            TLE.from_lines(iss_lines[0], line2)


class TestParseTLE:
    def test_two_line_format(self, iss_lines) -> None:
        tles = parse_tle("\n".join(iss_lines))
        assert len(tles) == 1
        assert tles[0].norad_id == 25544

    def test_three_line_format(self, iss_lines, css_lines) -> None:
        text = "\n".join([f"0 {ISS_NAME}", *iss_lines, "CSS (TIANHE)", *css_lines])
        tles = parse_tle(text)
        assert [t.name for t in tles] == [ISS_NAME, "CSS (TIANHE)"]

    def test_malformed_set_skipped(self, iss_lines, css_lines, caplog) -> None:
        bad = iss_lines[0][:68] + "0"
        text = "\n".join([bad, iss_lines[1], *css_lines])
        with caplog.at_level("WARNING"):
            tles = parse_tle(text)
        assert [t.norad_id for t in tles] == [48274]
        assert "Skipping malformed TLE" in caplog.text

    def test_empty_text(self) -> None:
        assert parse_tle("") == []


class TestLoadCatalog:
    def test_mixed_records(self, iss_tle, css_lines, hubble_tle) -> None:
        records = [
            iss_tle,
            css_lines,
            ("HUBBLE", hubble_tle.line1, hubble_tle.line2),
            ("1 garbage", "2 garbage"),
            ("only one field",),
            None,
        ]
        tles, skipped = load_catalog(records)
        assert [t.norad_id for t in tles] == [25544, 48274, 20580]
        assert tles[2].name == "HUBBLE"
        assert skipped == 3

    def test_empty_catalog(self) -> None:
        assert load_catalog([]) == ([], 0)
