"""TLE (Two-Line Element) encoding, decoding and catalog loading.

Implements the fixed-width NORAD format in both directions, including the
modulo-10 checksum. Decoded element sets keep an sgp4 ``Satrec`` so they
can be handed straight to the SGP4 propagator.

References:
    - Kelso, T.S. "CelesTrak TLE Format Documentation"
      https://celestrak.org/columns/v04n03/
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Union

from sgp4.api import Satrec, WGS72

from orbitrisk.core.elements import OrbitalElements
from orbitrisk.core.errors import InvalidTLE
from orbitrisk.utils.constants import WGS84, EarthModel

logger = logging.getLogger(__name__)

TLE_LINE_LENGTH = 69

CatalogRecord = Union["TLE", tuple[str, str], tuple[str, str, str]]


def tle_checksum(line: str) -> int:
    """Modulo-10 checksum over the first 68 characters of a TLE line.

    Digits count their value, '-' counts 1, everything else counts 0.
    """
    total = 0
    for c in line[:68]:
        if c.isdigit():
            total += int(c)
        elif c == "-":
            total += 1
    return total % 10


def _format_epoch(epoch: datetime) -> str:
    """YYDDD.DDDDDDDD (14 chars)."""
    if epoch.tzinfo is None:
        epoch = epoch.replace(tzinfo=timezone.utc)
    epoch = epoch.astimezone(timezone.utc)
    if not 1957 <= epoch.year <= 2056:
        raise ValueError(f"TLE epochs must fall in 1957-2056, got {epoch.year}")
    year_start = datetime(epoch.year, 1, 1, tzinfo=timezone.utc)
    day_of_year = (epoch - year_start).total_seconds() / 86400.0 + 1.0
    return f"{epoch.year % 100:02d}{day_of_year:012.8f}"


def _parse_epoch(field_text: str) -> datetime:
    year = int(field_text[:2])
    year = year + 2000 if year < 57 else year + 1900
    day_of_year = float(field_text[2:])
    return datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(days=day_of_year - 1)


def _format_decimal_rate(value: float) -> str:
    """Signed decimal with implied leading zero, e.g. ' .00016717' (10 chars)."""
    text = f"{abs(value):.8f}"
    if not text.startswith("0."):
        raise ValueError(f"mean motion derivative {value} does not fit the TLE field")
    sign = "-" if value < 0 else " "
    return sign + text[1:]


def _format_exponent(value: float, zero_exponent: str = "+0") -> str:
    """TLE mantissa/exponent notation ``±mmmmm±e`` with implied '0.' (8 chars).

    3.0093e-4 -> ' 30093-3'. Below 1e-10 the mantissa is no longer
    normalized (8.835e-11 -> ' 08835-9'); values that round away entirely
    become ' 00000-0'.
    """
    if value == 0.0:
        return " 00000" + zero_exponent
    sign = "-" if value < 0 else " "
    magnitude = abs(value)
    exponent = max(-9, math.floor(math.log10(magnitude)) + 1)
    mantissa = round(magnitude / 10.0**exponent * 1e5)
    if mantissa >= 100000:
        mantissa //= 10
        exponent += 1
    if mantissa == 0:
        return " 00000-0"
    if exponent > 9:
        raise ValueError(f"{value} is outside the range of the TLE exponent field")
    return f"{sign}{mantissa:05d}{'-' if exponent < 0 else '+'}{abs(exponent)}"


def _parse_exponent(field_text: str) -> float:
    text = field_text.strip()
    if not text:
        return 0.0
    sign = -1.0 if text[0] == "-" else 1.0
    if text[0] in "+-":
        text = text[1:]
    mantissa, exponent = text[:-2], text[-2:]
    return sign * float(f"0.{mantissa}") * 10.0 ** int(exponent)


def _format_eccentricity(eccentricity: float) -> str:
    """Seven digits with an implied leading '0.', rounded (0.165168 -> '1651680')."""
    digits = round(eccentricity * 1e7)
    if digits > 9999999:
        raise ValueError(f"eccentricity {eccentricity} rounds to 1 and cannot be encoded")
    return f"{digits:07d}"


def encode(
    elements: OrbitalElements,
    epoch: datetime | None = None,
    sat_num: int = 99999,
    classification: str = "U",
    *,
    intl_designator: str = "",
    mean_motion_dot: float = 0.0,
    mean_motion_ddot: float = 0.0,
    bstar: float = 0.0,
    ephemeris_type: int = 0,
    element_set_number: int = 999,
    rev_number: int = 0,
) -> tuple[str, str]:
    """Encode orbital elements as a pair of 69-character TLE lines.

    Args:
        elements: Elements to encode.
        epoch: Epoch written to line 1. Defaults to ``elements.epoch``.
        sat_num: NORAD catalog number (0-99999).
        classification: One-character classification ('U', 'C' or 'S').
        intl_designator: International designator (up to 8 chars), blank if unused.
        mean_motion_dot: First derivative of mean motion / 2 (rev/day²).
        mean_motion_ddot: Second derivative of mean motion / 6 (rev/day³).
        bstar: B* drag term (1/Earth radii).
        ephemeris_type: Ephemeris type digit.
        element_set_number: Element set number (0-9999).
        rev_number: Revolution number at epoch (wraps at 100000).

    Returns:
        Tuple of (line1, line2), each with its checksum digit.

    Raises:
        ValueError: If a field cannot be represented in the format.
    """
    if not 0 <= sat_num <= 99999:
        raise ValueError(f"satellite number must be 0-99999, got {sat_num}")
    if len(classification) != 1:
        raise ValueError(f"classification must be one character, got {classification!r}")
    if len(intl_designator) > 8:
        raise ValueError(f"international designator too long: {intl_designator!r}")
    if not 0 <= ephemeris_type <= 9:
        raise ValueError(f"ephemeris type must be a single digit, got {ephemeris_type}")
    if not 0 <= element_set_number <= 9999:
        raise ValueError(f"element set number must be 0-9999, got {element_set_number}")

    epoch = elements.epoch if epoch is None else epoch

    body1 = (
        f"1 {sat_num:05d}{classification} "
        f"{intl_designator:<8} "
        f"{_format_epoch(epoch)} "
        f"{_format_decimal_rate(mean_motion_dot)} "
        f"{_format_exponent(mean_motion_ddot, zero_exponent='-0')} "
        f"{_format_exponent(bstar)} "
        f"{ephemeris_type} "
        f"{element_set_number:4d}"
    )
    body2 = (
        f"2 {sat_num:05d} "
        f"{elements.inclination_deg:8.4f} "
        f"{elements.raan_deg:8.4f} "
        f"{_format_eccentricity(elements.eccentricity)} "
        f"{elements.arg_perigee_deg:8.4f} "
        f"{elements.mean_anomaly_deg:8.4f} "
        f"{elements.mean_motion_rev_per_day:11.8f}"
        f"{rev_number % 100000:5d}"
    )
    for number, body in ((1, body1), (2, body2)):
        if len(body) != TLE_LINE_LENGTH - 1:
            raise ValueError(f"encoded TLE line {number} has {len(body) + 1} characters: {body!r}")

    line1 = body1 + str(tle_checksum(body1))
    line2 = body2 + str(tle_checksum(body2))
    logger.debug("Encoded TLE for satellite %05d at %s", sat_num, epoch)
    return line1, line2


def _check_line(line: str, number: int, verify_checksum: bool) -> None:
    if len(line) != TLE_LINE_LENGTH or not line.startswith(str(number)):
        logger.error("Invalid TLE line %d: %r", number, line)
        raise InvalidTLE(f"Invalid TLE line {number}: {line!r}")
    if not all(" " <= c <= "~" for c in line):
        raise InvalidTLE(f"Invalid TLE line {number}: non-printable characters in {line!r}")
    if verify_checksum:
        if not line[68].isdigit() or int(line[68]) != tle_checksum(line):
            logger.error("Checksum mismatch on TLE line %d: %r", number, line)
            raise InvalidTLE(
                f"Invalid TLE line {number}: checksum {line[68]!r} != {tle_checksum(line)}"
            )


@dataclass(frozen=True)
class TLE:
    """A decoded Two-Line Element set.

    Attributes:
        name: Satellite name (line 0, if provided).
        line1: Raw TLE line 1.
        line2: Raw TLE line 2.
        norad_id: NORAD catalog number.
        classification: Security classification character.
        intl_designator: International designator (stripped).
        epoch: Epoch as a UTC datetime.
        mean_motion_dot: First derivative of mean motion / 2 (rev/day²).
        mean_motion_ddot: Second derivative of mean motion / 6 (rev/day³).
        bstar: BSTAR drag term.
        ephemeris_type: Ephemeris type digit.
        element_set_number: Element set number.
        rev_number: Revolution number at epoch.
        elements: Classical elements reconstructed at the format's precision.
        satrec: Underlying sgp4 Satrec object for propagation.
    """

    name: str
    line1: str
    line2: str
    norad_id: int
    classification: str
    intl_designator: str
    epoch: datetime
    mean_motion_dot: float
    mean_motion_ddot: float
    bstar: float
    ephemeris_type: int
    element_set_number: int
    rev_number: int
    elements: OrbitalElements
    satrec: Satrec = field(repr=False, compare=False)

    @classmethod
    def from_lines(
        cls,
        line1: str,
        line2: str,
        name: str = "",
        verify_checksum: bool = True,
        earth: EarthModel = WGS84,
    ) -> TLE:
        """Decode a TLE from two (or three) lines.

        Args:
            line1: TLE line 1 (69 characters).
            line2: TLE line 2 (69 characters).
            name: Optional satellite name (line 0).
            verify_checksum: Reject lines whose checksum digit does not match.
            earth: Earth model used to derive the semi-major axis.

        Returns:
            A decoded TLE object.

        Raises:
            InvalidTLE: If the TLE lines are malformed.
        """
        line1 = line1.strip()
        line2 = line2.strip()

        _check_line(line1, 1, verify_checksum)
        _check_line(line2, 2, verify_checksum)
        if line1[2:7] != line2[2:7]:
            raise InvalidTLE(
                f"Invalid TLE: satellite numbers differ ({line1[2:7]!r} vs {line2[2:7]!r})"
            )

        try:
            norad_id = int(line1[2:7].strip())
            epoch = _parse_epoch(line1[18:32])
            mean_motion_dot = float(line1[33:43])
            mean_motion_ddot = _parse_exponent(line1[44:52])
            bstar = _parse_exponent(line1[53:61])
            ephemeris_type = int(line1[62]) if line1[62].strip() else 0
            element_set_number = int(line1[64:68]) if line1[64:68].strip() else 0

            inclination_deg = float(line2[8:16])
            raan_deg = float(line2[17:25])
            eccentricity = float("0." + line2[26:33].replace(" ", "0"))
            arg_perigee_deg = float(line2[34:42])
            mean_anomaly_deg = float(line2[43:51])
            mean_motion = float(line2[52:63])
            rev_number = int(line2[63:68]) if line2[63:68].strip() else 0

            elements = OrbitalElements.from_mean_motion(
                mean_motion,
                eccentricity,
                inclination_deg,
                raan_deg,
                arg_perigee_deg,
                mean_anomaly_deg,
                epoch,
                earth,
            )
            sat = Satrec.twoline2rv(line1, line2, WGS72)
        except ValueError as ex:
            logger.error("Unparseable TLE fields for %r: %s", line1[2:7], ex)
            raise InvalidTLE(f"Invalid TLE fields: {ex}") from ex

        logger.debug("Parsed TLE for NORAD %d (epoch %s)", norad_id, epoch.isoformat())

        return cls(
            name=name.strip(),
            line1=line1,
            line2=line2,
            norad_id=norad_id,
            classification=line1[7],
            intl_designator=line1[9:17].strip(),
            epoch=epoch,
            mean_motion_dot=mean_motion_dot,
            mean_motion_ddot=mean_motion_ddot,
            bstar=bstar,
            ephemeris_type=ephemeris_type,
            element_set_number=element_set_number,
            rev_number=rev_number,
            elements=elements,
            satrec=sat,
        )

    @classmethod
    def from_elements(cls, elements: OrbitalElements, name: str = "", **encode_kwargs) -> TLE:
        """Encode ``elements`` and decode the result (values at TLE precision)."""
        line1, line2 = encode(elements, **encode_kwargs)
        return cls.from_lines(line1, line2, name=name)

    @property
    def inclination_deg(self) -> float:
        return self.elements.inclination_deg

    @property
    def raan_deg(self) -> float:
        return self.elements.raan_deg

    @property
    def eccentricity(self) -> float:
        return self.elements.eccentricity

    @property
    def arg_perigee_deg(self) -> float:
        return self.elements.arg_perigee_deg

    @property
    def mean_anomaly_deg(self) -> float:
        return self.elements.mean_anomaly_deg

    @property
    def mean_motion_rev_per_day(self) -> float:
        return self.elements.mean_motion_rev_per_day

    @property
    def label(self) -> str:
        """Name if known, otherwise the zero-padded NORAD id."""
        return self.name or f"{self.norad_id:05d}"

    def __str__(self) -> str:
        header = f"0 {self.name}\n" if self.name else ""
        return f"{header}{self.line1}\n{self.line2}"


def decode(
    line1: str,
    line2: str,
    name: str = "",
    verify_checksum: bool = True,
    earth: EarthModel = WGS84,
) -> TLE:
    """Decode a TLE line pair. See :meth:`TLE.from_lines`."""
    return TLE.from_lines(line1, line2, name=name, verify_checksum=verify_checksum, earth=earth)


def parse_tle(text: str) -> list[TLE]:
    """Parse one or more TLEs from text.

    Handles both 2-line and 3-line (with name) formats. Malformed sets are
    logged and skipped.

    Args:
        text: Raw TLE text, one or more TLE sets separated by newlines.

    Returns:
        A list of parsed TLE objects.
    """
    lines = [l.rstrip() for l in text.strip().splitlines() if l.strip()]
    tles: list[TLE] = []
    i = 0

    while i < len(lines):
        if lines[i].startswith("1 ") and i + 1 < len(lines) and lines[i + 1].startswith("2 "):
            block, name, step = (lines[i], lines[i + 1]), "", 2
        elif (
            not lines[i].startswith("1 ")
            and not lines[i].startswith("2 ")
            and i + 2 < len(lines)
            and lines[i + 1].startswith("1 ")
            and lines[i + 2].startswith("2 ")
        ):
            block, name, step = (lines[i + 1], lines[i + 2]), lines[i], 3
        else:
            i += 1  # skip unrecognized lines
            continue

        if name.startswith("0 "):
            name = name[2:]
        try:
            tles.append(TLE.from_lines(block[0], block[1], name=name))
        except InvalidTLE as ex:
            logger.warning("Skipping malformed TLE %r: %s", name or block[0][2:7], ex)
        i += step

    logger.debug("Parsed %d TLEs from text", len(tles))
    return tles


def load_catalog(records: Iterable[CatalogRecord]) -> tuple[list[TLE], int]:
    """Normalize catalog records into TLE objects.

    Args:
        records: ``TLE`` objects, ``(line1, line2)`` or ``(name, line1, line2)``.

    Returns:
        Tuple of (parsed TLEs, number of malformed records skipped).
    """
    tles: list[TLE] = []
    skipped = 0
    for record in records:
        if isinstance(record, TLE):
            tles.append(record)
            continue
        try:
            if len(record) == 3:
                name, line1, line2 = record
            elif len(record) == 2:
                (line1, line2), name = record, ""
            else:
                raise InvalidTLE(f"expected 2 or 3 fields, got {len(record)}")
            tles.append(TLE.from_lines(line1, line2, name=name))
        except (InvalidTLE, TypeError) as ex:
            skipped += 1
            logger.warning("Skipping malformed catalog entry: %s", ex)

    if skipped:
        logger.info("load_catalog: %d valid, %d skipped", len(tles), skipped)
    return tles, skipped
