"""Propagate capability: SGP4 adapter and a two-body reference propagator.

A propagator is any callable ``propagate(target, time) -> PropagationResult``
where ``target`` is an :class:`OrbitalElements` or a :class:`TLE`. A result
is either ``ok`` (carrying a :class:`StateVector`) or ``invalid`` (the object
cannot be propagated to that epoch, e.g. it has decayed). Failures that are
not tied to an epoch raise :class:`PropagationError`.
"""
from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Callable, Union

import numpy as np
from sgp4.api import SGP4_ERRORS, WGS72, Satrec, jday

from orbitrisk.core.elements import OrbitalElements, StateVector, to_state
from orbitrisk.core.errors import PropagationError, PropagationFailure
from orbitrisk.core.tle import TLE
from orbitrisk.utils.config import as_utc
from orbitrisk.utils.constants import MINUTES_PER_DAY, SECONDS_PER_DAY, TWO_PI, WGS84, EarthModel

logger = logging.getLogger(__name__)

Target = Union[OrbitalElements, TLE]

# Days from JD 2433281.5 (1949-12-31 00:00 UT), the sgp4init epoch origin.
_SGP4_EPOCH_ORIGIN_JD = 2433281.5


@dataclass(frozen=True)
class PropagationResult:
    """Outcome of one propagation call.

    Attributes:
        state: Propagated state, or None when invalid.
        reason: Why the object could not be propagated (None when ok).
    """

    state: StateVector | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.state is not None

    @classmethod
    def valid(cls, state: StateVector) -> PropagationResult:
        return cls(state=state)

    @classmethod
    def invalid(cls, reason: str) -> PropagationResult:
        return cls(reason=reason)


Propagator = Callable[[Target, datetime], PropagationResult]


def elements_of(target: Target) -> OrbitalElements:
    """Orbital elements of a propagation target."""
    if isinstance(target, TLE):
        return target.elements
    if isinstance(target, OrbitalElements):
        return target
    raise TypeError(f"cannot propagate {type(target).__name__}")


def _julian(t: datetime) -> tuple[float, float]:
    return jday(t.year, t.month, t.day, t.hour, t.minute, t.second + t.microsecond / 1e6)


@lru_cache(maxsize=1024)
def satrec_from_elements(elements: OrbitalElements) -> Satrec:
    """Initialize an SGP4 record directly from classical elements (no drag).

    Raises:
        PropagationError: If sgp4 rejects the elements.
    """
    jd, fr = _julian(as_utc(elements.epoch))
    sat = Satrec()
    sat.sgp4init(
        WGS72,
        "i",
        0,
        jd + fr - _SGP4_EPOCH_ORIGIN_JD,
        0.0,  # bstar
        0.0,  # ndot
        0.0,  # nddot
        elements.eccentricity,
        elements.arg_perigee_rad,
        elements.inclination_rad,
        elements.mean_anomaly_rad,
        elements.mean_motion_rev_per_day * TWO_PI / MINUTES_PER_DAY,  # rad/min
        elements.raan_rad,
    )
    if sat.error != 0:
        raise PropagationError(
            f"sgp4 rejected elements: {SGP4_ERRORS.get(sat.error, sat.error)}"
        )
    return sat


def sgp4_propagate(target: Target, time: datetime) -> PropagationResult:
    """Propagate a TLE or element set to ``time`` with SGP4.

    Non-zero SGP4 error codes (decay, eccentricity out of range...) are
    reported as an invalid result for that epoch.
    """
    if isinstance(target, TLE):
        satrec = target.satrec
        label = target.label
    else:
        satrec = satrec_from_elements(elements_of(target))
        label = "elements"

    time = as_utc(time)
    jd, fr = _julian(time)
    error_code, pos, vel = satrec.sgp4(jd, fr)

    if error_code != 0:
        reason = SGP4_ERRORS.get(error_code, f"error code {error_code}")
        logger.debug("SGP4 invalid for %s at %s: %s", label, time, reason)
        return PropagationResult.invalid(reason)
    if not all(math.isfinite(x) for x in (*pos, *vel)):
        return PropagationResult.invalid("non-finite state")

    return PropagationResult.valid(
        StateVector(
            position_km=np.array(pos, dtype=np.float64),
            velocity_km_s=np.array(vel, dtype=np.float64),
            epoch=time,
        )
    )


def kepler_propagate(target: Target, time: datetime, earth: EarthModel = WGS84) -> PropagationResult:
    """Unperturbed two-body propagation (mean anomaly advanced linearly).

    Deterministic and never invalid; used as a reference capability.
    """
    elements = elements_of(target)
    dt = (as_utc(time) - elements.epoch).total_seconds()
    n_rad_s = elements.mean_motion_rev_per_day * TWO_PI / SECONDS_PER_DAY
    advanced = dataclasses.replace(
        elements,
        mean_anomaly_rad=elements.mean_anomaly_rad + n_rad_s * dt,
        epoch=as_utc(time),
    )
    return PropagationResult.valid(to_state(advanced, earth=earth))


def propagate(
    target: Target,
    times: list[datetime],
    propagator: Propagator = sgp4_propagate,
) -> list[StateVector]:
    """Propagate a single target to multiple times, failing on any invalid epoch.

    Args:
        target: TLE or orbital elements.
        times: List of UTC datetimes to propagate to.
        propagator: Propagate capability to use.

    Returns:
        List of StateVector objects, one per requested time.

    Raises:
        PropagationFailure: If the target is unpropagatable at any time.
    """
    result = []
    for t in times:
        outcome = propagator(target, t)
        if not outcome.ok:
            logger.warning("Propagation failed at %s: %s", t, outcome.reason)
            raise PropagationFailure(f"Propagation failed at {t}: {outcome.reason}")
        result.append(outcome.state)

    logger.debug("Propagated target to %d times", len(times))
    return result
