"""Exception hierarchy.

Every error raised deliberately by orbitrisk derives from
:class:`OrbitRiskError`. Input-shaped problems also derive from
``ValueError`` so callers that only catch ``ValueError`` keep working.
"""

from __future__ import annotations


class OrbitRiskError(Exception):
    """Base class for all orbitrisk errors."""


class InvalidStateVector(OrbitRiskError, ValueError):
    """A state vector is degenerate or does not describe an ellipse."""


class InvalidTLE(OrbitRiskError, ValueError):
    """A TLE line pair is malformed (length, line number, checksum, fields)."""


class PropagationFailure(OrbitRiskError, ValueError):
    """The propagator reported an object as unpropagatable at an epoch.

    Samplers treat this as a skipped sample, never as a fatal error.
    """


class PropagationError(OrbitRiskError, RuntimeError):
    """The propagator failed in a way that is not tied to a single epoch."""


class TimeWindowInvalid(OrbitRiskError, ValueError):
    """A time window does not end strictly after it starts."""


class ConfigurationError(OrbitRiskError, ValueError):
    """A configuration value is out of range (non-positive threshold, step...)."""


class MisalignedSamplesError(OrbitRiskError, ValueError):
    """Two samples handed to time-aligned comparison use different time grids."""
