"""
Exceptions raised by the radiation sampling engine.
"""


class SolarSamplingError(Exception):
    """Base class for all sampling engine errors."""


class InvalidPolygon(SolarSamplingError, ValueError):
    """Polygon has fewer than 3 vertices or unreadable coordinates."""


class ConversionFailed(SolarSamplingError):
    """Both coordinate conversion endpoints failed."""


class LookupFailed(SolarSamplingError):
    """Feature identify service returned a non-success response."""
