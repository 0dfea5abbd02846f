"""
Reframe Loader - Convert WGS84 coordinates to Swiss LV95.

Uses the swisstopo REFRAME service. The primary endpoint is tried first;
on any failure exactly one attempt is made against the alternate host.
"""

import logging
from typing import List, Optional, Sequence

import requests

from core.errors import ConversionFailed
from core.models import GeographicPoint, ProjectedPoint
from core.settings import SamplerSettings

log = logging.getLogger(__name__)


class CoordinateTransformer:
    """
    WGS84 -> LV95 conversion via the REFRAME REST API.

    API Documentation:
    https://api3.geo.admin.ch/services/sdiservices.html#reframe
    """

    def __init__(self, settings: Optional[SamplerSettings] = None):
        self.settings = settings or SamplerSettings()
        self.session = requests.Session()

    def _request(self, url: str, point: GeographicPoint) -> ProjectedPoint:
        # REFRAME takes WGS84 longitude as "easting" and latitude as "northing"
        params = {
            "easting": point.longitude,
            "northing": point.latitude,
            "format": "json",
        }
        response = self.session.get(url, params=params, timeout=self.settings.request_timeout_seconds)
        response.raise_for_status()
        data = response.json()
        return ProjectedPoint(float(data["easting"]), float(data["northing"]))

    def project(self, point: GeographicPoint) -> ProjectedPoint:
        """
        Project one point.

        Args:
            point: WGS84 position

        Returns:
            LV95 easting/northing

        Raises:
            ConversionFailed: if both endpoints fail
        """
        try:
            projected = self._request(self.settings.reframe_url, point)
            log.debug(f"Reframed ({point.latitude:.6f}, {point.longitude:.6f}) -> {projected}")
            return projected
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            log.warning(f"Primary reframe endpoint failed: {e}; trying alternate")
            primary_error = e

        try:
            return self._request(self.settings.reframe_fallback_url, point)
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            log.error(f"Coordinate conversion failed for ({point.latitude}, {point.longitude}): {e}")
            raise ConversionFailed(
                f"Coordinate conversion failed: primary ({primary_error}), alternate ({e})"
            ) from e

    def project_many(self, points: Sequence[GeographicPoint]) -> List[ProjectedPoint]:
        """Project several points in order."""
        return [self.project(p) for p in points]


# Singleton
_transformer: Optional[CoordinateTransformer] = None

def get_coordinate_transformer() -> CoordinateTransformer:
    """Get singleton coordinate transformer configured from the environment."""
    global _transformer
    if _transformer is None:
        _transformer = CoordinateTransformer(SamplerSettings.from_env())
    return _transformer
