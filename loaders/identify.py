"""
Identify Loader - Fetch solar roof features from the geo.admin.ch MapServer.

Two query modes against the same identify service:
- around a point, with geometry, so candidates can be ranked by distance
- within a polygon, attributes only
"""

import json
import logging
from typing import Any, Dict, List, Optional

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.errors import LookupFailed
from core.models import Candidate, Polygon, ProjectedPoint
from core.settings import SamplerSettings

log = logging.getLogger(__name__)


class SpatialFeatureLookup:
    """
    Query the solar roof suitability layer.

    API: geo.admin.ch MapServer identify (ESRI REST conventions)
    Coverage: Switzerland only
    """

    def __init__(self, settings: Optional[SamplerSettings] = None):
        self.settings = settings or SamplerSettings()
        self.session = requests.Session()

    # Transport errors only; an HTTP error status is an answer, not a glitch
    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        reraise=True,
    )
    def _get(self, params: Dict[str, Any]) -> requests.Response:
        return self.session.get(
            self.settings.identify_url,
            params=params,
            timeout=self.settings.request_timeout_seconds,
        )

    def _identify(self, params: Dict[str, Any]) -> List[Candidate]:
        try:
            response = self._get(params)
            response.raise_for_status()
            data = response.json()
        except requests.HTTPError as e:
            log.error(f"Identify request rejected: {e}")
            raise LookupFailed(f"Identify returned an error status: {e}") from e
        except (requests.RequestException, ValueError) as e:
            log.error(f"Identify request failed: {e}")
            raise LookupFailed(f"Identify request failed: {e}") from e

        results = data.get("results") if isinstance(data, dict) else None
        if not results:
            results = []
            log.debug("No solar roof features found")
        candidates = []
        for r in results:
            try:
                candidates.append(Candidate.from_result(r))
            except (AttributeError, TypeError, ValueError) as e:
                log.warning(f"Skipping malformed identify record: {e}")
        return candidates

    def _base_params(self) -> Dict[str, Any]:
        return {
            "imageDisplay": "1,1,1",
            "layers": self.settings.layer,
            "sr": str(self.settings.spatial_reference),
            "lang": self.settings.language,
        }

    def lookup_at_point(self, projected: ProjectedPoint) -> List[Candidate]:
        """
        Features around a projected point, with geometry.

        Args:
            projected: LV95 query point

        Returns:
            Raw candidates; empty when the service has no roof there

        Raises:
            LookupFailed: on a non-success response
        """
        e, n = projected.easting, projected.northing
        extent = self.settings.lookup_extent
        params = self._base_params()
        params.update({
            "geometryType": "esriGeometryPoint",
            "geometry": f"{e},{n}",
            "mapExtent": f"{e - extent},{n - extent},{e + extent},{n + extent}",
            "tolerance": self.settings.lookup_tolerance_px,
            "returnGeometry": "true",
        })
        candidates = self._identify(params)
        log.debug(f"Identify at ({e:.1f}, {n:.1f}): {len(candidates)} candidates")
        return candidates

    def lookup_in_polygon(self, polygon: Polygon, transformer) -> List[Candidate]:
        """
        Features intersecting a polygon, attributes only.

        Args:
            polygon: WGS84 polygon
            transformer: Used to project each vertex to LV95

        Raises:
            ConversionFailed: if a vertex cannot be projected
            LookupFailed: on a non-success response
        """
        projected = transformer.project_many(polygon.vertices)
        rings = [[[p.easting, p.northing] for p in projected]]

        params = self._base_params()
        params.update({
            "geometryType": "esriGeometryPolygon",
            "geometry": json.dumps({"rings": rings}),
            "mapExtent": "0,0,0,0",
            "tolerance": 0,
            "returnGeometry": "false",
        })
        candidates = self._identify(params)
        log.debug(f"Identify in polygon ({len(polygon)} vertices): {len(candidates)} candidates")
        return candidates


# Singleton
_lookup: Optional[SpatialFeatureLookup] = None

def get_feature_lookup() -> SpatialFeatureLookup:
    """Get singleton feature lookup configured from the environment."""
    global _lookup
    if _lookup is None:
        _lookup = SpatialFeatureLookup(SamplerSettings.from_env())
    return _lookup
