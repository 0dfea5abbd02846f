"""
Point Pipeline - Radiation estimate for a single location.

project -> identify -> select -> normalize
"""

import logging
from typing import Optional

from core.models import GeographicPoint, NormalizedResult, ProjectedPoint
from core.normalizer import RadiationNormalizer
from core.selector import CandidateSelector
from core.settings import SamplerSettings

log = logging.getLogger(__name__)


class PointPipeline:
    """
    Runs one location through the whole per-point chain.

    Conversion and lookup errors are not handled here: the caller decides
    whether a failed point aborts anything.
    """

    def __init__(
        self,
        transformer,
        lookup,
        selector: Optional[CandidateSelector] = None,
        normalizer: Optional[RadiationNormalizer] = None,
        settings: Optional[SamplerSettings] = None,
    ):
        self.settings = settings or SamplerSettings()
        self.transformer = transformer
        self.lookup = lookup
        self.selector = selector or CandidateSelector(self.settings.nearby_threshold)
        self.normalizer = normalizer or RadiationNormalizer()

    def run(self, point: GeographicPoint) -> Optional[NormalizedResult]:
        """
        Estimate the roof at a WGS84 point.

        Returns:
            NormalizedResult, or None when the service has no roof there

        Raises:
            ConversionFailed: if the point cannot be projected
            LookupFailed: if the identify service rejects the query
        """
        projected = self.transformer.project(point)
        return self.run_projected(projected)

    def run_projected(self, projected: ProjectedPoint) -> Optional[NormalizedResult]:
        """Same as run() for a point already in LV95."""
        candidates = self.lookup.lookup_at_point(projected)
        if not candidates:
            return None

        ranked = self.selector.ranked(candidates, projected)
        if self.settings.debug:
            top = [
                {"area": c.area, "production": c.production, "distance": round(c.distance, 1)}
                for c in ranked[:5]
            ]
            log.debug(f"Candidates at ({projected.easting:.1f}, {projected.northing:.1f}): {top}")

        chosen = self.selector.select(candidates, projected)
        if chosen is None:
            return None

        result = self.normalizer.normalize(chosen.attributes)
        log.debug(f"Radiation {result.radiation} kWh/m²/year via {result.radiation_source}")
        return result
