"""
Solar Estimator - Single entry point for hosts.

Wires the loaders, the point pipeline, the sampler and the cache together.

Usage:
    estimator = SolarEstimator()
    roof = estimator.estimate_point(GeographicPoint(46.5198, 6.632))
    area = estimator.estimate_polygon(vertices, progress=print)
"""

import logging
from dataclasses import replace
from typing import Optional

from core.aggregate import aggregate_features
from core.cache import SampleCache, create_store
from core.errors import ConversionFailed, LookupFailed
from core.models import GeographicPoint, NormalizedResult, Polygon
from core.pipeline import PointPipeline
from core.sampler import PolygonSampler, ProgressCallback
from core.settings import SamplerSettings
from loaders.identify import SpatialFeatureLookup, get_feature_lookup
from loaders.reframe import CoordinateTransformer, get_coordinate_transformer

log = logging.getLogger(__name__)


class SolarEstimator:
    """
    Roof radiation estimates for points and polygons.

    Collaborators can be injected; anything left out is built from
    `settings`.
    """

    def __init__(
        self,
        settings: Optional[SamplerSettings] = None,
        transformer: Optional[CoordinateTransformer] = None,
        lookup: Optional[SpatialFeatureLookup] = None,
        cache: Optional[SampleCache] = None,
    ):
        self.settings = settings or SamplerSettings()
        self.settings.validate()
        self.transformer = transformer or CoordinateTransformer(self.settings)
        self.lookup = lookup or SpatialFeatureLookup(self.settings)
        self.cache = cache if cache is not None else SampleCache(create_store(self.settings.cache_path))
        self.pipeline = PointPipeline(self.transformer, self.lookup, settings=self.settings)
        self.sampler = PolygonSampler(self.pipeline, cache=self.cache, settings=self.settings)

    def estimate_point(self, point: GeographicPoint) -> Optional[NormalizedResult]:
        """
        Roof at a single location.

        Raises:
            ConversionFailed: if the point cannot be projected
            LookupFailed: if the identify service rejects the query
        """
        return self.pipeline.run(GeographicPoint.coerce(point))

    def estimate_polygon_features(self, polygon) -> Optional[NormalizedResult]:
        """
        All roofs intersecting the polygon, folded into one result.

        Network failures are logged and give None.
        """
        polygon = Polygon.coerce(polygon)
        try:
            candidates = self.lookup.lookup_in_polygon(polygon, self.transformer)
        except (ConversionFailed, LookupFailed) as e:
            log.warning(f"Polygon identify failed: {e}")
            return None
        return aggregate_features(candidates)

    def sample_polygon(self, polygon, progress: Optional[ProgressCallback] = None) -> Optional[int]:
        """Grid-sampled radiation for the polygon (kWh/m²/year), or None."""
        return self.sampler.sample(polygon, progress)

    def estimate_polygon(self, polygon, progress: Optional[ProgressCallback] = None) -> Optional[NormalizedResult]:
        """
        Best estimate for a drawn polygon.

        Starts from the whole-polygon identify result and replaces its
        radiation with the grid-sampled value when sampling succeeds. A
        sampling failure leaves the identify result as it is.

        Raises:
            InvalidPolygon: fewer than 3 vertices (before any network call)
        """
        polygon = Polygon.coerce(polygon)
        base = self.estimate_polygon_features(polygon)

        try:
            sampled = self.sample_polygon(polygon, progress)
        except Exception as e:
            log.warning(f"Polygon sampling failed, keeping identify result: {e}")
            return base
        if not sampled or sampled <= 0:
            return base

        if base is not None:
            return replace(base, radiation=sampled, radiation_source="sampling")
        return NormalizedResult(
            radiation=sampled,
            area=0.0,
            power=0.0,
            suitability="unknown",
            production=None,
            radiation_source="sampling",
            raw={},
        )

    def clear_cache(self) -> None:
        self.cache.clear()


# Singleton
_estimator: Optional[SolarEstimator] = None

def get_estimator() -> SolarEstimator:
    """Get singleton estimator configured from the environment."""
    global _estimator
    if _estimator is None:
        _estimator = SolarEstimator(
            SamplerSettings.from_env(),
            transformer=get_coordinate_transformer(),
            lookup=get_feature_lookup(),
        )
    return _estimator
