"""
Core module for the rooftop radiation sampler.
Contains data models, geometry, normalization, candidate selection,
polygon sampling and the sample cache.

The host-facing facade lives in core.estimator (it pulls in the loaders).
"""

from core.errors import SolarSamplingError, InvalidPolygon, ConversionFailed, LookupFailed
from core.models import GeographicPoint, ProjectedPoint, Polygon, Candidate, NormalizedResult
from core.normalizer import RadiationNormalizer, RadiationRule, DEFAULT_RULES
from core.selector import CandidateSelector
from core.cache import SampleCache, SampleStore, SQLiteSampleStore, JSONFileSampleStore
from core.settings import SamplerSettings
from core.pipeline import PointPipeline
from core.sampler import PolygonSampler, SamplingSession
from core.aggregate import aggregate_features

__all__ = [
    # Errors
    "SolarSamplingError",
    "InvalidPolygon",
    "ConversionFailed",
    "LookupFailed",
    # Models
    "GeographicPoint",
    "ProjectedPoint",
    "Polygon",
    "Candidate",
    "NormalizedResult",
    # Rules
    "RadiationNormalizer",
    "RadiationRule",
    "DEFAULT_RULES",
    "CandidateSelector",
    # Cache
    "SampleCache",
    "SampleStore",
    "SQLiteSampleStore",
    "JSONFileSampleStore",
    # Sampling
    "SamplerSettings",
    "PointPipeline",
    "PolygonSampler",
    "SamplingSession",
    "aggregate_features",
]
