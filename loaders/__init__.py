"""
Network loaders for the rooftop radiation sampler.

Includes:
- Coordinate conversion WGS84 -> LV95 (swisstopo REFRAME)
- Solar roof features (geo.admin.ch MapServer identify)
"""

from loaders.reframe import CoordinateTransformer, get_coordinate_transformer
from loaders.identify import SpatialFeatureLookup, get_feature_lookup

__all__ = [
    "CoordinateTransformer",
    "get_coordinate_transformer",
    "SpatialFeatureLookup",
    "get_feature_lookup",
]
