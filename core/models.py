"""
Core data models for the rooftop radiation sampler.
"""

import math
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from core.errors import InvalidPolygon


# Attribute names reported by the solar roof suitability layer
AREA_FIELD = "flaeche"
PRODUCTION_FIELD = "stromertrag"
MONTHLY_RADIATION_FIELD = "mstrahlung"
GENERAL_RADIATION_FIELD = "gstrahlung"
POWER_FIELD = "leistung"
SUITABILITY_FIELD = "eignung"
IDENTITY_FIELDS = ("building_id", "objectid", "id", "label")
# Key order when folding a whole-polygon response
POLYGON_IDENTITY_FIELDS = ("building_id", "label", "id", "objectid")

RawFeatureAttributes = Dict[str, Any]


def as_number(value: Any) -> Optional[float]:
    """
    Read a service attribute as a number.

    Missing, empty, non-numeric, NaN and zero values are all treated as
    absent, which is how the layer's consumers have always read them.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or number == 0:
        return None
    return number


@dataclass(frozen=True)
class GeographicPoint:
    """A WGS84 position in decimal degrees."""
    latitude: float
    longitude: float

    @classmethod
    def coerce(cls, value: Any) -> "GeographicPoint":
        """Accept a GeographicPoint, a (lat, lng) pair or a {"lat", "lng"} mapping."""
        if isinstance(value, GeographicPoint):
            return value
        if isinstance(value, Mapping):
            lat = value.get("lat", value.get("latitude"))
            lng = value.get("lng", value.get("lon", value.get("longitude")))
            return cls(float(lat), float(lng))
        lat, lng = value
        return cls(float(lat), float(lng))


@dataclass(frozen=True)
class ProjectedPoint:
    """A position in the projected CRS of the feature service (LV95 metres)."""
    easting: float
    northing: float

    def distance_to(self, other: "ProjectedPoint") -> float:
        return math.hypot(self.easting - other.easting, self.northing - other.northing)


@dataclass(frozen=True)
class Polygon:
    """
    A single simple ring of geographic vertices.

    The first vertex does not need to be repeated at the end. Fewer than
    three vertices is rejected on construction.
    """
    vertices: Tuple[GeographicPoint, ...]

    def __post_init__(self):
        object.__setattr__(self, "vertices", tuple(self.vertices))
        if len(self.vertices) < 3:
            raise InvalidPolygon(f"Polygon needs at least 3 vertices, got {len(self.vertices)}")

    def __len__(self) -> int:
        return len(self.vertices)

    def __iter__(self) -> Iterator[GeographicPoint]:
        return iter(self.vertices)

    @classmethod
    def coerce(cls, value: Union["Polygon", Sequence[Any], None]) -> "Polygon":
        """Build a Polygon from a Polygon, point objects, pairs or lat/lng mappings."""
        if isinstance(value, Polygon):
            return value
        if value is None:
            raise InvalidPolygon("Polygon is missing")
        try:
            vertices = tuple(GeographicPoint.coerce(v) for v in value)
        except (TypeError, ValueError, KeyError) as e:
            raise InvalidPolygon(f"Unreadable polygon vertex: {e}") from e
        return cls(vertices)


@dataclass
class Candidate:
    """
    One feature record returned by an identify query.

    Centroid and distance are filled in by the selector when the query
    point is known.
    """
    attributes: RawFeatureAttributes
    geometry: Optional[Dict[str, Any]] = None
    centroid: Optional[ProjectedPoint] = None
    distance: float = math.inf

    @classmethod
    def from_result(cls, result: Mapping[str, Any]) -> "Candidate":
        attributes = result.get("attributes") or {}
        if not isinstance(attributes, Mapping):
            raise ValueError(f"Feature attributes are not a mapping: {attributes!r}")
        geometry = result.get("geometry")
        return cls(
            attributes=dict(attributes),
            geometry=geometry if isinstance(geometry, Mapping) and geometry else None,
        )

    @property
    def area(self) -> float:
        return as_number(self.attributes.get(AREA_FIELD)) or 0.0

    @property
    def production(self) -> float:
        return as_number(self.attributes.get(PRODUCTION_FIELD)) or 0.0


@dataclass
class NormalizedResult:
    """Normalized solar figures for one roof (or one polygon)."""
    radiation: int                      # kWh/m²/year
    area: float                         # m²
    power: float                        # kW
    suitability: str = "unknown"
    production: Optional[float] = None  # reported kWh/year
    radiation_source: str = "fallback"  # name of the rule that produced `radiation`
    raw: Union[RawFeatureAttributes, List[RawFeatureAttributes]] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return asdict(self)
