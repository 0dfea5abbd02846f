"""
Geometry helpers for polygon sampling.

Everything here works directly on WGS84 degrees: the grid is a sampling
pattern, not a measurement, so no projection is needed.
"""

import json
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from core.models import GeographicPoint, Polygon


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box in decimal degrees."""
    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float

    @property
    def latitude_span(self) -> float:
        return self.max_latitude - self.min_latitude

    @property
    def longitude_span(self) -> float:
        return self.max_longitude - self.min_longitude

    @property
    def area_sq_degrees(self) -> float:
        """Approximate area in square degrees (used only to pick a grid size)."""
        return self.latitude_span * self.longitude_span

    @classmethod
    def of(cls, polygon: Polygon) -> "BoundingBox":
        lats = [p.latitude for p in polygon]
        lngs = [p.longitude for p in polygon]
        return cls(min(lats), max(lats), min(lngs), max(lngs))


def point_in_polygon(point: GeographicPoint, polygon: Polygon) -> bool:
    """
    Ray-casting point-in-polygon test.

    Casts a horizontal ray from the point and toggles on every edge it
    crosses; an odd number of crossings means inside.
    """
    x = point.longitude
    y = point.latitude
    vertices = polygon.vertices
    inside = False

    j = len(vertices) - 1
    for i in range(len(vertices)):
        xi, yi = vertices[i].longitude, vertices[i].latitude
        xj, yj = vertices[j].longitude, vertices[j].latitude
        if (yi > y) != (yj > y):
            crossing_x = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < crossing_x:
                inside = not inside
        j = i

    return inside


def vertex_centroid(polygon: Polygon) -> GeographicPoint:
    """Arithmetic mean of the vertices (not area-weighted)."""
    count = len(polygon)
    return GeographicPoint(
        latitude=sum(p.latitude for p in polygon) / count,
        longitude=sum(p.longitude for p in polygon) / count,
    )


def grid_resolution(
    bbox: BoundingBox,
    base: int,
    maximum: int,
    thresholds: Sequence[Tuple[float, int]],
) -> int:
    """
    Pick the grid size for a bounding box.

    Each (area, size) threshold the box area exceeds raises the resolution to
    at least that size; the result never exceeds `maximum`.
    """
    resolution = base
    area = bbox.area_sq_degrees
    for threshold_area, threshold_size in sorted(thresholds):
        if area > threshold_area:
            resolution = max(resolution, threshold_size)
    return min(resolution, maximum)


def interior_grid(bbox: BoundingBox, resolution: int) -> List[GeographicPoint]:
    """
    `resolution` x `resolution` points strictly inside the bounding box.

    The box is split into resolution + 1 steps on each axis and the border
    lines are skipped. Latitude is the outer loop.
    """
    lat_step = bbox.latitude_span / (resolution + 1)
    lng_step = bbox.longitude_span / (resolution + 1)

    points = []
    for i in range(1, resolution + 1):
        for j in range(1, resolution + 1):
            points.append(GeographicPoint(
                latitude=bbox.min_latitude + lat_step * i,
                longitude=bbox.min_longitude + lng_step * j,
            ))
    return points


def sample_points(
    polygon: Polygon,
    base: int,
    maximum: int,
    thresholds: Sequence[Tuple[float, int]],
) -> List[GeographicPoint]:
    """Interior grid points of the polygon's bounding box that fall inside the polygon."""
    bbox = BoundingBox.of(polygon)
    resolution = grid_resolution(bbox, base, maximum, thresholds)
    return [p for p in interior_grid(bbox, resolution) if point_in_polygon(p, polygon)]


def polygon_fingerprint(polygon: Polygon) -> str:
    """
    Deterministic cache key for a polygon.

    Vertices are rounded to 6 decimal places (about 0.1 m) and kept in
    order, so the same drawing always maps to the same key.
    """
    return json.dumps(
        [{"lat": round(p.latitude, 6), "lng": round(p.longitude, 6)} for p in polygon],
        separators=(",", ":"),
    )


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up."""
    return int(math.floor(value + 0.5))
