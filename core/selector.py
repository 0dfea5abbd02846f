"""
Candidate Selector - Pick the relevant roof from an identify response.

An identify query around one point routinely returns several records:
duplicates of the same building (different series or variants) and
adjacent roofs. Neither "first result" nor "largest result" is reliable,
so selection is two-tier:

- deduplicate by a stable identity key, keeping the largest record per key
- take the nearest roof if its centroid is within the nearby threshold,
  otherwise the largest roof overall
"""

import json
import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

from core.models import IDENTITY_FIELDS, Candidate, ProjectedPoint

log = logging.getLogger(__name__)

# Metres (LV95) within which a roof counts as a direct hit
DEFAULT_NEARBY_THRESHOLD = 20.0


def dedup_key(attrs: Mapping[str, Any], fields: Sequence[str] = IDENTITY_FIELDS) -> Any:
    """Identity of a record: the first set field in `fields`, or the full attribute set."""
    for name in fields:
        value = attrs.get(name)
        if value:
            return value
    return json.dumps(attrs, sort_keys=True, default=str)


def compute_centroid(geometry: Optional[Mapping[str, Any]]) -> Optional[ProjectedPoint]:
    """
    Centroid of an identify geometry.

    Points are used directly, polygon rings give the mean of the first
    ring's vertices, multipoints give their first point.
    """
    if not geometry or not isinstance(geometry, Mapping):
        return None
    try:
        x, y = geometry.get("x"), geometry.get("y")
        if isinstance(x, (int, float)) and isinstance(y, (int, float)):
            return ProjectedPoint(float(x), float(y))

        rings = geometry.get("rings")
        if rings and rings[0]:
            ring = rings[0]
            return ProjectedPoint(
                sum(float(p[0]) for p in ring) / len(ring),
                sum(float(p[1]) for p in ring) / len(ring),
            )

        points = geometry.get("points")
        if points:
            first = points[0]
            if isinstance(first, Mapping):
                return ProjectedPoint(float(first["x"]), float(first["y"]))
            return ProjectedPoint(float(first[0]), float(first[1]))
    except (TypeError, ValueError, KeyError, IndexError, AttributeError) as e:
        log.debug(f"Unreadable candidate geometry: {e}")
    return None


def deduplicate(candidates: Sequence[Candidate]) -> List[Candidate]:
    """
    One representative per identity key.

    The larger area wins; on equal area the larger production wins; on a
    full tie the first record seen is kept. Group order follows first
    appearance.
    """
    by_key: Dict[Any, Candidate] = {}
    for candidate in candidates:
        key = dedup_key(candidate.attributes)
        existing = by_key.get(key)
        if existing is None:
            by_key[key] = candidate
        elif candidate.area > existing.area or (
            candidate.area == existing.area and candidate.production > existing.production
        ):
            by_key[key] = candidate
    return list(by_key.values())


def rank(candidates: Sequence[Candidate]) -> List[Candidate]:
    """Largest area first, then largest production. Stable for full ties."""
    return sorted(candidates, key=lambda c: (-c.area, -c.production))


def attach_distances(candidates: Sequence[Candidate], query: Optional[ProjectedPoint]) -> None:
    for candidate in candidates:
        candidate.centroid = compute_centroid(candidate.geometry)
        if candidate.centroid is not None and query is not None:
            candidate.distance = candidate.centroid.distance_to(query)
        else:
            candidate.distance = math.inf


class CandidateSelector:
    """
    Choose at most one candidate per identify query.

    Usage:
        selector = CandidateSelector()
        best = selector.select(candidates, query=projected_point)
    """

    def __init__(self, nearby_threshold: float = DEFAULT_NEARBY_THRESHOLD):
        self.nearby_threshold = nearby_threshold

    def ranked(
        self,
        candidates: Sequence[Candidate],
        query: Optional[ProjectedPoint] = None,
    ) -> List[Candidate]:
        """Deduplicated candidates with distances attached, largest first."""
        representatives = deduplicate(candidates)
        attach_distances(representatives, query)
        return rank(representatives)

    def select(
        self,
        candidates: Sequence[Candidate],
        query: Optional[ProjectedPoint] = None,
    ) -> Optional[Candidate]:
        """
        Pick the relevant candidate.

        Args:
            candidates: Raw candidates from one identify response
            query: Projected query point, if known

        Returns:
            The nearest candidate when it lies within the nearby threshold
            (inclusive), otherwise the largest one. None for empty input.
        """
        ordered = self.ranked(candidates, query)
        if not ordered:
            return None

        nearest = min(ordered, key=lambda c: c.distance)
        if nearest.distance <= self.nearby_threshold:
            return nearest
        return ordered[0]
