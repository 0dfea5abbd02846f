"""
Fold a whole-polygon identify response into one estimate.

Used when the polygon itself is sent to identify instead of sampling
points: every roof touching the polygon comes back once per series, so
records are deduplicated before their figures are summed. The identity
key prefers labels over object ids here, unlike point selection.
"""

import logging
from typing import Optional, Sequence

from core.models import (
    AREA_FIELD,
    GENERAL_RADIATION_FIELD,
    POLYGON_IDENTITY_FIELDS,
    PRODUCTION_FIELD,
    SUITABILITY_FIELD,
    Candidate,
    NormalizedResult,
    as_number,
)
from core.normalizer import (
    PRODUCTION_RULE,
    UNIT_INFERENCE_RULE,
    RadiationNormalizer,
    RadiationRule,
    from_raw_general,
)
from core.selector import dedup_key

log = logging.getLogger(__name__)

# Totals carry no monthly figure, so that rule is left out
AGGREGATE_RULES = (
    PRODUCTION_RULE,
    UNIT_INFERENCE_RULE,
    RadiationRule("fallback", from_raw_general),
)


def aggregate_features(
    candidates: Sequence[Candidate],
    normalizer: Optional[RadiationNormalizer] = None,
) -> Optional[NormalizedResult]:
    """
    Combine all roofs returned for a polygon.

    Area and production are summed over unique roofs (first record per
    identity key wins); general radiation is averaged over the roofs that
    report it.

    Returns:
        NormalizedResult for the polygon, or None for an empty response
    """
    if not candidates:
        return None
    normalizer = normalizer or RadiationNormalizer(AGGREGATE_RULES)

    seen = set()
    total_area = 0.0
    productions = []
    radiations = []
    for candidate in candidates:
        key = dedup_key(candidate.attributes, POLYGON_IDENTITY_FIELDS)
        if key in seen:
            continue
        seen.add(key)

        total_area += candidate.area
        production = as_number(candidate.attributes.get(PRODUCTION_FIELD))
        if production:
            productions.append(production)
        general = as_number(candidate.attributes.get(GENERAL_RADIATION_FIELD))
        if general:
            radiations.append(general)

    totals = {
        AREA_FIELD: total_area,
        PRODUCTION_FIELD: sum(productions),
        GENERAL_RADIATION_FIELD: sum(radiations) / len(radiations) if radiations else None,
    }
    radiation, source = normalizer.derive_radiation(totals)
    log.debug(f"Aggregated {len(seen)} roofs: area={total_area:.1f} m², radiation={radiation} via {source}")

    return NormalizedResult(
        radiation=radiation,
        area=float(round(total_area)),
        power=0.0,
        suitability=candidates[0].attributes.get(SUITABILITY_FIELD) or "unknown",
        production=sum(productions) / len(productions) if productions else None,
        radiation_source=source,
        raw=[c.attributes for c in candidates],
    )
