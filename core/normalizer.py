"""
Radiation Normalizer - Turn raw roof attributes into kWh/m²/year.

The solar layer reports radiation in several fields whose units are not
consistent across records and carry no unit tag. The normalizer walks an
ordered list of rules and keeps the first usable value:

1. production   - reported yield divided by (area x combined factor)
2. monthly      - monthly radiation x 12, if plausible
3. unit_inference - general radiation as-is, /1000 or /3.6, first plausible
4. fallback     - raw general radiation, monthly x 12, or 0, unchecked
"""

import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence, Tuple

from core.geometry import round_half_up
from core.models import (
    AREA_FIELD,
    GENERAL_RADIATION_FIELD,
    MONTHLY_RADIATION_FIELD,
    POWER_FIELD,
    PRODUCTION_FIELD,
    SUITABILITY_FIELD,
    NormalizedResult,
    RawFeatureAttributes,
    as_number,
)

log = logging.getLogger(__name__)

# Assumed installed-system yield ratio
MODULE_EFFICIENCY = 0.17
SYSTEM_FACTOR = 0.85
COMBINED_FACTOR = MODULE_EFFICIENCY * SYSTEM_FACTOR  # 0.1445

# kWh/m²/year, both bounds exclusive
PLAUSIBLE_RANGE = (200.0, 20000.0)

# Divisors tried on the general radiation figure: kWh/m², Wh/m², MJ/m²
UNIT_DIVISORS = (1.0, 1000.0, 3.6)

# Rated power above this is taken to be in watts
WATTS_THRESHOLD = 1000.0


def is_plausible(value: float) -> bool:
    low, high = PLAUSIBLE_RANGE
    return low < value < high


@dataclass(frozen=True)
class RadiationRule:
    """A named step of the fallback chain."""
    name: str
    derive: Callable[[Mapping], Optional[float]]


def from_production(attrs: Mapping) -> Optional[float]:
    production = as_number(attrs.get(PRODUCTION_FIELD))
    area = as_number(attrs.get(AREA_FIELD))
    if production and area and area > 0:
        return production / (area * COMBINED_FACTOR)
    return None


def from_monthly(attrs: Mapping) -> Optional[float]:
    monthly = as_number(attrs.get(MONTHLY_RADIATION_FIELD))
    if monthly:
        annual = monthly * 12
        if is_plausible(annual):
            return annual
    return None


def from_unit_inference(attrs: Mapping) -> Optional[float]:
    general = as_number(attrs.get(GENERAL_RADIATION_FIELD))
    if not general:
        return None
    for divisor in UNIT_DIVISORS:
        candidate = general / divisor
        if is_plausible(candidate):
            return candidate
    return None


def from_raw_general(attrs: Mapping) -> Optional[float]:
    return as_number(attrs.get(GENERAL_RADIATION_FIELD)) or 0.0


def from_raw_values(attrs: Mapping) -> Optional[float]:
    general = as_number(attrs.get(GENERAL_RADIATION_FIELD))
    if general:
        return general
    monthly = as_number(attrs.get(MONTHLY_RADIATION_FIELD))
    if monthly:
        return monthly * 12
    return 0.0


PRODUCTION_RULE = RadiationRule("production", from_production)
MONTHLY_RULE = RadiationRule("monthly", from_monthly)
UNIT_INFERENCE_RULE = RadiationRule("unit_inference", from_unit_inference)
FALLBACK_RULE = RadiationRule("fallback", from_raw_values)

DEFAULT_RULES: Tuple[RadiationRule, ...] = (
    PRODUCTION_RULE,
    MONTHLY_RULE,
    UNIT_INFERENCE_RULE,
    FALLBACK_RULE,
)


def normalize_power(attrs: Mapping) -> float:
    """Rated power in kW; values above 1000 are assumed to be watts."""
    power = as_number(attrs.get(POWER_FIELD)) or 0.0
    if power > WATTS_THRESHOLD:
        power = power / 1000
    return round(power, 2)


class RadiationNormalizer:
    """
    Apply an ordered rule chain to raw roof attributes.

    Stateless: the same attributes always produce the same result.

    Usage:
        normalizer = RadiationNormalizer()
        result = normalizer.normalize(candidate.attributes)
    """

    def __init__(self, rules: Sequence[RadiationRule] = DEFAULT_RULES):
        self.rules = tuple(rules)

    def derive_radiation(self, attrs: Mapping) -> Tuple[int, str]:
        """
        Run the rule chain.

        Returns:
            (radiation in kWh/m²/year, name of the rule that produced it).
            When no rule yields a value the result is (0, "none").
        """
        for rule in self.rules:
            value = rule.derive(attrs)
            if value:
                log.debug(f"Radiation from {rule.name}: {value:.1f}")
                return max(0, round_half_up(value)), rule.name
        return 0, "none"

    def normalize(self, attrs: RawFeatureAttributes) -> NormalizedResult:
        radiation, source = self.derive_radiation(attrs)
        return NormalizedResult(
            radiation=radiation,
            area=as_number(attrs.get(AREA_FIELD)) or 0.0,
            power=normalize_power(attrs),
            suitability=attrs.get(SUITABILITY_FIELD) or "unknown",
            production=as_number(attrs.get(PRODUCTION_FIELD)),
            radiation_source=source,
            raw=attrs,
        )
