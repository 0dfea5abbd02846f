"""
Sampler Settings

Every tunable of the sampling engine in one place, with explicit defaults.
Hosts build a SamplerSettings directly or load one from the environment.
"""

import logging
import os
from dataclasses import dataclass, field, asdict
from typing import Dict, Optional, Tuple


@dataclass
class SamplerSettings:
    """
    All configurable settings for radiation sampling.

    The numeric heuristics (nearby threshold, stability threshold) are
    calibrated for the Swiss solar roof layer.
    """

    # Endpoints
    reframe_url: str = "https://api3.geo.admin.ch/reframe/wgs84tolv95"
    """Primary WGS84 -> LV95 conversion endpoint."""

    reframe_fallback_url: str = "https://geodesy.geo.admin.ch/reframe/wgs84tolv95"
    """Tried once when the primary conversion endpoint fails."""

    identify_url: str = "https://api3.geo.admin.ch/rest/services/api/MapServer/identify"
    """Feature identify endpoint."""

    layer: str = "all:ch.bfe.solarenergie-eignung-daecher"
    """Layer selector passed to identify."""

    spatial_reference: int = 2056
    """EPSG code of the projected CRS (LV95)."""

    language: str = "fr"
    """Language of textual attributes returned by identify."""

    request_timeout_seconds: float = 10.0
    """Timeout applied to every HTTP request."""

    # Point lookup
    lookup_extent: float = 100.0
    """Half-width in metres of the map extent sent with a point identify."""

    lookup_tolerance_px: int = 5
    """Pixel tolerance of a point identify."""

    nearby_threshold: float = 20.0
    """A roof whose centroid is at most this many metres away is a direct hit."""

    # Sampling
    concurrency: int = 4
    """Number of sampling workers running at once."""

    grid_base_resolution: int = 3
    """Grid size (points per axis) for small polygons."""

    grid_max_resolution: int = 8
    """Grid size never exceeds this."""

    grid_area_thresholds: Tuple[Tuple[float, int], ...] = ((0.0005, 4), (0.002, 6), (0.01, 8))
    """(bounding box area in square degrees, minimum grid size) steps."""

    min_samples_for_stability: int = 4
    """Samples needed before the early-stop check runs."""

    stability_cv_threshold: float = 0.05
    """Sampling stops once the coefficient of variation drops below this."""

    # Cache
    cache_path: Optional[str] = None
    """Durable sample cache. None keeps it in memory; *.json uses a JSON file, anything else SQLite."""

    debug: bool = False
    """Verbose tracing of lookups and candidate ranking."""

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "SamplerSettings":
        data = dict(data)
        if "grid_area_thresholds" in data:
            data["grid_area_thresholds"] = tuple(
                (float(area), int(size)) for area, size in data["grid_area_thresholds"]
            )
        return cls(**data)

    @classmethod
    def from_env(cls) -> "SamplerSettings":
        """Defaults overridden by SOLAR_SAMPLER_* environment variables."""
        settings = cls()
        settings.debug = os.environ.get("SOLAR_SAMPLER_DEBUG", "") in ("1", "true", "yes")
        settings.cache_path = os.environ.get("SOLAR_SAMPLER_CACHE_PATH") or None
        if os.environ.get("SOLAR_SAMPLER_CONCURRENCY"):
            settings.concurrency = int(os.environ["SOLAR_SAMPLER_CONCURRENCY"])
        if os.environ.get("SOLAR_SAMPLER_TIMEOUT"):
            settings.request_timeout_seconds = float(os.environ["SOLAR_SAMPLER_TIMEOUT"])
        return settings

    def validate(self) -> None:
        """Raise ValueError listing every invalid value."""
        errors = []
        if self.concurrency < 1:
            errors.append(f"concurrency must be at least 1, got {self.concurrency}")
        if self.grid_base_resolution < 1:
            errors.append(f"grid_base_resolution must be at least 1, got {self.grid_base_resolution}")
        if self.grid_max_resolution < self.grid_base_resolution:
            errors.append(
                f"grid_max_resolution ({self.grid_max_resolution}) is below "
                f"grid_base_resolution ({self.grid_base_resolution})"
            )
        if self.request_timeout_seconds <= 0:
            errors.append(f"request_timeout_seconds must be positive, got {self.request_timeout_seconds}")
        if self.min_samples_for_stability < 2:
            errors.append(f"min_samples_for_stability must be at least 2, got {self.min_samples_for_stability}")
        if self.nearby_threshold < 0:
            errors.append(f"nearby_threshold must not be negative, got {self.nearby_threshold}")

        if errors:
            raise ValueError("Invalid sampler settings:\n" + "\n".join(f"  - {e}" for e in errors))


def configure_logging(debug: bool = False) -> None:
    """Console logging for hosts and scripts; DEBUG when `debug` is set."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
