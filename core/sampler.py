"""
Polygon Sampler - One radiation estimate for a drawn roof polygon.

A pragmatic raster approximation: point identifies on a grid inside the
polygon, averaged. Sampling runs on a small worker pool and stops early
once the collected values agree within a few percent, which bounds the
number of API calls on large, uniform roofs.

    Idle -> BoundingBox -> GridGeneration -> Sampling -> Aggregation -> Cached | NoResult
"""

import logging
import math
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import numpy as np

from core.cache import SampleCache
from core.errors import ConversionFailed, LookupFailed
from core.geometry import polygon_fingerprint, round_half_up, sample_points, vertex_centroid
from core.models import GeographicPoint, Polygon
from core.settings import SamplerSettings

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population standard deviation divided by the mean (inf for a non-positive mean)."""
    arr = np.asarray(values, dtype=float)
    mean = arr.mean()
    if mean <= 0:
        return math.inf
    return float(arr.std() / mean)


@dataclass
class SamplingSession:
    """
    Shared state of one sampling call.

    Workers append samples and bump the processed counter under `lock`;
    `stop` is the only cancellation signal and is checked between points.
    """
    total: int
    min_samples: int = 4
    cv_threshold: float = 0.05
    samples: List[int] = field(default_factory=list)
    processed: int = 0
    stop: threading.Event = field(default_factory=threading.Event)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def record(self, value: Optional[int], progress: Optional[ProgressCallback] = None) -> None:
        """Account for one finished point, successful or not."""
        with self.lock:
            if value:
                self.samples.append(value)
            self.processed += 1
            if progress:
                progress(self.processed, self.total)

            if len(self.samples) >= self.min_samples:
                cv = coefficient_of_variation(self.samples)
                if cv < self.cv_threshold and not self.stop.is_set():
                    log.debug(f"Samples stable (cv={cv:.4f}) after {len(self.samples)} values, stopping")
                    self.stop.set()

    def mean(self) -> Optional[int]:
        with self.lock:
            if not self.samples:
                return None
            return round_half_up(sum(self.samples) / len(self.samples))


class PolygonSampler:
    """
    Sample a polygon's radiation through a point pipeline.

    Usage:
        sampler = PolygonSampler(pipeline, cache=SampleCache())
        radiation = sampler.sample(vertices, progress=lambda done, total: ...)
    """

    def __init__(
        self,
        pipeline,
        cache: Optional[SampleCache] = None,
        settings: Optional[SamplerSettings] = None,
    ):
        self.pipeline = pipeline
        self.cache = cache if cache is not None else SampleCache()
        self.settings = settings or SamplerSettings()

    def sample(self, polygon, progress: Optional[ProgressCallback] = None) -> Optional[int]:
        """
        Average radiation over the polygon.

        Args:
            polygon: Polygon, or a sequence of points / (lat, lng) pairs / lat-lng mappings
            progress: Called with (processed, total) after every grid point

        Returns:
            kWh/m²/year rounded to an integer, or None when no point yielded
            a usable value

        Raises:
            InvalidPolygon: fewer than 3 vertices (before any network call)
        """
        polygon = Polygon.coerce(polygon)
        fingerprint = polygon_fingerprint(polygon)

        cached = self.cache.get(fingerprint)
        if cached is not None:
            log.info(f"Polygon sample cache hit: {cached} kWh/m²/year")
            return cached

        points = sample_points(
            polygon,
            base=self.settings.grid_base_resolution,
            maximum=self.settings.grid_max_resolution,
            thresholds=self.settings.grid_area_thresholds,
        )

        if points:
            result = self._sample_grid(points, progress)
        else:
            log.debug("No grid point inside polygon, sampling its centroid")
            result = self._sample_centroid(polygon)

        if result is None:
            log.info("Polygon sampling produced no usable value")
            return None

        self.cache.put(fingerprint, result)
        log.info(f"Polygon sampled radiation: {result} kWh/m²/year")
        return result

    def _sample_point(self, point: GeographicPoint) -> Optional[int]:
        """Positive radiation at one point, or None if the point cannot be sampled."""
        try:
            result = self.pipeline.run(point)
        except (ConversionFailed, LookupFailed) as e:
            log.debug(f"Skipping sample point ({point.latitude:.6f}, {point.longitude:.6f}): {e}")
            return None
        except Exception as e:
            log.error(f"Error sampling point ({point.latitude:.6f}, {point.longitude:.6f}): {e}")
            return None
        if result is None or result.radiation <= 0:
            return None
        return result.radiation

    def _sample_centroid(self, polygon: Polygon) -> Optional[int]:
        value = self._sample_point(vertex_centroid(polygon))
        return round_half_up(value) if value else None

    def _sample_grid(self, points: List[GeographicPoint], progress: Optional[ProgressCallback]) -> Optional[int]:
        session = SamplingSession(
            total=len(points),
            min_samples=self.settings.min_samples_for_stability,
            cv_threshold=self.settings.stability_cv_threshold,
        )

        # Round-robin partition, one worker per non-empty group
        worker_count = max(1, min(self.settings.concurrency, len(points)))
        groups = [points[i::worker_count] for i in range(worker_count)]
        log.debug(f"Sampling {len(points)} grid points with {worker_count} workers")

        with ThreadPoolExecutor(max_workers=worker_count) as executor:
            futures = [executor.submit(self._work, group, session, progress) for group in groups]
            for future in futures:
                future.result()

        log.debug(f"Collected {len(session.samples)} samples from {session.processed}/{session.total} points")
        return session.mean()

    def _work(
        self,
        points: List[GeographicPoint],
        session: SamplingSession,
        progress: Optional[ProgressCallback],
    ) -> None:
        for point in points:
            if session.stop.is_set():
                break
            session.record(self._sample_point(point), progress)
