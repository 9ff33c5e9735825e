"""
Offline baking: sample clips, accumulate statistics, normalize, weight and index.
Everything is built into fresh objects; callers swap the result in only on success.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence
import numpy as np

from .config import BakeSettings, get_bake_settings, get_category_track_names, validate_bake_config
from .database import PoseDatabase
from .errors import BakeCancelled, ConfigurationError
from .stats import StatsAccumulator, normalize
from .weights import compute_weights
from ..vector.kdtree import KdTree
from ..util.logging import logger

MASK_64 = (1 << 64) - 1


@dataclass
class RawSamples:
    """Un-normalized samples gathered from a clip library."""

    data: np.ndarray
    clip_index: List[int]
    timestamps: List[float]
    categories: List[int]
    clip_names: List[str]


@dataclass
class BakeResult:
    """Everything a query needs, produced together by one bake."""

    database: PoseDatabase
    weights: np.ndarray
    index: KdTree
    settings: BakeSettings


def category_value(raw) -> int:
    """Interpret a category track value as an unsigned 64-bit mask."""
    value = np.asarray(raw).reshape(-1)
    if len(value) == 0:
        return 0
    return int(value[0]) & MASK_64


def is_discarded(category: int, discard_bit: int) -> bool:
    return bool((category >> discard_bit) & 1)


def provider_name(provider) -> str:
    return getattr(provider, "name", type(provider).__name__)


class SampleCollector:
    """
    Walks a clip library at a fixed interval and assembles raw pose samples.

    Statistics are accumulated while sampling so the raw matrix is never walked twice.
    """

    def __init__(self, providers: Sequence, settings: Optional[BakeSettings] = None,
                 category_track_names: Optional[Sequence[str]] = None):
        self.providers = list(providers)
        self.settings = settings or get_bake_settings()
        self.category_track_names = list(
            category_track_names if category_track_names is not None else get_category_track_names()
        )

    def dimension(self) -> int:
        return sum(int(provider.dimension()) for provider in self.providers)

    def _category_track(self, clip):
        for track_name in self.category_track_names:
            track = clip.find_track(track_name)
            if track is not None:
                return track
        return None

    def _sample(self, clip, clip_index: int, t: float, dimension: int) -> Optional[np.ndarray]:
        parts = []
        for provider in self.providers:
            part = np.asarray(provider.sample_at(clip, t), dtype=np.float32).reshape(-1)
            if len(part) != provider.dimension():
                logger.log_data_quality("feature_dimension_mismatch", {
                    "feature": provider_name(provider),
                    "clip": clip.name,
                    "time": round(t, 4),
                    "expected": provider.dimension(),
                    "got": len(part),
                })
                continue
            parts.append(part)

        vector = np.concatenate(parts) if parts else np.zeros(0, dtype=np.float32)
        if len(vector) != dimension:
            logger.log_data_quality("pose_dimension_mismatch", {
                "clip": clip.name,
                "clip_index": clip_index,
                "time": round(t, 4),
                "expected": dimension,
                "got": len(vector),
            })
            return None
        return vector

    def collect(self, clips, should_cancel: Optional[Callable[[], bool]] = None):
        """
        Sample every clip.

        Args:
            clips: Iterable of clips in library order; a clip's position is its index
            should_cancel: Optional callable polled between clips

        Returns:
            Tuple of (RawSamples, DatasetStats)
        """
        dimension = self.dimension()
        accumulator = StatsAccumulator(dimension, num_bins=self.settings.density_bins)
        rows = []
        samples = RawSamples(data=None, clip_index=[], timestamps=[], categories=[], clip_names=[])

        for clip_index, clip in enumerate(clips):
            if should_cancel is not None and should_cancel():
                raise BakeCancelled(f"Baking cancelled before clip '{clip.name}'")

            clock_start = time.perf_counter()
            samples.clip_names.append(clip.name)

            category_track = self._category_track(clip)
            if category_track is None:
                raise ConfigurationError(
                    f"Clip '{clip.name}' has none of the category tracks {self.category_track_names}"
                )

            for provider in self.providers:
                provider.prepare_for_clip(clip)

            counter = 0
            times = clip.sample_times(self.settings.sample_interval, self.settings.non_loop_tail)
            for t in times:
                category = category_value(category_track.sample(t, "discrete"))
                if is_discarded(category, self.settings.discard_bit):
                    continue

                vector = self._sample(clip, clip_index, t, dimension)
                if vector is None:
                    continue

                accumulator.add(vector)
                rows.append(vector)
                samples.clip_index.append(clip_index)
                samples.timestamps.append(t)
                samples.categories.append(category)
                counter += 1

            duration_ms = (time.perf_counter() - clock_start) * 1000
            logger.log_bake_clip(clip.name, clip_index, counter, duration_ms,
                                 clip.sampled_length(self.settings.non_loop_tail))

        samples.data = np.vstack(rows).astype(np.float32) if rows else np.zeros((0, dimension), dtype=np.float32)
        return samples, accumulator.finalize()


def build_index(database: PoseDatabase, weights: np.ndarray, distance_type: int, leaf_size: int = 8) -> KdTree:
    """Build a k-d tree over every database row."""
    start_time = time.time()
    index = KdTree(distance_type=distance_type, weights=weights, leaf_size=leaf_size)
    index.build(database.motion_data, categories=database.categories)
    logger.log_index_build(len(database), database.dimension, distance_type, start_time, time.time())
    return index


def bake(clips, providers: Sequence, context: Any, settings: Optional[BakeSettings] = None,
         category_track_names: Optional[Sequence[str]] = None,
         should_cancel: Optional[Callable[[], bool]] = None) -> BakeResult:
    """
    Run the full bake and return a fresh result.

    Raises:
        ConfigurationError: no providers, no clip library, unset context, no category track
            (configured or present in a clip) or invalid settings
        BakeCancelled: should_cancel returned True between clips
    """
    settings = settings or get_bake_settings()

    issues = validate_bake_config(settings)
    if not providers:
        issues.append("No feature providers configured")
    if clips is None:
        issues.append("No clip library configured")
    if context is None:
        issues.append("Character context is not set")
    track_names = category_track_names if category_track_names is not None else get_category_track_names()
    if not track_names:
        issues.append("No category track configured")
    if issues:
        raise ConfigurationError("; ".join(issues))

    for provider in providers:
        provider.setup(context)

    collector = SampleCollector(providers, settings, track_names)
    dimension = collector.dimension()
    logger.log_operation("bake.start", "running", {
        "features": [f"{provider_name(p)}:{p.dimension()}" for p in providers],
        "dimension": dimension,
    })

    weights = compute_weights(providers)
    samples, stats = collector.collect(clips, should_cancel)
    motion_data = normalize(samples.data, stats)

    database = PoseDatabase(
        motion_data,
        samples.clip_index,
        samples.timestamps,
        samples.categories,
        samples.clip_names,
        stats=stats,
        feature_names=[provider_name(p) for p in providers],
    )
    index = build_index(database, weights, settings.distance_type, settings.leaf_size)

    logger.log_bake_summary(dimension, len(database), len(samples.clip_names))
    return BakeResult(database=database, weights=weights, index=index, settings=settings)
