"""
Query engine: owns the baked snapshot and answers pose queries every tick.
"""

import logging
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union
import numpy as np

from . import config
from .baking import BakeResult, bake, build_index, provider_name
from .database import PoseDatabase
from .errors import BakeCancelled, ConfigurationError, DimensionMismatchError
from .persistence import BakeManifest, export_artifact, load_artifact
from .stats import normalize
from .weights import compute_weights
from ..vector.index import ISpatialIndex
from ..vector.types import CategoryPredicate
from ..util.logging import logger


@dataclass
class QueryMatch:
    """One ranked query result."""

    clip_name: str
    timestamp: float
    cost: float
    category: int
    row: int
    distance: float

    def to_dict(self) -> Dict[str, Any]:
        """Result shape consumed by the animation host."""
        return {"animation": self.clip_name, "timestamp": self.timestamp, "cost": self.cost}


@dataclass(frozen=True)
class Snapshot:
    """Database, weights, index and settings of one bake. Never mutated; replaced as a whole."""

    database: PoseDatabase
    weights: np.ndarray
    index: ISpatialIndex
    settings: config.BakeSettings


def compute_cost(candidate: np.ndarray, query: np.ndarray, weights: np.ndarray) -> float:
    """Weighted per-dimension L1 distance; uniform when ``weights`` is empty."""
    diff = np.abs(np.asarray(candidate, dtype=np.float32) - np.asarray(query, dtype=np.float32))
    if len(weights):
        diff = diff * weights
    return float(diff.sum())


class MotionMatcher:
    """
    Motion matching query engine.

    Bakes a clip library through its feature providers, keeps the result as an
    immutable snapshot and answers filtered nearest-pose queries against it. A new
    bake is built off to the side and swapped in only when it completes.
    """

    def __init__(self, providers: Sequence = (), context: Any = None, clips=None,
                 blackboard: Optional[Dict[str, Any]] = None, distance_type: Optional[int] = None,
                 category_track_names: Optional[Sequence[str]] = None):
        self.providers = list(providers)
        self.context = context
        self.clips = clips
        self.blackboard = blackboard if blackboard is not None else {}
        self.distance_type = config.get_distance_type() if distance_type is None else int(distance_type)
        self.category_track_names = category_track_names
        self._snapshot: Optional[Snapshot] = None

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def database(self) -> PoseDatabase:
        if self._snapshot is None:
            return PoseDatabase.empty()
        return self._snapshot.database

    @property
    def weights(self) -> np.ndarray:
        if self._snapshot is None:
            return np.zeros(0, dtype=np.float32)
        return self._snapshot.weights

    def dimension(self) -> int:
        return sum(int(provider.dimension()) for provider in self.providers)

    def bake(self, clips=None, should_cancel: Optional[Callable[[], bool]] = None) -> bool:
        """
        Rebuild the database and index from ``clips`` (defaults to ``self.clips``).

        Returns:
            True when the new snapshot was swapped in. On any failure the previous
            snapshot stays in place.
        """
        clips = clips if clips is not None else self.clips
        settings = config.get_bake_settings()
        if settings.distance_type != self.distance_type:
            settings = replace(settings, distance_type=self.distance_type)

        try:
            result: BakeResult = bake(
                clips, self.providers, self.context, settings=settings,
                category_track_names=self.category_track_names, should_cancel=should_cancel,
            )
        except ConfigurationError as e:
            logger.log_config_error("bake", [str(e)])
            return False
        except BakeCancelled as e:
            logger.log_operation("bake", "cancelled", {"reason": str(e)})
            return False
        except Exception as e:
            logger.log_operation("bake", "failed", {"error": str(e)[:200]}, level=logging.ERROR)
            return False

        self._snapshot = Snapshot(database=result.database, weights=result.weights, index=result.index,
                                  settings=result.settings)
        if clips is not None:
            self.clips = clips
        return True

    def recalculate_weights(self) -> np.ndarray:
        """Recompute weights from the providers and swap in an index using them."""
        weights = compute_weights(self.providers)
        snapshot = self._snapshot
        if snapshot is not None:
            index = build_index(snapshot.database, weights, self.distance_type, snapshot.settings.leaf_size)
            self._snapshot = replace(snapshot, weights=weights, index=index)
        return weights

    def set_distance_type(self, distance_type: int) -> None:
        """Switch the metric; the built tree is shared by a new snapshot, not rebuilt."""
        if int(distance_type) not in config.VALID_DISTANCE_TYPES:
            raise ValueError(f"Invalid distance type {distance_type}")
        self.distance_type = int(distance_type)
        snapshot = self._snapshot
        if snapshot is not None:
            self._snapshot = replace(
                snapshot,
                index=snapshot.index.with_distance(self.distance_type, snapshot.weights),
                settings=replace(snapshot.settings, distance_type=self.distance_type),
            )

    def tick(self, dt: Optional[float] = None) -> None:
        """Per-simulation-step hook forwarded to every provider."""
        dt = config.get_query_dt() if dt is None else dt
        for provider in self.providers:
            provider.per_tick_update(dt)

    def build_query(self, state: Optional[Dict[str, Any]] = None, dt: Optional[float] = None) -> np.ndarray:
        """
        Assemble the raw (un-normalized) live query vector.

        Raises:
            DimensionMismatchError: a provider returned the wrong number of values
        """
        state = self.blackboard if state is None else state
        dt = config.get_query_dt() if dt is None else dt
        parts = []
        for provider in self.providers:
            part = np.asarray(provider.sample_live(state, dt), dtype=np.float32).reshape(-1)
            if len(part) != provider.dimension():
                raise DimensionMismatchError(
                    f"Feature '{provider_name(provider)}' returned {len(part)} values, "
                    f"expected {provider.dimension()}"
                )
            parts.append(part)
        return np.concatenate(parts) if parts else np.zeros(0, dtype=np.float32)

    def query_pose(self, include: int = config.UNFILTERED, exclude: int = 0, k: int = 1,
                   state: Optional[Dict[str, Any]] = None) -> List[QueryMatch]:
        """
        Find the poses closest to the live state.

        Args:
            include: Rows must only carry categories in this mask
            exclude: Rows must carry none of these categories
            k: Number of candidates; 1 for playback, more for diagnostics
            state: Runtime state for the providers; defaults to the blackboard

        Returns:
            Matches by ascending index distance
        """
        snapshot = self._snapshot
        if snapshot is None or snapshot.database.is_empty():
            return []

        raw = self.build_query(state)
        if len(raw) != snapshot.database.dimension:
            raise DimensionMismatchError(
                f"Query has {len(raw)} dimensions, database has {snapshot.database.dimension}"
            )
        query = normalize(raw, snapshot.database.stats)

        filtered = not (include == config.UNFILTERED and exclude == 0)
        predicate = CategoryPredicate(include, exclude) if filtered else None

        clock_start = time.perf_counter()
        neighbors = snapshot.index.k_nearest(query, k, predicate)
        duration_us = (time.perf_counter() - clock_start) * 1e6

        database = snapshot.database
        results = []
        for neighbor in neighbors:
            clip_name = database.clip_name(neighbor.row)
            if clip_name is None:
                continue
            results.append(QueryMatch(
                clip_name=clip_name,
                timestamp=float(database.timestamps[neighbor.row]),
                cost=compute_cost(database.motion_data[neighbor.row], query, snapshot.weights),
                category=int(database.categories[neighbor.row]),
                row=neighbor.row,
                distance=neighbor.distance,
            ))

        logger.log_query(k, len(results), duration_us, filtered)
        return results

    def search_raw(self, query_vector, k: int = 1, include: int = config.UNFILTERED,
                   exclude: int = 0) -> List[Tuple[str, float, int]]:
        """
        Search the index directly with an already-normalized vector, bypassing providers.

        Returns:
            (clip_name, timestamp, category) triples by ascending distance
        """
        snapshot = self._snapshot
        if snapshot is None:
            return []

        predicate = None
        if not (include == config.UNFILTERED and exclude == 0):
            predicate = CategoryPredicate(include, exclude)

        database = snapshot.database
        results = []
        for neighbor in snapshot.index.k_nearest(query_vector, k, predicate):
            clip_name = database.clip_name(neighbor.row)
            if clip_name is None:
                continue
            results.append((clip_name, float(database.timestamps[neighbor.row]),
                            int(database.categories[neighbor.row])))
        return results

    def export(self, path: Union[str, Path, None] = None) -> BakeManifest:
        """Persist the current snapshot."""
        path = config.get_artifact_path() if path is None else path
        snapshot = self._snapshot
        sample_interval = snapshot.settings.sample_interval if snapshot is not None else config.get_sample_interval()
        return export_artifact(path, self.database, self.weights, self.distance_type, sample_interval)

    def load(self, path: Union[str, Path, None] = None) -> BakeManifest:
        """Load a persisted snapshot and rebuild its index."""
        path = config.get_artifact_path() if path is None else path
        database, weights, manifest = load_artifact(path)
        settings = replace(config.get_bake_settings(), sample_interval=manifest.sample_interval,
                           distance_type=manifest.distance_type)
        index = build_index(database, weights, settings.distance_type, settings.leaf_size)
        self.distance_type = manifest.distance_type
        self._snapshot = Snapshot(database=database, weights=weights, index=index, settings=settings)
        return manifest

    def health(self) -> Dict[str, Any]:
        """Summary of the live snapshot."""
        snapshot = self._snapshot
        if snapshot is None:
            return {"status": "unbaked", "pose_count": 0, "dimension": self.dimension(),
                    "distance_type": self.distance_type}
        return {
            "status": "ready" if len(snapshot.database) else "empty",
            "pose_count": len(snapshot.database),
            "dimension": snapshot.database.dimension,
            "clip_count": len(snapshot.database.clip_names),
            "distance_type": snapshot.index.distance_type,
            "features": list(snapshot.database.feature_names),
        }
