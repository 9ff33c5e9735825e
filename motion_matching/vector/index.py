"""
Spatial index interface over normalized pose rows, plus a linear-scan implementation.
"""

import copy
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence
import numpy as np

from .distance import DistanceType, WeightedDistance
from .types import Neighbor
from ..core.errors import DimensionMismatchError

RowPredicate = Callable[[int, int], bool]


class ISpatialIndex(ABC):
    """Abstract interface for k-nearest-neighbour search over pose rows."""

    def __init__(self, distance_type: int = DistanceType.MANHATTAN, weights: Optional[Sequence[float]] = None):
        self.distance = WeightedDistance(distance_type, weights)
        self._points = np.zeros((0, 0), dtype=np.float32)
        self._rows = np.zeros(0, dtype=np.int64)
        self._categories = np.zeros(0, dtype=np.uint64)
        self._dimension = None

    @abstractmethod
    def build(self, points: np.ndarray, categories: Optional[np.ndarray] = None,
              rows: Optional[np.ndarray] = None) -> None:
        """Build the index from an (N, D) matrix. Replaces any previous content."""
        pass

    @abstractmethod
    def k_nearest(self, query, k: int = 1, predicate: Optional[RowPredicate] = None) -> List[Neighbor]:
        """Return up to ``k`` (row, distance) pairs by ascending distance."""
        pass

    def with_distance(self, distance_type: int, weights: Optional[Sequence[float]] = None) -> 'ISpatialIndex':
        """
        Return an index over the same rows using another metric.

        The built structure is shared, not rebuilt; this index is left unchanged.
        """
        if weights is not None and len(weights) and self._dimension is not None and len(weights) != self._dimension:
            raise DimensionMismatchError(
                f"Weight vector has {len(weights)} entries for dimension {self._dimension}"
            )
        index = copy.copy(self)
        index.distance = WeightedDistance(distance_type, weights)
        return index

    @property
    def distance_type(self) -> int:
        return int(self.distance.distance_type)

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    def __len__(self) -> int:
        return len(self._rows)

    def is_built(self) -> bool:
        return self._dimension is not None

    def _store(self, points, categories, rows) -> None:
        # The index owns copies; later changes to the caller's arrays do not leak in
        points = np.array(points, dtype=np.float32, copy=True)
        if points.ndim != 2:
            raise ValueError(f"Expected an (N, D) matrix, got shape {points.shape}")
        count = len(points)
        if categories is None:
            categories = np.zeros(count, dtype=np.uint64)
        if rows is None:
            rows = np.arange(count, dtype=np.int64)
        categories = np.array(categories, dtype=np.uint64, copy=True).reshape(-1)
        rows = np.array(rows, dtype=np.int64, copy=True).reshape(-1)
        if len(categories) != count or len(rows) != count:
            raise ValueError("points, categories and rows must have the same length")
        weights = self.distance.weights
        if weights is not None and len(weights) != points.shape[1]:
            raise DimensionMismatchError(
                f"Weight vector has {len(weights)} entries for dimension {points.shape[1]}"
            )
        self._points = points
        self._categories = categories
        self._rows = rows
        self._dimension = points.shape[1]
        self._freeze()

    def _freeze(self) -> None:
        for array in (self._points, self._categories, self._rows):
            array.setflags(write=False)

    def _prepare_query(self, query) -> Optional[np.ndarray]:
        """Validated float32 query, or None when there is nothing to search."""
        if not self.is_built() or len(self._rows) == 0:
            return None
        query = np.asarray(query, dtype=np.float32).reshape(-1)
        if len(query) != self._dimension:
            raise DimensionMismatchError(
                f"Query has {len(query)} dimensions, index has {self._dimension}"
            )
        return query


class BruteForceIndex(ISpatialIndex):
    """Linear scan over every row. Exact; used as a reference for the k-d tree."""

    def build(self, points: np.ndarray, categories: Optional[np.ndarray] = None,
              rows: Optional[np.ndarray] = None) -> None:
        self._store(points, categories, rows)

    def k_nearest(self, query, k: int = 1, predicate: Optional[RowPredicate] = None) -> List[Neighbor]:
        query = self._prepare_query(query)
        if query is None or k <= 0:
            return []

        distances = self.distance.batch(self._points, query)
        order = np.argsort(distances, kind="stable")
        results = []
        for position in order:
            row = int(self._rows[position])
            if predicate is not None and not predicate(row, int(self._categories[position])):
                continue
            results.append(Neighbor(row, float(distances[position])))
            if len(results) == k:
                break
        return results
