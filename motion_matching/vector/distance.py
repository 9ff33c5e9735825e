"""
Weighted distance metrics shared by the spatial indexes and cost scoring.
"""

from enum import IntEnum
from typing import Optional, Sequence
import numpy as np


class DistanceType(IntEnum):
    CHEBYSHEV = 0
    MANHATTAN = 1
    SQUARED_EUCLIDEAN = 2


class WeightedDistance:
    """Per-dimension weighted metric.

    An empty (or missing) weight vector means uniform weighting.
    """

    def __init__(self, distance_type: int = DistanceType.MANHATTAN, weights: Optional[Sequence[float]] = None):
        try:
            self.distance_type = DistanceType(int(distance_type))
        except ValueError:
            raise ValueError(f"Invalid distance type {distance_type}; expected one of 0, 1, 2")
        weights = np.asarray(weights if weights is not None else [], dtype=np.float32).reshape(-1)
        self.weights = weights if len(weights) > 0 else None

    def _weights_for(self, dimension: int):
        if self.weights is None:
            return None
        if len(self.weights) != dimension:
            raise ValueError(f"Weight vector has {len(self.weights)} entries for {dimension} dimensions")
        return self.weights

    def batch(self, points: np.ndarray, query: np.ndarray) -> np.ndarray:
        """Distances from ``query`` to every row of ``points``."""
        diff = np.abs(points - query)
        if self.distance_type == DistanceType.SQUARED_EUCLIDEAN:
            diff = diff * diff
        weights = self._weights_for(points.shape[1])
        if weights is not None:
            diff = diff * weights
        if self.distance_type == DistanceType.CHEBYSHEV:
            return diff.max(axis=1) if diff.shape[1] else np.zeros(len(points), dtype=np.float32)
        return diff.sum(axis=1)

    def __call__(self, a, b) -> float:
        a = np.asarray(a, dtype=np.float32).reshape(1, -1)
        b = np.asarray(b, dtype=np.float32).reshape(-1)
        return float(self.batch(a, b)[0])

    def axis_term(self, gap: float, dim: int) -> float:
        """Contribution of a gap along one axis; a lower bound on the full distance."""
        term = gap * gap if self.distance_type == DistanceType.SQUARED_EUCLIDEAN else abs(gap)
        if self.weights is not None:
            term *= float(self.weights[dim])
        return term

    def update_bound(self, bound: float, old_gap: float, new_gap: float, dim: int) -> float:
        """Tighten a box lower bound when the gap along ``dim`` grows from old to new."""
        if self.distance_type == DistanceType.CHEBYSHEV:
            return max(bound, self.axis_term(new_gap, dim))
        return bound - self.axis_term(old_gap, dim) + self.axis_term(new_gap, dim)
