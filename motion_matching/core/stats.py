"""
Per-dimension dataset statistics and z-score normalization.
Mean and variance are accumulated in one streaming pass with O(D) memory.
"""

from dataclasses import dataclass
from typing import List, Tuple
import numpy as np

VARIANCE_EPSILON = float(np.finfo(np.float32).eps)
DENSITY_CACHE_SIZE = 15


@dataclass
class DatasetStats:
    """Normalization statistics of one bake."""

    means: np.ndarray
    """Per-dimension arithmetic mean"""

    variances: np.ndarray
    """Per-dimension population variance, floored to 1.0 when degenerate"""

    densities: np.ndarray
    """Per-dimension histogram, shape (D, bins, 2) of (lower edge, relative frequency)"""

    count: int = 0
    """Number of samples the statistics were computed from"""

    @property
    def dimension(self) -> int:
        return int(len(self.means))

    def histogram(self, dim: int) -> List[Tuple[float, float]]:
        """Density histogram of one dimension as (value, frequency) pairs."""
        return [(float(edge), float(freq)) for edge, freq in self.densities[dim]]

    @classmethod
    def empty(cls, dimension: int = 0, bins: int = 10) -> 'DatasetStats':
        return cls(
            means=np.zeros(dimension, dtype=np.float32),
            variances=np.ones(dimension, dtype=np.float32),
            densities=np.zeros((dimension, bins + 2, 2), dtype=np.float32),
            count=0,
        )


class StatsAccumulator:
    """Streaming accumulator for mean, variance and a density histogram.

    Mean and variance use Welford's update. The histogram follows a cached-range
    scheme: the first ``cache_size`` samples fix the bin range, later samples land
    in the regular bins or in one underflow and one overflow bin, so memory stays
    bounded by O(D * cache_size).
    """

    def __init__(self, dimension: int, num_bins: int = 10, cache_size: int = DENSITY_CACHE_SIZE):
        if num_bins < 1:
            raise ValueError("num_bins must be >= 1")
        self.dimension = dimension
        self.num_bins = num_bins
        self.cache_size = max(cache_size, 1)
        self.count = 0
        self._mean = np.zeros(dimension, dtype=np.float64)
        self._m2 = np.zeros(dimension, dtype=np.float64)
        self._cache: List[np.ndarray] = []
        self._edges = None
        self._bin_size = None
        self._minimum = None
        self._maximum = None
        self._counts = np.zeros((dimension, num_bins + 2), dtype=np.int64)

    def add(self, sample) -> None:
        """Accumulate one raw sample of length ``dimension``."""
        x = np.asarray(sample, dtype=np.float64).reshape(-1)
        if len(x) != self.dimension:
            raise ValueError(f"Sample has {len(x)} values, expected {self.dimension}")

        self.count += 1
        delta = x - self._mean
        self._mean += delta / self.count
        self._m2 += delta * (x - self._mean)

        if self._edges is None:
            self._cache.append(x)
            if len(self._cache) >= self.cache_size:
                self._fix_bins()
        else:
            self._bin(x)

    def _fix_bins(self) -> None:
        cached = np.vstack(self._cache)
        minimum = cached.min(axis=0)
        maximum = cached.max(axis=0)
        self._bin_size = (maximum - minimum) / self.num_bins
        # Bin i (1..num_bins) starts at minimum + (i - 1) * bin_size; bin 0 is underflow
        steps = np.arange(-1, self.num_bins + 1, dtype=np.float64)
        self._edges = minimum[:, None] + steps[None, :] * self._bin_size[:, None]
        self._minimum = minimum
        self._maximum = maximum
        for x in self._cache:
            self._bin(x)
        self._cache = []

    def _bin(self, x: np.ndarray) -> None:
        below = x < self._minimum
        above = x >= self._maximum
        safe_size = np.where(self._bin_size > 0, self._bin_size, 1.0)
        index = np.floor((x - self._minimum) / safe_size).astype(np.int64) + 1
        index = np.clip(index, 1, self.num_bins)
        index = np.where(below, 0, np.where(above, self.num_bins + 1, index))
        # A constant dimension puts everything into the first regular bin
        index = np.where(self._bin_size > 0, index, 1)
        self._counts[np.arange(self.dimension), index] += 1

    def mean(self) -> np.ndarray:
        return self._mean.copy()

    def variance(self) -> np.ndarray:
        if self.count == 0:
            return np.zeros(self.dimension, dtype=np.float64)
        return self._m2 / self.count

    def density(self) -> np.ndarray:
        """Histogram as (D, num_bins + 2, 2) of (lower edge, relative frequency)."""
        if self._edges is None and self._cache:
            self._fix_bins()
        result = np.zeros((self.dimension, self.num_bins + 2, 2), dtype=np.float64)
        if self._edges is None or self.count == 0:
            return result
        result[:, :, 0] = self._edges
        result[:, :, 1] = self._counts / float(self.count)
        return result

    def finalize(self) -> DatasetStats:
        """Produce the statistics, applying the variance floor."""
        variances = floor_variances(self.variance())
        return DatasetStats(
            means=self.mean().astype(np.float32),
            variances=variances.astype(np.float32),
            densities=self.density().astype(np.float32),
            count=self.count,
        )


def floor_variances(variances: np.ndarray) -> np.ndarray:
    """Clamp degenerate (<= float32 epsilon) variances to 1.0."""
    floored = np.array(variances, dtype=np.float64, copy=True)
    floored[floored <= VARIANCE_EPSILON] = 1.0
    return floored


def compute_stats(samples: np.ndarray, num_bins: int = 10) -> DatasetStats:
    """Run the streaming accumulator over an (N, D) sample matrix."""
    samples = np.asarray(samples)
    dimension = samples.shape[1] if samples.ndim == 2 else 0
    accumulator = StatsAccumulator(dimension, num_bins=num_bins)
    for sample in samples:
        accumulator.add(sample)
    return accumulator.finalize()


def normalize(raw: np.ndarray, stats: DatasetStats) -> np.ndarray:
    """(raw - mean) / variance, per dimension. Works on vectors and matrices."""
    raw = np.asarray(raw, dtype=np.float32)
    return ((raw - stats.means) / stats.variances).astype(np.float32)


def denormalize(normalized: np.ndarray, stats: DatasetStats) -> np.ndarray:
    """Inverse of normalize: x * variance + mean."""
    normalized = np.asarray(normalized, dtype=np.float32)
    return (normalized * stats.variances + stats.means).astype(np.float32)
