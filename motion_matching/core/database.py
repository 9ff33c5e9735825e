"""
Pose database: the normalized sample matrix plus parallel provenance arrays.
Baked once, read-only afterwards, replaced wholesale on rebake.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence
import numpy as np

from .stats import DatasetStats


@dataclass(frozen=True)
class PoseRecord:
    """One row of the pose database."""

    vector: np.ndarray
    clip_index: int
    timestamp: float
    category: int
    row: int


class PoseDatabase:
    """
    Normalized feature matrix with per-row provenance.

    Row ``i`` of ``motion_data``, ``clip_index``, ``timestamps`` and ``categories``
    describes the same pose. Arrays are frozen (non-writeable) on construction.
    """

    def __init__(self, motion_data: np.ndarray, clip_index: Sequence[int], timestamps: Sequence[float],
                 categories: Sequence[int], clip_names: Sequence[str], stats: Optional[DatasetStats] = None,
                 feature_names: Sequence[str] = ()):
        motion_data = np.array(motion_data, dtype=np.float32, copy=True)
        if motion_data.ndim != 2:
            raise ValueError(f"motion_data must be (N, D), got shape {motion_data.shape}")

        self.motion_data = motion_data
        self.clip_index = np.array(clip_index, dtype=np.int32, copy=True).reshape(-1)
        self.timestamps = np.array(timestamps, dtype=np.float32, copy=True).reshape(-1)
        self.categories = np.array([int(c) & 0xFFFFFFFFFFFFFFFF for c in categories], dtype=np.uint64)
        self.clip_names = list(clip_names)
        self.feature_names = list(feature_names)
        self.stats = stats if stats is not None else DatasetStats.empty(motion_data.shape[1])

        count = len(self.motion_data)
        if not (len(self.clip_index) == len(self.timestamps) == len(self.categories) == count):
            raise ValueError(
                f"Parallel arrays differ in length: data={count}, clip_index={len(self.clip_index)}, "
                f"timestamps={len(self.timestamps)}, categories={len(self.categories)}"
            )
        if self.stats.dimension != self.dimension:
            raise ValueError(f"Stats dimension {self.stats.dimension} != data dimension {self.dimension}")

        for array in (self.motion_data, self.clip_index, self.timestamps, self.categories):
            array.setflags(write=False)

    @classmethod
    def empty(cls, dimension: int = 0, clip_names: Sequence[str] = ()) -> 'PoseDatabase':
        return cls(np.zeros((0, dimension), dtype=np.float32), [], [], [], clip_names)

    @property
    def dimension(self) -> int:
        return int(self.motion_data.shape[1])

    def __len__(self) -> int:
        return int(self.motion_data.shape[0])

    def is_empty(self) -> bool:
        return len(self) == 0

    def record(self, row: int) -> PoseRecord:
        """Return the record at ``row``; raises IndexError when out of range."""
        if not 0 <= row < len(self):
            raise IndexError(f"Row {row} out of range for database of {len(self)} poses")
        return PoseRecord(
            vector=self.motion_data[row],
            clip_index=int(self.clip_index[row]),
            timestamp=float(self.timestamps[row]),
            category=int(self.categories[row]),
            row=row,
        )

    def __iter__(self) -> Iterator[PoseRecord]:
        for row in range(len(self)):
            yield self.record(row)

    def clip_name(self, row: int) -> Optional[str]:
        """Clip name for ``row``, or None when the row or its clip index is stale."""
        if not 0 <= row < len(self):
            return None
        clip = int(self.clip_index[row])
        if not 0 <= clip < len(self.clip_names):
            return None
        return self.clip_names[clip]

    def rows_for_clip(self, clip_name: str) -> List[int]:
        if clip_name not in self.clip_names:
            return []
        clip = self.clip_names.index(clip_name)
        return [int(row) for row in np.flatnonzero(self.clip_index == clip)]
