"""
Engine-free animation clip model consumed by the baking pipeline.
A clip is a named, fixed-length set of keyed value tracks.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence
import numpy as np

INTERPOLATION_MODES = ("discrete", "nearest", "linear")


@dataclass
class ValueTrack:
    """Keyed values over time. Values may be scalars or fixed-size vectors."""

    times: np.ndarray
    values: np.ndarray

    def __post_init__(self):
        self.times = np.asarray(self.times, dtype=np.float64).reshape(-1)
        values = np.asarray(self.values)
        # Integer tracks (category masks) keep every bit; a float64 cast drops bits above 2**53
        if values.dtype.kind not in "iu":
            values = values.astype(np.float64)
        self.values = values
        if len(self.values) != len(self.times):
            raise ValueError(f"Track has {len(self.times)} keys but {len(self.values)} values")
        if len(self.times) == 0:
            raise ValueError("Track must contain at least one key")
        order = np.argsort(self.times, kind="stable")
        self.times = self.times[order]
        self.values = self.values[order]

    def sample(self, time: float, mode: str = "linear"):
        """Evaluate the track at ``time``.

        ``discrete`` holds the last key at or before ``time``, ``nearest`` picks the
        closest key and ``linear`` interpolates between the surrounding keys.
        Times outside the keyed range clamp to the first/last key.
        """
        if mode not in INTERPOLATION_MODES:
            raise ValueError(f"Unknown interpolation mode: {mode}")

        right = int(np.searchsorted(self.times, time, side="right"))
        if right == 0:
            return self.values[0]
        if right >= len(self.times):
            return self.values[-1]

        left = right - 1
        if mode == "discrete":
            return self.values[left]

        t0, t1 = self.times[left], self.times[right]
        if mode == "nearest":
            return self.values[left] if time - t0 <= t1 - time else self.values[right]

        alpha = (time - t0) / (t1 - t0)
        return (1.0 - alpha) * self.values[left] + alpha * self.values[right]


@dataclass
class AnimationClip:
    """A single animation clip with named value tracks."""

    name: str
    length: float
    loop: bool = False
    tracks: Dict[str, ValueTrack] = field(default_factory=dict)

    def find_track(self, track_name: str) -> Optional[ValueTrack]:
        """Return the named track or None."""
        return self.tracks.get(track_name)

    def sampled_length(self, non_loop_tail: float) -> float:
        """Length of the clip that may be sampled; non-looping clips drop their tail."""
        return self.length if self.loop else self.length - non_loop_tail

    def sample_times(self, interval: float, non_loop_tail: float) -> List[float]:
        """Timestamps ``interval, 2*interval, ...`` strictly below the sampled length.

        Timestamps are multiples of the interval rather than a running sum so
        repeated bakes produce identical values.
        """
        limit = self.sampled_length(non_loop_tail)
        times = []
        step = 1
        while step * interval < limit:
            times.append(step * interval)
            step += 1
        return times

    @classmethod
    def from_dict(cls, data: Dict) -> 'AnimationClip':
        """Create a clip from a plain dict, e.g. parsed from JSON."""
        tracks = {
            track_name: ValueTrack(times=track["times"], values=track["values"])
            for track_name, track in data.get("tracks", {}).items()
        }
        return cls(
            name=data["name"],
            length=float(data["length"]),
            loop=bool(data.get("loop", False)),
            tracks=tracks,
        )


class ClipLibrary:
    """Ordered collection of clips. A clip's position is its baked clip index."""

    def __init__(self, clips: Sequence[AnimationClip] = ()):
        self._clips: List[AnimationClip] = []
        for clip in clips:
            self.add(clip)

    def add(self, clip: AnimationClip) -> None:
        """Append a clip. Names must be unique."""
        if any(existing.name == clip.name for existing in self._clips):
            raise ValueError(f"Clip '{clip.name}' already exists in library")
        self._clips.append(clip)

    def names(self) -> List[str]:
        return [clip.name for clip in self._clips]

    def get(self, name: str) -> Optional[AnimationClip]:
        for clip in self._clips:
            if clip.name == name:
                return clip
        return None

    def __iter__(self) -> Iterator[AnimationClip]:
        return iter(self._clips)

    def __len__(self) -> int:
        return len(self._clips)

    def __getitem__(self, index: int) -> AnimationClip:
        return self._clips[index]

    @classmethod
    def from_dict(cls, data: Dict) -> 'ClipLibrary':
        return cls([AnimationClip.from_dict(clip) for clip in data.get("clips", [])])
