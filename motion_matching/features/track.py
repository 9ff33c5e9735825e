"""
Track-backed feature providers.
Offline they read named value tracks from clips; online they read the same keys from a blackboard.
"""

from typing import Any, Mapping, Optional, Sequence, Union
import numpy as np

from .provider import IFeatureProvider
from .registry import register_feature

# Finite-difference step used when baking velocities
VELOCITY_TIME_DELTA = 1.0 / 30.0


def _as_slice(value) -> np.ndarray:
    return np.asarray(value, dtype=np.float32).reshape(-1)


def _expand_weights(weight: Union[float, Sequence[float]], dimension: int):
    if np.isscalar(weight):
        return [float(weight)] * dimension
    weights = [float(w) for w in weight]
    if len(weights) != dimension:
        raise ValueError(f"Expected {dimension} weights, got {len(weights)}")
    return weights


@register_feature("track")
class TrackFeature(IFeatureProvider):
    """Samples a value track (scalar or vector) at the requested time.

    At query time the value is read from the runtime state under ``blackboard_key``
    (defaults to the track name).
    """

    def __init__(self, track: str, dimension: int, weight: Union[float, Sequence[float]] = 1.0,
                 blackboard_key: Optional[str] = None, interpolation: str = "linear",
                 name: Optional[str] = None):
        if dimension < 0:
            raise ValueError("dimension must be >= 0")
        self.track = track
        self._dimension = int(dimension)
        self._weights = _expand_weights(weight, self._dimension)
        self.blackboard_key = blackboard_key or track
        self.interpolation = interpolation
        self.name = name or track
        self.context = None

    def dimension(self) -> int:
        return self._dimension

    def setup(self, context: Any) -> None:
        self.context = context

    def sample_at(self, clip, time: float) -> np.ndarray:
        value_track = clip.find_track(self.track)
        if value_track is None:
            # Empty slice; the collector reports the mismatch
            return np.zeros(0, dtype=np.float32)
        return _as_slice(value_track.sample(time, self.interpolation))

    def sample_live(self, runtime_state: Mapping[str, Any], dt: float) -> np.ndarray:
        if runtime_state is None or self.blackboard_key not in runtime_state:
            return np.zeros(0, dtype=np.float32)
        return _as_slice(runtime_state[self.blackboard_key])

    def weight_hint(self) -> Sequence[float]:
        return list(self._weights)


@register_feature("velocity")
class VelocityFeature(TrackFeature):
    """Velocity of a positional track.

    Baked as a backward finite difference over ``VELOCITY_TIME_DELTA``. Live, the
    provider reads the position from its setup context on every tick and
    differentiates it with the tick's ``dt``.
    """

    def __init__(self, track: str, dimension: int, weight: Union[float, Sequence[float]] = 1.0,
                 blackboard_key: Optional[str] = None, name: Optional[str] = None):
        super().__init__(track, dimension, weight=weight, blackboard_key=blackboard_key,
                         interpolation="linear", name=name or f"{track}_velocity")
        self._previous: Optional[np.ndarray] = None
        self._velocity = np.zeros(self._dimension, dtype=np.float32)

    def setup(self, context: Any) -> None:
        super().setup(context)
        self._previous = None
        self._velocity = np.zeros(self._dimension, dtype=np.float32)

    def sample_at(self, clip, time: float) -> np.ndarray:
        value_track = clip.find_track(self.track)
        if value_track is None:
            return np.zeros(0, dtype=np.float32)
        current = value_track.sample(time, "linear")
        previous = value_track.sample(max(time - VELOCITY_TIME_DELTA, 0.0), "linear")
        return _as_slice((np.asarray(current) - np.asarray(previous)) / VELOCITY_TIME_DELTA)

    def per_tick_update(self, dt: float) -> None:
        if self.context is None or self.blackboard_key not in self.context or dt <= 0:
            return
        current = _as_slice(self.context[self.blackboard_key])
        if self._previous is not None and len(self._previous) == len(current):
            self._velocity = (current - self._previous) / np.float32(dt)
        self._previous = current

    def sample_live(self, runtime_state: Mapping[str, Any], dt: float) -> np.ndarray:
        # An explicit velocity on the blackboard wins over the tracked one
        velocity_key = f"{self.blackboard_key}_velocity"
        if runtime_state is not None and velocity_key in runtime_state:
            return _as_slice(runtime_state[velocity_key])
        return self._velocity.copy()
