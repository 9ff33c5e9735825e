"""
Feature provider interface.
A provider turns a clip at a time, or a live runtime state, into a fixed-size numeric slice.
"""

from abc import ABC, abstractmethod
from typing import Any, Sequence
import numpy as np


class IFeatureProvider(ABC):
    """Abstract interface for feature providers."""

    name: str = "feature"

    @abstractmethod
    def dimension(self) -> int:
        """Declared width of the slice; fixed for the provider's lifetime."""
        pass

    @abstractmethod
    def setup(self, context: Any) -> None:
        """Bind to a character/skeleton-like context before any extraction."""
        pass

    def prepare_for_clip(self, clip) -> None:
        """Optional per-clip setup before repeated sampling."""
        pass

    @abstractmethod
    def sample_at(self, clip, time: float) -> np.ndarray:
        """Offline extraction of the slice for ``clip`` at ``time``."""
        pass

    @abstractmethod
    def sample_live(self, runtime_state: Any, dt: float) -> np.ndarray:
        """Online extraction of the slice from the live runtime state."""
        pass

    @abstractmethod
    def weight_hint(self) -> Sequence[float]:
        """Per-dimension importance hints, ``dimension()`` entries."""
        pass

    def per_tick_update(self, dt: float) -> None:
        """Optional stateful update called once per simulation step."""
        pass
