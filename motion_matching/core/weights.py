"""
Per-dimension weight computation from feature provider hints.
"""

from typing import Sequence
import numpy as np

from .errors import ConfigurationError
from ..util.logging import logger


def compute_weights(providers: Sequence) -> np.ndarray:
    """
    Derive the weight vector used by the index metric and cost scoring.

    Each hint is made absolute, divided by the sum of all hints and then by its
    provider's dimension count, so providers with many dimensions do not dominate.
    If the smallest weight lies strictly between 0 and 1 the whole vector is
    rescaled so that weight becomes 1.

    Args:
        providers: Feature providers in query order

    Returns:
        float32 array with one weight per feature dimension
    """
    hints = []
    dimensions = []
    for provider in providers:
        hint = np.asarray(provider.weight_hint(), dtype=np.float64).reshape(-1)
        dimension = int(provider.dimension())
        if len(hint) != dimension:
            raise ConfigurationError(
                f"Feature '{getattr(provider, 'name', type(provider).__name__)}' returned "
                f"{len(hint)} weight hints for {dimension} dimensions"
            )
        hints.append(hint)
        dimensions.append(dimension)

    if not hints or sum(dimensions) == 0:
        return np.zeros(0, dtype=np.float32)

    hint_sum = float(np.sum(np.abs(np.concatenate(hints))))
    if hint_sum == 0.0:
        logger.log_data_quality("weight_hints_sum_to_zero", {"dimension": sum(dimensions)})
        return np.ones(sum(dimensions), dtype=np.float32)

    weights = np.concatenate([
        np.abs(hint) / hint_sum / dimension
        for hint, dimension in zip(hints, dimensions) if dimension > 0
    ])

    smallest = float(weights.min())
    if 0.0 < smallest < 1.0:
        weights = weights * (1.0 / smallest)

    logger.log_operation("weights.recalculate", "success", {
        "dimension": len(weights),
        "hint_sum": hint_sum,
        "min": float(weights.min()),
        "max": float(weights.max()),
    })
    return weights.astype(np.float32)
