"""
Spatial indexes over normalized pose rows.
"""

# Package initialization for vector module
from .index import ISpatialIndex, BruteForceIndex
from .kdtree import KdTree
from .distance import DistanceType, WeightedDistance
from .types import Neighbor, CategoryPredicate

__all__ = [
    'ISpatialIndex',
    'BruteForceIndex',
    'KdTree',
    'DistanceType',
    'WeightedDistance',
    'Neighbor',
    'CategoryPredicate'
]
