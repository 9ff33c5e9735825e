"""
Motion matching: baked pose database, k-d tree index and live pose queries.
"""

from .core.clips import AnimationClip, ClipLibrary, ValueTrack
from .core.config import UNFILTERED, VERSION
from .core.database import PoseDatabase, PoseRecord
from .core.errors import ArtifactError, BakeCancelled, ConfigurationError, DimensionMismatchError
from .core.query import MotionMatcher, QueryMatch
from .core.stats import DatasetStats, denormalize, normalize
from .features import IFeatureProvider, TrackFeature, VelocityFeature, register_feature
from .vector import CategoryPredicate, DistanceType, KdTree

__version__ = VERSION

__all__ = [
    'AnimationClip',
    'ClipLibrary',
    'ValueTrack',
    'UNFILTERED',
    'PoseDatabase',
    'PoseRecord',
    'ArtifactError',
    'BakeCancelled',
    'ConfigurationError',
    'DimensionMismatchError',
    'MotionMatcher',
    'QueryMatch',
    'DatasetStats',
    'normalize',
    'denormalize',
    'IFeatureProvider',
    'TrackFeature',
    'VelocityFeature',
    'register_feature',
    'CategoryPredicate',
    'DistanceType',
    'KdTree'
]
