"""
Feature providers: the pluggable extractors that produce pose feature slices.
"""

from .provider import IFeatureProvider
from .registry import FeatureRegistry, registry, register_feature
from .track import TrackFeature, VelocityFeature

__all__ = [
    'IFeatureProvider',
    'FeatureRegistry',
    'registry',
    'register_feature',
    'TrackFeature',
    'VelocityFeature'
]
