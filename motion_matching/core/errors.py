"""
Exceptions raised by the baking pipeline, the query engine and artifact persistence.
"""


class ConfigurationError(Exception):
    """Missing providers, inconsistent weight hints or invalid settings."""
    pass


class DimensionMismatchError(ValueError):
    """A vector's length does not match the database dimension."""
    pass


class ArtifactError(Exception):
    """A persisted bake artifact is corrupt or inconsistent."""
    pass


class BakeCancelled(Exception):
    """Baking was cancelled between clips."""
    pass
