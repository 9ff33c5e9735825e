"""
Baking and query configuration.
Values are read from the environment at import; getters re-read it so tests can override.
"""

import os
from dataclasses import dataclass
from pathlib import Path

# Sampling of animation clips during baking
SAMPLE_INTERVAL = float(os.getenv("MM_SAMPLE_INTERVAL", "0.1"))
NON_LOOP_TAIL = float(os.getenv("MM_NON_LOOP_TAIL", "0.2"))  # seconds excluded at the end of non-looping clips

# Time step handed to providers that need a delta at query time
QUERY_DT = float(os.getenv("MM_QUERY_DT", str(1.0 / 60.0)))

# 0 = Chebyshev, 1 = Manhattan, 2 = SquaredEuclidean
DISTANCE_TYPE = int(os.getenv("MM_DISTANCE_TYPE", "1"))

DENSITY_BINS = int(os.getenv("MM_DENSITY_BINS", "10"))
DISCARD_BIT = int(os.getenv("MM_DISCARD_BIT", "31"))
LEAF_SIZE = int(os.getenv("MM_LEAF_SIZE", "8"))

ARTIFACT_PATH = os.getenv("MM_ARTIFACT_PATH", "./data/motion_db.npz")
DEBUG = os.getenv("MM_DEBUG", "false").lower() == "true"

# Category track names searched in each clip, first match wins
CATEGORY_TRACK_NAMES = [
    name.strip() for name in os.getenv("MM_CATEGORY_TRACKS", "category").split(",") if name.strip()
]

# Default include mask; means "no category filtering"
UNFILTERED = 2 ** 63 - 1

VERSION = "1.0.0"

VALID_DISTANCE_TYPES = (0, 1, 2)


@dataclass(frozen=True)
class BakeSettings:
    """Snapshot of the settings used by one bake."""
    sample_interval: float = SAMPLE_INTERVAL
    non_loop_tail: float = NON_LOOP_TAIL
    density_bins: int = DENSITY_BINS
    discard_bit: int = DISCARD_BIT
    distance_type: int = DISTANCE_TYPE
    leaf_size: int = LEAF_SIZE


def get_bake_settings() -> BakeSettings:
    """Build bake settings from the current environment."""
    return BakeSettings(
        sample_interval=get_sample_interval(),
        non_loop_tail=float(os.getenv("MM_NON_LOOP_TAIL", str(NON_LOOP_TAIL))),
        density_bins=int(os.getenv("MM_DENSITY_BINS", str(DENSITY_BINS))),
        discard_bit=int(os.getenv("MM_DISCARD_BIT", str(DISCARD_BIT))),
        distance_type=get_distance_type(),
        leaf_size=int(os.getenv("MM_LEAF_SIZE", str(LEAF_SIZE))),
    )


def get_sample_interval() -> float:
    """Get the baking sample interval in seconds."""
    return float(os.getenv("MM_SAMPLE_INTERVAL", str(SAMPLE_INTERVAL)))


def get_query_dt() -> float:
    """Get the per-tick time budget handed to live providers."""
    return float(os.getenv("MM_QUERY_DT", str(QUERY_DT)))


def get_distance_type() -> int:
    """Get the configured distance metric selector."""
    return int(os.getenv("MM_DISTANCE_TYPE", str(DISTANCE_TYPE)))


def get_category_track_names():
    """Get the category track names searched in each clip."""
    raw = os.getenv("MM_CATEGORY_TRACKS")
    if raw is None:
        return list(CATEGORY_TRACK_NAMES)
    return [name.strip() for name in raw.split(",") if name.strip()]


def get_artifact_path() -> Path:
    """Get the default location of the baked artifact."""
    return Path(os.getenv("MM_ARTIFACT_PATH", ARTIFACT_PATH))


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("MM_DEBUG", "false").lower() == "true"


def validate_bake_config(settings: BakeSettings = None):
    """Validate bake configuration and return any issues."""
    settings = settings or get_bake_settings()
    issues = []

    if settings.sample_interval <= 0:
        issues.append("MM_SAMPLE_INTERVAL must be > 0")

    if settings.non_loop_tail < 0:
        issues.append("MM_NON_LOOP_TAIL must be >= 0")

    if settings.density_bins < 10:
        issues.append("MM_DENSITY_BINS must be >= 10")

    if not 0 <= settings.discard_bit < 64:
        issues.append(f"Invalid MM_DISCARD_BIT: {settings.discard_bit}")

    if settings.distance_type not in VALID_DISTANCE_TYPES:
        issues.append(f"Invalid MM_DISTANCE_TYPE: {settings.distance_type}")

    if settings.leaf_size < 1:
        issues.append("MM_LEAF_SIZE must be >= 1")

    return issues
