"""
Export and load of the baked artifact.
Arrays go into one .npz file together with a JSON manifest validated by pydantic.
"""

import hashlib
import json
from datetime import datetime
from pathlib import Path
from typing import List, Tuple, Union

import numpy as np
from pydantic import BaseModel, ValidationError, field_validator

from .database import PoseDatabase
from .errors import ArtifactError
from .stats import DatasetStats
from ..util.logging import logger

FORMAT_VERSION = "1.0"

ARRAY_KEYS = ("motion_data", "means", "variances", "densities", "weights",
              "clip_index", "timestamps", "categories")


class BakeManifest(BaseModel):
    format_version: str = FORMAT_VERSION
    dimension: int
    pose_count: int
    distance_type: int
    clip_names: List[str]
    feature_names: List[str] = []
    sample_interval: float
    created_at: datetime
    checksum: str

    @field_validator('dimension', 'pose_count')
    @classmethod
    def must_not_be_negative(cls, v):
        if v < 0:
            raise ValueError('must be >= 0')
        return v

    @field_validator('distance_type')
    @classmethod
    def distance_type_must_be_valid(cls, v):
        valid_types = [0, 1, 2]
        if v not in valid_types:
            raise ValueError(f'distance_type must be one of: {valid_types}')
        return v

    @field_validator('format_version')
    @classmethod
    def format_must_be_supported(cls, v):
        if v.split(".")[0] != FORMAT_VERSION.split(".")[0]:
            raise ValueError(f'unsupported format version {v}')
        return v


def _calculate_checksum(motion_data: np.ndarray) -> str:
    """SHA256 over the normalized matrix bytes."""
    return hashlib.sha256(np.ascontiguousarray(motion_data, dtype=np.float32).tobytes()).hexdigest()


def export_artifact(path: Union[str, Path], database: PoseDatabase, weights: np.ndarray,
                    distance_type: int, sample_interval: float) -> BakeManifest:
    """
    Write the baked database to ``path``.

    The file is written to a temporary sibling and renamed, so a failed export
    never leaves a half-written artifact behind.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    manifest = BakeManifest(
        dimension=database.dimension,
        pose_count=len(database),
        distance_type=int(distance_type),
        clip_names=database.clip_names,
        feature_names=database.feature_names,
        sample_interval=float(sample_interval),
        created_at=datetime.now(),
        checksum=_calculate_checksum(database.motion_data),
    )

    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "wb") as handle:
        np.savez(
            handle,
            manifest=np.array(manifest.model_dump_json()),
            motion_data=database.motion_data,
            means=database.stats.means,
            variances=database.stats.variances,
            densities=database.stats.densities,
            weights=np.asarray(weights, dtype=np.float32),
            clip_index=database.clip_index,
            timestamps=database.timestamps,
            categories=database.categories,
        )
    tmp_path.replace(path)

    logger.log_operation("artifact.export", "success", {
        "path": str(path),
        "pose_count": manifest.pose_count,
        "dimension": manifest.dimension,
    })
    return manifest


def load_artifact(path: Union[str, Path]) -> Tuple[PoseDatabase, np.ndarray, BakeManifest]:
    """
    Read an artifact written by export_artifact.

    Returns:
        Tuple of (database, weights, manifest)

    Raises:
        ArtifactError: missing file, missing arrays, bad manifest or checksum mismatch
    """
    path = Path(path)
    if not path.exists():
        raise ArtifactError(f"Artifact not found: {path}")

    try:
        with np.load(path, allow_pickle=False) as archive:
            missing = [key for key in ("manifest",) + ARRAY_KEYS if key not in archive.files]
            if missing:
                raise ArtifactError(f"Artifact {path} is missing arrays: {missing}")
            manifest = BakeManifest.model_validate(json.loads(str(archive["manifest"])))
            arrays = {key: archive[key] for key in ARRAY_KEYS}
    except ValidationError as e:
        raise ArtifactError(f"Invalid artifact manifest: {e}") from e
    except (OSError, ValueError) as e:
        raise ArtifactError(f"Could not read artifact {path}: {e}") from e

    try:
        motion_data = arrays["motion_data"].reshape(manifest.pose_count, manifest.dimension)
    except ValueError as e:
        raise ArtifactError(f"Motion data does not match manifest shape: {e}") from e
    if _calculate_checksum(motion_data) != manifest.checksum:
        raise ArtifactError("Artifact checksum mismatch")

    weights = arrays["weights"]
    if len(weights) not in (0, manifest.dimension):
        raise ArtifactError(f"Weight vector has {len(weights)} entries for dimension {manifest.dimension}")

    stats = DatasetStats(
        means=arrays["means"],
        variances=arrays["variances"],
        densities=arrays["densities"],
        count=manifest.pose_count,
    )
    try:
        database = PoseDatabase(
            motion_data,
            arrays["clip_index"],
            arrays["timestamps"],
            [int(c) for c in arrays["categories"]],
            manifest.clip_names,
            stats=stats,
            feature_names=manifest.feature_names,
        )
    except ValueError as e:
        raise ArtifactError(f"Inconsistent artifact arrays: {e}") from e

    logger.log_operation("artifact.load", "success", {
        "path": str(path),
        "pose_count": len(database),
        "dimension": database.dimension,
    })
    return database, weights, manifest
