#!/usr/bin/env python3
"""
Bake Utility
Bakes a JSON clip library into a pose database artifact and verifies it with a search.

The library file holds the clips and, optionally, the feature setup:

    {
      "features": [{"type": "track", "track": "root_velocity", "dimension": 3}],
      "category_tracks": ["category"],
      "clips": [{"name": "walk", "length": 1.2, "loop": true,
                 "tracks": {"root_velocity": {"times": [...], "values": [...]}}}]
    }
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from motion_matching.core.clips import ClipLibrary
from motion_matching.core.config import get_artifact_path, get_distance_type
from motion_matching.core.query import MotionMatcher
from motion_matching.features import registry


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Bake a clip library into a motion matching database")
    parser.add_argument(
        "library",
        help="Path to the JSON clip library"
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Artifact path (default: MM_ARTIFACT_PATH or ./data/motion_db.npz)"
    )
    parser.add_argument(
        "--distance-type",
        type=int,
        choices=[0, 1, 2],
        default=None,
        help="0 = Chebyshev, 1 = Manhattan, 2 = SquaredEuclidean (default: MM_DISTANCE_TYPE)"
    )
    parser.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip the verification search after baking"
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Bake a clip library and export the artifact."""
    args = parse_args(argv)

    library_path = Path(args.library)
    if not library_path.exists():
        print(f"ERROR: Library not found: {library_path}")
        sys.exit(1)

    try:
        data = json.loads(library_path.read_text())
    except json.JSONDecodeError as e:
        print(f"ERROR: Library is not valid JSON: {e}")
        sys.exit(1)

    feature_specs = data.get("features", [])
    if not feature_specs:
        print("ERROR: Library defines no features")
        sys.exit(1)

    try:
        providers = registry.create_all(feature_specs)
    except (KeyError, TypeError, ValueError) as e:
        print(f"ERROR: Invalid feature definition: {e}")
        sys.exit(1)

    clips = ClipLibrary.from_dict(data)
    print(f"Loaded {len(clips)} clips and {len(providers)} features")

    distance_type = args.distance_type if args.distance_type is not None else get_distance_type()
    matcher = MotionMatcher(
        providers=providers,
        context={},
        clips=clips,
        distance_type=distance_type,
        category_track_names=data.get("category_tracks"),
    )

    print("Starting bake...")
    if not matcher.bake():
        print("ERROR: Bake failed, see log for details")
        sys.exit(1)

    database = matcher.database
    print(f"✓ Baked {len(database)} poses with {database.dimension} dimensions")

    output = Path(args.output) if args.output else get_artifact_path()
    manifest = matcher.export(output)
    print(f"✓ Exported artifact to {output} (checksum {manifest.checksum[:12]})")

    if not args.no_verify:
        if len(database):
            results = matcher.search_raw(database.motion_data[0], k=1)
            print(f"✓ Verification search returned {len(results)} results")
        else:
            print("✓ No poses to verify (empty database)")

    print("Bake complete!")


if __name__ == "__main__":
    main()
