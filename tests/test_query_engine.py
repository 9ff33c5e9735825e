"""
Test cases for the query engine: baking into snapshots and live pose queries.
"""

import pytest
import numpy as np
from unittest.mock import MagicMock
from motion_matching.core.baking import build_index
from motion_matching.core.clips import AnimationClip, ClipLibrary, ValueTrack
from motion_matching.core.config import UNFILTERED, BakeSettings
from motion_matching.core.database import PoseDatabase
from motion_matching.core.errors import DimensionMismatchError
from motion_matching.core.query import MotionMatcher, QueryMatch, Snapshot, compute_cost
from motion_matching.features import TrackFeature, VelocityFeature

WALK, JUMP = 0b01, 0b10


@pytest.fixture(autouse=True)
def default_environment(monkeypatch):
    """Run every test with the default bake configuration."""
    for name in ("MM_SAMPLE_INTERVAL", "MM_NON_LOOP_TAIL", "MM_DISCARD_BIT", "MM_DENSITY_BINS",
                 "MM_LEAF_SIZE", "MM_DISTANCE_TYPE", "MM_QUERY_DT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def library():
    walk = AnimationClip("walk", 1.0, tracks={
        "speed": ValueTrack([0.0, 1.0], [0.0, 1.0]),
        "category": ValueTrack([0.0], [WALK]),
    })
    jump = AnimationClip("jump", 1.0, tracks={
        "speed": ValueTrack([0.0, 1.0], [2.0, 3.0]),
        "category": ValueTrack([0.0], [JUMP]),
    })
    return ClipLibrary([walk, jump])


@pytest.fixture
def matcher(library):
    matcher = MotionMatcher(
        providers=[TrackFeature("speed", 1)],
        context={},
        clips=library,
        blackboard={"speed": 0.3},
        distance_type=1,
        category_track_names=["category"],
    )
    assert matcher.bake()
    return matcher


def three_pose_snapshot(clip_index=(0, 1, 2)):
    """Snapshot over the points [0,0], [1,0], [5,5] with uniform weights."""
    database = PoseDatabase(
        np.array([[0.0, 0.0], [1.0, 0.0], [5.0, 5.0]], dtype=np.float32),
        list(clip_index),
        [0.1, 0.2, 0.3],
        [1, 2, 4],
        ["a", "b", "c"],
    )
    weights = np.ones(2, dtype=np.float32)
    return Snapshot(database=database, weights=weights, index=build_index(database, weights, 1),
                    settings=BakeSettings())


def test_unbaked_matcher_returns_nothing():
    matcher = MotionMatcher(providers=[TrackFeature("speed", 1)], context={})

    assert matcher.query_pose() == []
    assert matcher.search_raw([0.0]) == []
    assert len(matcher.database) == 0
    assert matcher.health()["status"] == "unbaked"


def test_query_pose_finds_closest_pose(matcher):
    """Live speed 0.3 matches the walk clip at 0.3 s."""
    results = matcher.query_pose()

    assert len(results) == 1
    match = results[0]
    assert isinstance(match, QueryMatch)
    assert match.clip_name == "walk"
    assert match.timestamp == pytest.approx(0.3)
    assert match.cost == pytest.approx(0.0, abs=1e-5)
    assert match.to_dict() == {"animation": "walk", "timestamp": match.timestamp, "cost": match.cost}


def test_query_pose_k_candidates_sorted(matcher):
    results = matcher.query_pose(k=3)

    assert len(results) == 3
    distances = [match.distance for match in results]
    assert distances == sorted(distances)
    assert {match.clip_name for match in results} == {"walk"}


def test_query_pose_include_filter(matcher):
    """Only jump poses qualify; the closest one is the start of the jump."""
    results = matcher.query_pose(include=JUMP)

    assert results[0].clip_name == "jump"
    assert results[0].timestamp == pytest.approx(0.1)
    assert results[0].category == JUMP


def test_query_pose_exclude_filter(matcher):
    matcher.blackboard["speed"] = 2.3
    results = matcher.query_pose(exclude=JUMP, k=5)

    assert results
    assert all(match.clip_name == "walk" for match in results)


def test_query_pose_no_matching_category(matcher):
    """include=0 only accepts uncategorized poses; there are none."""
    assert matcher.query_pose(include=0, exclude=0) == []


def test_query_pose_explicit_state(matcher):
    results = matcher.query_pose(state={"speed": 2.2})
    assert results[0].clip_name == "jump"
    assert results[0].timestamp == pytest.approx(0.2)


def test_query_dimension_mismatch(matcher):
    with pytest.raises(DimensionMismatchError):
        matcher.query_pose(state={"speed": [1.0, 2.0]})
    with pytest.raises(DimensionMismatchError):
        matcher.query_pose(state={})


def test_search_raw_three_pose_scenario():
    """Query [0.9, 0] under Manhattan returns the pose [1, 0]."""
    matcher = MotionMatcher(distance_type=1)
    matcher._snapshot = three_pose_snapshot()

    results = matcher.search_raw([0.9, 0.0], k=1)

    assert len(results) == 1
    clip_name, timestamp, category = results[0]
    assert clip_name == "b"
    assert timestamp == pytest.approx(0.2)
    assert category == 2


def test_search_raw_filtered():
    matcher = MotionMatcher(distance_type=1)
    matcher._snapshot = three_pose_snapshot()

    results = matcher.search_raw([0.9, 0.0], k=3, include=0b101)

    assert [clip_name for clip_name, _, _ in results] == ["a", "c"]


def test_stale_rows_are_skipped():
    """Rows whose clip index no longer resolves are dropped from results."""
    matcher = MotionMatcher(distance_type=1)
    matcher._snapshot = three_pose_snapshot(clip_index=(0, 7, 2))

    assert matcher.search_raw([0.9, 0.0], k=1) == []
    assert [clip_name for clip_name, _, _ in matcher.search_raw([0.9, 0.0], k=3)] == ["a", "c"]


def test_failed_bake_keeps_previous_snapshot(matcher):
    """A bake that raises leaves the live snapshot untouched."""
    previous = matcher.snapshot
    broken = MagicMock()
    broken.name = "broken"
    broken.dimension.return_value = 1
    broken.weight_hint.return_value = [1.0]
    broken.sample_at.side_effect = RuntimeError("boom")
    matcher.providers = [broken]

    assert matcher.bake() is False
    assert matcher.snapshot is previous
    assert len(matcher.database) == 14


def test_configuration_error_returns_false(matcher):
    previous = matcher.snapshot
    matcher.context = None

    assert matcher.bake() is False
    assert matcher.snapshot is previous


def test_cancelled_bake_returns_false(matcher, library):
    previous = matcher.snapshot

    assert matcher.bake(library, should_cancel=lambda: True) is False
    assert matcher.snapshot is previous


def test_rebake_swaps_snapshot(matcher, library):
    previous = matcher.snapshot
    library.add(AnimationClip("idle", 1.0, tracks={
        "speed": ValueTrack([0.0], [0.0]),
        "category": ValueTrack([0.0], [WALK]),
    }))

    assert matcher.bake(library)
    assert matcher.snapshot is not previous
    assert len(matcher.database) == 21
    assert "idle" in matcher.database.clip_names


def test_set_distance_type(matcher):
    """A metric switch swaps in a new snapshot; the old index keeps its metric."""
    previous = matcher.snapshot

    matcher.set_distance_type(2)

    assert matcher.distance_type == 2
    assert matcher.snapshot is not previous
    assert matcher.snapshot.index.distance_type == 2
    assert matcher.snapshot.settings.distance_type == 2
    assert previous.index.distance_type == 1
    assert matcher.snapshot.database is previous.database
    assert matcher.query_pose()[0].clip_name == "walk"

    with pytest.raises(ValueError):
        matcher.set_distance_type(5)


def test_missing_category_track_keeps_snapshot(matcher, library):
    """A clip without a category track aborts the bake."""
    previous = matcher.snapshot
    library.add(AnimationClip("untagged", 1.0, tracks={"speed": ValueTrack([0.0], [0.5])}))

    assert matcher.bake(library) is False
    assert matcher.snapshot is previous
    assert "untagged" not in matcher.database.clip_names


def test_empty_library_queries_return_nothing():
    matcher = MotionMatcher(providers=[TrackFeature("speed", 1)], context={}, clips=ClipLibrary(),
                            blackboard={"speed": 0.3}, category_track_names=["category"])

    assert matcher.bake()
    assert len(matcher.database) == 0
    assert matcher.query_pose() == []
    assert matcher.query_pose(include=JUMP, k=5) == []
    assert matcher.search_raw([0.3]) == []
    assert matcher.health()["status"] == "empty"


def test_export_uses_baked_sample_interval(matcher, monkeypatch, tmp_path):
    monkeypatch.setenv("MM_SAMPLE_INTERVAL", "0.25")

    manifest = matcher.export(tmp_path / "db.npz")

    assert manifest.sample_interval == pytest.approx(0.1)


def test_rebuilt_indexes_use_configured_leaf_size(matcher, monkeypatch, tmp_path):
    monkeypatch.setenv("MM_LEAF_SIZE", "2")
    path = tmp_path / "db.npz"
    matcher.export(path)

    restored = MotionMatcher(providers=matcher.providers, context={})
    restored.load(path)
    assert restored.snapshot.index.leaf_size == 2
    assert restored.snapshot.settings.sample_interval == pytest.approx(0.1)

    baked = MotionMatcher(providers=matcher.providers, context={}, clips=matcher.clips,
                          category_track_names=["category"])
    assert baked.bake()
    baked.recalculate_weights()
    assert baked.snapshot.index.leaf_size == 2


def test_recalculate_weights(matcher):
    previous_index = matcher.snapshot.index

    weights = matcher.recalculate_weights()

    assert weights.tolist() == [1.0]
    assert matcher.snapshot.index is not previous_index
    assert matcher.query_pose()[0].clip_name == "walk"


def test_velocity_feature_tracks_context():
    """per-tick updates differentiate the context position."""
    clip = AnimationClip("run", 1.0, loop=True, tracks={
        "root": ValueTrack([0.0, 1.0], [0.0, 5.0]),
        "category": ValueTrack([0.0], [WALK]),
    })
    context = {"root": [0.0]}
    provider = VelocityFeature("root", 1)
    matcher = MotionMatcher(providers=[provider], context=context, clips=ClipLibrary([clip]),
                            category_track_names=["category"])
    assert matcher.bake()

    matcher.tick(0.1)
    context["root"] = [0.5]
    matcher.tick(0.1)

    assert matcher.build_query(state={}).tolist() == pytest.approx([5.0])
    assert matcher.build_query(state={"root_velocity": [2.0]}).tolist() == [2.0]
    assert matcher.query_pose(state={})[0].clip_name == "run"


def test_health_reports_snapshot(matcher):
    health = matcher.health()

    assert health["status"] == "ready"
    assert health["pose_count"] == 14
    assert health["dimension"] == 1
    assert health["clip_count"] == 2
    assert health["distance_type"] == 1
    assert health["features"] == ["speed"]


def test_default_include_is_unfiltered(matcher):
    assert matcher.query_pose(include=UNFILTERED, exclude=0, k=14)[-1].clip_name == "jump"


def test_compute_cost():
    assert compute_cost([1.0, 2.0], [0.0, 0.0], np.array([1.0, 2.0])) == pytest.approx(5.0)
    assert compute_cost([1.0, -2.0], [0.0, 0.0], np.zeros(0)) == pytest.approx(3.0)
