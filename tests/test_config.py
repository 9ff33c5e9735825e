"""
Test cases for environment-driven configuration.
"""

import pytest
from motion_matching.core import config
from motion_matching.core.config import BakeSettings, validate_bake_config


def test_defaults(monkeypatch):
    for name in ("MM_SAMPLE_INTERVAL", "MM_NON_LOOP_TAIL", "MM_DISTANCE_TYPE", "MM_DENSITY_BINS",
                 "MM_DISCARD_BIT", "MM_LEAF_SIZE", "MM_CATEGORY_TRACKS", "MM_DEBUG"):
        monkeypatch.delenv(name, raising=False)

    settings = config.get_bake_settings()

    assert settings.sample_interval == config.SAMPLE_INTERVAL
    assert settings.discard_bit == config.DISCARD_BIT
    assert config.UNFILTERED == 2 ** 63 - 1
    assert config.get_category_track_names() == config.CATEGORY_TRACK_NAMES
    assert not config.debug_enabled()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MM_SAMPLE_INTERVAL", "0.05")
    monkeypatch.setenv("MM_NON_LOOP_TAIL", "0.5")
    monkeypatch.setenv("MM_DISTANCE_TYPE", "2")
    monkeypatch.setenv("MM_DISCARD_BIT", "30")
    monkeypatch.setenv("MM_LEAF_SIZE", "16")
    monkeypatch.setenv("MM_QUERY_DT", "0.02")

    settings = config.get_bake_settings()

    assert settings == BakeSettings(sample_interval=0.05, non_loop_tail=0.5, density_bins=settings.density_bins,
                                    discard_bit=30, distance_type=2, leaf_size=16)
    assert config.get_query_dt() == 0.02


def test_category_tracks_parsed(monkeypatch):
    monkeypatch.setenv("MM_CATEGORY_TRACKS", "tags, category ,,")
    assert config.get_category_track_names() == ["tags", "category"]


def test_artifact_path(monkeypatch, tmp_path):
    monkeypatch.setenv("MM_ARTIFACT_PATH", str(tmp_path / "db.npz"))
    assert config.get_artifact_path() == tmp_path / "db.npz"


def test_debug_flag(monkeypatch):
    monkeypatch.setenv("MM_DEBUG", "TRUE")
    assert config.debug_enabled()


def test_valid_settings_have_no_issues():
    settings = BakeSettings(sample_interval=0.1, non_loop_tail=0.2, density_bins=10,
                            discard_bit=31, distance_type=1, leaf_size=8)
    assert validate_bake_config(settings) == []


@pytest.mark.parametrize("overrides, fragment", [
    ({"sample_interval": 0.0}, "MM_SAMPLE_INTERVAL"),
    ({"non_loop_tail": -0.1}, "MM_NON_LOOP_TAIL"),
    ({"density_bins": 5}, "MM_DENSITY_BINS"),
    ({"discard_bit": 64}, "MM_DISCARD_BIT"),
    ({"distance_type": 3}, "MM_DISTANCE_TYPE"),
    ({"leaf_size": 0}, "MM_LEAF_SIZE"),
])
def test_invalid_settings_reported(overrides, fragment):
    """Each invalid setting produces one issue naming its variable."""
    values = dict(sample_interval=0.1, non_loop_tail=0.2, density_bins=10,
                  discard_bit=31, distance_type=1, leaf_size=8)
    values.update(overrides)

    issues = validate_bake_config(BakeSettings(**values))

    assert len(issues) == 1
    assert fragment in issues[0]
