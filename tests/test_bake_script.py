"""
Test cases for the bake_library script.
"""

import json
import sys
from pathlib import Path
import pytest

# Add scripts directory to path for importing
sys.path.insert(0, str(Path(__file__).parent.parent / "scripts"))

from bake_library import main
from motion_matching.core.persistence import load_artifact


def write_library(path, features=None):
    data = {
        "features": features if features is not None else [
            {"type": "track", "track": "speed", "dimension": 1},
        ],
        "category_tracks": ["category"],
        "clips": [
            {"name": "walk", "length": 1.0, "loop": True, "tracks": {
                "speed": {"times": [0.0, 1.0], "values": [0.0, 1.0]},
                "category": {"times": [0.0], "values": [1]},
            }},
            {"name": "run", "length": 1.0, "loop": True, "tracks": {
                "speed": {"times": [0.0, 1.0], "values": [2.0, 3.0]},
                "category": {"times": [0.0], "values": [2]},
            }},
        ],
    }
    path.write_text(json.dumps(data))
    return path


@pytest.fixture(autouse=True)
def default_environment(monkeypatch):
    for name in ("MM_SAMPLE_INTERVAL", "MM_NON_LOOP_TAIL", "MM_DISCARD_BIT", "MM_DISTANCE_TYPE"):
        monkeypatch.delenv(name, raising=False)


def test_bake_and_export(tmp_path, capfd):
    """Test a successful bake writes a loadable artifact."""
    library = write_library(tmp_path / "library.json")
    output = tmp_path / "out" / "db.npz"

    main([str(library), "--output", str(output), "--distance-type", "2"])

    out, _ = capfd.readouterr()
    assert "Loaded 2 clips and 1 features" in out
    assert "✓ Baked 18 poses with 1 dimensions" in out
    assert "✓ Verification search returned 1 results" in out
    assert "Bake complete!" in out

    database, _, manifest = load_artifact(output)
    assert len(database) == 18
    assert manifest.distance_type == 2
    assert manifest.clip_names == ["walk", "run"]


def test_no_verify(tmp_path, capfd):
    library = write_library(tmp_path / "library.json")

    main([str(library), "--output", str(tmp_path / "db.npz"), "--no-verify"])

    out, _ = capfd.readouterr()
    assert "Verification" not in out


def test_missing_library(tmp_path, capfd):
    with pytest.raises(SystemExit) as exc_info:
        main([str(tmp_path / "nope.json")])

    assert exc_info.value.code == 1
    out, _ = capfd.readouterr()
    assert "ERROR: Library not found" in out


def test_invalid_json(tmp_path, capfd):
    library = tmp_path / "library.json"
    library.write_text("{not json")

    with pytest.raises(SystemExit) as exc_info:
        main([str(library)])

    assert exc_info.value.code == 1
    assert "not valid JSON" in capfd.readouterr()[0]


def test_library_without_features(tmp_path, capfd):
    library = write_library(tmp_path / "library.json", features=[])

    with pytest.raises(SystemExit):
        main([str(library)])

    assert "ERROR: Library defines no features" in capfd.readouterr()[0]


def test_unknown_feature_type(tmp_path, capfd):
    library = write_library(tmp_path / "library.json", features=[{"type": "unknown"}])

    with pytest.raises(SystemExit):
        main([str(library)])

    assert "ERROR: Invalid feature definition" in capfd.readouterr()[0]


def test_failed_bake(tmp_path, capfd, monkeypatch):
    """Invalid bake settings abort with a non-zero exit."""
    monkeypatch.setenv("MM_SAMPLE_INTERVAL", "0")
    library = write_library(tmp_path / "library.json")

    with pytest.raises(SystemExit) as exc_info:
        main([str(library), "--output", str(tmp_path / "db.npz")])

    assert exc_info.value.code == 1
    assert "ERROR: Bake failed" in capfd.readouterr()[0]
    assert not (tmp_path / "db.npz").exists()
