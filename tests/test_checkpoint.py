# Copyright (c) Syntropy Systems
"""Tests for checkpoint persistence."""

import json

import pytest
from conftest import failed, make_features, ok

from knockout.checkpoint import CheckpointStore
from knockout.errors import PersistenceError
from knockout.models.comparison import Delta, Unavailable
from knockout.models.state import CHECKPOINT_VERSION, ExperimentState


def _state(**overrides):
    data = {
        "features": make_features("akismet", "-hello-dolly", "woocommerce"),
        "target_urls": ["/home", "/cart"],
        "baseline": {"/home": ok(80, LCP=2100.0), "/cart": failed("timeout")},
    }
    data.update(overrides)
    return ExperimentState(**data)


class TestCheckpointStore:
    """Tests for CheckpointStore."""

    def test_load_absent(self, tmp_path):
        """A missing checkpoint is not an error."""
        store = CheckpointStore(tmp_path / "checkpoint.json")
        assert store.load() is None
        assert not store.exists()

    def test_round_trip_at_start(self, tmp_path):
        """A fresh state with no impact survives save/load unchanged."""
        store = CheckpointStore(tmp_path / "checkpoint.json")
        state = _state()

        store.save(state)
        loaded = store.load()

        assert loaded == state
        assert loaded.impact == {}
        assert loaded.next_index == 0

    def test_round_trip_with_impact(self, tmp_path):
        """Typed measurements and comparisons come back as the same types."""
        store = CheckpointStore(tmp_path / "checkpoint.json")
        state = _state(
            impact={
                "akismet": {
                    "/home": Delta(
                        score_diff=4.0,
                        metrics_diff={"LCP": -120.5},
                        timings_diff={"total": -300.0},
                        improved=True,
                        baseline_score=80,
                        candidate_score=84,
                    ),
                    "/cart": Unavailable(reason="baseline failed: timeout"),
                }
            },
            next_index=1,
        )

        store.save(state)
        loaded = store.load()

        assert loaded == state
        assert isinstance(loaded.impact["akismet"]["/home"], Delta)
        assert isinstance(loaded.impact["akismet"]["/cart"], Unavailable)
        assert loaded.features[1].enabled is False

    def test_file_is_versioned_json(self, tmp_path):
        """The on-disk record carries a version tag."""
        store = CheckpointStore(tmp_path / "checkpoint.json")
        store.save(_state())

        data = json.loads(store.path.read_text())
        assert data["version"] == CHECKPOINT_VERSION
        assert "saved_at" in data
        assert data["state"]["next_index"] == 0

    def test_no_temp_file_left(self, tmp_path):
        """Only the checkpoint itself remains after a save."""
        store = CheckpointStore(tmp_path / "checkpoint.json")
        store.save(_state())
        store.save(_state(next_index=2))

        assert [p.name for p in tmp_path.iterdir()] == ["checkpoint.json"]
        assert store.load().next_index == 2

    def test_unknown_fields_ignored(self, tmp_path):
        """Fields added by a later version do not break loading."""
        path = tmp_path / "checkpoint.json"
        store = CheckpointStore(path)
        store.save(_state())

        data = json.loads(path.read_text())
        data["operator"] = "alice"
        data["state"]["notes"] = "added later"
        path.write_text(json.dumps(data))

        assert store.load() == _state()

    def test_older_checkpoint_without_optional_fields(self, tmp_path):
        """A minimal record without target_urls or saved_at still loads."""
        path = tmp_path / "checkpoint.json"
        path.write_text(
            json.dumps(
                {
                    "version": 1,
                    "state": {
                        "features": [{"identifier": "a", "enabled": True}],
                        "baseline": {"/": {"kind": "success", "score": 70}},
                        "impact": {},
                        "next_index": 0,
                    },
                }
            )
        )

        loaded = CheckpointStore(path).load()
        assert loaded.target_urls == []
        assert loaded.baseline["/"].score == 70

    def test_newer_version_rejected(self, tmp_path):
        """A checkpoint from a newer release is refused."""
        path = tmp_path / "checkpoint.json"
        store = CheckpointStore(path)
        store.save(_state())
        data = json.loads(path.read_text())
        data["version"] = CHECKPOINT_VERSION + 1
        path.write_text(json.dumps(data))

        with pytest.raises(PersistenceError, match="version"):
            store.load()

    def test_corrupt_file(self, tmp_path):
        """Garbage on disk is reported, not treated as absent."""
        path = tmp_path / "checkpoint.json"
        path.write_text("{not json")

        with pytest.raises(PersistenceError, match="corrupt"):
            CheckpointStore(path).load()

    def test_write_failure(self, tmp_path):
        """Write errors surface as PersistenceError."""
        blocker = tmp_path / "file"
        blocker.write_text("")
        store = CheckpointStore(blocker / "checkpoint.json")

        with pytest.raises(PersistenceError):
            store.save(_state())
