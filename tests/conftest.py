# Copyright (c) Syntropy Systems
"""Pytest fixtures for knockout tests."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Generator, Mapping
from pathlib import Path

import pytest
import yaml

from knockout.errors import RemoteConnectionError, ToggleError
from knockout.models.measurement import Failure, Measurement, Success
from knockout.models.state import Feature

# Store original cwd at module load time
_original_cwd = Path.cwd()


class FakeBackend:
    """In-memory plugin server that records every call."""

    def __init__(
        self,
        features: list[Feature],
        fail_toggle: tuple[str, bool] | None = None,
        fail_connect: bool = False,
        fail_after_apply: bool = False,
    ) -> None:
        self.features = features
        self.enabled = {f.identifier: f.enabled for f in features}
        self.original = dict(self.enabled)
        self.fail_toggle = fail_toggle
        self.fail_connect = fail_connect
        self.fail_after_apply = fail_after_apply
        self.calls: list[tuple[str, bool]] = []
        self.list_calls = 0
        self.connected = False
        self.closed = False
        self.max_disabled = 0

    def connect(self) -> None:
        if self.fail_connect:
            msg = "Could not connect to wp.example: Connection refused"
            raise RemoteConnectionError(msg)
        self.connected = True

    def list_features(self) -> list[Feature]:
        self.list_calls += 1
        return [f.model_copy() for f in self.features]

    def set_enabled(self, identifier: str, enabled: bool) -> None:
        self.calls.append((identifier, enabled))
        failing = self.fail_toggle == (identifier, enabled)
        if failing and not self.fail_after_apply:
            raise ToggleError(identifier, enabled, "wp exited with 1")
        self.enabled[identifier] = enabled
        disabled = sum(
            1 for name, on in self.enabled.items() if self.original[name] and not on
        )
        self.max_disabled = max(self.max_disabled, disabled)
        if failing:
            # the command ran, but its result never came back
            raise ToggleError(identifier, enabled, "timed out after 120s")

    def close(self) -> None:
        self.closed = True

    def disabled_now(self) -> list[str]:
        """Plugins that were active at start but are not now."""
        return [name for name, on in self.enabled.items() if self.original[name] and not on]


class FakeMeasurer:
    """Returns scripted measurements depending on which plugin is off."""

    def __init__(
        self,
        backend: FakeBackend,
        baseline: Mapping[str, Measurement],
        without: Mapping[str, Mapping[str, Measurement]] | None = None,
        error: BaseException | None = None,
    ) -> None:
        self.backend = backend
        self.baseline = dict(baseline)
        self.without = {k: dict(v) for k, v in (without or {}).items()}
        self.error = error
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    def measure(self, url: str) -> Measurement:
        disabled = tuple(self.backend.disabled_now())
        self.calls.append((url, disabled))
        if disabled and self.error is not None:
            raise self.error
        if not disabled:
            return self.baseline[url]
        return self.without.get(disabled[0], self.baseline)[url]


def make_features(*specs: str) -> list[Feature]:
    """Build features from names; a leading '-' marks one inactive."""
    return [
        Feature(identifier=s.lstrip("-"), enabled=not s.startswith("-"))
        for s in specs
    ]


def ok(score: float, **metrics: float) -> Success:
    """Shorthand for a successful measurement."""
    return Success(score=score, metrics=metrics, timings={"total": 1000.0})


def failed(reason: str = "chrome crashed") -> Failure:
    """Shorthand for a failed measurement."""
    return Failure(reason=reason)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def knockout_project(temp_dir: Path) -> Generator[Path, None, None]:
    """Create a temporary knockout project directory."""
    knockout_dir = temp_dir / ".knockout"
    knockout_dir.mkdir()
    config = {
        "host": "",
        "urls": ["https://shop.example/", "https://shop.example/cart/"],
        "settle_delay": 0,
    }
    with (knockout_dir / "config.yaml").open("w") as f:
        yaml.dump(config, f)

    # Change to temp directory
    os.chdir(temp_dir)

    yield temp_dir

    # Always return to original cwd
    os.chdir(_original_cwd)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep KNOCKOUT_* variables from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith("KNOCKOUT_"):
            monkeypatch.delenv(key)
