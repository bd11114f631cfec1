# Copyright (c) Syntropy Systems
"""Pydantic models for experiment state and checkpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import Field

from .base import KnockoutBaseModel
from .comparison import ImpactRecord
from .measurement import MeasurementSet

CHECKPOINT_VERSION = 1


class Feature(KnockoutBaseModel):
    """An independently toggleable unit on the server (a plugin)."""

    identifier: str
    enabled: bool
    title: str | None = None
    version: str | None = None


class ExperimentState(KnockoutBaseModel):
    """Everything needed to continue an experiment.

    ``next_index`` is the cursor: every feature below it has been toggled
    off, measured, toggled back on and recorded.
    """

    features: list[Feature] = Field(default_factory=list)
    target_urls: list[str] = Field(default_factory=list)
    baseline: MeasurementSet = Field(default_factory=dict)
    impact: ImpactRecord = Field(default_factory=dict)
    next_index: int = Field(default=0, ge=0)

    def eligible_count(self) -> int:
        """Return how many features were enabled when the experiment began."""
        return sum(1 for feature in self.features if feature.enabled)


def utcnow() -> str:
    """Return current UTC time as ISO string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class Checkpoint(KnockoutBaseModel):
    """On-disk envelope for a saved :class:`ExperimentState`.

    New fields must be optional so older checkpoints keep loading.
    """

    version: int = CHECKPOINT_VERSION
    saved_at: str = Field(default_factory=utcnow)
    state: ExperimentState
