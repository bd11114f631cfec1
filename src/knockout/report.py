# Copyright (c) Syntropy Systems
"""Structured final report of an experiment."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from knockout.models.base import KnockoutBaseModel
from knockout.models.comparison import ImpactRecord
from knockout.models.state import utcnow
from knockout.rank import RankedFeature, rank

if TYPE_CHECKING:
    from knockout.models.state import ExperimentState


class ExperimentReport(KnockoutBaseModel):
    """Impact record plus ranking, as handed to the summarizer."""

    target_urls: list[str]
    impact: ImpactRecord
    ranking: list[RankedFeature]
    processed: int
    total_features: int
    eligible_features: int
    cancelled: bool = False
    complete: bool = False
    generated_at: str = Field(default_factory=utcnow)


def build_report(state: ExperimentState, *, cancelled: bool = False) -> ExperimentReport:
    """Build the final report from an experiment state.

    ``complete`` is true only when every feature has been processed.
    """
    return ExperimentReport(
        target_urls=state.target_urls,
        impact=state.impact,
        ranking=rank(state.impact),
        processed=len(state.impact),
        total_features=len(state.features),
        eligible_features=state.eligible_count(),
        cancelled=cancelled,
        complete=state.next_index >= len(state.features),
    )
