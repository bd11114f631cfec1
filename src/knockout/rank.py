# Copyright (c) Syntropy Systems
"""Rank features by their impact on page performance."""

from __future__ import annotations

from typing import TYPE_CHECKING

from knockout.compare import total_score_delta
from knockout.models.base import KnockoutBaseModel
from knockout.models.comparison import Comparison, Delta

if TYPE_CHECKING:
    from knockout.models.comparison import ImpactRecord


class RankedFeature(KnockoutBaseModel):
    """One row of the impact ranking."""

    identifier: str
    total_score_delta: float
    comparisons: dict[str, Comparison]

    @property
    def measured_urls(self) -> int:
        """Number of URLs with an available comparison."""
        return sum(1 for c in self.comparisons.values() if isinstance(c, Delta))


def rank(impact: ImpactRecord) -> list[RankedFeature]:
    """Order features by total score delta, largest first.

    A feature whose removal raises the score the most is the one costing the
    most performance. The sort is stable: features with equal totals keep
    the order in which they were processed.
    """
    rows = [
        RankedFeature(
            identifier=identifier,
            total_score_delta=total_score_delta(comparisons),
            comparisons=comparisons,
        )
        for identifier, comparisons in impact.items()
    ]
    return sorted(rows, key=lambda row: row.total_score_delta, reverse=True)
