# Copyright (c) Syntropy Systems
"""Pydantic models for baseline/candidate comparisons."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import Field
from typing_extensions import TypeAlias

from .base import KnockoutBaseModel


class Delta(KnockoutBaseModel):
    """Difference between two successful measurements of the same URL.

    Diffs are ``candidate - baseline``. A positive ``score_diff`` means the
    page scored better with the feature disabled.
    """

    kind: Literal["delta"] = "delta"
    score_diff: float
    metrics_diff: dict[str, float] = Field(default_factory=dict)
    timings_diff: dict[str, float] = Field(default_factory=dict)
    improved: bool
    baseline_score: float | None = None
    candidate_score: float | None = None


class Unavailable(KnockoutBaseModel):
    """Comparison that could not be made because a side failed."""

    kind: Literal["unavailable"] = "unavailable"
    reason: str = ""


Comparison: TypeAlias = Annotated[
    Union[Delta, Unavailable], Field(discriminator="kind")
]

# feature identifier -> url -> comparison, in processing order
ImpactRecord: TypeAlias = dict[str, dict[str, Comparison]]
