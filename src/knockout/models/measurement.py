# Copyright (c) Syntropy Systems
"""Pydantic models for page measurements."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import Field
from typing_extensions import TypeAlias

from .base import KnockoutBaseModel


class Success(KnockoutBaseModel):
    """A completed measurement of one URL."""

    kind: Literal["success"] = "success"
    score: float = Field(ge=0, le=100)
    metrics: dict[str, float] = Field(default_factory=dict)
    timings: dict[str, float] = Field(default_factory=dict)


class Failure(KnockoutBaseModel):
    """A measurement that could not be taken."""

    kind: Literal["failure"] = "failure"
    reason: str = ""


Measurement: TypeAlias = Annotated[
    Union[Success, Failure], Field(discriminator="kind")
]

# url -> measurement, covering exactly the target URLs of one pass
MeasurementSet: TypeAlias = dict[str, Measurement]
