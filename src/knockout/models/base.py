# Copyright (c) Syntropy Systems
"""Shared Pydantic model helpers for knockout."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class KnockoutBaseModel(BaseModel):
    """Base model with shared config for knockout schemas.

    Unknown fields are ignored so that older readers can load records
    written by newer versions.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="ignore",
        populate_by_name=True,
    )
