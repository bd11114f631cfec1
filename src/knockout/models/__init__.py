# Copyright (c) Syntropy Systems
"""Pydantic models shared across knockout."""

from .comparison import Comparison, Delta, ImpactRecord, Unavailable
from .measurement import Failure, Measurement, MeasurementSet, Success
from .state import CHECKPOINT_VERSION, Checkpoint, ExperimentState, Feature

__all__ = [
    "CHECKPOINT_VERSION",
    "Checkpoint",
    "Comparison",
    "Delta",
    "ExperimentState",
    "Failure",
    "Feature",
    "ImpactRecord",
    "Measurement",
    "MeasurementSet",
    "Success",
    "Unavailable",
]
