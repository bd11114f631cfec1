# Copyright (c) Syntropy Systems
"""Exception types raised by knockout."""

from __future__ import annotations


class KnockoutError(Exception):
    """Base class for knockout errors."""


class ConfigError(KnockoutError):
    """Invalid or incomplete configuration."""


class RemoteConnectionError(KnockoutError, ConnectionError):
    """The remote server could not be reached.

    Raised before any feature is touched, so nothing needs restoring.
    """


class ToggleError(KnockoutError):
    """A feature could not be enabled or disabled.

    The server may be left with the feature in the wrong state, so the run
    is aborted rather than continued.
    """

    identifier: str
    enabled: bool

    def __init__(self, identifier: str, enabled: bool, detail: str = "") -> None:
        self.identifier = identifier
        self.enabled = enabled
        action = "enable" if enabled else "disable"
        msg = f"Failed to {action} '{identifier}'"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class MeasurementError(KnockoutError):
    """A single URL could not be measured. Recorded, never fatal."""


class PersistenceError(KnockoutError):
    """A checkpoint could not be written or read."""


class ResumeError(PersistenceError):
    """Resume was requested but no usable checkpoint exists."""


class SummarizerError(KnockoutError):
    """The summarization service failed."""
