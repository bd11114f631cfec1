# Copyright (c) Syntropy Systems
"""Checkpoint persistence for experiment state."""

from __future__ import annotations

import contextlib
import logging
import os
from typing import TYPE_CHECKING

from pydantic import ValidationError

from knockout.errors import PersistenceError
from knockout.models.state import CHECKPOINT_VERSION, Checkpoint, ExperimentState

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


class CheckpointStore:
    """Saves and restores :class:`ExperimentState` as a single JSON file.

    Writes go to a sibling temp file which is fsynced and then renamed over
    the target, so readers see either the previous checkpoint or the new one.
    """

    path: Path

    def __init__(self, path: Path) -> None:
        self.path = path

    @property
    def _temp_path(self) -> Path:
        return self.path.with_name(f".{self.path.name}.tmp")

    def exists(self) -> bool:
        """Check whether a checkpoint has been written."""
        return self.path.exists()

    def save(self, state: ExperimentState) -> None:
        """Persist state atomically.

        Raises:
            PersistenceError: If the checkpoint could not be written.

        """
        checkpoint = Checkpoint(state=state)
        payload = checkpoint.model_dump_json(indent=2)
        temp_path = self._temp_path

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w") as f:
                _ = f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            _ = temp_path.replace(self.path)
        except OSError as e:
            with contextlib.suppress(OSError):
                temp_path.unlink()
            msg = f"Failed to write checkpoint {self.path}: {e}"
            raise PersistenceError(msg) from e

        logger.debug(
            "Checkpoint saved to %s (next_index=%d)", self.path, state.next_index
        )

    def load(self) -> ExperimentState | None:
        """Load the last saved state, or None if there is no checkpoint.

        Raises:
            PersistenceError: If the file exists but cannot be used.

        """
        if not self.path.exists():
            return None

        try:
            checkpoint = Checkpoint.model_validate_json(self.path.read_text())
        except OSError as e:
            msg = f"Failed to read checkpoint {self.path}: {e}"
            raise PersistenceError(msg) from e
        except ValidationError as e:
            msg = f"Checkpoint {self.path} is corrupt: {e}"
            raise PersistenceError(msg) from e

        if checkpoint.version > CHECKPOINT_VERSION:
            msg = (
                f"Checkpoint {self.path} has version {checkpoint.version}, "
                f"this knockout reads up to {CHECKPOINT_VERSION}"
            )
            raise PersistenceError(msg)

        logger.debug(
            "Checkpoint loaded from %s (saved %s)", self.path, checkpoint.saved_at
        )
        return checkpoint.state
