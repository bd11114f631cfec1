# Copyright (c) Syntropy Systems
"""Experiment controller: baseline, then knock out one feature at a time."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Literal

from knockout.cancel import CancellationSignal
from knockout.compare import compare
from knockout.errors import ConfigError, MeasurementError, ResumeError, ToggleError
from knockout.models.measurement import Failure
from knockout.models.state import ExperimentState
from knockout.rank import rank

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from knockout.checkpoint import CheckpointStore
    from knockout.measure import Measurer
    from knockout.models.comparison import Comparison
    from knockout.models.measurement import MeasurementSet
    from knockout.models.state import Feature
    from knockout.rank import RankedFeature
    from knockout.remote import FeatureBackend

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 5.0

EventKind = Literal[
    "features",
    "resumed",
    "baseline",
    "feature_start",
    "feature_done",
    "skipped",
    "cancelled",
]


class Phase(str, Enum):
    """Controller lifecycle states."""

    INIT = "init"
    BASELINE_CAPTURE = "baseline_capture"
    ITERATING = "iterating"
    FINALIZING = "finalizing"
    DONE = "done"


@dataclass
class ControllerEvent:
    """Progress notification for whoever is watching the run."""

    kind: EventKind
    state: ExperimentState
    feature: Feature | None = None
    index: int | None = None
    comparison: dict[str, Comparison] | None = None


@dataclass
class ExperimentOutcome:
    """Final state of a run and the ranking derived from it."""

    state: ExperimentState
    cancelled: bool
    ranking: list[RankedFeature]


def validate_target_urls(urls: Sequence[str]) -> list[str]:
    """Check the target URLs are non-empty and distinct."""
    cleaned = [u.strip() for u in urls if u.strip()]
    if not cleaned:
        msg = "No target URLs configured"
        raise ConfigError(msg)
    duplicates = sorted({u for u in cleaned if cleaned.count(u) > 1})
    if duplicates:
        msg = f"Duplicate target URLs: {', '.join(duplicates)}"
        raise ConfigError(msg)
    return cleaned


class ExperimentController:
    """Drives a knock-out experiment from start (or checkpoint) to ranking.

    Only one feature is ever disabled at a time. Each feature goes through
    toggle off, settle, measure, compare, toggle on, settle, and then the
    state is checkpointed. A stop request is honoured between features, never
    in the middle of one.
    """

    backend: FeatureBackend
    measurer: Measurer
    store: CheckpointStore
    target_urls: list[str] | None
    settle_delay: float
    cancel: CancellationSignal
    _sleep: Callable[[float], None]
    _on_event: Callable[[ControllerEvent], None] | None
    _phase: Phase

    def __init__(
        self,
        backend: FeatureBackend,
        measurer: Measurer,
        store: CheckpointStore,
        target_urls: Sequence[str] | None = None,
        *,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        cancel: CancellationSignal | None = None,
        sleep: Callable[[float], None] = time.sleep,
        on_event: Callable[[ControllerEvent], None] | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            backend: Lists and toggles features on the server
            measurer: Measures one URL
            store: Where progress is checkpointed
            target_urls: URLs to measure on every pass. Required for a fresh
                run; on resume defaults to the ones in the checkpoint.
            settle_delay: Seconds to wait after every toggle
            cancel: Stop flag checked between features
            sleep: Sleep function used for the settle delay
            on_event: Progress callback

        """
        self.backend = backend
        self.measurer = measurer
        self.store = store
        self.target_urls = validate_target_urls(target_urls) if target_urls else None
        self.settle_delay = settle_delay
        self.cancel = cancel if cancel is not None else CancellationSignal()
        self._sleep = sleep
        self._on_event = on_event
        self._phase = Phase.INIT

    @property
    def phase(self) -> Phase:
        """Current lifecycle state."""
        return self._phase

    def _emit(
        self,
        kind: EventKind,
        state: ExperimentState,
        feature: Feature | None = None,
        index: int | None = None,
        comparison: dict[str, Comparison] | None = None,
    ) -> None:
        if self._on_event is not None:
            self._on_event(ControllerEvent(kind, state, feature, index, comparison))

    def run(self, resume: bool = False) -> ExperimentOutcome:
        """Run the experiment to completion or until cancelled.

        Args:
            resume: Continue from the checkpoint instead of starting fresh

        Raises:
            RemoteConnectionError: If the server cannot be reached.
            ToggleError: If a feature could not be disabled or restored.
            PersistenceError: If a checkpoint could not be written, or
                ``resume`` was requested without a usable checkpoint.

        """
        if not resume and self.target_urls is None:
            msg = "No target URLs configured"
            raise ConfigError(msg)

        self._phase = Phase.INIT
        try:
            self.backend.connect()
            state = self._restore() if resume else self._start()
            self._phase = Phase.ITERATING
            cancelled = self._iterate(state)
        finally:
            self._phase = Phase.FINALIZING
            self.backend.close()

        self._phase = Phase.DONE
        return ExperimentOutcome(state=state, cancelled=cancelled, ranking=rank(state.impact))

    def _start(self) -> ExperimentState:
        features = self.backend.list_features()
        logger.info(
            "Found %d features, %d enabled",
            len(features),
            sum(1 for f in features if f.enabled),
        )
        state = ExperimentState(features=features, target_urls=list(self.target_urls or []))
        self._emit("features", state)

        self._phase = Phase.BASELINE_CAPTURE
        state.baseline = self.measure_targets(state.target_urls)
        self.store.save(state)
        self._emit("baseline", state)
        return state

    def _restore(self) -> ExperimentState:
        state = self.store.load()
        if state is None:
            msg = f"No checkpoint found at {self.store.path}"
            raise ResumeError(msg)

        if not state.target_urls:
            if self.target_urls is None:
                msg = "Checkpoint has no target URLs and none are configured"
                raise ResumeError(msg)
            state.target_urls = list(self.target_urls)
        elif self.target_urls is not None and self.target_urls != state.target_urls:
            msg = (
                "Configured target URLs differ from the checkpoint "
                f"({', '.join(state.target_urls)})"
            )
            raise ResumeError(msg)

        if set(state.baseline) != set(state.target_urls):
            msg = "Checkpoint baseline does not cover its target URLs"
            raise ResumeError(msg)

        logger.info(
            "Resuming at feature %d of %d", state.next_index + 1, len(state.features)
        )
        self._emit("resumed", state)
        return state

    def _iterate(self, state: ExperimentState) -> bool:
        """Process features from the cursor on. Returns True if cancelled."""
        unsaved = False
        for index in range(state.next_index, len(state.features)):
            feature = state.features[index]

            if not feature.enabled:
                logger.debug("Skipping %s, disabled at start", feature.identifier)
                state.next_index = index + 1
                unsaved = True
                self._emit("skipped", state, feature=feature, index=index)
                continue

            if self.cancel.is_set():
                logger.info("Stop requested, %d features left", len(state.features) - index)
                self._emit("cancelled", state, index=index)
                return True

            self._emit("feature_start", state, feature=feature, index=index)
            comparison = self._knock_out(state, feature)

            state.impact[feature.identifier] = comparison
            state.next_index = index + 1
            self.store.save(state)
            unsaved = False
            self._emit(
                "feature_done", state, feature=feature, index=index, comparison=comparison
            )

        # trailing skipped features still move the saved cursor to the end
        if unsaved:
            self.store.save(state)
        return False

    def _knock_out(self, state: ExperimentState, feature: Feature) -> dict[str, Comparison]:
        """Disable feature, measure, and restore it. Returns the comparison."""
        logger.info("Disabling %s", feature.identifier)
        try:
            self.backend.set_enabled(feature.identifier, False)
        except BaseException as exc:
            self._undo_failed_disable(feature, exc)
            raise

        try:
            self._settle()
            candidate = self.measure_targets(state.target_urls)
            comparison = compare(state.baseline, candidate)
        except BaseException as exc:
            self._restore_after_error(feature, exc)
            raise

        logger.info("Re-enabling %s", feature.identifier)
        self.backend.set_enabled(feature.identifier, True)
        self._settle()
        return comparison

    def _undo_failed_disable(self, feature: Feature, exc: BaseException) -> None:
        # the deactivate may have reached the server before the command failed
        logger.warning(
            "Disabling %s failed (%s), re-enabling in case it took effect",
            feature.identifier,
            exc,
        )
        try:
            self.backend.set_enabled(feature.identifier, True)
        except Exception as restore_exc:
            logger.warning("Could not re-enable %s: %s", feature.identifier, restore_exc)
            raise exc from restore_exc

    def _restore_after_error(self, feature: Feature, exc: BaseException) -> None:
        logger.warning(
            "Error while %s was disabled (%s), re-enabling", feature.identifier, exc
        )
        try:
            self.backend.set_enabled(feature.identifier, True)
        except ToggleError as restore_exc:
            raise restore_exc from exc
        except Exception as restore_exc:
            raise ToggleError(feature.identifier, True, str(restore_exc)) from exc

    def _settle(self) -> None:
        if self.settle_delay > 0:
            logger.debug("Waiting %.1fs for changes to settle", self.settle_delay)
            self._sleep(self.settle_delay)

    def measure_targets(self, urls: Sequence[str]) -> MeasurementSet:
        """Measure every URL once, in order. Failures are recorded, not raised."""
        results: MeasurementSet = {}
        for url in urls:
            try:
                measurement = self.measurer.measure(url)
            except MeasurementError as e:
                measurement = Failure(reason=str(e))

            if isinstance(measurement, Failure):
                logger.warning("Measurement failed for %s: %s", url, measurement.reason)
            else:
                logger.info("Score for %s: %.0f", url, measurement.score)
            results[url] = measurement
        return results
