# ==============================================
# SamplingStateMachine
# ==============================================
#
# PURPOSE:
#   Hold the externally observable state of the sampler and enforce
#   which phase may follow which.
#
# PHASES:
# -------
#   initial → counting → sampling → analyzing → complete
#                 │          │  └──────────────→ complete   (target was zero)
#                 └──────────┴──────────┴──────→ error
#   any phase → initial  (reset)
#
#   complete and error are terminal: only reset leaves them.
#   Progress / elapsed updates inside a live phase keep the phase.
#
# CLASSES:
# --------
# - SamplingPhase (enum)
# - SamplingState (frozen dataclass)  → one snapshot, replaced wholesale
# - SamplingStateMachine              → current snapshot + subscribers
#
# ==============================================

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from .errors import ErrorInfo, InvalidTransition
from .progress import INDETERMINATE

logger = logging.getLogger(__name__)


class SamplingPhase(Enum):
    INITIAL = "initial"
    COUNTING = "counting"
    SAMPLING = "sampling"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_busy(self) -> bool:
        return self in BUSY_PHASES

    @property
    def is_terminal(self) -> bool:
        return self in (SamplingPhase.COMPLETE, SamplingPhase.ERROR)


BUSY_PHASES: FrozenSet[SamplingPhase] = frozenset({
    SamplingPhase.COUNTING,
    SamplingPhase.SAMPLING,
    SamplingPhase.ANALYZING,
})

TRANSITIONS: Dict[SamplingPhase, FrozenSet[SamplingPhase]] = {
    SamplingPhase.INITIAL: frozenset({SamplingPhase.COUNTING}),
    SamplingPhase.COUNTING: frozenset({SamplingPhase.SAMPLING, SamplingPhase.ERROR}),
    SamplingPhase.SAMPLING: frozenset({
        SamplingPhase.ANALYZING,
        SamplingPhase.COMPLETE,
        SamplingPhase.ERROR,
    }),
    SamplingPhase.ANALYZING: frozenset({SamplingPhase.COMPLETE, SamplingPhase.ERROR}),
    SamplingPhase.COMPLETE: frozenset(),
    SamplingPhase.ERROR: frozenset(),
}


@dataclass(frozen=True)
class SamplingState:
    """
    One snapshot of the sampler.

    Attributes:
        phase: Current phase
        progress_percent: 0..100, or INDETERMINATE (-1) while counting
        elapsed_ms: Milliseconds since the run started
        schema: Analyzer result, set only when phase is COMPLETE
        error: Failure detail, set only when phase is ERROR
    """
    phase: SamplingPhase = SamplingPhase.INITIAL
    progress_percent: int = 0
    elapsed_ms: int = 0
    schema: Optional[Any] = None
    error: Optional[ErrorInfo] = None

    @property
    def is_indeterminate(self) -> bool:
        return self.progress_percent == INDETERMINATE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "progress_percent": self.progress_percent,
            "elapsed_ms": self.elapsed_ms,
            "schema": self.schema,
            "error": self.error.to_dict() if self.error else None,
        }


StateListener = Callable[[SamplingState], None]


class SamplingStateMachine:
    """
    Owns the current SamplingState and pushes every change to subscribers.

    Not thread-safe on its own; the pipeline serializes access to it.
    """

    def __init__(self):
        self._state = SamplingState()
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> SamplingState:
        return self._state

    @property
    def phase(self) -> SamplingPhase:
        return self._state.phase

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener called with every new snapshot.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def transition(self, phase: SamplingPhase, **changes: Any) -> SamplingState:
        """
        Move to a new phase, replacing the whole snapshot.

        Fields not given in `changes` keep their values, except that schema
        and error are cleared unless the target phase carries them.

        Raises:
            InvalidTransition: if `phase` may not follow the current phase
        """
        current = self._state.phase
        if phase not in TRANSITIONS[current]:
            raise InvalidTransition(f"Cannot move from {current.value} to {phase.value}")

        changes.setdefault("schema", None)
        changes.setdefault("error", None)
        new_state = replace(self._state, phase=phase, **changes)
        self._check(new_state)
        return self._publish(new_state)

    def update(self, **changes: Any) -> SamplingState:
        """
        Change progress / elapsed time without leaving the current phase.

        Raises:
            InvalidTransition: if the current phase is not a live one
        """
        if not self._state.phase.is_busy:
            raise InvalidTransition(f"Cannot update a {self._state.phase.value} state")
        if "phase" in changes or "schema" in changes or "error" in changes:
            raise InvalidTransition("update() only changes progress_percent and elapsed_ms")
        return self._publish(replace(self._state, **changes))

    def reset(self) -> SamplingState:
        """Return to the initial snapshot. Always allowed."""
        if self._state == SamplingState():
            return self._state
        return self._publish(SamplingState())

    def _check(self, state: SamplingState) -> None:
        # A complete state may still hold None if the analyzer emitted nothing
        if state.schema is not None and state.phase is not SamplingPhase.COMPLETE:
            raise InvalidTransition("Only a complete state may carry a schema")
        if state.error is not None and state.phase is not SamplingPhase.ERROR:
            raise InvalidTransition("Only an error state may carry error info")

    def _publish(self, state: SamplingState) -> SamplingState:
        previous = self._state
        self._state = state
        logger.debug("Sampling state changed from %s to %s", previous, state)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.warning(f"Sampling state listener failed: {e}")
        return state
