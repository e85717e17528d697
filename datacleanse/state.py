"""
Run lifecycle: Idle -> Processing -> Analyzing -> Completed, with Error
reachable from both working states.
"""
import logging
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional

from datacleanse.errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class RunState(Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"


TRANSITIONS: Dict[RunState, FrozenSet[RunState]] = {
    RunState.IDLE: frozenset({RunState.PROCESSING}),
    RunState.PROCESSING: frozenset({RunState.ANALYZING, RunState.ERROR}),
    RunState.ANALYZING: frozenset({RunState.COMPLETED, RunState.ERROR}),
    RunState.COMPLETED: frozenset({RunState.IDLE}),
    RunState.ERROR: frozenset({RunState.IDLE, RunState.PROCESSING}),
}


class RunStateMachine:
    """Tracks one run's state; listeners are told about every transition"""

    def __init__(self, state: RunState = RunState.IDLE):
        self.state = state
        self.message = ""
        self._listeners: List[Callable[[RunState, str], None]] = []

    def subscribe(self, listener: Callable[[RunState, str], None]) -> None:
        self._listeners.append(listener)

    def can_transition(self, target: RunState) -> bool:
        return target in TRANSITIONS[self.state]

    def transition(self, target: RunState, message: Optional[str] = None) -> RunState:
        if not self.can_transition(target):
            raise InvalidTransitionError(f"Cannot move from {self.state.value} to {target.value}")
        logger.debug(f"Run state {self.state.value} -> {target.value}")
        self.state = target
        self.message = message or ""
        for listener in self._listeners:
            listener(target, self.message)
        return target

    def start(self, message: str = "Reading workbook...") -> RunState:
        return self.transition(RunState.PROCESSING, message)

    def analyze(self, message: str = "Generating AI Analysis...") -> RunState:
        return self.transition(RunState.ANALYZING, message)

    def complete(self, message: str = "File ready for download") -> RunState:
        return self.transition(RunState.COMPLETED, message)

    def fail(self, message: str = "An error occurred during processing.") -> RunState:
        return self.transition(RunState.ERROR, message)

    def reset(self) -> RunState:
        return self.transition(RunState.IDLE)

    @property
    def is_busy(self) -> bool:
        return self.state in (RunState.PROCESSING, RunState.ANALYZING)
