"""
Tests for the run state machine.
"""
import pytest

from datacleanse.errors import InvalidTransitionError
from datacleanse.state import RunState, RunStateMachine


class TestRunStateMachine:
    def test_happy_path(self):
        machine = RunStateMachine()
        seen = []
        machine.subscribe(lambda state, message: seen.append((state, message)))

        machine.start()
        machine.analyze()
        machine.complete()
        machine.reset()

        assert [state for state, _ in seen] == [
            RunState.PROCESSING, RunState.ANALYZING, RunState.COMPLETED, RunState.IDLE,
        ]
        assert seen[0][1] == "Reading workbook..."
        assert seen[1][1] == "Generating AI Analysis..."

    @pytest.mark.parametrize("start", [RunState.PROCESSING, RunState.ANALYZING])
    def test_error_reachable_from_working_states(self, start):
        machine = RunStateMachine(start)
        machine.fail("bad file")
        assert machine.state is RunState.ERROR
        assert machine.message == "bad file"

    def test_retry_after_error(self):
        machine = RunStateMachine(RunState.ERROR)
        machine.start()
        assert machine.is_busy

    @pytest.mark.parametrize("start, target", [
        (RunState.IDLE, RunState.COMPLETED),
        (RunState.IDLE, RunState.ANALYZING),
        (RunState.IDLE, RunState.ERROR),
        (RunState.PROCESSING, RunState.COMPLETED),
        (RunState.COMPLETED, RunState.PROCESSING),
        (RunState.ANALYZING, RunState.PROCESSING),
    ])
    def test_illegal_transitions(self, start, target):
        machine = RunStateMachine(start)
        with pytest.raises(InvalidTransitionError):
            machine.transition(target)
        assert machine.state is start
