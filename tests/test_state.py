# ==============================================
# Tests for SamplingStateMachine
# ==============================================

import pytest

from schema_sampler.sampling import (
    INDETERMINATE,
    ErrorInfo,
    ErrorKind,
    InvalidTransition,
    SamplingPhase,
    SamplingState,
    SamplingStateMachine,
)

P = SamplingPhase


@pytest.fixture
def machine():
    return SamplingStateMachine()


def walk(machine, *phases):
    for phase in phases:
        changes = {}
        if phase is P.COMPLETE:
            changes["schema"] = {"count": 0, "fields": []}
        if phase is P.ERROR:
            changes["error"] = ErrorInfo(ErrorKind.COUNT_FAILURE, "nope")
        machine.transition(phase, **changes)


class TestTransitions:
    """Which phase may follow which."""

    def test_initial_state(self, machine):
        assert machine.state == SamplingState()
        assert machine.state.progress_percent == 0
        assert machine.state.schema is None

    def test_happy_path(self, machine):
        walk(machine, P.COUNTING, P.SAMPLING, P.ANALYZING, P.COMPLETE)
        assert machine.phase is P.COMPLETE
        assert machine.state.schema == {"count": 0, "fields": []}

    def test_zero_target_completes_from_sampling(self, machine):
        walk(machine, P.COUNTING, P.SAMPLING, P.COMPLETE)
        assert machine.phase is P.COMPLETE

    @pytest.mark.parametrize("path", [
        (P.COUNTING,),
        (P.COUNTING, P.SAMPLING),
        (P.COUNTING, P.SAMPLING, P.ANALYZING),
    ])
    def test_error_reachable_from_every_live_phase(self, machine, path):
        walk(machine, *path)
        walk(machine, P.ERROR)
        assert machine.phase is P.ERROR
        assert machine.state.error.kind is ErrorKind.COUNT_FAILURE

    @pytest.mark.parametrize("path,target", [
        ((), P.SAMPLING),
        ((), P.COMPLETE),
        ((), P.ERROR),
        ((P.COUNTING,), P.ANALYZING),
        ((P.COUNTING,), P.COMPLETE),
        ((P.COUNTING, P.SAMPLING, P.ANALYZING), P.SAMPLING),
        ((P.COUNTING, P.SAMPLING, P.ANALYZING, P.COMPLETE), P.ERROR),
        ((P.COUNTING, P.ERROR), P.COUNTING),
    ])
    def test_illegal_moves_rejected(self, machine, path, target):
        walk(machine, *path)
        before = machine.state
        with pytest.raises(InvalidTransition):
            machine.transition(target)
        assert machine.state is before

    def test_schema_only_on_complete(self, machine):
        walk(machine, P.COUNTING)
        with pytest.raises(InvalidTransition):
            machine.transition(P.SAMPLING, schema={"count": 1})

    def test_error_info_only_on_error(self, machine):
        with pytest.raises(InvalidTransition):
            machine.transition(P.COUNTING, error=ErrorInfo(ErrorKind.COUNT_FAILURE, "x"))

    def test_leaving_complete_clears_schema(self, machine):
        walk(machine, P.COUNTING, P.SAMPLING, P.COMPLETE)
        machine.reset()
        walk(machine, P.COUNTING)
        assert machine.state.schema is None


class TestUpdates:
    """Same-phase updates."""

    def test_update_keeps_phase(self, machine):
        walk(machine, P.COUNTING, P.SAMPLING)
        machine.update(progress_percent=40, elapsed_ms=1200)
        assert machine.phase is P.SAMPLING
        assert machine.state.progress_percent == 40
        assert machine.state.elapsed_ms == 1200

    def test_update_rejected_in_terminal_phase(self, machine):
        walk(machine, P.COUNTING, P.ERROR)
        with pytest.raises(InvalidTransition):
            machine.update(elapsed_ms=5)

    def test_update_cannot_change_phase(self, machine):
        walk(machine, P.COUNTING)
        with pytest.raises(InvalidTransition):
            machine.update(phase=P.SAMPLING)

    def test_indeterminate_progress(self, machine):
        machine.transition(P.COUNTING, progress_percent=INDETERMINATE)
        assert machine.state.is_indeterminate


class TestResetAndSubscribers:
    """Reset and state pushes."""

    def test_reset_from_any_phase(self, machine):
        walk(machine, P.COUNTING, P.SAMPLING, P.ANALYZING)
        machine.reset()
        assert machine.state == SamplingState()

    def test_reset_twice_same_as_once(self, machine):
        walk(machine, P.COUNTING, P.ERROR)
        pushed = []
        machine.subscribe(pushed.append)
        machine.reset()
        once = machine.state
        machine.reset()
        assert machine.state == once
        assert len(pushed) == 1

    def test_every_change_is_pushed(self, machine):
        pushed = []
        machine.subscribe(pushed.append)
        walk(machine, P.COUNTING, P.SAMPLING)
        machine.update(progress_percent=10)
        assert [s.phase for s in pushed] == [P.COUNTING, P.SAMPLING, P.SAMPLING]
        assert pushed[-1] is machine.state

    def test_unsubscribe(self, machine):
        pushed = []
        unsubscribe = machine.subscribe(pushed.append)
        unsubscribe()
        unsubscribe()
        walk(machine, P.COUNTING)
        assert pushed == []

    def test_failing_listener_does_not_block_others(self, machine):
        pushed = []

        def broken(state):
            raise RuntimeError("listener bug")

        machine.subscribe(broken)
        machine.subscribe(pushed.append)
        walk(machine, P.COUNTING)
        assert len(pushed) == 1
        assert machine.phase is P.COUNTING

    def test_snapshots_are_immutable(self, machine):
        with pytest.raises(Exception):
            machine.state.phase = P.ERROR

    def test_to_dict(self, machine):
        walk(machine, P.COUNTING, P.ERROR)
        data = machine.state.to_dict()
        assert data["phase"] == "error"
        assert data["error"]["kind"] == "count_failure"
        assert data["schema"] is None
