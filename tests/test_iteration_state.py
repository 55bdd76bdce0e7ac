"""
Iteration State Tests
=====================
Covers pass counting, append-only history and terminal immutability.
"""
import pytest

from pr_iterate.core.constants import RunStatus
from pr_iterate.core.errors import InvalidState
from pr_iterate.models.check_snapshot import CheckSnapshot
from pr_iterate.models.iteration_record import IterationRecord
from pr_iterate.state.iteration_state import IterationState


def _record(n, passed=False):
    return IterationRecord(
        iteration_number=n,
        start_time=0.0,
        checks_after=CheckSnapshot(all_passed=passed),
    )


def test_start_sets_deadline():
    state = IterationState.start("42", max_iterations=3, timeout=60)

    assert state.target_id == "42"
    assert state.max_iterations == 3
    assert state.deadline == pytest.approx(state.started_at + 60)
    assert state.status == RunStatus.RUNNING
    assert state.history == ()


def test_rejects_non_positive_cap():
    with pytest.raises(InvalidState):
        IterationState.start("42", max_iterations=0, timeout=60)


def test_begin_pass_and_append_record():
    state = IterationState.start("42", max_iterations=2, timeout=60)

    assert state.begin_pass() == 1
    state.append_record(_record(1))
    assert state.begin_pass() == 2
    state.append_record(_record(2))

    assert [r.iteration_number for r in state.history] == [1, 2]
    assert state.cap_reached
    with pytest.raises(InvalidState):
        state.begin_pass()


def test_record_number_must_match_pass():
    state = IterationState.start("42", max_iterations=3, timeout=60)
    state.begin_pass()

    with pytest.raises(InvalidState):
        state.append_record(_record(2))


def test_history_is_read_only_view():
    state = IterationState.start("42", max_iterations=3, timeout=60)
    state.begin_pass()
    state.append_record(_record(1))

    history = state.history
    assert isinstance(history, tuple)
    with pytest.raises(Exception):
        history[0].iteration_number = 5


def test_terminal_state_is_frozen():
    state = IterationState.start("42", max_iterations=3, timeout=60)
    state.finish(RunStatus.SUCCEEDED, "done")

    assert state.is_terminal
    assert state.ended_at is not None
    with pytest.raises(InvalidState):
        state.begin_pass()
    with pytest.raises(InvalidState):
        state.finish(RunStatus.FAILED, "again")


def test_finish_requires_terminal_status():
    state = IterationState.start("42", max_iterations=3, timeout=60)
    with pytest.raises(InvalidState):
        state.finish(RunStatus.RUNNING, "nope")
