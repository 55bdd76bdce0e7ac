"""
Reporter
========
Projects a terminal IterationState into a Report. Pure: never mutates the state.
"""
import time
import logging
from collections import Counter
from typing import Dict, List, Optional

from pr_iterate.core.constants import FailureCategory, RunStatus
from pr_iterate.core.errors import InvalidState
from pr_iterate.models.iteration_record import IterationRecord
from pr_iterate.models.remediation_result import RemediationOutcome
from pr_iterate.models.report import Report, UnresolvedFailure
from pr_iterate.state.iteration_state import IterationState

logger = logging.getLogger(__name__)


def _last_observed(history: List[IterationRecord]) -> Optional[IterationRecord]:
    """Most recent record whose poll actually returned check results."""
    for record in reversed(history):
        if record.poll_error is None:
            return record
    return None


def _unresolved(history: List[IterationRecord]) -> List[UnresolvedFailure]:
    record = _last_observed(history)
    if record is None or record.checks_after.all_passed:
        return []

    latest: Dict[FailureCategory, UnresolvedFailure] = {}
    for failure in record.failures_observed:
        latest[failure.category] = UnresolvedFailure(
            category=failure.category,
            check_name=failure.raw_check_name,
            last_detail=failure.detail_text,
        )
    # failures_observed is already priority-ordered, so insertion order is too
    return list(latest.values())


def generate_report(state: IterationState) -> Report:
    """
    Build the final Report for a finished run.

    Raises
    ------
    InvalidState
        If the run is still RUNNING.
    """
    if state.status == RunStatus.RUNNING:
        raise InvalidState(f"Cannot report on run for {state.target_id}: still running")

    history = list(state.history)
    ended_at = state.ended_at if state.ended_at is not None else time.time()

    applied = Counter(
        result.failure_ref.category.value
        for record in history
        for result in record.remediations_applied
        if result.outcome == RemediationOutcome.APPLIED
    )
    durations = [record.duration for record in history]

    return Report(
        target_id=state.target_id,
        status=state.status,
        reason=state.end_reason,
        iterations=len(history),
        total_elapsed=max(0.0, ended_at - state.started_at),
        average_iteration_time=sum(durations) / len(durations) if durations else 0.0,
        total_fixes=sum(applied.values()),
        fixes_by_category=dict(applied),
        unresolved=_unresolved(history),
        history=history,
    )
