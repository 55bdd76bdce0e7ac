"""
Report Model
============
Final structured summary of a terminal remediation run.

Fields:
    target_id               — the PR that was remediated
    status                  — terminal RunStatus
    reason                  — why the run ended, in plain words
    iterations              — number of passes (== len(history))
    total_elapsed           — seconds from start to end of the run
    average_iteration_time  — mean pass duration in seconds
    total_fixes             — number of APPLIED remediations
    fixes_by_category       — APPLIED remediations per category value
    unresolved              — last-seen failure per category still failing at the end
    history                 — every IterationRecord, in pass order
"""
from typing import Dict, List

from pydantic import BaseModel, ConfigDict

from pr_iterate.core.constants import FailureCategory, RunStatus
from .iteration_record import IterationRecord


class UnresolvedFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: FailureCategory
    check_name: str
    last_detail: str = ""


class Report(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_id: str
    status: RunStatus
    reason: str = ""
    iterations: int
    total_elapsed: float
    average_iteration_time: float = 0.0
    total_fixes: int = 0
    fixes_by_category: Dict[str, int] = {}
    unresolved: List[UnresolvedFailure] = []
    history: List[IterationRecord] = []
