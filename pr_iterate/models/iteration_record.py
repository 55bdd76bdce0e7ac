"""
Iteration Record Model
======================
Pydantic model representing one completed pass of the remediation loop.

Represents one pass: Poll → Classify → Dispatch → Record.

Fields:
    iteration_number      — pass counter (1-based)
    start_time            — time.time() when the pass started
    duration              — wall clock seconds spent in the pass
    failures_observed     — ClassifiedFailures in priority order
    remediations_applied  — RemediationResults in the same order
    checks_after          — the snapshot this pass acted on
    poll_error            — reason text when the poll failed; checks_after is then unavailable

Records are frozen once appended to IterationState.history.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .check_snapshot import CheckSnapshot
from .classified_failure import ClassifiedFailure
from .remediation_result import RemediationResult


class IterationRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    iteration_number: int
    start_time: float
    duration: float = 0.0
    failures_observed: List[ClassifiedFailure] = []
    remediations_applied: List[RemediationResult] = []
    checks_after: CheckSnapshot
    poll_error: Optional[str] = None
