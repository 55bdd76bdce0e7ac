"""
Remediation Result Model
========================
Pydantic model tracking the outcome of dispatching one ClassifiedFailure.

Fields:
    failure_ref     — the ClassifiedFailure this result answers (reference, not ownership)
    strategy_used   — name of the invoked strategy, empty when none was invoked
    outcome         — APPLIED / SKIPPED / ATTEMPT_LIMIT_EXCEEDED / ERRORED
    error_detail    — captured failure text, only set when outcome is ERRORED
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

from .classified_failure import ClassifiedFailure


class RemediationOutcome(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    ATTEMPT_LIMIT_EXCEEDED = "attempt_limit_exceeded"
    ERRORED = "errored"


class RemediationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    failure_ref: ClassifiedFailure
    strategy_used: str = ""
    outcome: RemediationOutcome
    error_detail: Optional[str] = None

    @model_validator(mode="after")
    def error_detail_only_when_errored(self) -> "RemediationResult":
        if self.outcome == RemediationOutcome.ERRORED:
            if not self.error_detail:
                raise ValueError("ERRORED results must carry error_detail")
        elif self.error_detail is not None:
            raise ValueError("error_detail is only allowed on ERRORED results")
        return self
