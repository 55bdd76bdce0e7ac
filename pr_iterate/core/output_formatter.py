"""
Output Formatter
================
Single source of the human-readable strings shown for failures, remediation
outcomes and run summaries (CLI tables, API status, log lines).

DETERMINISM CONTRACT:
  - Given the same inputs, every function returns the exact same string.
  - Nothing here reads configuration or the environment.

Formats:
    {CATEGORY} failure in {check} → {outcome description}
    #{iteration} {n} failure(s), {m} fix(es) applied, {duration}s
"""
from typing import List

from pr_iterate.core.constants import ARROW, RunStatus
from pr_iterate.models.classified_failure import ClassifiedFailure
from pr_iterate.models.iteration_record import IterationRecord
from pr_iterate.models.remediation_result import RemediationOutcome, RemediationResult


# ---------------------------------------------------------------------------
# Outcome descriptions
# ---------------------------------------------------------------------------
OUTCOME_TEMPLATES: dict[RemediationOutcome, str] = {
    RemediationOutcome.APPLIED:                "fix applied by {strategy}",
    RemediationOutcome.SKIPPED:                "skipped, no remediation enabled",
    RemediationOutcome.ATTEMPT_LIMIT_EXCEEDED: "attempt limit exceeded",
    RemediationOutcome.ERRORED:                "{strategy} errored: {detail}",
}

STATUS_LABELS: dict[RunStatus, str] = {
    RunStatus.RUNNING:     "Running",
    RunStatus.SUCCEEDED:   "Succeeded",
    RunStatus.FAILED:      "Failed",
    RunStatus.TIMED_OUT:   "Timed out",
    RunStatus.CAP_REACHED: "Iteration cap reached",
}


def format_failure(failure: ClassifiedFailure) -> str:
    """SECURITY failure in security-scan"""
    return f"{failure.category.value.upper()} failure in {failure.raw_check_name}"


def format_remediation(result: RemediationResult) -> str:
    """TEST failure in test-suite → fix applied by swarm:tester"""
    template = OUTCOME_TEMPLATES[result.outcome]
    description = template.format(
        strategy=result.strategy_used or "strategy",
        detail=result.error_detail or "",
    )
    return f"{format_failure(result.failure_ref)} {ARROW} {description}"


def format_iteration(record: IterationRecord) -> str:
    if record.poll_error is not None:
        return f"#{record.iteration_number} poll failed: {record.poll_error}"
    applied = sum(1 for r in record.remediations_applied if r.outcome == RemediationOutcome.APPLIED)
    return (
        f"#{record.iteration_number} {len(record.failures_observed)} failure(s), "
        f"{applied} fix(es) applied, {record.duration:.1f}s"
    )


def format_record_lines(record: IterationRecord) -> List[str]:
    """Header line followed by one line per remediation result."""
    lines = [format_iteration(record)]
    lines.extend(f"  {format_remediation(r)}" for r in record.remediations_applied)
    return lines


def format_status(status: RunStatus) -> str:
    return STATUS_LABELS[status]
