"""
Check Snapshot Model
====================
Pydantic models for one point-in-time read of a PR's verification checks.

Fields (RawFailure):
    name         — check run name (e.g. "security-scan")
    label        — workflow / app that produced the check, used as a classifier hint
    conclusion   — raw conclusion reported by the status source (failure, timed_out, ...)
    detail       — human-readable failure text (check output title + summary)
    details_url  — link to the failing run, if known

Fields (CheckSnapshot):
    all_passed   — True iff nothing failed and nothing is pending
    passed       — names of passed checks
    failed       — RawFailure per failed check, in the order the source returned them
    pending      — names of checks still queued / in progress
    polled_at    — time.time() of the read
"""
from typing import List

from pydantic import BaseModel, ConfigDict


class RawFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    label: str = ""
    conclusion: str = "failure"
    detail: str = ""
    details_url: str = ""


class CheckSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    all_passed: bool
    passed: List[str] = []
    failed: List[RawFailure] = []
    pending: List[str] = []
    polled_at: float = 0.0

    @classmethod
    def unavailable(cls, polled_at: float = 0.0) -> "CheckSnapshot":
        """Placeholder snapshot for a pass whose poll failed."""
        return cls(all_passed=False, polled_at=polled_at)
