"""
Constants
Centralised storage for failure categories, priorities, attempt limits and exit codes.
"""
from enum import Enum


class FailureCategory(str, Enum):
    """Closed set of failure categories, used for priority and attempt-limit bookkeeping."""
    SECURITY = "security"
    BUILD = "build"
    TEST = "test"
    LINT = "lint"
    PERFORMANCE = "performance"
    UNKNOWN = "unknown"


class RunStatus(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CAP_REACHED = "cap_reached"


class BackoffStrategy(str, Enum):
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    FIXED = "fixed"


class AttemptScope(str, Enum):
    """How remediation attempts are counted within one run."""
    CATEGORY = "category"   # one shared counter per category
    CHECK = "check"         # one counter per (category, check name)


# Lower number = higher priority
CATEGORY_PRIORITY: dict[FailureCategory, int] = {
    FailureCategory.SECURITY:    1,
    FailureCategory.BUILD:       2,
    FailureCategory.TEST:        3,
    FailureCategory.LINT:        4,
    FailureCategory.PERFORMANCE: 5,
    FailureCategory.UNKNOWN:     6,
}

DEFAULT_MAX_ATTEMPTS: dict[FailureCategory, int] = {
    FailureCategory.SECURITY:    1,
    FailureCategory.BUILD:       2,
    FailureCategory.TEST:        3,
    FailureCategory.LINT:        2,
    FailureCategory.PERFORMANCE: 3,
    FailureCategory.UNKNOWN:     1,
}

# Agent type spawned for each category by the swarm strategy
CATEGORY_AGENTS: dict[FailureCategory, str] = {
    FailureCategory.SECURITY:    "security-manager",
    FailureCategory.BUILD:       "coder",
    FailureCategory.TEST:        "tester",
    FailureCategory.LINT:        "code-analyzer",
    FailureCategory.PERFORMANCE: "perf-analyzer",
    FailureCategory.UNKNOWN:     "coder",
}

TERMINAL_STATUSES = frozenset({
    RunStatus.SUCCEEDED,
    RunStatus.FAILED,
    RunStatus.TIMED_OUT,
    RunStatus.CAP_REACHED,
})

# CLI exit codes
EXIT_SUCCEEDED = 0
EXIT_FAILED = 1
EXIT_INVALID_CONFIGURATION = 2
EXIT_CAP_REACHED = 3
EXIT_TIMED_OUT = 4

EXIT_CODES: dict[RunStatus, int] = {
    RunStatus.SUCCEEDED:   EXIT_SUCCEEDED,
    RunStatus.FAILED:      EXIT_FAILED,
    RunStatus.CAP_REACHED: EXIT_CAP_REACHED,
    RunStatus.TIMED_OUT:   EXIT_TIMED_OUT,
}

ARROW = "→"
