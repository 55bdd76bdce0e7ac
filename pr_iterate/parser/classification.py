"""
Classification
==============
Maps raw check failures to the closed set of failure categories and their priority.

Categories (priority, lower = fixed first):
    SECURITY=1, BUILD=2, TEST=3, LINT=4, PERFORMANCE=5, UNKNOWN=6

Classification Strategy:
    1. USER RULES FIRST — configured {pattern, category} rules, in order
    2. BUILT-IN RULES SECOND — ordered regex table, first match wins
    3. NEVER dynamic inference; anything unmatched is UNKNOWN

Rules are matched against the check name first and only fall back to the
label (workflow name) when the name is unrecognised, so a check called
"analyze" inside a "CodeQL" workflow is still a security check while
"test-suite" inside a "CI Build" workflow stays a test check.

Ordering:
    Output is sorted by priority with a stable sort. Failures of equal priority
    keep their input order, never re-ordered by name.
"""
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from pr_iterate.core.constants import CATEGORY_PRIORITY, FailureCategory
from pr_iterate.models.check_snapshot import RawFailure
from pr_iterate.models.classified_failure import ClassifiedFailure


Rule = Tuple[re.Pattern, FailureCategory]


# ---------------------------------------------------------------------------
# Built-in rule table (order matters: first match wins)
# ---------------------------------------------------------------------------
# Security and performance come before build/test so that "security-tests" or
# "perf-test" are not swallowed by the generic test rule.
DEFAULT_RULES: List[Rule] = [
    (re.compile(r"secur|codeql|snyk|trivy|bandit|audit|secret|vuln|sast|dependency[-_ ]review", re.I),
     FailureCategory.SECURITY),
    (re.compile(r"perf|bench|lighthouse|load[-_ ]?test|size[-_ ]limit", re.I),
     FailureCategory.PERFORMANCE),
    (re.compile(r"lint|eslint|flake8|ruff|pylint|prettier|format|black|isort|style|mypy", re.I),
     FailureCategory.LINT),
    (re.compile(r"build|compile|tsc|webpack|bundle|docker|package", re.I),
     FailureCategory.BUILD),
    (re.compile(r"test|spec|pytest|jest|coverage|e2e|unit|integration", re.I),
     FailureCategory.TEST),
]


def priority_of(category: FailureCategory) -> int:
    """Return sort priority for a category (lower = higher priority)."""
    return CATEGORY_PRIORITY[category]


def categorize(text: str, rules: Sequence[Rule] = DEFAULT_RULES) -> FailureCategory:
    """Return the category of the first rule matching `text`, else UNKNOWN."""
    for pattern, category in rules:
        if pattern.search(text):
            return category
    return FailureCategory.UNKNOWN


class FailureClassifier:
    """
    Deterministic mapping from RawFailure to ClassifiedFailure.

    Extra rules (e.g. from IterationConfig.classification_rules) are tried
    before the built-in table.
    """

    def __init__(self, extra_rules: Optional[Iterable[Tuple[str, FailureCategory]]] = None) -> None:
        compiled: List[Rule] = [
            (re.compile(pattern, re.I), FailureCategory(category))
            for pattern, category in (extra_rules or [])
        ]
        self.rules: List[Rule] = compiled + DEFAULT_RULES

    @classmethod
    def from_config(cls, config) -> "FailureClassifier":
        return cls((rule.pattern, rule.category) for rule in config.classification_rules)

    def classify_one(self, failure: RawFailure) -> ClassifiedFailure:
        category = categorize(failure.name, self.rules)
        if category == FailureCategory.UNKNOWN and failure.label:
            category = categorize(failure.label, self.rules)
        return ClassifiedFailure(
            raw_check_name=failure.name,
            category=category,
            priority=priority_of(category),
            detail_text=failure.detail,
        )

    def classify(self, raw_failures: Sequence[RawFailure]) -> List[ClassifiedFailure]:
        """Classify and return failures in priority order (stable for ties)."""
        classified = [self.classify_one(f) for f in raw_failures]
        return sorted(classified, key=lambda c: c.priority)


def classify_failures(raw_failures: Sequence[RawFailure]) -> List[ClassifiedFailure]:
    """Classify with the built-in rules only."""
    return FailureClassifier().classify(raw_failures)
