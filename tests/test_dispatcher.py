"""
Remediation Dispatcher Tests
============================
Covers attempt limits, outcome recording, strategy errors, and the
sequential / parallel execution modes.
"""
import asyncio
from unittest.mock import AsyncMock

from pr_iterate.agents.dispatcher import RemediationDispatcher, attempt_key
from pr_iterate.core.config import IterationConfig
from pr_iterate.core.constants import AttemptScope, FailureCategory
from pr_iterate.core.errors import StrategyErrored
from pr_iterate.models.classified_failure import ClassifiedFailure
from pr_iterate.models.remediation_result import RemediationOutcome
from pr_iterate.parser.classification import priority_of


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _failure(category=FailureCategory.TEST, name="test-suite", detail=""):
    return ClassifiedFailure(
        raw_check_name=name,
        category=category,
        priority=priority_of(category),
        detail_text=detail,
    )


def _strategy(name="fake", result=True):
    strategy = AsyncMock(return_value=result)
    strategy.name = name
    return strategy


class RecordingStrategy:
    """Records start/end order so tests can observe concurrency."""

    def __init__(self, name, events, delay=0.0):
        self.name = name
        self.events = events
        self.delay = delay

    async def __call__(self, failure):
        self.events.append(("start", failure.raw_check_name))
        await asyncio.sleep(self.delay)
        self.events.append(("end", failure.raw_check_name))
        return True


# ===================================================================
# Attempt limits
# ===================================================================
def test_applies_and_increments_counter():
    async def run_test():
        strategy = _strategy("tester")
        dispatcher = RemediationDispatcher({FailureCategory.TEST: strategy}, IterationConfig())
        counters = {}

        results = await dispatcher.dispatch([_failure()], counters)

        assert [r.outcome for r in results] == [RemediationOutcome.APPLIED]
        assert results[0].strategy_used == "tester"
        assert results[0].error_detail is None
        assert counters == {FailureCategory.TEST: 1}
        strategy.assert_awaited_once()

    asyncio.run(run_test())


def test_attempt_limit_exceeded_does_not_invoke_or_increment():
    async def run_test():
        strategy = _strategy()
        config = IterationConfig(max_attempts_per_category={"security": 1})
        dispatcher = RemediationDispatcher({FailureCategory.SECURITY: strategy}, config)
        counters = {FailureCategory.SECURITY: 1}

        results = await dispatcher.dispatch([_failure(FailureCategory.SECURITY, "security-scan")], counters)

        assert results[0].outcome == RemediationOutcome.ATTEMPT_LIMIT_EXCEEDED
        assert results[0].strategy_used == ""
        assert counters[FailureCategory.SECURITY] == 1
        strategy.assert_not_awaited()

    asyncio.run(run_test())


def test_attempt_limit_is_idempotent_across_calls():
    async def run_test():
        strategy = _strategy()
        config = IterationConfig(max_attempts_per_category={"lint": 2})
        dispatcher = RemediationDispatcher({FailureCategory.LINT: strategy}, config)
        counters = {}

        outcomes = []
        for _ in range(5):
            results = await dispatcher.dispatch([_failure(FailureCategory.LINT, "lint")], counters)
            outcomes.append(results[0].outcome)

        assert outcomes == [
            RemediationOutcome.APPLIED,
            RemediationOutcome.APPLIED,
            RemediationOutcome.ATTEMPT_LIMIT_EXCEEDED,
            RemediationOutcome.ATTEMPT_LIMIT_EXCEEDED,
            RemediationOutcome.ATTEMPT_LIMIT_EXCEEDED,
        ]
        assert counters[FailureCategory.LINT] == 2
        assert strategy.await_count == 2

    asyncio.run(run_test())


def test_same_category_shares_counter_within_one_call():
    async def run_test():
        config = IterationConfig(max_attempts_per_category={"test": 1})
        dispatcher = RemediationDispatcher({FailureCategory.TEST: _strategy()}, config)
        counters = {}

        results = await dispatcher.dispatch([_failure(name="unit"), _failure(name="e2e")], counters)

        assert [r.outcome for r in results] == [
            RemediationOutcome.APPLIED,
            RemediationOutcome.ATTEMPT_LIMIT_EXCEEDED,
        ]

    asyncio.run(run_test())


def test_per_check_attempt_scope():
    async def run_test():
        config = IterationConfig(
            max_attempts_per_category={"test": 1},
            attempt_scope=AttemptScope.CHECK,
        )
        dispatcher = RemediationDispatcher({FailureCategory.TEST: _strategy()}, config)
        counters = {}

        results = await dispatcher.dispatch([_failure(name="unit"), _failure(name="e2e")], counters)

        assert [r.outcome for r in results] == [RemediationOutcome.APPLIED, RemediationOutcome.APPLIED]
        assert counters == {
            (FailureCategory.TEST, "unit"): 1,
            (FailureCategory.TEST, "e2e"): 1,
        }

    asyncio.run(run_test())


def test_attempt_key():
    failure = _failure(name="unit")
    assert attempt_key(failure, AttemptScope.CATEGORY) == FailureCategory.TEST
    assert attempt_key(failure, AttemptScope.CHECK) == (FailureCategory.TEST, "unit")


# ===================================================================
# Outcomes
# ===================================================================
def test_missing_strategy_is_skipped():
    async def run_test():
        dispatcher = RemediationDispatcher({}, IterationConfig())
        counters = {}

        results = await dispatcher.dispatch([_failure(FailureCategory.UNKNOWN, "mystery")], counters)

        assert results[0].outcome == RemediationOutcome.SKIPPED
        assert counters == {}

    asyncio.run(run_test())


def test_auto_fix_disabled_skips_everything():
    async def run_test():
        strategy = _strategy()
        dispatcher = RemediationDispatcher({FailureCategory.TEST: strategy}, IterationConfig(auto_fix=False))

        results = await dispatcher.dispatch([_failure()], {})

        assert results[0].outcome == RemediationOutcome.SKIPPED
        strategy.assert_not_awaited()

    asyncio.run(run_test())


def test_strategy_errors_are_recorded():
    async def run_test():
        raising = AsyncMock(side_effect=StrategyErrored("agent exited with code 1"))
        raising.name = "swarm:coder"
        crashing = AsyncMock(side_effect=RuntimeError("boom"))
        crashing.name = "swarm:tester"
        declining = _strategy("swarm:code-analyzer", result=False)
        dispatcher = RemediationDispatcher(
            {
                FailureCategory.BUILD: raising,
                FailureCategory.TEST: crashing,
                FailureCategory.LINT: declining,
            },
            IterationConfig(),
        )
        counters = {}

        results = await dispatcher.dispatch(
            [_failure(FailureCategory.BUILD, "build"), _failure(), _failure(FailureCategory.LINT, "lint")],
            counters,
        )

        assert all(r.outcome == RemediationOutcome.ERRORED for r in results)
        assert results[0].error_detail == "agent exited with code 1"
        assert results[1].error_detail == "RuntimeError: boom"
        assert "did not apply" in results[2].error_detail
        # Errored attempts still count
        assert counters == {FailureCategory.BUILD: 1, FailureCategory.TEST: 1, FailureCategory.LINT: 1}

    asyncio.run(run_test())


def test_sync_callable_strategy():
    async def run_test():
        def fixer(failure):
            return True

        dispatcher = RemediationDispatcher({FailureCategory.TEST: fixer}, IterationConfig())
        results = await dispatcher.dispatch([_failure()], {})

        assert results[0].outcome == RemediationOutcome.APPLIED
        assert results[0].strategy_used == "fixer"

    asyncio.run(run_test())


def test_empty_failures():
    async def run_test():
        dispatcher = RemediationDispatcher({}, IterationConfig())
        assert await dispatcher.dispatch([], {}) == []

    asyncio.run(run_test())


# ===================================================================
# Execution modes
# ===================================================================
def test_sequential_mode_runs_one_at_a_time_in_order():
    async def run_test():
        events = []
        strategies = {
            FailureCategory.SECURITY: RecordingStrategy("sec", events, delay=0.01),
            FailureCategory.TEST: RecordingStrategy("test", events),
        }
        dispatcher = RemediationDispatcher(strategies, IterationConfig(parallel=False))

        await dispatcher.dispatch(
            [_failure(FailureCategory.SECURITY, "security-scan"), _failure(name="unit")],
            {},
        )

        assert events == [
            ("start", "security-scan"), ("end", "security-scan"),
            ("start", "unit"), ("end", "unit"),
        ]

    asyncio.run(run_test())


def test_parallel_mode_overlaps_categories_but_serializes_same_category():
    async def run_test():
        events = []
        strategies = {
            FailureCategory.SECURITY: RecordingStrategy("sec", events, delay=0.05),
            FailureCategory.TEST: RecordingStrategy("test", events, delay=0.01),
        }
        config = IterationConfig(parallel=True, max_attempts_per_category={"test": 5})
        dispatcher = RemediationDispatcher(strategies, config)
        failures = [
            _failure(FailureCategory.SECURITY, "security-scan"),
            _failure(name="unit"),
            _failure(name="e2e"),
        ]

        results = await dispatcher.dispatch(failures, {})

        # Test work started before the slow security fix finished
        assert events.index(("start", "unit")) < events.index(("end", "security-scan"))
        # Same-category failures never overlap
        assert events.index(("end", "unit")) < events.index(("start", "e2e"))
        # Results come back in input order
        assert [r.failure_ref.raw_check_name for r in results] == ["security-scan", "unit", "e2e"]

    asyncio.run(run_test())


def test_parallel_mode_counts_each_failure_once():
    async def run_test():
        config = IterationConfig(parallel=True, max_attempts_per_category={"test": 2, "build": 2})
        dispatcher = RemediationDispatcher(
            {FailureCategory.TEST: _strategy(), FailureCategory.BUILD: _strategy()},
            config,
        )
        counters = {}
        failures = [_failure(FailureCategory.BUILD, "build"), _failure(name="a"), _failure(name="b"), _failure(name="c")]

        results = await dispatcher.dispatch(failures, counters)

        assert counters == {FailureCategory.BUILD: 1, FailureCategory.TEST: 2}
        assert [r.outcome for r in results][-1] == RemediationOutcome.ATTEMPT_LIMIT_EXCEEDED

    asyncio.run(run_test())
