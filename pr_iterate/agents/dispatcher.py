"""
Remediation Dispatcher
======================
Selects and invokes the remediation strategy for each classified failure of
one pass, subject to per-category attempt limits.

Per failure, in the priority order produced by the classifier:
    1. counter >= max_attempts[category]    → ATTEMPT_LIMIT_EXCEEDED (counter untouched)
    2. auto-fix off / no strategy mapped    → SKIPPED (counter untouched)
    3. otherwise increment the counter and invoke the strategy:
         truthy return                      → APPLIED
         falsy return or exception          → ERRORED (detail captured)

Concurrency:
    sequential  — strictly one at a time, in sorted order
    parallel    — one asyncio task per category; failures of the same category
                  run one after another so their shared counter stays race-free

The dispatcher never retries within a call. Results always come back in the
sorted input order, whichever mode ran them.
"""
import asyncio
import inspect
import logging
from collections import OrderedDict
from typing import Callable, Dict, Hashable, List, Mapping, MutableMapping, Sequence, Tuple

from pr_iterate.core.config import IterationConfig
from pr_iterate.core.constants import AttemptScope, FailureCategory
from pr_iterate.core.errors import StrategyErrored
from pr_iterate.models.classified_failure import ClassifiedFailure
from pr_iterate.models.remediation_result import RemediationOutcome, RemediationResult

logger = logging.getLogger(__name__)

Strategy = Callable[[ClassifiedFailure], object]


def attempt_key(failure: ClassifiedFailure, scope: AttemptScope) -> Hashable:
    """Counter key for a failure under the configured attempt scope."""
    if scope == AttemptScope.CHECK:
        return (failure.category, failure.raw_check_name)
    return failure.category


def _strategy_name(strategy: Strategy) -> str:
    return getattr(strategy, "name", None) or getattr(strategy, "__name__", type(strategy).__name__)


class RemediationDispatcher:
    """
    Routes ClassifiedFailures to the strategy registered for their category.
    """

    def __init__(
        self,
        strategies: Mapping[FailureCategory, Strategy],
        config: IterationConfig,
    ) -> None:
        self.strategies = dict(strategies)
        self.config = config

    async def dispatch(
        self,
        failures: Sequence[ClassifiedFailure],
        attempt_counters: MutableMapping[Hashable, int],
    ) -> List[RemediationResult]:
        if not failures:
            return []

        if not self.config.parallel:
            return [await self._dispatch_one(f, attempt_counters) for f in failures]

        # Group by category, remembering each failure's position
        groups: "OrderedDict[FailureCategory, List[Tuple[int, ClassifiedFailure]]]" = OrderedDict()
        for index, failure in enumerate(failures):
            groups.setdefault(failure.category, []).append((index, failure))

        async def run_group(items: List[Tuple[int, ClassifiedFailure]]) -> List[Tuple[int, RemediationResult]]:
            out: List[Tuple[int, RemediationResult]] = []
            for index, failure in items:
                out.append((index, await self._dispatch_one(failure, attempt_counters)))
            return out

        logger.info("Dispatching %d failures across %d categories in parallel", len(failures), len(groups))
        grouped = await asyncio.gather(*(run_group(items) for items in groups.values()))

        ordered: Dict[int, RemediationResult] = {}
        for group_results in grouped:
            ordered.update(group_results)
        return [ordered[i] for i in range(len(failures))]

    async def _dispatch_one(
        self,
        failure: ClassifiedFailure,
        attempt_counters: MutableMapping[Hashable, int],
    ) -> RemediationResult:
        key = attempt_key(failure, self.config.attempt_scope)
        limit = self.config.max_attempts(failure.category)
        used = attempt_counters.get(key, 0)

        if used >= limit:
            logger.info(
                "Attempt limit reached for %s (%d/%d), skipping %s",
                failure.category.value, used, limit, failure.raw_check_name,
            )
            return RemediationResult(
                failure_ref=failure,
                outcome=RemediationOutcome.ATTEMPT_LIMIT_EXCEEDED,
            )

        strategy = self.strategies.get(failure.category)
        if not self.config.auto_fix or strategy is None:
            logger.info("No remediation for %s (%s)", failure.raw_check_name, failure.category.value)
            return RemediationResult(failure_ref=failure, outcome=RemediationOutcome.SKIPPED)

        attempt_counters[key] = used + 1
        name = _strategy_name(strategy)
        logger.info(
            "Remediating %s with %s (attempt %d/%d)",
            failure.raw_check_name, name, used + 1, limit,
        )

        try:
            applied = strategy(failure)
            if inspect.isawaitable(applied):
                applied = await applied
        except StrategyErrored as exc:
            logger.warning("Strategy %s errored on %s: %s", name, failure.raw_check_name, exc.detail)
            return self._errored(failure, name, exc.detail)
        except Exception as exc:
            logger.error("Strategy %s crashed on %s: %s", name, failure.raw_check_name, exc, exc_info=True)
            return self._errored(failure, name, f"{type(exc).__name__}: {exc}")

        if not applied:
            logger.warning("Strategy %s reported failure on %s", name, failure.raw_check_name)
            return self._errored(failure, name, f"{name} did not apply a fix")

        return RemediationResult(
            failure_ref=failure,
            strategy_used=name,
            outcome=RemediationOutcome.APPLIED,
        )

    @staticmethod
    def _errored(failure: ClassifiedFailure, name: str, detail: str) -> RemediationResult:
        return RemediationResult(
            failure_ref=failure,
            strategy_used=name,
            outcome=RemediationOutcome.ERRORED,
            error_detail=detail or "unknown error",
        )
