"""
Orchestrator Agent
==================
The IterationController: drives one pull request through the
Poll → Classify → Dispatch → Record loop until it succeeds, hits the
iteration cap, or runs out of time.

State machine (IterationState.status):
    RUNNING → SUCCEEDED     poll at the top of a pass reports all checks passed
    RUNNING → CAP_REACHED   about to start a pass with iteration_count == max_iterations
    RUNNING → TIMED_OUT     a pass boundary is reached after the deadline, or the
                            backoff before the next pass would end after it
    RUNNING → FAILED        the target is rejected before the first pass

Failure semantics:
    - Poll failures consume a pass and are recorded on it (poll_error)
    - Strategy errors are recorded per failure and never abort the run
    - The deadline is only checked between passes; an in-flight pass finishes

Passes are strictly sequential. Backoff between passes comes from
utils/backoff.py; the loop never sleeps past the deadline.
"""
import time
import asyncio
import logging
from typing import Callable, Optional

from pr_iterate.core.config import IterationConfig
from pr_iterate.core.constants import RunStatus
from pr_iterate.core.errors import InvalidTarget, PollFailed
from pr_iterate.models.check_snapshot import CheckSnapshot
from pr_iterate.models.iteration_record import IterationRecord
from pr_iterate.parser.classification import FailureClassifier
from pr_iterate.state.iteration_state import IterationState
from pr_iterate.utils.backoff import next_delay

from .ci_monitor import CheckPoller, GitHubCheckPoller
from .dispatcher import RemediationDispatcher
from .fix_agent import build_strategies

logger = logging.getLogger(__name__)

RecordCallback = Callable[[IterationState, IterationRecord], None]


class IterationController:
    """
    Runs the remediation loop for a single target.

    The controller owns nothing beyond the run in progress: the IterationState
    it creates is returned to the caller once terminal.
    """

    def __init__(
        self,
        poller: CheckPoller,
        dispatcher: RemediationDispatcher,
        config: IterationConfig,
        classifier: Optional[FailureClassifier] = None,
        on_record: Optional[RecordCallback] = None,
    ) -> None:
        self.poller = poller
        self.dispatcher = dispatcher
        self.config = config
        self.classifier = classifier or FailureClassifier.from_config(config)
        self.on_record = on_record
        self.state: Optional[IterationState] = None

    @classmethod
    def from_config(
        cls,
        config: IterationConfig,
        target_id: str,
        on_record: Optional[RecordCallback] = None,
    ) -> "IterationController":
        """Wire the GitHub poller and the claude-flow strategies for `target_id`."""
        dispatcher = RemediationDispatcher(build_strategies(config, str(target_id)), config)
        return cls(
            poller=GitHubCheckPoller.from_config(config),
            dispatcher=dispatcher,
            config=config,
            on_record=on_record,
        )

    async def run(self, target_id: str) -> IterationState:
        """Execute the full remediation loop and return the terminal state."""
        state = IterationState.start(target_id, self.config.max_iterations, self.config.timeout)
        self.state = state
        logger.info(
            "Starting remediation of %s: max_iterations=%d timeout=%.0fs backoff=%s parallel=%s",
            state.target_id, state.max_iterations, self.config.timeout,
            self.config.backoff_strategy.value, self.config.parallel,
        )

        # --- Setup: reject unusable targets before any pass ---
        try:
            await self.poller.verify_target(state.target_id)
        except InvalidTarget as exc:
            logger.error("Target %s rejected: %s", state.target_id, exc)
            state.finish(RunStatus.FAILED, f"Invalid target: {exc}")
            return state
        except PollFailed as exc:
            logger.warning("Could not verify target %s, continuing: %s", state.target_id, exc.reason)

        # --- Main loop ---
        while True:
            if state.cap_reached:
                state.finish(
                    RunStatus.CAP_REACHED,
                    f"Reached the cap of {state.max_iterations} iteration(s) without all checks passing.",
                )
                break

            now = time.time()
            if state.past_deadline(now):
                state.finish(
                    RunStatus.TIMED_OUT,
                    f"Timed out after {now - state.started_at:.0f}s "
                    f"({state.iteration_count} iteration(s) completed).",
                    now=now,
                )
                break

            record = await self._run_pass(state)
            state.append_record(record)
            if self.on_record:
                self.on_record(state, record)

            if record.poll_error is None and record.checks_after.all_passed:
                state.finish(
                    RunStatus.SUCCEEDED,
                    f"All checks passed after {state.iteration_count} iteration(s).",
                )
                break

            if state.cap_reached:
                continue

            # --- Backoff ---
            delay = next_delay(state.iteration_count, self.config.backoff_strategy, self.config)
            now = time.time()
            if now + delay > state.deadline:
                # The next pass could only start after the deadline
                state.finish(
                    RunStatus.TIMED_OUT,
                    f"Timed out after {now - state.started_at:.0f}s: the next iteration "
                    f"would start after the {self.config.timeout:.0f}s deadline "
                    f"({state.iteration_count} iteration(s) completed).",
                    now=now,
                )
                break
            if delay > 0:
                logger.info("Waiting %.1fs before iteration %d", delay, state.iteration_count + 1)
                await asyncio.sleep(delay)

        logger.info("Run for %s ended: %s. %s", state.target_id, state.status.value, state.end_reason)
        return state

    async def _run_pass(self, state: IterationState) -> IterationRecord:
        number = state.begin_pass()
        start = time.time()
        logger.info("--- Starting Iteration %d/%d for %s ---", number, state.max_iterations, state.target_id)

        # --- (a) Poll ---
        try:
            snapshot = await self.poller.poll(state.target_id)
        except PollFailed as exc:
            return self._poll_failed_record(number, start, exc.reason)
        except Exception as exc:
            logger.error("Poller crashed: %s", exc, exc_info=True)
            return self._poll_failed_record(number, start, f"{type(exc).__name__}: {exc}")

        if snapshot.all_passed:
            logger.info("Iteration %d: all checks passed", number)
            return IterationRecord(
                iteration_number=number,
                start_time=start,
                duration=time.time() - start,
                checks_after=snapshot,
            )

        # --- (b) Classify ---
        failures = self.classifier.classify(snapshot.failed)
        if not failures:
            logger.info("Iteration %d: no failures, %d check(s) pending", number, len(snapshot.pending))

        # --- (c) Dispatch ---
        remediations = await self.dispatcher.dispatch(failures, state.attempt_counters)

        return IterationRecord(
            iteration_number=number,
            start_time=start,
            duration=time.time() - start,
            failures_observed=failures,
            remediations_applied=remediations,
            checks_after=snapshot,
        )

    @staticmethod
    def _poll_failed_record(number: int, start: float, reason: str) -> IterationRecord:
        logger.warning("Iteration %d: poll failed: %s", number, reason)
        now = time.time()
        return IterationRecord(
            iteration_number=number,
            start_time=start,
            duration=now - start,
            checks_after=CheckSnapshot.unavailable(now),
            poll_error=reason,
        )
