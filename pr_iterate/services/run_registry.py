"""
Run Registry
============
In-process bookkeeping of remediation runs started through the HTTP API.

One run per target id at a time. Each entry keeps the controller (for live
state), the asyncio task driving it, and the final Report once it exists.
Runs for different targets are fully independent.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from pr_iterate.agents.orchestrator import IterationController
from pr_iterate.models.report import Report
from pr_iterate.services.notifier import send_webhook
from pr_iterate.services.reporter import generate_report
from pr_iterate.state.iteration_state import IterationState

logger = logging.getLogger(__name__)


@dataclass
class RunEntry:
    target_id: str
    controller: IterationController
    task: Optional[asyncio.Task] = None
    report: Optional[Report] = None
    error: str = ""

    @property
    def state(self) -> Optional[IterationState]:
        return self.controller.state

    @property
    def finished(self) -> bool:
        return self.task is not None and self.task.done()


_RUNS: Dict[str, RunEntry] = {}

# Finished runs kept for status/report lookups; older ones are dropped
MAX_FINISHED_RUNS = 50


def get_run(target_id: str) -> Optional[RunEntry]:
    return _RUNS.get(str(target_id))


def is_active(target_id: str) -> bool:
    entry = get_run(target_id)
    return entry is not None and not entry.finished


def clear() -> None:
    """Forget all finished runs."""
    for key in [k for k, e in _RUNS.items() if e.finished or e.task is None]:
        del _RUNS[key]


def prune(limit: Optional[int] = None) -> int:
    """Drop the oldest finished runs beyond `limit`. Returns how many were dropped."""
    limit = MAX_FINISHED_RUNS if limit is None else limit
    finished = [key for key, entry in _RUNS.items() if entry.finished]
    stale = finished[:max(0, len(finished) - limit)]
    for key in stale:
        del _RUNS[key]
    if stale:
        logger.info("Pruned %d finished run(s)", len(stale))
    return len(stale)


async def _drive(entry: RunEntry) -> None:
    try:
        state = await entry.controller.run(entry.target_id)
        entry.report = generate_report(state)
        webhook_url = entry.controller.config.webhook_url
        if webhook_url:
            await send_webhook(webhook_url, entry.report)
    except Exception as exc:
        entry.error = f"{type(exc).__name__}: {exc}"
        logger.error("Run for %s crashed: %s", entry.target_id, exc, exc_info=True)


def start_run(target_id: str, controller: IterationController) -> RunEntry:
    """Register and schedule a run on the running event loop."""
    entry = RunEntry(target_id=str(target_id), controller=controller)
    # Re-inserting moves the target to the newest position
    _RUNS.pop(entry.target_id, None)
    prune()
    _RUNS[entry.target_id] = entry
    entry.task = asyncio.create_task(_drive(entry))
    logger.info("Scheduled remediation run for %s", entry.target_id)
    return entry
