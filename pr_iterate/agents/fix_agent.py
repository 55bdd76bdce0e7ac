"""
Fix Agent
=========
Remediation strategies invoked by the RemediationDispatcher, one per failure
category.

A strategy is any object with a `name` and an async `__call__(failure)` that
returns True when the fix was applied. Returning False or raising means the
attempt errored; the dispatcher records it and moves on.

Strategies:
    SwarmAgentStrategy  — spawns a claude-flow swarm with a category-specific agent
    DryRunStrategy      — logs what would be done and reports success

The strategies do NOT:
    - Count attempts (that's the dispatcher's job)
    - Retry (cross-pass retry is driven by the IterationController)
    - Poll CI (that's ci_monitor's job)
"""
import asyncio
import logging
from typing import Dict, List, Optional, Protocol, Sequence

from pr_iterate.core.constants import CATEGORY_AGENTS, FailureCategory
from pr_iterate.core.errors import StrategyErrored
from pr_iterate.models.classified_failure import ClassifiedFailure

logger = logging.getLogger(__name__)

# npx claude-flow@alpha swarm "<objective>" --claude
DEFAULT_SWARM_COMMAND: List[str] = ["npx", "claude-flow@alpha", "swarm", "{objective}", "--claude"]

# Max characters of failure detail forwarded into the objective
_DETAIL_LIMIT = 500
_STDERR_TAIL = 400


class RemediationStrategy(Protocol):
    name: str

    async def __call__(self, failure: ClassifiedFailure) -> bool: ...


def build_objective(failure: ClassifiedFailure, agent: str, target_id: str = "") -> str:
    """Build the natural-language task handed to the swarm."""
    where = f" on PR #{target_id}" if target_id else ""
    detail = failure.detail_text.strip()[:_DETAIL_LIMIT]
    objective = (
        f"As a {agent} agent, fix the failing {failure.category.value} check "
        f"'{failure.raw_check_name}'{where}."
    )
    if detail:
        objective += f" Failure detail: {detail}"
    return objective


class SwarmAgentStrategy:
    """
    Shells out to the claude-flow CLI to remediate one failure.
    """

    def __init__(
        self,
        category: FailureCategory,
        target_id: str = "",
        command: Sequence[str] = DEFAULT_SWARM_COMMAND,
        timeout: Optional[float] = None,
        cwd: Optional[str] = None,
    ) -> None:
        self.category = category
        self.agent = CATEGORY_AGENTS[category]
        self.name = f"swarm:{self.agent}"
        self.target_id = target_id
        self.command = list(command)
        self.timeout = timeout
        self.cwd = cwd

    def build_command(self, failure: ClassifiedFailure) -> List[str]:
        objective = build_objective(failure, self.agent, self.target_id)
        return [part.replace("{objective}", objective) for part in self.command]

    async def __call__(self, failure: ClassifiedFailure) -> bool:
        argv = self.build_command(failure)
        logger.info("Spawning %s agent for %s", self.agent, failure.raw_check_name)

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=self.cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise StrategyErrored(f"Could not start {argv[0]}: {exc}") from exc

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise StrategyErrored(
                f"{self.agent} agent timed out after {self.timeout:.0f}s on {failure.raw_check_name}"
            )

        if proc.returncode != 0:
            tail = (stderr or b"").decode("utf-8", errors="replace").strip()[-_STDERR_TAIL:]
            raise StrategyErrored(
                f"{self.agent} agent exited with code {proc.returncode}: {tail or 'no output'}"
            )
        return True


class DryRunStrategy:
    """Reports success without touching anything."""

    def __init__(self, category: FailureCategory, target_id: str = "") -> None:
        self.category = category
        self.agent = CATEGORY_AGENTS[category]
        self.name = f"dry-run:{self.agent}"
        self.target_id = target_id

    async def __call__(self, failure: ClassifiedFailure) -> bool:
        logger.info("[DRY RUN] Would run: %s", build_objective(failure, self.agent, self.target_id))
        return True


def build_strategies(config, target_id: str = "") -> Dict[FailureCategory, RemediationStrategy]:
    """
    Resolve the category → strategy mapping once per run.
    Disabled categories are left unmapped, which the dispatcher records as SKIPPED.
    """
    strategies: Dict[FailureCategory, RemediationStrategy] = {}
    for category in FailureCategory:
        if category in config.disabled_categories:
            continue
        if config.dry_run:
            strategies[category] = DryRunStrategy(category, target_id)
        else:
            strategies[category] = SwarmAgentStrategy(
                category, target_id, timeout=config.strategy_timeout
            )
    return strategies
