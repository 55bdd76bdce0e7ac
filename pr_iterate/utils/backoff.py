"""
Backoff Scheduler
=================
Computes the delay between remediation passes.

    EXPONENTIAL  delay = min(initial_delay * multiplier ** (n - 1), max_delay)
    LINEAR       delay = min(initial_delay * n, max_delay)
    FIXED        delay = initial_delay

Exponential is the default: it keeps pressure off the status-check API on long
runs while still re-polling quickly after the first fixes land.
"""
from typing import Optional

from pr_iterate.core.config import IterationConfig
from pr_iterate.core.constants import BackoffStrategy


def next_delay(
    iteration_number: int,
    strategy: Optional[BackoffStrategy],
    config: IterationConfig,
) -> float:
    """Return the delay in seconds to wait after pass `iteration_number` (>= 1)."""
    strategy = strategy or config.backoff_strategy

    if strategy == BackoffStrategy.FIXED:
        return config.initial_delay

    if strategy == BackoffStrategy.LINEAR:
        return min(config.initial_delay * iteration_number, config.max_delay)

    if config.initial_delay <= 0:
        return 0.0
    try:
        delay = config.initial_delay * config.multiplier ** (iteration_number - 1)
    except OverflowError:
        return config.max_delay
    return min(delay, config.max_delay)
