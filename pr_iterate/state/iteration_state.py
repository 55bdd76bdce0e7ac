"""
Iteration State
Dataclass owning the full lifecycle of one remediation run.
Mutated only by the IterationController; read-only once status leaves RUNNING.
Fields: target_id, max_iterations, started_at, deadline, iteration_count, status, history, etc.
"""
import time
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Optional, Tuple

from pr_iterate.core.constants import RunStatus, TERMINAL_STATUSES
from pr_iterate.core.errors import InvalidState
from pr_iterate.models.iteration_record import IterationRecord


@dataclass
class IterationState:
    _target_id: str
    _max_iterations: int
    started_at: float = field(default_factory=time.time)
    deadline: float = 0.0

    iteration_count: int = 0
    status: RunStatus = RunStatus.RUNNING
    end_reason: str = ""
    ended_at: Optional[float] = None

    # Shared with the dispatcher for the duration of one dispatch call
    attempt_counters: Dict[Hashable, int] = field(default_factory=dict)

    _history: List[IterationRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self._max_iterations < 1:
            raise InvalidState("max_iterations must be a positive integer")

    @classmethod
    def start(cls, target_id: str, max_iterations: int, timeout: float) -> "IterationState":
        now = time.time()
        return cls(
            _target_id=str(target_id),
            _max_iterations=max_iterations,
            started_at=now,
            deadline=now + timeout,
        )

    @property
    def target_id(self) -> str:
        return self._target_id

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @property
    def history(self) -> Tuple[IterationRecord, ...]:
        return tuple(self._history)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def cap_reached(self) -> bool:
        return self.iteration_count >= self._max_iterations

    def past_deadline(self, now: float) -> bool:
        return now > self.deadline

    def _ensure_running(self) -> None:
        if self.is_terminal:
            raise InvalidState(
                f"Run for target {self._target_id} already ended with status {self.status.value}"
            )

    def begin_pass(self) -> int:
        """Advance the iteration counter and return the new pass number."""
        self._ensure_running()
        if self.cap_reached:
            raise InvalidState(f"Iteration cap of {self._max_iterations} already reached")
        self.iteration_count += 1
        return self.iteration_count

    def append_record(self, record: IterationRecord) -> None:
        """Append-only: exactly one record per begun pass, in pass order."""
        self._ensure_running()
        if record.iteration_number != self.iteration_count or len(self._history) != self.iteration_count - 1:
            raise InvalidState(
                f"Record for pass {record.iteration_number} does not match "
                f"iteration_count={self.iteration_count}, history={len(self._history)}"
            )
        self._history.append(record)

    def finish(self, status: RunStatus, reason: str, now: Optional[float] = None) -> None:
        self._ensure_running()
        if status not in TERMINAL_STATUSES:
            raise InvalidState(f"{status.value} is not a terminal status")
        self.status = status
        self.end_reason = reason
        self.ended_at = now if now is not None else time.time()
