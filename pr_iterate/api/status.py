"""
GET /runs/{target}/status
Provides progress polling for a run: status, pass count and the latest pass.
"""
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from pr_iterate.core.output_formatter import format_record_lines
from pr_iterate.services import run_registry

router = APIRouter()


class RunStatusResponse(BaseModel):
    target: str
    status: str
    iteration_count: int
    max_iterations: int
    reason: str = ""
    last_iteration: List[str] = []
    error: Optional[str] = None


@router.get("/runs/{target}/status", response_model=RunStatusResponse)
async def get_status(target: str):
    entry = run_registry.get_run(target)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"No run for {target}")

    state = entry.state
    if state is None:
        # Scheduled, but the controller has not created its state yet
        return RunStatusResponse(
            target=entry.target_id,
            status="pending",
            iteration_count=0,
            max_iterations=entry.controller.config.max_iterations,
        )

    history = state.history
    return RunStatusResponse(
        target=entry.target_id,
        status="error" if entry.error else state.status.value,
        iteration_count=state.iteration_count,
        max_iterations=state.max_iterations,
        reason=state.end_reason,
        last_iteration=format_record_lines(history[-1]) if history else [],
        error=entry.error or None,
    )
