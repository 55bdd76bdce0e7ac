"""
POST /runs
Accepts a pull request number plus optional config overrides.
Schedules the IterationController for that target in the background.
"""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, field_validator

from pr_iterate.agents.orchestrator import IterationController
from pr_iterate.core.config import load_config
from pr_iterate.core.constants import BackoffStrategy
from pr_iterate.core.errors import InvalidConfiguration
from pr_iterate.services import run_registry

logger = logging.getLogger(__name__)

router = APIRouter()


class RunRequest(BaseModel):
    target: str
    repository: Optional[str] = None
    max_iterations: Optional[int] = None
    timeout: Optional[float] = None
    parallel: Optional[bool] = None
    backoff_strategy: Optional[BackoffStrategy] = None
    dry_run: Optional[bool] = None
    auto_fix: Optional[bool] = None
    webhook_url: Optional[str] = None

    @field_validator("target")
    @classmethod
    def validate_target(cls, v: str) -> str:
        v = v.strip().lstrip("#")
        if not v:
            raise ValueError("target must not be empty")
        return v


class RunAccepted(BaseModel):
    target: str
    status: str
    max_iterations: int
    timeout: float


@router.post("/runs", response_model=RunAccepted, status_code=202)
async def start_run(request: RunRequest):
    if run_registry.is_active(request.target):
        raise HTTPException(status_code=409, detail=f"A run for {request.target} is already in progress")

    overrides = request.model_dump(exclude={"target"}, exclude_none=True)
    try:
        config = load_config(overrides=overrides)
    except InvalidConfiguration as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    controller = IterationController.from_config(config, request.target)
    run_registry.start_run(request.target, controller)
    logger.info("Accepted run for %s", request.target)

    return RunAccepted(
        target=request.target,
        status="running",
        max_iterations=config.max_iterations,
        timeout=config.timeout,
    )
