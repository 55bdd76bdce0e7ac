"""
GET /runs/{target}/report
Returns the final Report of a finished run.
"""
from fastapi import APIRouter, HTTPException

from pr_iterate.services import run_registry

router = APIRouter()


@router.get("/runs/{target}/report")
async def get_results(target: str):
    entry = run_registry.get_run(target)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"No run for {target}")
    if entry.error:
        raise HTTPException(status_code=500, detail=entry.error)
    if entry.report is None:
        raise HTTPException(status_code=409, detail=f"Run for {target} is still in progress")
    return entry.report.model_dump(mode="json")
