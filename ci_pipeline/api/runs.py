"""
GET  /runs                    — recent runs, newest first
GET  /runs/{run_id}           — one run with per-stage status and artifact sets
POST /runs/{run_id}/cancel    — operator abort; artifacts are still collected
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from ci_pipeline.api.deps import get_registry
from ci_pipeline.models.pipeline_run import PipelineRun
from ci_pipeline.state.run_registry import RunRegistry

router = APIRouter(prefix="/runs")


@router.get("", response_model=List[PipelineRun])
async def list_runs(registry: RunRegistry = Depends(get_registry)):
    return registry.list_runs()


@router.get("/{run_id}", response_model=PipelineRun)
async def get_run(run_id: str, registry: RunRegistry = Depends(get_registry)):
    run = registry.get(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return run


@router.post("/{run_id}/cancel")
async def cancel_run(run_id: str, response: Response, registry: RunRegistry = Depends(get_registry)):
    run = registry.get(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    if not registry.cancel(run_id):
        raise HTTPException(status_code=409, detail=f"Run {run_id} is not active (status={run.status.value})")
    response.status_code = 202
    return {"run_id": run_id, "cancel_requested": True}
