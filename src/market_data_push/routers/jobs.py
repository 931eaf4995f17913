"""Scheduled job inspection and control."""
import logging

from dependency_injector.wiring import inject
from fastapi import APIRouter

from market_data_push.container import SchedulerDep
from market_data_push.routers.errors import DomainErrorMapper
from market_data_push.scheduler import JobNotFoundError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])

_errors = DomainErrorMapper(resource_name="Job")


@router.get("")
@inject
async def list_jobs(scheduler: SchedulerDep) -> list[dict]:
    """Status of every registered job (state, error count, next run)."""
    return scheduler.get_job_status()


@router.post("/{job_id}/pause")
@inject
async def pause_job(job_id: str, scheduler: SchedulerDep) -> dict[str, str]:
    try:
        scheduler.pause_job(job_id)
    except JobNotFoundError as e:
        _errors.raise_http(e)
    return {"id": job_id, "state": scheduler.job_state(job_id).value}


@router.post("/{job_id}/resume")
@inject
async def resume_job(job_id: str, scheduler: SchedulerDep) -> dict[str, str]:
    """Re-enable a job; its consecutive error count is reset."""
    try:
        scheduler.resume_job(job_id)
    except JobNotFoundError as e:
        _errors.raise_http(e)
    return {"id": job_id, "state": scheduler.job_state(job_id).value}


@router.post("/{job_id}/run")
@inject
async def run_job(job_id: str, scheduler: SchedulerDep) -> dict:
    """Run a job now and wait for it. Paused jobs are reported as skipped."""
    try:
        result = await scheduler.run_job(job_id)
    except JobNotFoundError as e:
        _errors.raise_http(e)
    return {
        "id": result.job_id,
        "success": result.success,
        "skipped": result.skipped,
        "duration": result.duration,
        "error": result.error,
    }
