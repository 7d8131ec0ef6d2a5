"""Migration job endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from ...jobs import Job
from ...runner import JobManager
from ..dependencies import get_job_manager
from ..models import (
    JobErrorsResponse,
    JobListResponse,
    JobLogsResponse,
    JobStatusResponse,
    JobSummary,
    MigrationStartRequest,
    MigrationStartResponse,
)

router = APIRouter()


def _get_job_or_404(manager: JobManager, job_id: str) -> Job:
    job = manager.tracker.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def _summary(job: Job) -> JobSummary:
    return JobSummary(
        id=job.id,
        status=job.status,
        progress=job.progress,
        processed_records=job.processed_records,
        total_records=job.total_records,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


@router.post("/start", response_model=MigrationStartResponse)
async def start_migration(
    request: MigrationStartRequest,
    manager: JobManager = Depends(get_job_manager)
):
    """Validate a migration config and start it in the background."""
    job_id = manager.start(request.config)
    return MigrationStartResponse(job_id=job_id)


@router.get("/jobs", response_model=JobListResponse)
async def list_jobs(manager: JobManager = Depends(get_job_manager)):
    """List all jobs."""
    jobs = [_summary(job) for job in manager.tracker.get_all_jobs()]
    return JobListResponse(jobs=jobs, total=len(jobs))


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_status(job_id: str, manager: JobManager = Depends(get_job_manager)):
    """Get the status of a job."""
    return JobStatusResponse(job=_summary(_get_job_or_404(manager, job_id)))


@router.get("/logs/{job_id}", response_model=JobLogsResponse)
async def get_logs(job_id: str, manager: JobManager = Depends(get_job_manager)):
    """Get the log entries of a job."""
    return JobLogsResponse(logs=_get_job_or_404(manager, job_id).logs)


@router.get("/errors/{job_id}", response_model=JobErrorsResponse)
async def get_errors(job_id: str, manager: JobManager = Depends(get_job_manager)):
    """Get the errors of a job."""
    return JobErrorsResponse(errors=_get_job_or_404(manager, job_id).errors)


@router.post("/cancel/{job_id}")
async def cancel_migration(job_id: str, manager: JobManager = Depends(get_job_manager)):
    """Request cancellation of a running job."""
    job = _get_job_or_404(manager, job_id)
    if not manager.cancel(job_id):
        raise HTTPException(
            status_code=400,
            detail=f"Cannot cancel job in status: {job.status}"
        )
    return {"success": True, "status": "cancelling"}


@router.delete("/{job_id}")
async def delete_job(job_id: str, manager: JobManager = Depends(get_job_manager)):
    """Delete a finished job."""
    job = _get_job_or_404(manager, job_id)
    if not job.is_finished:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete job in status: {job.status}"
        )
    manager.forget(job_id)
    return {"success": True, "status": "deleted"}
