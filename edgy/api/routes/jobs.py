"""Job inspection endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from ..deps import get_job_store
from ..schemas.jobs import JobList, JobResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["jobs"])


@router.get("/jobs", response_model=JobList)
async def list_jobs(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    job_store=Depends(get_job_store),
):
    """List jobs, newest first, without their results."""
    jobs = [j.to_dict(include_result=False) for j in job_store.list(limit=limit, offset=offset)]
    return JobList(jobs=jobs, count=len(jobs))


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, job_store=Depends(get_job_store)):
    job = job_store.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobResponse(**job.to_dict())


@router.delete("/jobs/{job_id}")
async def delete_job(job_id: str, job_store=Depends(get_job_store)):
    if not job_store.delete(job_id):
        raise HTTPException(status_code=404, detail="Job not found")
    logger.info(f"Deleted job {job_id}")
    return {"success": True, "id": job_id}
