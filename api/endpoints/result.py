from fastapi import APIRouter, Depends
from app.dependencies import get_jobs_repo
from domain.schemas import JobStatusResponse
from infra.repositories.jobs_repository import JobsRepository

router = APIRouter()


@router.get("/result/{job_id}", response_model=JobStatusResponse, response_model_exclude_none=True)
async def get_result(job_id: str,
                     jobs_repo: JobsRepository = Depends(get_jobs_repo)) -> JobStatusResponse:
    job = jobs_repo.get(job_id)
    return JobStatusResponse(id=job.id, status=job.status, result=job.result, error=job.error)
