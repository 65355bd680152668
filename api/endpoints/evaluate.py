import logging
from fastapi import APIRouter, Depends, HTTPException
from app.dependencies import get_files_repo, get_jobs_repo, get_queue
from domain.schemas import EvaluateRequest, JobInput, JobStatusResponse
from infra.queue.job_queue import JobQueue
from infra.repositories.files_repository import FilesRepository
from infra.repositories.jobs_repository import JobsRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/evaluate", response_model=JobStatusResponse, status_code=202)
async def evaluate(body: EvaluateRequest,
                   jobs_repo: JobsRepository = Depends(get_jobs_repo),
                   files_repo: FilesRepository = Depends(get_files_repo),
                   queue: JobQueue = Depends(get_queue)) -> JobStatusResponse:
    if not (files_repo.exists(body.cv_id) and files_repo.exists(body.project_id)):
        raise HTTPException(
            status_code=404, detail="cv_id or project_id not found")

    job_id = jobs_repo.new_job_id()
    jobs_repo.create(job_id, JobInput(job_title=body.job_title,
                                      cv_document_id=body.cv_id,
                                      project_document_id=body.project_id))
    try:
        queue.enqueue(job_id)
    except Exception as exc:
        logger.exception("Could not enqueue %s", job_id)
        jobs_repo.fail(job_id, f"could not enqueue job: {exc}")
        raise
    return JobStatusResponse(id=job_id, status="queued")
