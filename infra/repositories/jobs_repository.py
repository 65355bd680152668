import uuid
import logging
from typing import Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from domain.errors import (
    InvalidJobRecord,
    InvalidTransition,
    JobAlreadyExists,
    JobNotFound,
    RevisionConflict,
)
from domain.schemas import Job, JobInput, JobResult, TERMINAL_STATUSES
from infra.db.session import SessionLocal, utcnow
from infra.db.models import JobRecord

logger = logging.getLogger("jobs_repository")

_STATUS_RANK = {"queued": 0, "processing": 1, "completed": 2, "failed": 2}


def _to_job(rec: JobRecord) -> Job:
    return Job(
        id=rec.id,
        status=rec.status,
        step=rec.step,
        input=JobInput(job_title=rec.job_title, cv_document_id=rec.cv_file_id,
                       project_document_id=rec.project_file_id),
        result=JobResult(**rec.result) if rec.result is not None else None,
        error=rec.error,
        revision=rec.revision,
        created_at=rec.created_at,
        updated_at=rec.updated_at,
        completed_at=rec.completed_at,
    )


def check_invariants(job: Job) -> None:
    if job.step and job.status != "processing":
        raise InvalidJobRecord(f"job {job.id}: step is only set while processing")
    if job.status == "completed":
        if job.result is None or job.error is not None:
            raise InvalidJobRecord(f"job {job.id}: completed jobs carry a result and no error")
    elif job.status == "failed":
        if not job.error or job.result is not None:
            raise InvalidJobRecord(f"job {job.id}: failed jobs carry an error and no result")
    elif job.result is not None or job.error is not None:
        raise InvalidJobRecord(f"job {job.id}: {job.status} jobs carry neither result nor error")


def check_transition(job_id: str, current: str, new: str) -> None:
    if current in TERMINAL_STATUSES:
        if new != current:
            raise InvalidTransition(job_id, current, new)
        return
    if _STATUS_RANK[new] < _STATUS_RANK[current]:
        raise InvalidTransition(job_id, current, new)
    # a job can fail before it starts, but only completes after processing
    if new == "completed" and current != "processing":
        raise InvalidTransition(job_id, current, new)


class JobsRepository:
    """Durable job records with compare-and-set writes keyed on ``revision``."""

    def __init__(self, session_factory=SessionLocal, clock=utcnow):
        self._session_factory = session_factory
        self._clock = clock

    @staticmethod
    def new_job_id() -> str:
        return f"job_{uuid.uuid4().hex}"

    def create(self, job_id: str, job_input: JobInput) -> Job:
        now = self._clock()
        rec = JobRecord(
            id=job_id, status="queued", step=None,
            job_title=job_input.job_title,
            cv_file_id=job_input.cv_document_id,
            project_file_id=job_input.project_document_id,
            revision=1, created_at=now, updated_at=now)
        with self._session_factory() as s:
            if s.get(JobRecord, job_id) is not None:
                raise JobAlreadyExists(job_id)
            s.add(rec)
            try:
                s.commit()
            except IntegrityError as exc:
                s.rollback()
                raise JobAlreadyExists(job_id) from exc
            return _to_job(rec)

    def get(self, job_id: str) -> Job:
        with self._session_factory() as s:
            rec = s.get(JobRecord, job_id)
            if rec is None:
                raise JobNotFound(job_id)
            return _to_job(rec)

    def put(self, job: Job, expected_revision: Optional[int] = None) -> Job:
        """Overwrite the mutable fields of a job record.

        With ``expected_revision`` the write only lands if the stored revision
        still matches, otherwise ``RevisionConflict`` is raised. Input fields
        are never written. Returns the record as stored, with its new revision.
        """
        check_invariants(job)
        with self._session_factory() as s:
            current = s.get(JobRecord, job.id)
            if current is None:
                raise JobNotFound(job.id)
            if expected_revision is not None and current.revision != expected_revision:
                raise RevisionConflict(job.id, expected_revision, current.revision)
            check_transition(job.id, current.status, job.status)

            now = self._clock()
            next_revision = current.revision + 1
            values = {
                "status": job.status,
                "step": job.step,
                "result": job.result.model_dump() if job.result is not None else None,
                "error": job.error,
                "completed_at": job.completed_at,
                "updated_at": now,
                "revision": next_revision,
            }
            res = s.execute(
                update(JobRecord)
                .where(JobRecord.id == job.id, JobRecord.revision == current.revision)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                s.rollback()
                raise RevisionConflict(job.id, current.revision, -1)
            s.commit()
            stored = _to_job(current).model_copy(update={
                "status": job.status,
                "step": job.step,
                "result": job.result,
                "error": job.error,
                "completed_at": job.completed_at,
                "updated_at": now,
                "revision": next_revision,
            })
        return stored

    def fail(self, job_id: str, error: str, attempts: int = 5) -> Optional[Job]:
        """Mark a job failed unless it already reached a terminal status.

        Re-reads and retries on revision conflicts. Returns the stored record,
        or ``None`` when the job had already finished.
        """
        for _ in range(attempts):
            job = self.get(job_id)
            if job.is_terminal:
                return None
            failed = job.model_copy(update={
                "status": "failed", "step": None, "result": None,
                "error": error, "completed_at": self._clock(),
            })
            try:
                return self.put(failed, expected_revision=job.revision)
            except RevisionConflict:
                logger.info("Retrying fail() for %s after a concurrent write", job_id)
        raise RevisionConflict(job_id, -1, -1)
