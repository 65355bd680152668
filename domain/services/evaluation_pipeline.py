import asyncio
import json
import logging
from typing import Callable, Dict, List, Optional

from domain.errors import DocumentMissing, RevisionConflict
from domain.schemas import (
    CVEvaluationPayload,
    Job,
    JobResult,
    ProjectEvaluationPayload,
    Snippet,
    SynthesisPayload,
)
from domain.services import rubric
from domain.services.structured_output import request_structured
from infra.db.session import utcnow
from infra.llm.prompts import (
    CV_EVAL_PROMPT,
    EVALUATOR_SYSTEM,
    FINAL_SUMMARY_PROMPT,
    PROJECT_EVAL_PROMPT,
)
from infra.pdf.parser import extract_text as pdf_extract_text

logger = logging.getLogger("evaluation_pipeline")

STEPS = (
    "parse_files",
    "retrieve_cv_context",
    "cv_scoring",
    "retrieve_project_context",
    "project_scoring",
    "synthesis",
)


def _join_refs(refs: List[Snippet]) -> str:
    return "\n---\n".join(r.text for r in refs if r.text) or "(no references found)"


class EvaluationPipeline:
    """Drives one job from ``queued`` to ``completed`` or ``failed``.

    Every step transition is a compare-and-set write against the revision this
    worker last wrote, so a worker whose job was redelivered elsewhere stops
    at its next write with ``RevisionConflict``. The final write sets
    ``completed`` and clears the step.
    """

    def __init__(
        self,
        store,
        documents,
        embedder,
        retriever,
        llm,
        *,
        extract_text: Callable[[bytes], str] = pdf_extract_text,
        collection: str = "system_docs",
        top_k: int = 5,
        query_max_chars: int = 2000,
        max_tokens: Optional[int] = None,
    ):
        self.store = store
        self.documents = documents
        self.embedder = embedder
        self.retriever = retriever
        self.llm = llm
        self.extract_text = extract_text
        self.collection = collection
        self.top_k = top_k
        self.query_max_chars = query_max_chars
        self.max_tokens = max_tokens

    async def run(self, job_id: str) -> Job:
        job = self.store.get(job_id)
        if job.is_terminal:
            logger.info(f"Job {job_id} already {job.status}; nothing to do")
            return job

        logger.info(f"=== Starting evaluation job {job_id} ===")
        job = self._advance(job, "parse_files")
        inp = job.input
        try:
            cv_text = await self._load_text(inp.cv_document_id)
            project_text = await self._load_text(inp.project_document_id)
            logger.info(f"CV text length: {len(cv_text)} chars")
            logger.info(f"Project text length: {len(project_text)} chars")

            job = self._advance(job, "retrieve_cv_context")
            cv_refs = await self._retrieve(f"{inp.job_title} {cv_text}")
            logger.info(f"Retrieved {len(cv_refs)} CV references")

            job = self._advance(job, "cv_scoring")
            cv_eval = await self._score_cv(inp.job_title, cv_text, cv_refs)
            logger.info(f"CV evaluation: match_rate={cv_eval['cv_match_rate']}")

            job = self._advance(job, "retrieve_project_context")
            project_refs = await self._retrieve(f"{project_text} {inp.job_title}")
            logger.info(f"Retrieved {len(project_refs)} project references")

            job = self._advance(job, "project_scoring")
            project_eval = await self._score_project(inp.job_title, project_text, project_refs)
            logger.info(f"Project evaluation: score={project_eval['project_score']}")

            # both evaluations are plain values here; synthesis reads them directly
            job = self._advance(job, "synthesis")
            synthesis = await self._synthesize(inp.job_title, cv_eval, project_eval)

            result = JobResult(
                cv_match_rate=cv_eval["cv_match_rate"],
                cv_feedback=cv_eval["cv_feedback"],
                project_score=project_eval["project_score"],
                project_feedback=project_eval["project_feedback"],
                overall_summary=synthesis["overall_summary"],
                recommendation=synthesis["recommendation"],
            )
            job = self.store.put(job.model_copy(update={
                "status": "completed",
                "step": None,
                "result": result,
                "error": None,
                "completed_at": utcnow(),
            }), expected_revision=job.revision)
        except RevisionConflict:
            logger.warning(f"Job {job_id} was taken over by another worker; stopping")
            raise
        except Exception as exc:
            logger.exception(f"Job {job_id} failed at step {job.step}: {exc}")
            self._record_failure(job, exc)
            raise
        logger.debug(f"Final combined result:\n{result.model_dump_json(indent=2)}")
        logger.info(f"=== Evaluation job {job_id} completed ===")
        return job

    def _advance(self, job: Job, step: str) -> Job:
        if step not in STEPS:
            raise ValueError(f"unknown pipeline step: {step}")
        job = self.store.put(job.model_copy(update={"status": "processing", "step": step}),
                             expected_revision=job.revision)
        logger.info(f"Job {job.id}: step={step}")
        return job

    def _record_failure(self, job: Job, exc: Exception) -> None:
        """Persist the failure.

        A concurrent write means another worker owns the job, so the conflict
        replaces the original error. Any other write error is logged; the
        queue consumer fails the record again before it drops the lease.
        """
        failed = job.model_copy(update={
            "status": "failed",
            "step": None,
            "result": None,
            "error": str(exc) or exc.__class__.__name__,
            "completed_at": utcnow(),
        })
        try:
            self.store.put(failed, expected_revision=job.revision)
        except RevisionConflict:
            logger.warning(f"Job {job.id}: failure not recorded, record changed concurrently")
            raise
        except Exception:
            logger.exception(f"Job {job.id}: could not persist failure")

    async def _load_text(self, document_id: str) -> str:
        if self.documents.get(document_id) is None:
            raise DocumentMissing(document_id)
        data = self.documents.read_bytes(document_id)
        # pdfplumber is CPU bound; keep the worker's event loop free
        return await asyncio.to_thread(self.extract_text, data)

    async def _retrieve(self, query: str) -> List[Snippet]:
        # only the retrieval query is truncated; scoring prompts get full text
        vector = await self.embedder.embed(query[: self.query_max_chars])
        return await self.retriever.search(self.collection, vector, self.top_k)

    async def _score_cv(self, job_title: str, cv_text: str, refs: List[Snippet]) -> Dict:
        content = (
            f"{CV_EVAL_PROMPT}\n\nJob title: {job_title}\n\n"
            f"References:\n{_join_refs(refs[: self.top_k])}\n\nCandidate CV:\n{cv_text}"
        )
        messages = [
            {"role": "system", "content": EVALUATOR_SYSTEM},
            {"role": "user", "content": content},
        ]
        payload = await request_structured(self.llm, messages, CVEvaluationPayload,
                                           temperature=0.1, max_tokens=self.max_tokens)
        if payload is None:
            payload = CVEvaluationPayload()
        scores = {k: getattr(payload, k) for k in rubric.CV_WEIGHTS}
        out = {k: v if v is not None else 0 for k, v in scores.items()}
        out["cv_match_rate"] = rubric.cv_match_rate(scores, payload.cv_match_rate)
        out["cv_feedback"] = payload.cv_feedback
        return out

    async def _score_project(self, job_title: str, project_text: str, refs: List[Snippet]) -> Dict:
        content = (
            f"{PROJECT_EVAL_PROMPT}\n\nJob title: {job_title}\n\n"
            f"References:\n{_join_refs(refs[: self.top_k])}\n\nProject report:\n{project_text}"
        )
        messages = [
            {"role": "system", "content": EVALUATOR_SYSTEM},
            {"role": "user", "content": content},
        ]
        payload = await request_structured(self.llm, messages, ProjectEvaluationPayload,
                                           temperature=0.1, max_tokens=self.max_tokens)
        if payload is None:
            payload = ProjectEvaluationPayload()
        scores = {k: getattr(payload, k) for k in rubric.PROJECT_WEIGHTS}
        out = {k: v if v is not None else 0 for k, v in scores.items()}
        out["project_score"] = rubric.project_score(scores, payload.project_score)
        out["project_feedback"] = payload.project_feedback
        return out

    async def _synthesize(self, job_title: str, cv_eval: Dict, project_eval: Dict) -> Dict:
        content = (
            f"{FINAL_SUMMARY_PROMPT}\n\nJob title: {job_title}\n"
            f"CV Eval JSON: {json.dumps(cv_eval)}\nProject Eval JSON: {json.dumps(project_eval)}"
        )
        messages = [
            {"role": "system", "content": "Return only valid JSON."},
            {"role": "user", "content": content},
        ]
        payload = await request_structured(self.llm, messages, SynthesisPayload,
                                           temperature=0.2, max_tokens=self.max_tokens)
        if payload is None:
            payload = SynthesisPayload()
        return {
            "overall_summary": payload.overall_summary,
            "recommendation": payload.recommendation or "",
        }
