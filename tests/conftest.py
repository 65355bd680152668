import asyncio
import json
import os
import pathlib
import tempfile
from datetime import datetime, timedelta, timezone

# settings are read at import time; keep the module-level engine off the
# developer's database
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite:///" + os.path.join(tempfile.mkdtemp(prefix="cv-eval-"), "default.sqlite3"),
)

import pytest

from domain.schemas import Snippet
from domain.services.evaluation_pipeline import EvaluationPipeline
from infra.db.session import init_db, make_engine, make_session_factory
from infra.llm.prompts import REPAIR_PROMPT
from infra.queue.job_queue import JobQueue
from infra.repositories.files_repository import FilesRepository
from infra.repositories.jobs_repository import JobsRepository

VALID_CV = json.dumps({
    "technical_skills": 5,
    "experience_level": 4,
    "achievements": 4,
    "cultural_fit": 4,
    "cv_match_rate": 0.86,
    "cv_feedback": "Strong backend profile",
})
VALID_PROJECT = json.dumps({
    "correctness": 4,
    "code_quality": 4,
    "resilience": 3,
    "documentation": 4,
    "creativity": 3,
    "project_score": 3.75,
    "project_feedback": "Solid RAG pipeline, light on retries",
})
VALID_SYNTHESIS = json.dumps({
    "overall_summary": "Experienced backend engineer with a workable project.",
    "recommendation": "Interview",
})


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


class FakeLLM:
    """Scripted chat model. Each stage pops its replies; the last one repeats."""

    def __init__(self, cv=None, project=None, synthesis=None, delay: float = 0.0):
        self.replies = {
            "cv": list(cv or [VALID_CV]),
            "project": list(project or [VALID_PROJECT]),
            "synthesis": list(synthesis or [VALID_SYNTHESIS]),
        }
        self.delay = delay
        self.calls = []
        self._last_stage = None

    async def complete(self, messages, *, temperature=0.2, max_tokens=None):
        if self.delay:
            await asyncio.sleep(self.delay)
        user = messages[-1]["content"]
        repair = messages[0]["content"] == REPAIR_PROMPT
        if repair:
            stage = self._last_stage
        elif "Candidate CV:" in user:
            stage = "cv"
        elif "Project report:" in user:
            stage = "project"
        else:
            stage = "synthesis"
        self._last_stage = stage
        self.calls.append({"stage": stage, "repair": repair,
                           "messages": messages, "temperature": temperature})
        replies = self.replies[stage]
        return replies.pop(0) if len(replies) > 1 else replies[0]

    def stage_calls(self, stage):
        return [c for c in self.calls if c["stage"] == stage]


class FakeEmbedder:
    def __init__(self, dim: int = 4, error: Exception = None, delay: float = 0.0):
        self.dim = dim
        self.error = error
        self.delay = delay
        self.queries = []

    async def embed(self, text):
        if self.delay:
            await asyncio.sleep(self.delay)
        self.queries.append(text)
        if self.error is not None:
            raise self.error
        return [float(len(text) % 7)] + [0.5] * (self.dim - 1)


class FakeRetriever:
    def __init__(self, snippets=None):
        self.snippets = snippets if snippets is not None else [
            Snippet(text="Backend role: APIs, databases, cloud.", metadata={"doc_type": "job_description"}),
            Snippet(text="Rubric: correctness 30%, code quality 25%.", metadata={"doc_type": "rubric"}),
        ]
        self.searches = []

    async def search(self, collection, vector, top_k=5):
        self.searches.append((collection, list(vector), top_k))
        return list(self.snippets[:top_k])


@pytest.fixture
def engine(tmp_path: pathlib.Path):
    eng = make_engine(f"sqlite:///{tmp_path / 'test.sqlite3'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def jobs_repo(session_factory, clock):
    return JobsRepository(session_factory, clock=clock)


@pytest.fixture
def files_repo(session_factory):
    return FilesRepository(session_factory)


@pytest.fixture
def job_queue(session_factory, clock):
    return JobQueue("evaluation", lease_seconds=300, max_stalled_count=3,
                    session_factory=session_factory, clock=clock)


@pytest.fixture
def store_document(files_repo, tmp_path):
    """Save a plain-text 'document' and return its id."""

    def _store(file_id: str, text: str, ftype: str = "cv") -> str:
        path = tmp_path / f"{file_id}.pdf"
        path.write_bytes(text.encode("utf-8"))
        return files_repo.save(ftype=ftype, path=str(path), name=f"{file_id}.pdf", file_id=file_id)

    return _store


@pytest.fixture
def make_pipeline(jobs_repo, files_repo):
    def _make(llm=None, embedder=None, retriever=None, **kwargs):
        return EvaluationPipeline(
            store=jobs_repo,
            documents=files_repo,
            embedder=embedder or FakeEmbedder(),
            retriever=retriever or FakeRetriever(),
            llm=llm or FakeLLM(),
            extract_text=lambda data: data.decode("utf-8"),
            **kwargs,
        )

    return _make
