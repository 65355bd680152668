import pytest
from fastapi.testclient import TestClient

from app.dependencies import get_files_repo, get_jobs_repo, get_queue
from app.main import app
from app.settings import settings
from domain.schemas import JobResult


@pytest.fixture
def client(jobs_repo, files_repo, job_queue, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_DIR", str(tmp_path / "storage"))
    app.dependency_overrides[get_jobs_repo] = lambda: jobs_repo
    app.dependency_overrides[get_files_repo] = lambda: files_repo
    app.dependency_overrides[get_queue] = lambda: job_queue
    yield TestClient(app)
    app.dependency_overrides.clear()


def _upload(client):
    r = client.post("/upload", files={
        "cv": ("cv.pdf", b"%PDF-1.4 cv", "application/pdf"),
        "project": ("report.pdf", b"%PDF-1.4 report", "application/pdf"),
    })
    assert r.status_code == 200
    return r.json()


def test_health(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_upload_stores_both_documents(client, files_repo):
    ids = _upload(client)
    assert files_repo.read_bytes(ids["cv_id"]) == b"%PDF-1.4 cv"
    assert files_repo.get(ids["project_id"]).original_name == "report.pdf"


def test_upload_requires_a_file(client):
    assert client.post("/upload").status_code == 400


def test_evaluate_enqueues_a_queued_job(client, job_queue, jobs_repo):
    ids = _upload(client)
    r = client.post("/evaluate", json={"job_title": "Backend Engineer",
                                       "cv_id": ids["cv_id"], "project_id": ids["project_id"]})

    assert r.status_code == 202
    body = r.json()
    assert body["status"] == "queued"
    assert job_queue.get(body["id"]).state == "waiting"
    assert jobs_repo.get(body["id"]).input.job_title == "Backend Engineer"


def test_evaluate_rejects_unknown_documents(client, job_queue):
    r = client.post("/evaluate", json={"job_title": "Backend Engineer",
                                       "cv_id": "nope", "project_id": "nope"})
    assert r.status_code == 404
    assert job_queue.counts()["waiting"] == 0


def test_evaluate_requires_job_title(client):
    ids = _upload(client)
    r = client.post("/evaluate", json={"job_title": "", "cv_id": ids["cv_id"],
                                       "project_id": ids["project_id"]})
    assert r.status_code == 422


def test_result_reports_status_then_result(client, jobs_repo):
    ids = _upload(client)
    job_id = client.post("/evaluate", json={"job_title": "Backend Engineer",
                                            "cv_id": ids["cv_id"],
                                            "project_id": ids["project_id"]}).json()["id"]

    assert client.get(f"/result/{job_id}").json() == {"id": job_id, "status": "queued"}

    job = jobs_repo.put(jobs_repo.get(job_id).model_copy(
        update={"status": "processing", "step": "synthesis"}))
    assert client.get(f"/result/{job_id}").json()["status"] == "processing"
    jobs_repo.put(job.model_copy(update={
        "status": "completed", "step": None,
        "result": JobResult(cv_match_rate=0.86, cv_feedback="Strong backend profile",
                            project_score=3.75, project_feedback="Solid",
                            overall_summary="Good fit", recommendation="Interview"),
    }))
    body = client.get(f"/result/{job_id}").json()
    assert body["status"] == "completed"
    assert body["result"]["cv_match_rate"] == 0.86
    assert body["result"]["recommendation"] == "Interview"


def test_unknown_job_is_404(client):
    r = client.get("/result/job_missing")
    assert r.status_code == 404
    assert r.json() == {"detail": "job not found"}


def test_vector_db_health_reports_reference_collection(client, monkeypatch):
    from qdrant_client import QdrantClient
    from infra.rag.qdrant_client import ensure_collection

    qdrant = QdrantClient(":memory:")
    monkeypatch.setattr("api.endpoints.health.get_client", lambda: qdrant)
    assert client.get("/vector-db/health").json()["reference_docs_ingested"] is False

    ensure_collection(settings.RAG_COLLECTION, 4, client=qdrant)
    body = client.get("/vector-db/health").json()
    assert body["reference_docs_ingested"] is True
    assert settings.RAG_COLLECTION in body["collections"]


def test_vector_db_unreachable_is_503(client, monkeypatch):
    class Down:
        def get_collections(self):
            raise ConnectionError("connection refused")

    monkeypatch.setattr("api.endpoints.health.get_client", lambda: Down())
    assert client.get("/vector-db/health").status_code == 503
