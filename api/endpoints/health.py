from fastapi import APIRouter, HTTPException
from app.settings import settings
from infra.rag.qdrant_client import get_client

router = APIRouter()


@router.get("/")
def health():
    return {"status": "ok", "service": settings.APP_NAME}


@router.get("/vector-db/health")
def vector_db_health():
    """Qdrant reachability, and whether the reference collection was ingested."""
    try:
        names = [c.name for c in get_client().get_collections().collections]
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"vector store unreachable: {exc}")
    return {
        "status": "ok",
        "collection": settings.RAG_COLLECTION,
        "reference_docs_ingested": settings.RAG_COLLECTION in names,
        "collections": names,
    }
