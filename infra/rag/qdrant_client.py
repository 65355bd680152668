import hashlib
import uuid
from typing import Dict, List, Optional
from qdrant_client import QdrantClient
from qdrant_client.models import Distance, VectorParams, PointStruct
from app.settings import settings


def get_client() -> QdrantClient:
    return QdrantClient(url=settings.QDRANT_URL, api_key=settings.QDRANT_API_KEY or None)


def ensure_collection(name: str, vector_size: int, client: Optional[QdrantClient] = None):
    c = client or get_client()
    names = {x.name for x in c.get_collections().collections}
    if name not in names:
        c.create_collection(collection_name=name, vectors_config=VectorParams(
            size=vector_size, distance=Distance.COSINE))


def stable_id(doc_type: str, source: str, chunk_index: int, text: str) -> str:
    raw = f"{doc_type}|{source}|{chunk_index}|{text}"
    return str(uuid.UUID(hex=hashlib.md5(raw.encode("utf-8")).hexdigest()))


def upsert_texts_with_ids(collection: str, vectors: List[List[float]], payloads: List[Dict],
                          client: Optional[QdrantClient] = None):
    points = [
        PointStruct(
            id=stable_id(p.get("doc_type", ""), p.get("source", ""),
                         p.get("chunk_index", -1), p["text"]),
            vector=v,
            payload=p
        )
        for v, p in zip(vectors, payloads)
    ]
    (client or get_client()).upsert(collection_name=collection, points=points)


def search_top_k(collection: str, query_vector: List[float], k: int,
                 client: Optional[QdrantClient] = None) -> List[Dict]:
    res = (client or get_client()).query_points(
        collection_name=collection,
        query=query_vector,
        limit=k,
        with_payload=True,
    )
    return [{"payload": p.payload or {}, "score": float(p.score)} for p in res.points]
