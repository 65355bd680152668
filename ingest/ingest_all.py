import os
import re
import asyncio
import logging
from typing import List, Optional
import pdfplumber
from app.settings import settings
from infra.rag.embeddings import OpenAIEmbedder
from infra.rag.qdrant_client import ensure_collection, get_client, upsert_texts_with_ids

log = logging.getLogger("ingest_all")


def read_pdf_text(path: str, max_pages: int | None = None) -> str:
    parts: List[str] = []
    with pdfplumber.open(path) as pdf:
        pages = pdf.pages if max_pages is None else pdf.pages[:max_pages]
        for p in pages:
            parts.append(p.extract_text() or "")
    text = "\n".join(parts)
    return re.sub(r"\s+\n", "\n", text)


def chunk_text(text: str, size=1000, overlap=150) -> List[str]:
    out, i = [], 0
    n = len(text)
    while i < n:
        piece = text[i:i+size].strip()
        if piece:
            out.append(piece)
        i += max(1, size - overlap)
    return out


def build_payloads(chunks: List[str], doc_type: str, source: str) -> List[dict]:
    return [{
        "text": t,
        "doc_type": doc_type,
        "source": source,
        "chunk_index": i,
    } for i, t in enumerate(chunks)]


async def ingest_pdf(pdf_path: str, doc_type: str, embedder: OpenAIEmbedder,
                     collection: str, client=None) -> int:
    raw = read_pdf_text(pdf_path)
    chunks = chunk_text(raw, size=1000, overlap=150)
    if not chunks:
        log.warning(f"No text extracted from {pdf_path}; skipped")
        return 0
    vecs = await embedder.embed_many(chunks)
    ensure_collection(collection, vector_size=len(vecs[0]), client=client)
    upsert_texts_with_ids(collection, vecs, build_payloads(chunks, doc_type, os.path.basename(pdf_path)),
                          client=client)
    log.info(f"Ingested {len(chunks)} {doc_type} chunks from {pdf_path}")
    return len(chunks)


async def main(jd_pdf: Optional[str], brief_pdf: Optional[str], rubric_pdf: Optional[str],
               collection: str):
    sources = [(p, t) for p, t in ((jd_pdf, "job_description"),
                                    (brief_pdf, "case_brief"),
                                    (rubric_pdf, "rubric")) if p]
    if not sources:
        raise SystemExit("Nothing to ingest: pass at least one of --jd, --brief, --rubric")
    for p, _ in sources:
        if not (os.path.isfile(p) and p.lower().endswith(".pdf")):
            raise FileNotFoundError(f"Missing/invalid PDF: {p}")

    embedder = OpenAIEmbedder(settings)
    client = get_client()
    total = 0
    for path, doc_type in sources:
        total += await ingest_pdf(path, doc_type, embedder, collection, client=client)
    log.info(f"Ingestion completed: {total} chunks into '{collection}'")


if __name__ == "__main__":
    import argparse
    from app.logging import configure_logging

    configure_logging()
    parser = argparse.ArgumentParser(
        description="Ingest job description, case brief and rubric PDFs into the reference collection")
    parser.add_argument("--jd", help="Path to Job Description PDF")
    parser.add_argument("--brief", help="Path to Case Study Brief PDF")
    parser.add_argument("--rubric", help="Path to Scoring Rubric PDF")
    parser.add_argument("--collection", default=settings.RAG_COLLECTION,
                        help="Target Qdrant collection")
    args = parser.parse_args()
    asyncio.run(main(args.jd, args.brief, args.rubric, args.collection))
