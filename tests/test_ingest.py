import asyncio

from qdrant_client import QdrantClient

from conftest import FakeEmbedder
from ingest import ingest_all


class BatchEmbedder(FakeEmbedder):
    async def embed_many(self, texts):
        return [await self.embed(t) for t in texts]


def test_chunks_overlap_and_cover_the_text():
    text = "".join(chr(ord("a") + i % 26) for i in range(2500))
    chunks = ingest_all.chunk_text(text, size=1000, overlap=150)

    assert [len(c) for c in chunks] == [1000, 1000, 800]
    assert chunks[0][-150:] == chunks[1][:150]
    assert chunks[-1].endswith(text[-50:])


def test_blank_chunks_are_dropped():
    assert ingest_all.chunk_text("   \n  ", size=4, overlap=1) == []


def test_payloads_carry_provenance():
    payloads = ingest_all.build_payloads(["one", "two"], "rubric", "rubric.pdf")
    assert payloads[1] == {"text": "two", "doc_type": "rubric",
                           "source": "rubric.pdf", "chunk_index": 1}


def test_ingest_pdf_is_idempotent(monkeypatch):
    monkeypatch.setattr(ingest_all, "read_pdf_text", lambda path: "Backend role. " * 200)
    client = QdrantClient(":memory:")
    embedder = BatchEmbedder()

    first = asyncio.run(ingest_all.ingest_pdf("docs/jd.pdf", "job_description", embedder,
                                              "system_docs", client=client))
    asyncio.run(ingest_all.ingest_pdf("docs/jd.pdf", "job_description", embedder,
                                      "system_docs", client=client))

    assert first == 4
    assert client.count("system_docs").count == first
    point = client.scroll("system_docs", limit=1)[0][0]
    assert point.payload["source"] == "jd.pdf"
