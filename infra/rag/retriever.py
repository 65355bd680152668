import asyncio
import logging
from typing import Awaitable, Callable, List, Optional
from qdrant_client import QdrantClient
from app.settings import Settings, settings as default_settings
from domain.errors import RetrievalUnavailable
from domain.schemas import Snippet
from infra.http import backoff_delay
from infra.rag.qdrant_client import ensure_collection, get_client, search_top_k

logger = logging.getLogger("retriever")


class QdrantRetriever:
    """Top-K reference snippets for a query vector.

    The collection is created on first use with the query's dimensionality.
    """

    def __init__(
        self,
        client: Optional[QdrantClient] = None,
        settings: Settings = default_settings,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self.settings = settings
        self._sleep = sleep
        self._ready: set = set()

    @property
    def client(self) -> QdrantClient:
        if self._client is None:
            self._client = get_client()
        return self._client

    async def search(self, collection: str, vector: List[float], top_k: int = 5) -> List[Snippet]:
        attempts = max(1, self.settings.RAG_MAX_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            try:
                # the qdrant client is synchronous; keep it off the event loop
                if collection not in self._ready:
                    await asyncio.to_thread(ensure_collection, collection, len(vector),
                                            client=self.client)
                    self._ready.add(collection)
                hits = await asyncio.to_thread(search_top_k, collection, vector, top_k,
                                               client=self.client)
                break
            except Exception as exc:
                if attempt == attempts:
                    raise RetrievalUnavailable(
                        f"vector search in '{collection}' failed: {exc}") from exc
                logger.warning("Vector search failed: %s (attempt %d/%d)", exc, attempt, attempts)
                await self._sleep(backoff_delay(attempt, self.settings.LLM_BACKOFF_BASE_SECONDS,
                                                self.settings.LLM_BACKOFF_CAP_SECONDS))

        snippets = []
        for h in hits:
            payload = dict(h["payload"])
            text = payload.pop("text", "")
            payload["score"] = h["score"]
            snippets.append(Snippet(text=str(text or ""), metadata=payload))
        return snippets
