import asyncio
from typing import Awaitable, Callable, List, Optional
import httpx
from app.settings import Settings, settings as default_settings
from domain.errors import EmbeddingUnavailable
from infra.http import post_with_retries


class OpenAIEmbedder:
    def __init__(
        self,
        settings: Settings = default_settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self._transport = transport
        self._sleep = sleep

    async def embed_many(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        s = self.settings
        if not s.OPENAI_API_KEY:
            raise EmbeddingUnavailable("OPENAI_API_KEY is not set")
        url = f"{s.OPENAI_API_BASE.rstrip('/')}/embeddings"
        headers = {"Authorization": f"Bearer {s.OPENAI_API_KEY}"}
        payload = {"model": s.OPENAI_EMBEDDING_MODEL, "input": texts}
        try:
            data = await post_with_retries(
                url, headers, payload,
                timeout=s.LLM_TIMEOUT_SECONDS,
                max_attempts=s.LLM_MAX_ATTEMPTS,
                backoff_base=s.LLM_BACKOFF_BASE_SECONDS,
                backoff_cap=s.LLM_BACKOFF_CAP_SECONDS,
                transport=self._transport,
                sleep=self._sleep,
            )
        except httpx.HTTPError as exc:
            raise EmbeddingUnavailable(f"embedding call failed: {exc}") from exc
        try:
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            return [item["embedding"] for item in items]
        except (KeyError, TypeError) as exc:
            raise EmbeddingUnavailable("embedding response had no vectors") from exc

    async def embed(self, text: str) -> List[float]:
        [vector] = await self.embed_many([text])
        return vector
