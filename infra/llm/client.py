import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

import httpx

from app.settings import Settings, settings as default_settings
from domain.errors import LLMUnavailable
from infra.http import post_with_retries

logger = logging.getLogger("llm_client")

Message = Dict[str, str]


class LLMClient:
    """Chat-completion client: OpenAI when a key is set, OpenRouter otherwise.

    Transient upstream errors are retried inside ``post_with_retries``; once
    they are exhausted the caller gets ``LLMUnavailable``.
    """

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

    def _provider(self):
        s = self.settings
        if s.OPENAI_API_KEY:
            url = f"{s.OPENAI_API_BASE.rstrip('/')}/chat/completions"
            headers = {"Authorization": f"Bearer {s.OPENAI_API_KEY}"}
            return url, headers, s.OPENAI_MODEL
        if s.OPENROUTER_API_KEY:
            url = "https://openrouter.ai/api/v1/chat/completions"
            headers = {
                "Authorization": f"Bearer {s.OPENROUTER_API_KEY}",
                "HTTP-Referer": "http://localhost",
                "X-Title": s.APP_NAME,
            }
            return url, headers, s.OPENROUTER_MODEL
        raise LLMUnavailable("No LLM provider configured")

    async def complete(
        self,
        messages: List[Message],
        *,
        temperature: float = 0.2,
        max_tokens: Optional[int] = None,
    ) -> str:
        url, headers, model = self._provider()
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens or self.settings.LLM_MAX_TOKENS,
        }
        try:
            data = await post_with_retries(
                url, headers, payload,
                timeout=self.settings.LLM_TIMEOUT_SECONDS,
                max_attempts=self.settings.LLM_MAX_ATTEMPTS,
                backoff_base=self.settings.LLM_BACKOFF_BASE_SECONDS,
                backoff_cap=self.settings.LLM_BACKOFF_CAP_SECONDS,
                transport=self._transport,
                sleep=self._sleep,
            )
        except httpx.HTTPError as exc:
            raise LLMUnavailable(f"LLM call failed: {exc}") from exc

        choices = data.get("choices") or [{}]
        choice = choices[0]
        content = (choice.get("message") or {}).get("content") or choice.get("text") or ""
        return content
