import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

import httpx

logger = logging.getLogger("http")

RETRIABLE_STATUS = {408, 429}


def backoff_delay(attempt: int, base: float = 0.5, cap: float = 16.0) -> float:
    return min(cap, base * (2 ** attempt))


async def post_with_retries(
    url: str,
    headers: Dict[str, str],
    payload: Dict,
    *,
    timeout: float = 20,
    max_attempts: int = 3,
    backoff_base: float = 0.5,
    backoff_cap: float = 16.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Dict:
    """POST JSON, retrying transport errors, 5xx, 408 and 429 with capped backoff.

    The last error is re-raised once ``max_attempts`` calls have failed.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
                response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            retriable = status >= 500 or status in RETRIABLE_STATUS
            if not retriable or attempt == max_attempts:
                raise
            logger.warning("POST %s returned %s (attempt %d/%d)", url, status, attempt, max_attempts)
        except httpx.RequestError as exc:
            if attempt == max_attempts:
                raise
            logger.warning("POST %s failed: %s (attempt %d/%d)", url, exc, attempt, max_attempts)
        await sleep(backoff_delay(attempt, backoff_base, backoff_cap))
    raise RuntimeError("Unexpected retry exhaustion")
