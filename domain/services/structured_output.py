"""One-shot repair protocol for structured model output.

A reply that does not parse into the declared schema gets exactly one repair
call. If that also fails the caller receives ``None`` and falls back to
defaults; a malformed reply never fails the job. This budget is separate from
the LLM client's network retries.
"""
import json
import logging
import re
from typing import Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from domain.errors import MalformedModelOutput
from infra.llm.prompts import REPAIR_PROMPT

logger = logging.getLogger("evaluation_pipeline")

T = TypeVar("T", bound=BaseModel)

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.S | re.I)


def parse_structured(raw: str, schema: Type[T]) -> T:
    text = (raw or "").strip()
    fenced = _FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedModelOutput("LLM response was not valid JSON", raw) from exc
    if not isinstance(data, dict):
        raise MalformedModelOutput("LLM response was not a JSON object", raw)
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise MalformedModelOutput(f"LLM response failed validation: {exc}", raw) from exc


async def request_structured(
    llm,
    messages: List[Dict[str, str]],
    schema: Type[T],
    *,
    temperature: float = 0.1,
    max_tokens: Optional[int] = None,
) -> Optional[T]:
    raw = await llm.complete(messages, temperature=temperature, max_tokens=max_tokens)
    try:
        return parse_structured(raw, schema)
    except MalformedModelOutput as exc:
        logger.warning(f"{schema.__name__}: {exc}; issuing repair call")

    original_user = next((m["content"] for m in reversed(messages) if m["role"] == "user"), "")
    repair_messages = [
        {"role": "system", "content": REPAIR_PROMPT},
        {"role": "user", "content": raw.strip() if raw and raw.strip() else original_user},
    ]
    repaired = await llm.complete(repair_messages, temperature=0.0, max_tokens=max_tokens)
    try:
        return parse_structured(repaired, schema)
    except MalformedModelOutput as exc:
        logger.warning(f"{schema.__name__}: repair failed ({exc}); using defaults")
        return None
