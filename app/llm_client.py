"""OpenRouter-backed structured extraction client."""
from __future__ import annotations

import asyncio
import json
import time
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError

from app.config import settings
from app.errors import ExtractionError
from app.services import logger as log_service
from app.services.prompt_store import render_prompt

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_client() -> Any:
    """Get OpenRouter client via OpenAI-compatible SDK."""
    from openai import AsyncOpenAI

    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    return AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
    )


def get_model() -> str:
    """Get the active OpenRouter model id."""
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


def get_analysis_model() -> str:
    """Model used for the high-volume per-result extraction calls."""
    return settings.analysis_model or get_model()


_client: Any | None = None


def client() -> Any:
    """Get or create the LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client


def _temperature_for_model(model: str) -> int:
    # Some OpenAI GPT-5-compatible gateways reject temperature=0.
    lowered = (model or "").lower()
    if "gpt-5" in lowered:
        return 1
    return 0


def extract_json_object(raw_text: str) -> dict[str, Any]:
    text = raw_text.strip()
    if text.startswith("```"):
        parts = text.split("```")
        if len(parts) >= 2:
            text = parts[1]
        if text.startswith("json"):
            text = text[4:]
        text = text.strip()
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise json.JSONDecodeError("object not found", text, 0)
    parsed = json.loads(text[start : end + 1])
    if not isinstance(parsed, dict):
        raise json.JSONDecodeError("not an object", text, 0)
    return parsed


def _schema_instruction(schema: type[BaseModel]) -> str:
    return render_prompt(
        "extraction.schema_instruction",
        schema_json=json.dumps(schema.model_json_schema(), indent=2),
    )


async def extract_structured(
    prompt: str,
    schema: type[ModelT],
    *,
    system: str | None = None,
    model: str | None = None,
    caller: str = "extract",
    llm: Any | None = None,
) -> ModelT:
    """Ask the model for a value matching ``schema``.

    Raises ExtractionError when the call fails, times out, or the output does
    not validate against the schema.
    """
    used_model = model or get_model()
    active_client = llm or client()
    system_prompt = system or render_prompt("extraction.default_system")
    messages = [
        {"role": "system", "content": f"{system_prompt}\n\n{_schema_instruction(schema)}"},
        {"role": "user", "content": prompt},
    ]

    t0 = time.monotonic()
    try:
        response = await asyncio.wait_for(
            active_client.chat.completions.create(
                model=used_model,
                messages=messages,
                max_tokens=settings.llm_max_tokens,
                temperature=_temperature_for_model(used_model),
                response_format={"type": "json_object"},
            ),
            timeout=settings.llm_timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        elapsed_ms = int((time.monotonic() - t0) * 1000)
        log_service.log_llm_call(
            model=used_model, caller=caller, duration_ms=elapsed_ms, status="timeout", error="timeout"
        )
        raise ExtractionError(f"{caller}: model call timed out") from exc
    except Exception as exc:
        elapsed_ms = int((time.monotonic() - t0) * 1000)
        log_service.log_llm_call(
            model=used_model, caller=caller, duration_ms=elapsed_ms, status="error", error=str(exc)
        )
        raise ExtractionError(f"{caller}: model call failed: {exc}") from exc

    elapsed_ms = int((time.monotonic() - t0) * 1000)
    usage = getattr(response, "usage", None)
    log_service.log_llm_call(
        model=used_model,
        caller=caller,
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        duration_ms=elapsed_ms,
    )

    choices = getattr(response, "choices", None) or []
    text = getattr(choices[0].message, "content", None) if choices else None
    if not isinstance(text, str) or not text.strip():
        raise ExtractionError(f"{caller}: empty model response")

    try:
        return schema.model_validate(extract_json_object(text))
    except (json.JSONDecodeError, SchemaValidationError) as exc:
        raise ExtractionError(
            f"{caller}: output did not match {schema.__name__}",
            details={"reason": str(exc)[:500]},
        ) from exc
