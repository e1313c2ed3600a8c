# OpenAI LLM client
# Chat completions for question generation and JSON classification
# Integrates LangSmith tracing (manual control of tokens + cost)

import json
import logging
import os
from typing import Any, Optional

from langsmith import traceable
from langsmith.run_helpers import get_current_run_tree
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
CLASSIFIER_MODEL = "gpt-4o-mini"

# ===== Cost configuration (USD per 1M tokens) =====
COST_PER_1M = {
    "gpt-4o": {"input": 2.5, "output": 10.0, "cache_read": 1.25},
    "gpt-4o-mini": {"input": 0.15, "output": 0.6, "cache_read": 0.075},
}


def calculate_cost(model: str, input_tokens: int, output_tokens: int, cache_read: int = 0) -> float:
    """Calculate API call cost."""
    costs = COST_PER_1M.get(model, {"input": 1.0, "output": 1.0, "cache_read": 0.1})
    cost = (
        (input_tokens / 1_000_000) * costs["input"]
        + (output_tokens / 1_000_000) * costs["output"]
        + (cache_read / 1_000_000) * costs.get("cache_read", 0.1)
    )
    return cost


def get_openai_client(api_key: Optional[str] = None) -> AsyncOpenAI:
    """Get async OpenAI client (auto-retries on 429/5xx with exponential backoff)."""
    key = api_key or os.environ.get("OPENAI_API_KEY", "")
    if not key:
        raise ValueError("OPENAI_API_KEY not set")
    return AsyncOpenAI(api_key=key, max_retries=3)


def _token_count(obj: Any, name: str) -> int:
    value = getattr(obj, name, 0) if obj is not None else 0
    return value if isinstance(value, int) else 0


def _set_trace_name(trace_name: str | None) -> None:
    if not trace_name:
        return
    try:
        run = get_current_run_tree()
        if run:
            run.name = trace_name
    except Exception:
        pass


@traceable(run_type="llm", name="OpenAI Chat")
async def call_openai(
    prompt: str,
    client: Optional[AsyncOpenAI] = None,
    api_key: Optional[str] = None,
    model: str = DEFAULT_MODEL,
    temperature: float = 0.7,
    max_tokens: int = 500,
    json_mode: bool = False,
    trace_name: str | None = None,
) -> dict:
    """Send a single user prompt to the chat completions API.

    Args:
        prompt: Fully rendered prompt text
        client: Shared AsyncOpenAI instance (built from api_key when omitted)
        json_mode: Constrain the response to a JSON object

    Returns:
        dict with text, usage_metadata, model, cost_usd
    """
    _set_trace_name(trace_name)
    client = client or get_openai_client(api_key)

    request: dict[str, Any] = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": temperature,
    }
    if max_tokens:
        request["max_tokens"] = max_tokens
    if json_mode:
        request["response_format"] = {"type": "json_object"}

    response = await client.chat.completions.create(**request)

    finish_reason = response.choices[0].finish_reason
    text_content = (response.choices[0].message.content or "").strip()

    if finish_reason == "length":
        logger.warning("OpenAI response truncated (max_tokens=%s)", max_tokens)
        if not text_content:
            raise RuntimeError(f"OpenAI response truncated with empty text (max_tokens={max_tokens})")

    usage = response.usage
    input_tokens = _token_count(usage, "prompt_tokens")
    output_tokens = _token_count(usage, "completion_tokens")
    cache_read = _token_count(getattr(usage, "prompt_tokens_details", None), "cached_tokens")

    cost = calculate_cost(model, input_tokens, output_tokens, cache_read)
    logger.info(
        "OpenAI %s: in=%d out=%d cost=$%.4f",
        model,
        input_tokens,
        output_tokens,
        cost,
    )

    # LangSmith cost tracking
    try:
        run = get_current_run_tree()
        if run:
            run.extra["total_cost"] = cost
    except Exception:
        pass

    return {
        "text": text_content,
        "usage_metadata": {
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
            "cache_read_tokens": cache_read,
            "total_cost": cost,
        },
        "model": model,
        "cost_usd": cost,
    }


async def call_openai_json(
    prompt: str,
    client: Optional[AsyncOpenAI] = None,
    api_key: Optional[str] = None,
    model: str = CLASSIFIER_MODEL,
    temperature: float = 0.3,
    trace_name: str | None = None,
) -> dict:
    """Structured variant of ``call_openai``: returns the parsed JSON object.

    Raises:
        json.JSONDecodeError: If the model returned something that is not JSON
        ValueError: If the JSON is not an object
    """
    result = await call_openai(
        prompt,
        client=client,
        api_key=api_key,
        model=model,
        temperature=temperature,
        max_tokens=0,
        json_mode=True,
        trace_name=trace_name,
    )
    parsed = json.loads(extract_json_from_response(result["text"]))
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def extract_json_from_response(response: str) -> str:
    """Extract JSON from response text."""
    response = response.strip()

    if response.startswith("{") and response.endswith("}"):
        return response

    if "```json" in response:
        start = response.find("```json") + 7
        end = response.find("```", start)
        if end > start:
            return response[start:end].strip()

    if "```" in response:
        start = response.find("```") + 3
        end = response.find("```", start)
        if end > start:
            return response[start:end].strip()

    first_brace = response.find("{")
    last_brace = response.rfind("}")
    if first_brace != -1 and last_brace > first_brace:
        return response[first_brace : last_brace + 1]

    return response
