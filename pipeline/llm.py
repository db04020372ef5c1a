"""LLM client — multi-provider completion collaborator (Anthropic, OpenAI, Google).

Every completion in the pipeline goes through `complete()`, which takes a
CompletionRequest (system instruction + ordered role/content messages + token
ceiling + temperature) and returns a CompletionResponse (text + usage).
`call_llm` and `call_llm_structured` are thin conveniences on top of it.

Includes built-in cost tracking: every LLM call records token usage and
calculates cost based on per-model pricing. Use reset_usage(), get_usage_log(),
get_usage_since() and get_usage_summary() to access the accumulated data.

Error handling:
  - 400-level errors (bad request, auth) are NOT retried — they won't fix themselves.
  - 429 (rate limit) and 5xx (server errors) ARE retried with exponential backoff
    via call_with_retry (LLM_MAX_ATTEMPTS attempts, LLM_RETRY_BASE_DELAY doubling).
  - All errors are extracted into clean, readable messages and raised as LLMError.
"""

from __future__ import annotations

import json
import logging
import re
import threading
import time as _time
from typing import Any, Callable, Literal, TypeVar

from pydantic import BaseModel, Field, ValidationError
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

import config

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R")


# ---------------------------------------------------------------------------
# Request / response contract
# ---------------------------------------------------------------------------

class ChatMessage(BaseModel):
    role: Literal["user", "assistant"] = "user"
    content: str


class CompletionRequest(BaseModel):
    """One text-generation request, provider-agnostic."""
    system: str = ""
    messages: list[ChatMessage] = Field(..., min_length=1)
    max_tokens: int = 4_000
    temperature: float = 0.7
    provider: str = ""
    model: str = ""
    json_mode: bool = False

    @classmethod
    def single(cls, system: str, user: str, **kwargs) -> "CompletionRequest":
        return cls(system=system, messages=[ChatMessage(role="user", content=user)], **kwargs)


class CompletionResponse(BaseModel):
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    provider: str = ""
    model: str = ""


# ---------------------------------------------------------------------------
# Cost tracking
# ---------------------------------------------------------------------------

# Pricing per 1M tokens: { model_prefix: (input_$/1M, output_$/1M) }
# Models are matched longest-prefix-first, so "gpt-5.2-mini" matches before "gpt-5.2".
MODEL_PRICING: dict[str, tuple[float, float]] = {
    # OpenAI
    "gpt-5.2-mini":     (0.30,   1.25),
    "gpt-5.2":          (2.50,  10.00),
    "gpt-4o-mini":      (0.15,   0.60),
    "gpt-4o":           (2.50,  10.00),
    "gpt-4.1-mini":     (0.40,   1.60),
    "gpt-4.1":          (2.00,   8.00),
    # Anthropic
    "claude-opus-4":    (15.00,  75.00),
    "claude-sonnet-4":  (3.00,   15.00),
    "claude-haiku-4":   (1.00,    5.00),
    "claude-3-haiku":   (0.25,    1.25),
    # Google
    "gemini-2.5-pro":   (1.25,  10.00),
    "gemini-2.5-flash": (0.15,   0.60),
    "gemini-2.0-flash": (0.10,   0.40),
}

# Fallback pricing if a model isn't in the table (conservative estimate)
_FALLBACK_PRICING = (3.00, 15.00)

_usage_lock = threading.Lock()
_usage_log: list[dict[str, Any]] = []


def _get_pricing(model: str) -> tuple[float, float]:
    """Find pricing for a model by longest-prefix match."""
    best_match = ""
    for prefix in MODEL_PRICING:
        if model.startswith(prefix) and len(prefix) > len(best_match):
            best_match = prefix
    if best_match:
        return MODEL_PRICING[best_match]
    logger.warning("No pricing found for model '%s' — using fallback $%.2f/$%.2f per 1M", model, *_FALLBACK_PRICING)
    return _FALLBACK_PRICING


def _record_usage(provider: str, model: str, input_tokens: int, output_tokens: int):
    """Record a single LLM call's token usage and cost."""
    in_price, out_price = _get_pricing(model)
    cost = (input_tokens * in_price + output_tokens * out_price) / 1_000_000
    entry = {
        "provider": provider,
        "model": model,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "cost": cost,
        "timestamp": _time.time(),
    }
    with _usage_lock:
        _usage_log.append(entry)
    logger.info(
        "Token usage: %s/%s — in=%d out=%d cost=$%.4f",
        provider, model, input_tokens, output_tokens, cost,
    )


def reset_usage():
    """Clear all accumulated usage data."""
    with _usage_lock:
        _usage_log.clear()


def get_usage_log() -> list[dict[str, Any]]:
    """Return a copy of the full usage log."""
    with _usage_lock:
        return list(_usage_log)


def usage_checkpoint() -> int:
    """Index into the usage log; pass it to get_usage_since() later."""
    with _usage_lock:
        return len(_usage_log)


def _summarize(entries: list[dict[str, Any]]) -> dict[str, Any]:
    total_input = sum(e["input_tokens"] for e in entries)
    total_output = sum(e["output_tokens"] for e in entries)
    total_cost = sum(e["cost"] for e in entries)
    return {
        "total_input_tokens": total_input,
        "total_output_tokens": total_output,
        "total_tokens": total_input + total_output,
        "total_cost": round(total_cost, 4),
        "calls": len(entries),
    }


def get_usage_summary() -> dict[str, Any]:
    """Return aggregated cost and token totals."""
    with _usage_lock:
        entries = list(_usage_log)
    return _summarize(entries)


def get_usage_since(start_index: int) -> dict[str, Any]:
    """Aggregated totals for calls recorded after `start_index`.

    Concurrent sessions share the log, so this is an approximation when
    more than one generation runs at once.
    """
    with _usage_lock:
        entries = list(_usage_log[max(0, int(start_index)):])
    return _summarize(entries)


# ---------------------------------------------------------------------------
# Error helpers
# ---------------------------------------------------------------------------

class LLMError(Exception):
    """Clean error from an LLM call with a human-readable message."""

    def __init__(self, message: str, provider: str = "", model: str = "", cause: Exception | None = None):
        self.provider = provider
        self.model = model
        self.cause = cause
        super().__init__(message)


def _is_retryable(exc: BaseException) -> bool:
    """Transient failures only: rate limits, provider 5xx, timeouts and dropped connections.

    Bad requests, auth failures, unknown models and LLMError are permanent.
    """
    if isinstance(exc, LLMError):
        return False

    from openai import (
        APIConnectionError,
        APITimeoutError,
        InternalServerError,
        RateLimitError,
    )
    if isinstance(exc, (RateLimitError, InternalServerError, APIConnectionError, APITimeoutError)):
        return True

    from anthropic import (
        APIConnectionError as AnthropicConnError,
        APITimeoutError as AnthropicTimeout,
        InternalServerError as AnthropicInternal,
        RateLimitError as AnthropicRateLimit,
    )
    if isinstance(exc, (AnthropicRateLimit, AnthropicInternal, AnthropicConnError, AnthropicTimeout)):
        return True

    from google.genai import errors as genai_errors
    if isinstance(exc, genai_errors.ServerError):
        return True
    if isinstance(exc, genai_errors.ClientError) and getattr(exc, "code", None) == 429:
        return True

    # Generic connection / timeout
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True

    return False


def _extract_error_message(exc: Exception, provider: str, model: str) -> str:
    """Pull out a clean, human-readable error message from an API exception."""

    msg = str(exc)

    from openai import BadRequestError, AuthenticationError, NotFoundError, PermissionDeniedError
    if isinstance(exc, BadRequestError):
        body = getattr(exc, "body", None)
        if isinstance(body, dict):
            inner = body.get("error", {})
            msg = inner.get("message", msg)
        return f"[{provider}/{model}] Bad request: {msg}"
    if isinstance(exc, AuthenticationError):
        return f"[{provider}] Authentication failed — check your OPENAI_API_KEY."
    if isinstance(exc, NotFoundError):
        return f"[{provider}] Model '{model}' not found. Check the model name in config.py or .env."
    if isinstance(exc, PermissionDeniedError):
        return f"[{provider}] Permission denied — your API key may not have access to '{model}'."

    from anthropic import BadRequestError as AnthropicBadReq, AuthenticationError as AnthropicAuth, NotFoundError as AnthropicNotFound
    if isinstance(exc, AnthropicBadReq):
        return f"[{provider}/{model}] Bad request: {msg}"
    if isinstance(exc, AnthropicAuth):
        return f"[{provider}] Authentication failed — check your ANTHROPIC_API_KEY."
    if isinstance(exc, AnthropicNotFound):
        return f"[{provider}] Model '{model}' not found."

    if isinstance(exc, ValidationError):
        n_errors = exc.error_count()
        return f"[{provider}/{model}] Response JSON didn't match the expected schema ({n_errors} validation error{'s' if n_errors != 1 else ''})."

    if isinstance(exc, json.JSONDecodeError):
        return f"[{provider}/{model}] Response was not valid JSON: {exc.msg} (line {exc.lineno}, col {exc.colno})"

    # Generic fallback: truncate very long messages
    if len(msg) > 300:
        msg = msg[:300] + "..."
    return f"[{provider}/{model}] {msg}"


# ---------------------------------------------------------------------------
# Retry wrapper
# ---------------------------------------------------------------------------

def call_with_retry(
    operation: Callable[[], R],
    *,
    max_attempts: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
    retry_on: Callable[[BaseException], bool] = _is_retryable,
    label: str = "operation",
) -> R:
    """Run `operation` with exponential backoff between attempts.

    Waits base_delay, 2*base_delay, 4*base_delay... (capped at max_delay)
    between attempts, only for exceptions `retry_on` accepts. The last
    exception is re-raised unchanged once attempts are exhausted.
    """
    max_attempts = max_attempts if max_attempts is not None else config.LLM_MAX_ATTEMPTS
    base_delay = base_delay if base_delay is not None else config.LLM_RETRY_BASE_DELAY
    max_delay = max_delay if max_delay is not None else config.LLM_RETRY_MAX_DELAY

    def _log_retry(retry_state):
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "%s failed (attempt %d/%d): %s — retrying",
            label, retry_state.attempt_number, max_attempts, exc,
        )

    retrying = Retrying(
        retry=retry_if_exception(retry_on),
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=base_delay, max=max_delay),
        before_sleep=_log_retry,
        reraise=True,
    )
    return retrying(operation)


# ---------------------------------------------------------------------------
# Provider clients (lazy-init singletons)
# ---------------------------------------------------------------------------

_openai_client = None
_anthropic_client = None
_google_client = None


def _get_openai():
    global _openai_client
    if _openai_client is None:
        if not config.OPENAI_API_KEY:
            raise LLMError(
                "OPENAI_API_KEY is not set. Add it to your .env file.",
                provider="openai",
            )
        from openai import OpenAI
        _openai_client = OpenAI(api_key=config.OPENAI_API_KEY)
    return _openai_client


def _get_anthropic():
    global _anthropic_client
    if _anthropic_client is None:
        if not config.ANTHROPIC_API_KEY:
            raise LLMError(
                "ANTHROPIC_API_KEY is not set. Add it to your .env file.",
                provider="anthropic",
            )
        import anthropic
        _anthropic_client = anthropic.Anthropic(api_key=config.ANTHROPIC_API_KEY)
    return _anthropic_client


def _get_google():
    global _google_client
    if _google_client is None:
        if not config.GOOGLE_API_KEY:
            raise LLMError(
                "GOOGLE_API_KEY is not set. Add it to your .env file.",
                provider="google",
            )
        from google import genai
        _google_client = genai.Client(api_key=config.GOOGLE_API_KEY)
    return _google_client


_JSON_ONLY_SUFFIX = (
    "\n\nIMPORTANT: Respond ONLY with a valid JSON object. No markdown fences, no explanation, no preamble."
    " Start your response with the opening brace '{' of the JSON object immediately."
)


# ---------------------------------------------------------------------------
# Provider-specific call implementations
# ---------------------------------------------------------------------------

# Models that require max_completion_tokens instead of the legacy max_tokens.
_OPENAI_NEW_TOKEN_PARAM_PREFIXES = (
    "gpt-4o", "gpt-4.1", "gpt-4.5", "gpt-5", "o1", "o3", "o4",
)


def _call_openai(req: CompletionRequest) -> CompletionResponse:
    client = _get_openai()
    model = req.model

    messages: list[dict[str, str]] = []
    if req.system:
        messages.append({"role": "system", "content": req.system})
    messages.extend({"role": m.role, "content": m.content} for m in req.messages)

    kwargs: dict = {
        "model": model,
        "messages": messages,
        "temperature": req.temperature,
    }
    if any(model.startswith(p) for p in _OPENAI_NEW_TOKEN_PARAM_PREFIXES):
        kwargs["max_completion_tokens"] = req.max_tokens
    else:
        kwargs["max_tokens"] = req.max_tokens
    if req.json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    start = _time.time()
    response = client.chat.completions.create(**kwargs)
    content = (response.choices[0].message.content or "") if response.choices else ""

    in_tok = getattr(response.usage, "prompt_tokens", 0) or 0
    out_tok = getattr(response.usage, "completion_tokens", 0) or 0
    _record_usage("openai", model, in_tok, out_tok)
    logger.info(
        "OpenAI [%s]: %d chars in %.1fs",
        model, len(content), _time.time() - start,
    )
    return CompletionResponse(
        text=content, input_tokens=in_tok, output_tokens=out_tok,
        provider="openai", model=model,
    )


def _call_anthropic(req: CompletionRequest) -> CompletionResponse:
    client = _get_anthropic()
    model = req.model

    effective_system = req.system
    if req.json_mode:
        effective_system += _JSON_ONLY_SUFFIX

    messages = [{"role": m.role, "content": m.content} for m in req.messages]

    # Stream long requests so the SDK doesn't hit its non-streaming timeout;
    # log progress every 15s so long meetings look alive.
    stream_start = _time.time()
    last_progress = stream_start
    chunk_count = 0

    with client.messages.stream(
        model=model,
        max_tokens=req.max_tokens,
        temperature=req.temperature,
        system=effective_system,
        messages=messages,
    ) as stream:
        for _text in stream.text_stream:
            chunk_count += 1
            now = _time.time()
            if now - last_progress >= 15:
                logger.info(
                    "Anthropic [%s]: streaming... ~%d chunks, %ds elapsed",
                    model, chunk_count, round(now - stream_start),
                )
                last_progress = now
        response = stream.get_final_message()

    content = "".join(
        block.text for block in response.content if getattr(block, "type", "") == "text"
    )
    in_tok = response.usage.input_tokens or 0
    out_tok = response.usage.output_tokens or 0
    _record_usage("anthropic", model, in_tok, out_tok)
    logger.info(
        "Anthropic [%s]: %d chars in %.1fs, stop=%s",
        model, len(content), _time.time() - stream_start, response.stop_reason,
    )
    return CompletionResponse(
        text=content, input_tokens=in_tok, output_tokens=out_tok,
        provider="anthropic", model=model,
    )


def _call_google(req: CompletionRequest) -> CompletionResponse:
    from google.genai import types

    client = _get_google()
    model = req.model

    cfg = types.GenerateContentConfig(
        system_instruction=req.system or None,
        temperature=req.temperature,
        max_output_tokens=req.max_tokens,
    )
    if req.json_mode:
        cfg.response_mime_type = "application/json"

    contents = [
        types.Content(
            role="model" if m.role == "assistant" else "user",
            parts=[types.Part(text=m.content)],
        )
        for m in req.messages
    ]

    start = _time.time()
    response = client.models.generate_content(model=model, contents=contents, config=cfg)
    content = response.text or ""

    meta = getattr(response, "usage_metadata", None)
    in_tok = getattr(meta, "prompt_token_count", 0) or 0
    out_tok = getattr(meta, "candidates_token_count", 0) or 0
    _record_usage("google", model, in_tok, out_tok)
    logger.info(
        "Google [%s]: %d chars in %.1fs",
        model, len(content), _time.time() - start,
    )
    return CompletionResponse(
        text=content, input_tokens=in_tok, output_tokens=out_tok,
        provider="google", model=model,
    )


# Provider dispatch
_PROVIDERS: dict[str, Callable[[CompletionRequest], CompletionResponse]] = {
    "openai": _call_openai,
    "anthropic": _call_anthropic,
    "google": _call_google,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def complete(request: CompletionRequest) -> CompletionResponse:
    """Run one completion with retries. Raises LLMError on permanent failure.

    Transient provider errors are retried by call_with_retry; once attempts
    are exhausted (or the error is permanent) the failure is re-raised as an
    LLMError with a clean message.
    """
    provider = request.provider or config.DEFAULT_PROVIDER
    model = request.model or config.DEFAULT_MODEL
    call_fn = _PROVIDERS.get(provider)
    if not call_fn:
        raise LLMError(
            f"Unknown provider: '{provider}'. Available: {list(_PROVIDERS.keys())}",
            provider=provider,
            model=model,
        )
    request = request.model_copy(update={"provider": provider, "model": model})

    logger.info(
        "LLM call: provider=%s, model=%s, temp=%.1f, max_tokens=%d",
        provider, model, request.temperature, request.max_tokens,
    )
    try:
        return call_with_retry(lambda: call_fn(request), label=f"{provider}/{model}")
    except LLMError:
        raise
    except Exception as exc:
        clean_msg = _extract_error_message(exc, provider, model)
        logger.error("LLM call failed: %s", clean_msg)
        raise LLMError(clean_msg, provider=provider, model=model, cause=exc) from exc


def call_llm(
    system_prompt: str,
    user_prompt: str,
    provider: str | None = None,
    model: str | None = None,
    temperature: float = 0.7,
    max_tokens: int = 16_000,
) -> str:
    """Call an LLM and return raw text. Provider-agnostic."""
    response = complete(CompletionRequest.single(
        system_prompt,
        user_prompt,
        provider=provider or "",
        model=model or "",
        temperature=temperature,
        max_tokens=max_tokens,
    ))
    return response.text.strip()


def call_llm_structured(
    system_prompt: str,
    user_prompt: str,
    response_model: type[T],
    provider: str | None = None,
    model: str | None = None,
    temperature: float = 0.7,
    max_tokens: int = 16_000,
    inject_schema: bool = True,
    repair: bool = True,
) -> T:
    """Call an LLM and parse into a Pydantic model. Provider-agnostic.

    With inject_schema, the JSON schema is appended to the system prompt so
    every provider knows the exact structure required. Prompts that already
    spell out their own JSON shape (persona templates) pass inject_schema=False.

    Parsing is lenient: fences are stripped, trailing commas and preambles are
    tolerated, and (with repair) one model-driven JSON repair pass is tried
    before giving up with an LLMError.
    """
    provider = provider or config.DEFAULT_PROVIDER
    model = model or config.DEFAULT_MODEL

    effective_system = system_prompt
    if inject_schema:
        schema = response_model.model_json_schema()
        effective_system += (
            "\n\nYou MUST respond with valid JSON that conforms to this schema:\n"
            f"```json\n{json.dumps(schema, indent=2)}\n```\n"
            "Respond ONLY with the JSON object. No markdown fences, no explanation."
        )

    logger.info(
        "LLM structured call: provider=%s, model=%s, schema=%s",
        provider, model, response_model.__name__,
    )

    response = complete(CompletionRequest.single(
        effective_system,
        user_prompt,
        provider=provider,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        json_mode=True,
    ))
    raw = strip_json_fences(response.text)

    try:
        return parse_structured(raw, response_model)
    except (ValidationError, ValueError) as exc:
        if isinstance(exc, ValidationError):
            for err in exc.errors():
                logger.error(
                    "Schema validation error: field=%s type=%s msg=%s",
                    " → ".join(str(loc) for loc in err["loc"]),
                    err["type"],
                    err["msg"],
                )
        if not repair:
            clean_msg = _extract_error_message(exc, provider, model)
            raise LLMError(clean_msg, provider=provider, model=model, cause=exc) from exc

        try:
            logger.info("Attempting LLM JSON repair pass...")
            parsed = _attempt_llm_json_repair(
                provider=provider,
                model=model,
                response_model=response_model,
                raw=raw,
                max_tokens=max_tokens,
            )
            logger.info("LLM JSON repair pass succeeded!")
            return parsed
        except (LLMError, ValidationError, ValueError) as exc2:
            logger.warning("LLM JSON repair pass failed: %s", exc2)
            clean_msg = _extract_error_message(exc, provider, model)
            logger.debug("Raw response snippet: %s", raw[:500] if raw else "(empty response)")
            raise LLMError(clean_msg, provider=provider, model=model, cause=exc) from exc


def parse_structured(raw: str, response_model: type[T]) -> T:
    """Validate raw model output into `response_model`, leniently.

    Raises ValidationError / ValueError (json.JSONDecodeError is a ValueError)
    when the payload can't be salvaged.
    """
    try:
        return response_model.model_validate_json(raw)
    except ValidationError:
        logger.info("Attempting lenient re-parse with coercion...")
    data = _safe_json_loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    _coerce_llm_output(data)
    return response_model.model_validate(data)


def _attempt_llm_json_repair(
    *,
    provider: str,
    model: str,
    response_model: type[T],
    raw: str,
    max_tokens: int,
) -> T:
    """Ask the model to repair malformed JSON into valid schema-conforming JSON."""
    if not raw or len(raw) < 20:
        raise ValueError("No JSON payload available for repair")

    # Keep repair requests bounded so huge malformed payloads do not blow context.
    max_chars = 160_000
    if len(raw) > max_chars:
        raise ValueError(
            f"Repair payload too large ({len(raw)} chars) — skipping repair pass"
        )

    schema_json = json.dumps(response_model.model_json_schema(), indent=2)
    repair_system = (
        "You are a strict JSON repair engine.\n"
        "Fix malformed JSON so it is valid and conforms to the provided schema.\n"
        "Return ONLY a single JSON object and preserve original meaning.\n"
    )
    repair_user = (
        "Schema:\n"
        f"```json\n{schema_json}\n```\n\n"
        "Malformed JSON to repair:\n"
        f"```json\n{raw}\n```\n"
    )

    response = complete(CompletionRequest.single(
        repair_system,
        repair_user,
        provider=provider,
        model=model,
        temperature=0.0,
        max_tokens=min(max(4_000, max_tokens), 32_000),
        json_mode=True,
    ))
    repaired = _safe_json_loads(strip_json_fences(response.text))
    _coerce_llm_output(repaired)
    return response_model.model_validate(repaired)


def strip_json_fences(raw: str) -> str:
    """Remove a surrounding ```json ... ``` fence if the model added one."""
    cleaned = (raw or "").strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```\w*\n?", "", cleaned)
        cleaned = re.sub(r"\n?```\s*$", "", cleaned)
    return cleaned.strip()


def _safe_json_loads(raw: str) -> Any:
    """Parse model JSON, tolerating unquoted numeric keys, trailing commas and preamble text."""
    cleaned = strip_json_fences(raw)
    embedded = re.search(r"\{.*\}", cleaned, re.DOTALL)
    attempts = [cleaned, _loosen_json(cleaned)]
    if embedded:
        attempts.append(_loosen_json(embedded.group(0)))

    for text in attempts:
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            continue
    return json.loads(cleaned)


def _loosen_json(text: str) -> str:
    text = re.sub(r"(?<=[\{,])\s*(\d+)\s*:", r' "\1":', text)
    return re.sub(r",\s*([}\]])", r"\1", text)


_NUMERIC_FIELDS = {
    "score",
    "total",
    "audience_appeal",
    "uniqueness",
    "genre_alignment",
    "pitch_clarity",
    "dramatic_intensity",
    "laugh_out_loud_potential",
}


def _coerce_llm_output(obj):
    """Recursively fix common LLM output quirks in-place.

    - Normalises keys ("Score" / "would-click" -> "score" / "would_click")
    - Converts string-encoded numbers in score fields ("7", "7/10") to floats
    - Lowercases consensus labels
    """
    if isinstance(obj, dict):
        keys_to_fix = []
        for k in list(obj.keys()):
            lower_k = k.lower().replace(" ", "_").replace("-", "_") if isinstance(k, str) else k
            if lower_k != k:
                keys_to_fix.append((k, lower_k))
            _coerce_llm_output(obj[k])
        for old_k, new_k in keys_to_fix:
            if new_k not in obj:
                obj[new_k] = obj.pop(old_k)
            else:
                del obj[old_k]

        for key in _NUMERIC_FIELDS & obj.keys():
            value = obj[key]
            if isinstance(value, str):
                match = re.match(r"\s*(-?\d+(?:\.\d+)?)", value)
                if match:
                    obj[key] = float(match.group(1))

        if isinstance(obj.get("consensus"), str):
            obj["consensus"] = obj["consensus"].strip().lower()

    elif isinstance(obj, list):
        for item in obj:
            _coerce_llm_output(item)
