from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from app.core.logging import get_logger
from app.domain.study.errors import GenerationError


T = TypeVar("T")

logger = get_logger(__name__)

# GenerationError.code -> (kind, status_code, retryable)
_GENERATION_CODE_POLICY = {
    "input_error": ("input_error", 400, False),
    "empty_output": ("empty_output", 502, True),
    "parse_error": ("parse_error", 422, True),
    "schema_mismatch": ("schema_mismatch", 422, True),
    "config_error": ("config_error", 503, False),
    "rate_limited": ("rate_limited", 429, True),
    "timeout": ("timeout", 504, True),
    "provider_error": ("provider_error", 502, False),
}


def ai_error_detail(exc: BaseException) -> str:
    message = str(exc).strip()
    if not message:
        return exc.__class__.__name__ or "ai_provider_failed"
    return message[:300]


def normalize_error_reason(value: str) -> str:
    return " ".join(str(value or "").split())[:260] or "ai_provider_failed"


def format_pipeline_error_detail(pipeline: str, kind: str, reason: str) -> str:
    return f"{pipeline}_failed:{kind}:{normalize_error_reason(reason)}"


def classify_ai_failure(detail: str) -> tuple[str, int, bool]:
    text = str(detail or "").lower()

    rate_limit_tokens = (
        "429",
        "too many requests",
        "rate limit",
        "rate_limit",
        "resource exhausted",
        "quota",
        "ai_backpressure_busy",
    )
    timeout_tokens = (
        "timed out",
        "timeout",
        "read operation timed out",
    )
    parse_tokens = (
        "jsondecodeerror",
        "expecting value",
        "no valid json",
        "invalid json",
    )
    config_tokens = (
        "api_key_missing",
        "openai_base_url_missing",
        "unsupported_ai_provider",
        "ai_service_init_failed",
        "config_error",
    )

    if any(token in text for token in rate_limit_tokens):
        return ("rate_limited", 429, True)
    if any(token in text for token in timeout_tokens):
        return ("timeout", 504, True)
    if any(token in text for token in parse_tokens):
        return ("parse_error", 422, True)
    if "schema" in text:
        return ("schema_mismatch", 422, True)
    if any(token in text for token in config_tokens):
        return ("config_error", 503, False)
    return ("provider_error", 502, False)


def classify_exception(exc: BaseException) -> tuple[str, int, bool]:
    if isinstance(exc, GenerationError) and exc.code in _GENERATION_CODE_POLICY:
        return _GENERATION_CODE_POLICY[exc.code]
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ("timeout", 504, True)
    return classify_ai_failure(ai_error_detail(exc))


def backoff_delay_ms(attempt: int, initial_delay_ms: int) -> int:
    """Delay after failed attempt ``attempt`` (1-based): initial * 2^(attempt-1)."""
    return int(initial_delay_ms) * (2 ** (max(1, attempt) - 1))


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    initial_delay_ms: int = 1000,
    sleep: Callable[[float], Awaitable[Any]] | None = None,
    pipeline: str = "generation",
) -> T:
    """Run ``operation`` up to ``max_retries`` times, sequentially.

    Any exception counts as a failed attempt. Between attempts the controller
    waits ``initial_delay_ms * 2 ** (attempt - 1)`` milliseconds. When every
    attempt has failed the last exception is re-raised unchanged.
    """
    attempts = max(1, int(max_retries))
    sleep = sleep or asyncio.sleep

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if attempt >= attempts:
                logger.error(
                    "%s failed after %d attempts: %s", pipeline, attempts, ai_error_detail(exc)
                )
                raise
            kind, _status_code, _retryable = classify_exception(exc)
            delay_ms = backoff_delay_ms(attempt, initial_delay_ms)
            logger.warning(
                "%s attempt %d/%d failed (%s: %s); retrying in %dms",
                pipeline,
                attempt,
                attempts,
                kind,
                ai_error_detail(exc),
                delay_ms,
            )
            await sleep(delay_ms / 1000)

    raise RuntimeError(f"{pipeline}_retry_exhausted")
