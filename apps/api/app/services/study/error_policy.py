import re
from typing import Any

from fastapi import HTTPException

from app.domain.study.errors import GenerationError


KNOWN_ERROR_CODES = {
    "input_error",
    "empty_output",
    "parse_error",
    "schema_mismatch",
    "rate_limited",
    "timeout",
    "provider_error",
    "config_error",
    "not_found",
    "unauthorized",
    "db_error",
    "unknown",
}

RETRYABLE_ERROR_CODES = {
    "empty_output",
    "parse_error",
    "schema_mismatch",
    "rate_limited",
    "timeout",
}

ERROR_STATUS_CODES = {
    "input_error": 400,
    "unauthorized": 401,
    "not_found": 404,
    "parse_error": 422,
    "schema_mismatch": 422,
    "rate_limited": 429,
    "db_error": 500,
    "unknown": 500,
    "empty_output": 502,
    "provider_error": 502,
    "config_error": 503,
    "timeout": 504,
}

CONTENT_FAILURE_CODES = {"empty_output", "parse_error", "schema_mismatch"}

_PIPELINE_PREFIX_PATTERN = re.compile(r"^[a-z0-9_]+_failed:[a-z_]+")


def normalize_error_code(value: Any) -> str:
    raw = str(value or "").strip().lower()
    if raw in KNOWN_ERROR_CODES:
        return raw
    return "unknown"


def _build_message(code: str, reason: str) -> str:
    message = " ".join(str(reason or "").split()).strip()
    if message:
        return message[:260]
    defaults = {
        "input_error": "Invalid request",
        "empty_output": "AI returned empty content",
        "parse_error": "AI response was not valid JSON",
        "schema_mismatch": "AI response schema mismatch",
        "rate_limited": "AI provider rate limited the request",
        "timeout": "AI request timed out",
        "provider_error": "AI provider request failed",
        "config_error": "AI service configuration error",
        "not_found": "Resource not found",
        "unauthorized": "Authentication required",
        "db_error": "Failed to persist study deck",
        "unknown": "Request failed",
    }
    return defaults.get(code, "Request failed")


def build_structured_error_detail(
    *,
    error_code: str,
    message: str | None = None,
    retryable: bool | None = None,
    detail: Any = None,
) -> dict[str, Any]:
    code = normalize_error_code(error_code)
    message_text = " ".join(str(message or "").split()).strip()
    if not message_text:
        message_text = _build_message(code, str(detail or ""))
    if retryable is None:
        retryable = code in RETRYABLE_ERROR_CODES

    detail_text = " ".join(str(detail or "").split()).strip()
    if not detail_text:
        detail_text = message_text

    return {
        "error_code": code,
        "message": message_text[:260],
        "retryable": bool(retryable),
        "detail": detail_text,
    }


def _public_detail(exc: GenerationError, code: str) -> str:
    if not isinstance(exc.details, str):
        return exc.message
    if code in CONTENT_FAILURE_CODES:
        # 스키마/파싱 진단 원문은 로그에만 남기고 응답에는 단계와 코드만 싣는다.
        match = _PIPELINE_PREFIX_PATTERN.match(exc.details)
        return match.group(0) if match else code
    return exc.details


def generation_http_exception(exc: GenerationError) -> HTTPException:
    code = normalize_error_code(exc.code)
    return HTTPException(
        status_code=ERROR_STATUS_CODES.get(code, 500),
        detail=build_structured_error_detail(
            error_code=code,
            message=exc.message,
            detail=_public_detail(exc, code),
        ),
    )


def build_http_error_payload(exc: HTTPException, trace_id: str) -> dict[str, Any]:
    detail = exc.detail
    if not isinstance(detail, dict):
        detail = build_structured_error_detail(error_code="unknown", message=str(detail or ""))

    code = normalize_error_code(detail.get("error_code"))
    message = " ".join(str(detail.get("message") or "").split()).strip()
    if not message:
        message = _build_message(code, detail.get("detail") or "")
    retryable = bool(detail.get("retryable")) if "retryable" in detail else code in RETRYABLE_ERROR_CODES

    return {
        "error_code": code,
        "message": message[:260],
        "retryable": retryable,
        "trace_id": trace_id,
        "detail": str(detail.get("detail") or "").strip() or message[:260],
    }


def build_unexpected_error_payload(trace_id: str) -> dict[str, Any]:
    return {
        "error_code": "unknown",
        "message": "Unexpected server error",
        "retryable": False,
        "trace_id": trace_id,
        "detail": "unexpected_server_error",
    }
