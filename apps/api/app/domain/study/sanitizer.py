"""Recovery of a JSON payload embedded in free-form model output.

Models wrap JSON in code fences, put a sentence in front of it, or append a
closing remark. The helpers here drop fence lines and control characters and
then scan for the first balanced ``{...}`` (or ``[...]``) span, skipping
brackets that appear inside string literals. Fences written inline inside a
string value are content and are kept.
"""

import json
import re
from typing import Any

from app.domain.study.errors import GenerationError


_FENCE_LINE_PATTERN = re.compile(r"^[ \t]*```[A-Za-z0-9_+-]*[ \t\r]*$", re.MULTILINE)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_CLOSERS = {"{": "}", "[": "]"}


def strip_code_fence(text: str) -> str:
    return _FENCE_LINE_PATTERN.sub("", text)


def strip_control_chars(text: str) -> str:
    return _CONTROL_CHARS.sub("", text)


def _balanced_span_end(text: str, start: int, opening: str, closing: str) -> int:
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        char = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opening:
            depth += 1
        elif char == closing:
            depth -= 1
            if depth == 0:
                return idx
    return -1


def find_json_span(text: str, opening: str = "{") -> str | None:
    """Return the first balanced span that starts with ``opening``."""
    closing = _CLOSERS[opening]
    start = text.find(opening)
    while start != -1:
        end = _balanced_span_end(text, start, opening, closing)
        if end != -1:
            return text[start : end + 1]
        start = text.find(opening, start + 1)
    return None


def sanitize_response(text: str | None, opening: str = "{") -> str:
    if not text or not text.strip():
        raise GenerationError("Empty response received from AI", code="empty_output")

    cleaned = strip_control_chars(strip_code_fence(text)).strip()
    candidate = find_json_span(cleaned, opening)
    if candidate is None:
        raise GenerationError(
            "No valid JSON structure found",
            code="parse_error",
            details=text[:300],
        )
    return candidate


def parse_json_payload(text: str | None, opening: str = "{") -> Any:
    candidate = sanitize_response(text, opening)
    try:
        # 모델이 문자열 안에 줄바꿈/탭을 그대로 넣는 경우가 많다.
        return json.loads(candidate, strict=False)
    except json.JSONDecodeError as exc:
        raise GenerationError(
            "Invalid JSON format in AI response",
            code="parse_error",
            details=f"{exc.msg} at position {exc.pos}: {candidate[:300]}",
        ) from exc
