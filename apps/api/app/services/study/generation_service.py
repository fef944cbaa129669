import asyncio
from functools import lru_cache
import random
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from app.core.config import get_settings
from app.core.logging import get_logger
from app.domain.ai import build_ai_service
from app.domain.study.errors import GenerationError, InputError
from app.domain.study.models import Flashcard, GenerationRequest, QuizQuestion, StudySet
from app.domain.study.prompts import (
    build_flashcard_prompt,
    build_quiz_options_prompt,
    build_quiz_prompt,
    build_title_prompt,
)
from app.domain.study.sanitizer import parse_json_payload
from app.domain.study.validation import (
    validate_distractors,
    validate_flashcard_set,
    validate_quiz,
    validate_title,
)
from app.services.study.error_policy import CONTENT_FAILURE_CODES
from app.services.study.pipeline_runtime import (
    ai_error_detail,
    classify_exception,
    format_pipeline_error_detail,
    retry_with_backoff,
)


T = TypeVar("T")

settings = get_settings()
logger = get_logger(__name__)

# 테스트에서 대기 없이 재시도를 검증할 수 있도록 모듈 속성으로 둔다.
_sleep = asyncio.sleep
_random = random.Random()

PLACEHOLDER_OPTIONS = ("Option B", "Option C", "Option D")


@lru_cache(maxsize=1)
def _get_ai_service():
    return build_ai_service(settings)


def _require_ai_service():
    try:
        return _get_ai_service()
    except Exception as exc:
        reason = ai_error_detail(exc)
        raise GenerationError(
            "AI service is not configured",
            code="config_error",
            details=f"ai_service_init_failed:config_error:{reason}",
        ) from exc


def _require_text(value: Any, field: str) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise InputError(f"{field.capitalize()} cannot be empty", details=field)
    return text


def _require_request(request: GenerationRequest) -> None:
    _require_text(request.topic, "topic")
    _require_text(request.subject, "subject")


def _caller_error(pipeline: str, label: str, exc: Exception) -> GenerationError:
    if isinstance(exc, GenerationError) and exc.code in {"input_error", "config_error"}:
        return exc

    kind, _status_code, _retryable = classify_exception(exc)
    reason = exc.message if isinstance(exc, GenerationError) else ai_error_detail(exc)
    if isinstance(exc, GenerationError) and exc.details:
        reason = f"{reason}: {exc.details}"

    if kind == "schema_mismatch":
        message = f"Failed to generate {label}. Please try again."
    elif kind == "parse_error":
        message = f"Failed to generate {label}: the AI response was not valid JSON. Please try again."
    elif kind == "empty_output":
        message = f"Failed to generate {label}: the AI returned an empty response. Please try again."
    else:
        message = f"Failed to generate {label}: {ai_error_detail(exc)}"

    return GenerationError(
        message,
        code=kind,
        details=format_pipeline_error_detail(pipeline, kind, reason),
    )


async def _run_pipeline(
    pipeline: str,
    label: str,
    operation: Callable[[], Awaitable[T]],
) -> T:
    try:
        return await retry_with_backoff(
            operation,
            max_retries=settings.generation_max_retries,
            initial_delay_ms=settings.generation_initial_delay_ms,
            sleep=_sleep,
            pipeline=pipeline,
        )
    except Exception as exc:
        failure = _caller_error(pipeline, label, exc)
        if failure.code in CONTENT_FAILURE_CODES:
            # 원본 진단 정보는 로그로만 남기고 사용자 메시지에는 노출하지 않는다.
            logger.error("%s produced unusable output: %s", pipeline, failure.details)
        raise failure from exc


async def generate_flashcards(request: GenerationRequest) -> list[Flashcard]:
    _require_request(request)
    prompt = build_flashcard_prompt(request)
    ai_service = _require_ai_service()

    async def attempt() -> list[Flashcard]:
        text = await ai_service.generate_content(prompt)
        return validate_flashcard_set(parse_json_payload(text))

    flashcards = await _run_pipeline("flashcards_generate", "flashcards", attempt)
    logger.info("generated %d flashcards for topic=%r", len(flashcards), request.topic)
    return flashcards


async def generate_quiz(
    request: GenerationRequest,
    *,
    flashcards: Sequence[Flashcard] | None = None,
    link_flashcards: bool | None = None,
) -> list[QuizQuestion]:
    """Generate multiple choice questions for ``request``.

    When linking is enabled (``link_flashcards`` or, if unset, the
    ``quiz_link_flashcards`` setting) and ``flashcards`` are given, the quiz
    prompt embeds them so both cover the same material.
    """
    _require_request(request)
    linked = settings.quiz_link_flashcards if link_flashcards is None else link_flashcards
    prompt = build_quiz_prompt(request, flashcards if linked else None)
    ai_service = _require_ai_service()

    async def attempt() -> list[QuizQuestion]:
        text = await ai_service.generate_content(prompt)
        return validate_quiz(parse_json_payload(text))

    questions = await _run_pipeline("quiz_generate", "quiz", attempt)
    logger.info("generated %d quiz questions for topic=%r", len(questions), request.topic)
    return questions


async def generate_title(subject: str, topic: str) -> str:
    subject = _require_text(subject, "subject")
    topic = _require_text(topic, "topic")
    prompt = build_title_prompt(subject, topic)
    ai_service = _require_ai_service()

    async def attempt() -> str:
        text = await ai_service.generate_content(prompt)
        if not text or not text.strip():
            raise GenerationError("Empty response received from AI", code="empty_output")
        return validate_title(text)

    return await _run_pipeline("title_generate", "title", attempt)


def fallback_quiz_options(correct_answer: str) -> list[str]:
    return [correct_answer, *PLACEHOLDER_OPTIONS]


def insert_at_random(distractors: Sequence[str], correct_answer: str) -> list[str]:
    options = list(distractors)
    options.insert(_random.randint(0, len(options)), correct_answer)
    return options


async def generate_quiz_options(
    question: str,
    correct_answer: str,
    *,
    fallback_on_error: bool = True,
) -> list[str]:
    """Return four options: three generated distractors plus ``correct_answer``.

    With ``fallback_on_error`` (the default) a failed generation degrades to
    the correct answer followed by placeholder options instead of raising.
    """
    question = _require_text(question, "question")
    correct_answer = _require_text(correct_answer, "correct answer")
    prompt = build_quiz_options_prompt(question, correct_answer)

    try:
        ai_service = _require_ai_service()

        async def attempt() -> list[str]:
            text = await ai_service.generate_content(prompt)
            return validate_distractors(parse_json_payload(text, opening="["), correct_answer)

        distractors = await _run_pipeline("quiz_options_generate", "quiz options", attempt)
    except GenerationError as exc:
        if not fallback_on_error:
            raise
        logger.warning("quiz options fell back to placeholders: %s", exc.details or exc.message)
        return fallback_quiz_options(correct_answer)

    return insert_at_random(distractors, correct_answer)


def _default_title(request: GenerationRequest) -> str:
    return f"{request.subject}: {request.topic}"


def _describe_study_set(request: GenerationRequest) -> str:
    return (
        f"{request.difficulty.value.capitalize()} study set on {request.topic} "
        f"({request.subject})"
    )


async def _title_or_default(request: GenerationRequest) -> str:
    try:
        return await generate_title(request.subject, request.topic)
    except GenerationError as exc:
        logger.warning("title generation failed, using default: %s", exc.message)
        return _default_title(request)


async def _gather_or_cancel(*aws: Awaitable[Any]) -> list[Any]:
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        # 하나가 실패하면 나머지 생성 작업의 재시도/호출을 중단한다.
        for task in tasks:
            task.cancel()
        raise


async def generate_study_set(
    request: GenerationRequest,
    *,
    link_flashcards: bool | None = None,
) -> StudySet:
    _require_request(request)
    linked = settings.quiz_link_flashcards if link_flashcards is None else link_flashcards

    if linked:
        flashcards, title = await _gather_or_cancel(
            generate_flashcards(request),
            _title_or_default(request),
        )
        quiz = await generate_quiz(request, flashcards=flashcards, link_flashcards=True)
    else:
        flashcards, quiz, title = await _gather_or_cancel(
            generate_flashcards(request),
            generate_quiz(request, link_flashcards=False),
            _title_or_default(request),
        )

    return StudySet(
        title=title,
        description=_describe_study_set(request),
        subject=request.subject,
        difficulty=request.difficulty,
        flashcards=flashcards,
        quiz=quiz,
    )
