import re
from typing import Any

from app.domain.study.errors import GenerationError
from app.domain.study.models import Flashcard, QuizQuestion


_FLASHCARD_FIELD_PAIRS = (("question", "answer"), ("front", "back"))
_TITLE_HEADING_PREFIX = re.compile(r"^#{1,6}\s+")
# 양끝이 같은 기호로 감싸진 경우만 벗긴다 (C#, F# 같은 제목 보존).
_TITLE_WRAPPED = re.compile(r"^(\*\*|__|\*|\"|'|`)(.*)\1$")


def _schema_error(message: str, **details: Any) -> GenerationError:
    return GenerationError(message, code="schema_mismatch", details=details or None)


def _non_empty_str(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def _require_list(data: Any, key: str) -> list[Any]:
    if not isinstance(data, dict):
        raise _schema_error("Invalid response: not an object", received=type(data).__name__)
    if key not in data:
        raise _schema_error(f"Invalid response: missing {key} array")
    items = data[key]
    if not isinstance(items, list):
        raise _schema_error(f"Invalid response: {key} is not an array")
    if not items:
        raise _schema_error(f"Invalid response: empty {key} array")
    return items


def _validate_flashcard(card: Any, index: int) -> Flashcard:
    if not isinstance(card, dict):
        raise _schema_error(f"Invalid flashcard at index {index}: not an object", index=index)

    for question_key, answer_key in _FLASHCARD_FIELD_PAIRS:
        if question_key not in card and answer_key not in card:
            continue
        question = _non_empty_str(card.get(question_key))
        answer = _non_empty_str(card.get(answer_key))
        if not question:
            raise _schema_error(
                f"Invalid flashcard at index {index}: empty or non-string {question_key}",
                index=index,
                field=question_key,
            )
        if not answer:
            raise _schema_error(
                f"Invalid flashcard at index {index}: empty or non-string {answer_key}",
                index=index,
                field=answer_key,
            )
        return Flashcard(question=question, answer=answer)

    raise _schema_error(
        f"Invalid flashcard at index {index}: missing front/back",
        index=index,
        field="front",
    )


def validate_flashcard_set(data: Any) -> list[Flashcard]:
    """Narrow ``{"flashcards": [...]}`` into canonical question/answer cards.

    Cards may use either ``front``/``back`` or ``question``/``answer``; the
    result always uses the latter.
    """
    cards = _require_list(data, "flashcards")
    return [_validate_flashcard(card, idx) for idx, card in enumerate(cards)]


def _validate_options(options: Any, index: int) -> list[str]:
    if not isinstance(options, list):
        raise _schema_error(
            f"Invalid question at index {index}: options is not an array",
            index=index,
            field="options",
        )
    if len(options) < 2:
        raise _schema_error(
            f"Invalid question at index {index}: insufficient options",
            index=index,
            field="options",
        )
    normalized: list[str] = []
    for option_idx, option in enumerate(options):
        text = _non_empty_str(option)
        if not text:
            raise _schema_error(
                f"Invalid question at index {index}: invalid option format at {option_idx}",
                index=index,
                field="options",
            )
        normalized.append(text)
    return normalized


def _validate_question(item: Any, index: int) -> QuizQuestion:
    if not isinstance(item, dict):
        raise _schema_error(f"Invalid question at index {index}: not an object", index=index)

    question = _non_empty_str(item.get("question"))
    if not question:
        raise _schema_error(
            f"Invalid question at index {index}: invalid question text",
            index=index,
            field="question",
        )

    options = _validate_options(item.get("options"), index)

    correct = item.get("correctAnswer", item.get("correct_answer"))
    # bool은 int의 하위 클래스이므로 명시적으로 제외
    if isinstance(correct, bool) or not isinstance(correct, int):
        raise _schema_error(
            f"Invalid question at index {index}: correctAnswer is not an integer",
            index=index,
            field="correctAnswer",
        )
    if correct < 0 or correct >= len(options):
        raise _schema_error(
            f"Invalid question at index {index}: correctAnswer {correct} out of range",
            index=index,
            field="correctAnswer",
        )

    explanation = item.get("explanation")
    if explanation is not None and not isinstance(explanation, str):
        raise _schema_error(
            f"Invalid question at index {index}: explanation is not a string",
            index=index,
            field="explanation",
        )

    return QuizQuestion(
        question=question,
        options=options,
        correct_answer=correct,
        explanation=_non_empty_str(explanation) or None,
    )


def validate_quiz(data: Any) -> list[QuizQuestion]:
    questions = _require_list(data, "questions")
    return [_validate_question(item, idx) for idx, item in enumerate(questions)]


def validate_distractors(data: Any, correct_answer: str) -> list[str]:
    if isinstance(data, dict):
        data = data.get("options", data.get("distractors"))
    if not isinstance(data, list):
        raise _schema_error("Invalid options: not an array")
    if len(data) != 3:
        raise _schema_error(f"Invalid options: expected 3 distractors, got {len(data)}")

    correct_key = correct_answer.strip().lower()
    distractors: list[str] = []
    for idx, option in enumerate(data):
        text = _non_empty_str(option)
        if not text:
            raise _schema_error(f"Invalid option at index {idx}: empty or non-string", index=idx)
        if text.lower() == correct_key:
            raise _schema_error(f"Invalid option at index {idx}: repeats the correct answer", index=idx)
        if text.lower() in {item.lower() for item in distractors}:
            raise _schema_error(f"Invalid option at index {idx}: duplicate option", index=idx)
        distractors.append(text)
    return distractors


def _strip_title_markup(line: str) -> str:
    title = line.strip()
    previous = None
    while title != previous:
        previous = title
        title = _TITLE_HEADING_PREFIX.sub("", title).strip()
        match = _TITLE_WRAPPED.match(title)
        if match:
            title = match.group(2).strip()
        if title.lower().startswith("title:"):
            title = title[len("title:"):].strip()
    return title


def validate_title(text: Any) -> str:
    if not isinstance(text, str):
        raise _schema_error("Invalid title: not a string")
    first_line = next((line for line in text.splitlines() if line.strip()), "")
    title = _strip_title_markup(first_line)
    if not title:
        raise _schema_error("Invalid title: empty")
    return title
