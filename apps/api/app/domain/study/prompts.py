from typing import Sequence

from app.domain.study.models import Flashcard, GenerationRequest


_JSON_ONLY_RULES = """Requirements:
- Response must be ONLY valid JSON
- No markdown, no code blocks, no extra text before or after the JSON
- Content must be factually accurate"""

_DIFFICULTY_GUIDANCE = {
    "beginner": "Assume no prior knowledge; focus on core definitions and simple examples.",
    "intermediate": "Assume working familiarity; focus on relationships between concepts and applications.",
    "advanced": "Assume strong background; focus on edge cases, trade-offs and deeper reasoning.",
}


def _describe_request(request: GenerationRequest) -> str:
    difficulty = request.difficulty.value
    lines = [
        f"Topic: {request.topic}",
        f"Subject: {request.subject}",
        f"Level: {difficulty}. {_DIFFICULTY_GUIDANCE[difficulty]}",
    ]
    if request.additional_info:
        lines.append(f"Additional context: {request.additional_info}")
    return "\n".join(lines)


def build_flashcard_prompt(request: GenerationRequest) -> str:
    count = request.number_of_questions
    return f"""You are a helpful AI tutor. Create {count} educational flashcards for studying the topic below.
{_describe_request(request)}

Return ONLY a valid JSON object matching this exact structure, with NO additional text or formatting:
{{
  "flashcards": [
    {{
      "front": "question or term",
      "back": "answer or definition"
    }}
  ]
}}

{_JSON_ONLY_RULES}
- Exactly {count} flashcards
- Front should be a clear question or term
- Back should be a complete, accurate answer or definition"""


def _flashcard_digest(flashcards: Sequence[Flashcard], limit: int = 20) -> str:
    rows = []
    for idx, card in enumerate(flashcards[:limit], start=1):
        rows.append(f"{idx}. Q: {card.question} | A: {card.answer}")
    return "\n".join(rows)


def build_quiz_prompt(
    request: GenerationRequest,
    flashcards: Sequence[Flashcard] | None = None,
) -> str:
    count = request.number_of_questions
    linked = ""
    if flashcards:
        linked = (
            "\nBase the questions on the material covered by these flashcards, "
            "testing understanding rather than repeating them verbatim:\n"
            f"{_flashcard_digest(flashcards)}\n"
        )
    return f"""You are a helpful AI tutor. Create a {count}-question multiple choice quiz that tests deep understanding of the topic below.
{_describe_request(request)}
{linked}
Return ONLY a valid JSON object matching this exact structure, with NO additional text or formatting:
{{
  "questions": [
    {{
      "question": "clear question text",
      "options": ["option1", "option2", "option3", "option4"],
      "correctAnswer": 0,
      "explanation": "why this is the correct answer"
    }}
  ]
}}

{_JSON_ONLY_RULES}
- Exactly {count} questions, each with 4 options
- Questions must be clear and unambiguous
- All options must be plausible
- correctAnswer must be a valid index (0-3) into options"""


def build_title_prompt(subject: str, topic: str) -> str:
    return f"""Write a short, descriptive title for a study set.
Subject: {subject}
Topic: {topic}

Rules:
- At most 8 words
- Plain text only: no quotes, no markdown, no trailing punctuation
- Return ONLY the title on a single line"""


def build_quiz_options_prompt(question: str, correct_answer: str) -> str:
    return f"""You write multiple choice distractors.
Question: {question}
Correct answer: {correct_answer}

Return ONLY a JSON array of exactly 3 incorrect but plausible answer options, for example:
["wrong option 1", "wrong option 2", "wrong option 3"]

{_JSON_ONLY_RULES}
- None of the options may equal the correct answer
- Options must be distinct and similar in length and style to the correct answer"""
