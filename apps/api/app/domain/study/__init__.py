"""Study content types and the prompt/sanitize/validate building blocks."""

from app.domain.study.errors import GenerationError, InputError
from app.domain.study.models import (
    Difficulty,
    Flashcard,
    GenerationRequest,
    QuizQuestion,
    StudyDeck,
    StudySet,
)

__all__ = [
    "Difficulty",
    "Flashcard",
    "GenerationError",
    "GenerationRequest",
    "InputError",
    "QuizQuestion",
    "StudyDeck",
    "StudySet",
]
