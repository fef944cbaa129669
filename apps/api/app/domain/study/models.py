from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class GenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    topic: str
    subject: str
    difficulty: Difficulty = Difficulty.BEGINNER
    additional_info: str | None = Field(default=None, alias="additionalInfo")
    number_of_questions: int = Field(default=5, ge=1, le=20, alias="numberOfQuestions")

    @field_validator("topic", "subject")
    @classmethod
    def _require_text(cls, value: str) -> str:
        stripped = " ".join(str(value or "").split())
        if not stripped:
            raise ValueError("must not be empty")
        return stripped

    @field_validator("additional_info")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        return stripped or None


class Flashcard(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    answer: str


class QuizQuestion(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    question: str
    options: list[str] = Field(min_length=2)
    correct_answer: int = Field(ge=0, alias="correctAnswer")
    explanation: str | None = None


class StudySet(BaseModel):
    title: str
    description: str
    subject: str
    difficulty: Difficulty
    flashcards: list[Flashcard]
    quiz: list[QuizQuestion]


class StudyDeck(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    user_id: str = Field(alias="userId")
    title: str
    description: str = ""
    subject: str = ""
    difficulty: Difficulty = Difficulty.BEGINNER
    flashcards: list[Flashcard] = Field(default_factory=list)
    quiz: list[QuizQuestion] = Field(default_factory=list)
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @classmethod
    def from_study_set(cls, user_id: str, study_set: StudySet) -> "StudyDeck":
        return cls(
            user_id=user_id,
            title=study_set.title,
            description=study_set.description,
            subject=study_set.subject,
            difficulty=study_set.difficulty,
            flashcards=study_set.flashcards,
            quiz=study_set.quiz,
        )
