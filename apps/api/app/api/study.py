from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.api.decks import deck_store_http_exception, serialize_deck
from app.core.security import get_current_user_id
from app.domain.study.errors import GenerationError
from app.domain.study.models import Flashcard, GenerationRequest, StudyDeck
from app.repositories import study_decks_repo
from app.services.study import generation_service
from app.services.study.error_policy import generation_http_exception


router = APIRouter(prefix="/api", tags=["generation"])


class QuizRequest(GenerationRequest):
    flashcards: list[Flashcard] = Field(default_factory=list)
    linkFlashcards: bool | None = None


class TitleRequest(BaseModel):
    subject: str
    topic: str


class QuizOptionsRequest(BaseModel):
    question: str
    correctAnswer: str


class StudySetRequest(GenerationRequest):
    linkFlashcards: bool | None = None


def _serialize_questions(questions: list[Any]) -> list[dict[str, Any]]:
    return [question.model_dump(by_alias=True) for question in questions]


@router.post("/flashcards")
async def create_flashcards(
    payload: GenerationRequest,
    _user_id: str = Depends(get_current_user_id),
) -> dict[str, Any]:
    try:
        flashcards = await generation_service.generate_flashcards(payload)
    except GenerationError as exc:
        raise generation_http_exception(exc) from exc
    return {"flashcards": [card.model_dump() for card in flashcards]}


@router.post("/quiz")
async def create_quiz(
    payload: QuizRequest,
    _user_id: str = Depends(get_current_user_id),
) -> dict[str, Any]:
    try:
        questions = await generation_service.generate_quiz(
            payload,
            flashcards=payload.flashcards or None,
            link_flashcards=payload.linkFlashcards,
        )
    except GenerationError as exc:
        raise generation_http_exception(exc) from exc
    return {"questions": _serialize_questions(questions)}


@router.post("/title")
async def create_title(
    payload: TitleRequest,
    _user_id: str = Depends(get_current_user_id),
) -> dict[str, str]:
    try:
        title = await generation_service.generate_title(payload.subject, payload.topic)
    except GenerationError as exc:
        raise generation_http_exception(exc) from exc
    return {"title": title}


@router.post("/quiz-options")
async def create_quiz_options(
    payload: QuizOptionsRequest,
    _user_id: str = Depends(get_current_user_id),
) -> dict[str, list[str]]:
    try:
        options = await generation_service.generate_quiz_options(payload.question, payload.correctAnswer)
    except GenerationError as exc:
        raise generation_http_exception(exc) from exc
    return {"options": options}


@router.post("/study-sets", status_code=201)
async def create_study_set(
    payload: StudySetRequest,
    user_id: str = Depends(get_current_user_id),
) -> dict[str, Any]:
    try:
        study_set = await generation_service.generate_study_set(
            payload,
            link_flashcards=payload.linkFlashcards,
        )
    except GenerationError as exc:
        raise generation_http_exception(exc) from exc

    deck = StudyDeck.from_study_set(user_id, study_set)
    try:
        deck_id = study_decks_repo.create_deck(deck)
    except study_decks_repo.DeckStoreError as exc:
        raise deck_store_http_exception(exc) from exc
    return serialize_deck(deck.model_copy(update={"id": deck_id}))
