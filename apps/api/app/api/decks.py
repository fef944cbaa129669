from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from app.core.security import get_current_user_id
from app.domain.study.models import Difficulty, Flashcard, QuizQuestion, StudyDeck
from app.repositories import study_decks_repo
from app.services.study.error_policy import build_structured_error_detail


router = APIRouter(prefix="/api/decks", tags=["decks"])


class DeckUpdateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    subject: str | None = None
    difficulty: Difficulty | None = None
    flashcards: list[Flashcard] | None = None
    quiz: list[QuizQuestion] | None = None


def serialize_deck(deck: StudyDeck) -> dict[str, Any]:
    return deck.model_dump(mode="json", by_alias=True)


def deck_store_http_exception(exc: Exception) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail=build_structured_error_detail(
            error_code="db_error",
            retryable=False,
            detail=str(exc),
        ),
    )


def _not_found(deck_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail=build_structured_error_detail(
            error_code="not_found",
            message="Study deck not found",
            detail=f"deck_not_found:{deck_id}",
        ),
    )


def _require_owned_deck(deck_id: str, user_id: str) -> StudyDeck:
    try:
        deck = study_decks_repo.get_deck(deck_id)
    except study_decks_repo.DeckStoreError as exc:
        raise deck_store_http_exception(exc) from exc
    # 다른 사용자의 덱은 존재 여부도 노출하지 않는다.
    if deck is None or deck.user_id != user_id:
        raise _not_found(deck_id)
    return deck


@router.get("")
def list_decks(user_id: str = Depends(get_current_user_id)) -> dict[str, Any]:
    try:
        decks = study_decks_repo.get_user_decks(user_id)
    except study_decks_repo.DeckStoreError as exc:
        raise deck_store_http_exception(exc) from exc
    return {"decks": [serialize_deck(deck) for deck in decks]}


@router.get("/{deck_id}")
def read_deck(deck_id: str, user_id: str = Depends(get_current_user_id)) -> dict[str, Any]:
    return serialize_deck(_require_owned_deck(deck_id, user_id))


@router.patch("/{deck_id}")
def patch_deck(
    deck_id: str,
    payload: DeckUpdateRequest,
    user_id: str = Depends(get_current_user_id),
) -> dict[str, Any]:
    _require_owned_deck(deck_id, user_id)
    updates = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
    if updates:
        try:
            study_decks_repo.update_deck(deck_id, updates)
        except study_decks_repo.DeckStoreError as exc:
            raise deck_store_http_exception(exc) from exc
    return serialize_deck(_require_owned_deck(deck_id, user_id))


@router.delete("/{deck_id}", status_code=204)
def remove_deck(deck_id: str, user_id: str = Depends(get_current_user_id)) -> Response:
    _require_owned_deck(deck_id, user_id)
    try:
        study_decks_repo.delete_deck(deck_id)
    except study_decks_repo.DeckStoreError as exc:
        raise deck_store_http_exception(exc) from exc
    return Response(status_code=204)
