from datetime import datetime, timezone
from typing import Any

from google.api_core.exceptions import GoogleAPICallError
from google.cloud.firestore_v1.base_query import FieldFilter

from app.core.config import get_settings
from app.core.logging import get_logger
from app.db.firestore import get_db
from app.domain.study.models import StudyDeck


logger = get_logger(__name__)

UPDATABLE_FIELDS = {"title", "description", "subject", "difficulty", "flashcards", "quiz"}


class DeckStoreError(RuntimeError):
    """A Firestore call for the study-deck collection failed."""


def _collection():
    return get_db().collection(get_settings().firestore_collection)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_document(deck: StudyDeck) -> dict[str, Any]:
    return deck.model_dump(mode="json", by_alias=True, exclude={"id", "created_at", "updated_at"})


def _from_snapshot(snapshot: Any) -> StudyDeck:
    return StudyDeck.model_validate({**(snapshot.to_dict() or {}), "id": snapshot.id})


def create_deck(deck: StudyDeck) -> str:
    now = _now()
    data = {**_to_document(deck), "createdAt": now, "updatedAt": now}
    try:
        ref = _collection().document()
        ref.set(data)
    except GoogleAPICallError as exc:
        logger.error("error creating deck for user=%s: %s", deck.user_id, exc)
        raise DeckStoreError(f"create_deck_failed:{exc}") from exc
    return ref.id


def get_user_decks(user_id: str) -> list[StudyDeck]:
    try:
        snapshots = list(
            _collection().where(filter=FieldFilter("userId", "==", user_id)).stream()
        )
    except GoogleAPICallError as exc:
        logger.error("error listing decks for user=%s: %s", user_id, exc)
        raise DeckStoreError(f"get_user_decks_failed:{exc}") from exc

    decks = [_from_snapshot(snapshot) for snapshot in snapshots]
    # 복합 인덱스 없이 최신순 정렬
    oldest = datetime.min.replace(tzinfo=timezone.utc)
    decks.sort(key=lambda deck: deck.created_at or oldest, reverse=True)
    return decks


def get_deck(deck_id: str) -> StudyDeck | None:
    try:
        snapshot = _collection().document(deck_id).get()
    except GoogleAPICallError as exc:
        logger.error("error getting deck=%s: %s", deck_id, exc)
        raise DeckStoreError(f"get_deck_failed:{exc}") from exc
    if not snapshot.exists:
        return None
    return _from_snapshot(snapshot)


def update_deck(deck_id: str, updates: dict[str, Any]) -> None:
    unknown = set(updates) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"unsupported_deck_fields:{','.join(sorted(unknown))}")
    try:
        _collection().document(deck_id).update({**updates, "updatedAt": _now()})
    except GoogleAPICallError as exc:
        logger.error("error updating deck=%s: %s", deck_id, exc)
        raise DeckStoreError(f"update_deck_failed:{exc}") from exc


def delete_deck(deck_id: str) -> None:
    try:
        _collection().document(deck_id).delete()
    except GoogleAPICallError as exc:
        logger.error("error deleting deck=%s: %s", deck_id, exc)
        raise DeckStoreError(f"delete_deck_failed:{exc}") from exc
