import json
import time
import unittest

from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from app.api import decks, study
from app.core import security
from app.core.config import Settings
from app.repositories import study_decks_repo
from app.services.study import generation_service as gs

from firestore_fakes import FakeFirestore


FLASHCARDS_JSON = json.dumps({"flashcards": [{"front": "What is ATP?", "back": "Energy currency"}]})
QUIZ_JSON = json.dumps(
    {"questions": [{"question": "2+2?", "options": ["3", "4", "5", "6"], "correctAnswer": 1}]}
)


class _RoutingAIService:
    async def generate_content(self, prompt: str) -> str:
        if prompt.startswith("Write a short, descriptive title"):
            return "Cell Energy"
        if prompt.startswith("You write multiple choice distractors"):
            return '["3", "5", "6"]'
        if '"questions"' in prompt:
            return QUIZ_JSON
        return FLASHCARDS_JSON


class _NoJsonAIService:
    async def generate_content(self, prompt: str) -> str:
        return "I cannot help with that."


class StudyRoutesTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._original_get_ai_service = gs._get_ai_service
        self._original_sleep = gs._sleep
        self._original_get_db = study_decks_repo.get_db
        self.db = FakeFirestore()

        async def _no_sleep(_seconds: float) -> None:
            return None

        gs._get_ai_service = lambda: _RoutingAIService()
        gs._sleep = _no_sleep
        study_decks_repo.get_db = lambda: self.db

    def tearDown(self) -> None:
        gs._get_ai_service = self._original_get_ai_service
        gs._sleep = self._original_sleep
        study_decks_repo.get_db = self._original_get_db

    def _study_request(self) -> study.StudySetRequest:
        return study.StudySetRequest(topic="Cellular respiration", subject="Biology", numberOfQuestions=1)

    async def test_flashcards_endpoint(self) -> None:
        result = await study.create_flashcards(
            study.GenerationRequest(topic="ATP", subject="Biology"),
            _user_id="auth0|alice",
        )
        self.assertEqual(result, {"flashcards": [{"question": "What is ATP?", "answer": "Energy currency"}]})

    async def test_quiz_endpoint_uses_client_aliases(self) -> None:
        result = await study.create_quiz(
            study.QuizRequest(
                topic="ATP",
                subject="Biology",
                flashcards=[{"question": "What is ATP?", "answer": "Energy currency"}],
                linkFlashcards=True,
            ),
            _user_id="auth0|alice",
        )
        self.assertEqual(result["questions"][0]["correctAnswer"], 1)

    async def test_title_and_options_endpoints(self) -> None:
        title = await study.create_title(study.TitleRequest(subject="Biology", topic="ATP"), _user_id="u")
        self.assertEqual(title, {"title": "Cell Energy"})

        options = await study.create_quiz_options(
            study.QuizOptionsRequest(question="2+2?", correctAnswer="4"),
            _user_id="u",
        )
        self.assertEqual(sorted(options["options"]), ["3", "4", "5", "6"])

    async def test_generation_failure_becomes_structured_http_error(self) -> None:
        gs._get_ai_service = lambda: _NoJsonAIService()

        with self.assertRaises(HTTPException) as ctx:
            await study.create_flashcards(
                study.GenerationRequest(topic="ATP", subject="Biology"),
                _user_id="auth0|alice",
            )

        self.assertEqual(ctx.exception.status_code, 422)
        self.assertEqual(ctx.exception.detail["error_code"], "parse_error")
        self.assertTrue(ctx.exception.detail["retryable"])
        self.assertEqual(ctx.exception.detail["detail"], "flashcards_generate_failed:parse_error")
        self.assertNotIn("I cannot help", str(ctx.exception.detail))

    async def test_study_set_is_persisted_and_scoped_to_owner(self) -> None:
        created = await study.create_study_set(self._study_request(), user_id="auth0|alice")

        self.assertEqual(created["title"], "Cell Energy")
        self.assertEqual(created["userId"], "auth0|alice")
        deck_id = created["id"]

        listed = decks.list_decks(user_id="auth0|alice")
        self.assertEqual([deck["id"] for deck in listed["decks"]], [deck_id])
        self.assertEqual(decks.list_decks(user_id="auth0|bob"), {"decks": []})

        with self.assertRaises(HTTPException) as ctx:
            decks.read_deck(deck_id, user_id="auth0|bob")
        self.assertEqual(ctx.exception.status_code, 404)

        patched = decks.patch_deck(
            deck_id,
            decks.DeckUpdateRequest(title="Mitochondria"),
            user_id="auth0|alice",
        )
        self.assertEqual(patched["title"], "Mitochondria")
        self.assertEqual(patched["flashcards"][0]["question"], "What is ATP?")

        response = decks.remove_deck(deck_id, user_id="auth0|alice")
        self.assertEqual(response.status_code, 204)
        with self.assertRaises(HTTPException):
            decks.read_deck(deck_id, user_id="auth0|alice")


class SecurityTests(unittest.TestCase):
    def setUp(self) -> None:
        self._original_get_settings = security.get_settings
        self._original_resolve_signing_key = security._resolve_signing_key
        self.settings = Settings(
            auth0_domain="tenant.example.com",
            auth0_audience="study-api",
            auth0_algorithms=["HS256"],
        )
        security.get_settings = lambda: self.settings
        security._resolve_signing_key = lambda _token: "test-secret"

    def tearDown(self) -> None:
        security.get_settings = self._original_get_settings
        security._resolve_signing_key = self._original_resolve_signing_key

    def _token(self, **overrides) -> HTTPAuthorizationCredentials:
        claims = {
            "sub": "auth0|alice",
            "aud": "study-api",
            "iss": "https://tenant.example.com/",
            "exp": int(time.time()) + 60,
        }
        claims.update(overrides)
        token = jwt.encode(claims, "test-secret", algorithm="HS256")
        return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)

    def test_valid_token_yields_subject(self) -> None:
        self.assertEqual(security.get_current_user_id(self._token()), "auth0|alice")

    def test_missing_token_is_unauthorized(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            security.get_current_user_id(None)
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(ctx.exception.detail["detail"], "bearer_token_missing")

    def test_wrong_audience_and_expired_tokens_are_rejected(self) -> None:
        for overrides in ({"aud": "other-api"}, {"exp": int(time.time()) - 60}, {"iss": "https://evil.test/"}):
            with self.assertRaises(HTTPException) as ctx:
                security.get_current_user_id(self._token(**overrides))
            self.assertEqual(ctx.exception.status_code, 401)


if __name__ == "__main__":
    unittest.main()
