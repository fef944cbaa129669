from typing import Any
from urllib import parse

from app.domain.ai.providers.common import post_json


class GeminiProvider:
    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_sec: int = 30,
        temperature: float = 0.4,
    ) -> None:
        if not api_key:
            raise ValueError("gemini_api_key_missing")
        self.api_key = api_key
        self.model = model
        self.timeout_sec = timeout_sec
        self.temperature = temperature

    def generate_content(self, prompt: str) -> str:
        endpoint = (
            "https://generativelanguage.googleapis.com/v1beta/models/"
            f"{parse.quote(self.model)}:generateContent?key={parse.quote(self.api_key)}"
        )
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": prompt}],
                }
            ],
            "generationConfig": {
                "temperature": self.temperature,
            },
        }

        decoded = post_json(endpoint, payload, timeout_sec=self.timeout_sec, provider="gemini")
        return self._extract_text(decoded)

    @staticmethod
    def _extract_text(response_json: dict[str, Any]) -> str:
        candidates = response_json.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            feedback = response_json.get("promptFeedback") or {}
            block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            if block_reason:
                raise RuntimeError(f"gemini_prompt_blocked:{block_reason}")
            raise RuntimeError("gemini_candidates_missing")

        first = candidates[0]
        content = first.get("content", {}) if isinstance(first, dict) else {}
        parts = content.get("parts", [])
        if not isinstance(parts, list):
            raise RuntimeError("gemini_parts_missing")

        texts = [
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        # 빈 응답은 상위(sanitizer)에서 empty_output으로 분류한다.
        return "".join(texts)
