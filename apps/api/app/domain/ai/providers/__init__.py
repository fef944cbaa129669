"""AI providers."""

from app.domain.ai.providers.gemini import GeminiProvider
from app.domain.ai.providers.openai import OpenAIProvider

__all__ = ["GeminiProvider", "OpenAIProvider"]
