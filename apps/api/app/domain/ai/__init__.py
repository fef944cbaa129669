"""AI domain services and provider abstractions."""

from app.domain.ai.factory import build_ai_service
from app.domain.ai.service import AIService

__all__ = ["AIService", "build_ai_service"]
