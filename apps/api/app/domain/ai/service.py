import asyncio

from app.domain.ai.providers.base import TextGenerationProvider


class AIService:
    def __init__(
        self,
        *,
        primary: TextGenerationProvider,
        max_concurrency: int = 4,
        acquire_timeout_ms: int = 2000,
    ) -> None:
        self.primary = primary
        self._semaphore = asyncio.Semaphore(value=max(1, int(max_concurrency)))
        self._acquire_timeout_sec = max(0.01, int(acquire_timeout_ms) / 1000)

    async def generate_content(self, prompt: str) -> str:
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self._acquire_timeout_sec)
        except asyncio.TimeoutError as exc:
            raise RuntimeError("ai_backpressure_busy") from exc
        try:
            # 공급자 호출은 블로킹 HTTP이므로 워커 스레드에서 실행
            return await asyncio.to_thread(self.primary.generate_content, prompt)
        except Exception as primary_exc:
            raise RuntimeError(f"ai_primary_failed:{primary_exc}") from primary_exc
        finally:
            self._semaphore.release()
