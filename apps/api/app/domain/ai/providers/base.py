from typing import Protocol


class TextGenerationProvider(Protocol):
    """LLM provider contract that returns the raw text completion."""

    def generate_content(self, prompt: str) -> str:
        ...
