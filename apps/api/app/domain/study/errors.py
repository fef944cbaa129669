from typing import Any


class GenerationError(RuntimeError):
    """Failure of a study-content generation step.

    ``code`` is one of the error policy codes (``parse_error``,
    ``schema_mismatch``, ``empty_output`` ...); ``details`` carries the raw
    diagnostic that is logged but not shown to end users.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: Any = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    def __repr__(self) -> str:
        return f"GenerationError(code={self.code!r}, message={self.message!r})"


class InputError(GenerationError):
    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message, code="input_error", details=details)
