"""Error taxonomy for translation sessions.

Chunk-level errors (prompt build, provider) degrade to a failed chunk and
never abort a batch. Validation and not-found errors are raised
synchronously to the caller. Persistence errors abort the current run.
"""

from enum import Enum


class ErrorType(str, Enum):
    """Types of errors that can occur while translating."""

    VALIDATION_ERROR = "validation_error"  # Wrong status, empty input, bad arguments
    NOT_FOUND = "not_found"  # Unknown session, chunk or template id
    PROMPT_ERROR = "prompt_error"  # Template render or ChatML parse failure
    LLM_ERROR = "llm_error"  # Provider call failed (network, auth, quota, filter)
    PERSISTENCE_ERROR = "persistence_error"  # Unexpected storage failure


class TranslationError(Exception):
    """Base class for all doctranslate errors."""

    error_type: ErrorType = ErrorType.VALIDATION_ERROR
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Serialize for API responses and event payloads."""
        return {"type": self.error_type.value, "message": self.message}


class ValidationError(TranslationError):
    """Request not allowed in the current state or with the given input."""

    error_type = ErrorType.VALIDATION_ERROR
    status_code = 400


class NotFoundError(TranslationError):
    """Unknown session, chunk or template id."""

    error_type = ErrorType.NOT_FOUND
    status_code = 404


class PromptBuildError(TranslationError):
    """Template rendering or ChatML parsing failed for one chunk."""

    error_type = ErrorType.PROMPT_ERROR
    status_code = 422

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class ProviderError(TranslationError):
    """LLM call failed.

    Attributes:
        code: Provider or HTTP error code, if known
        status: Provider status string (e.g. RESOURCE_EXHAUSTED), if known
        retryable: Whether the failure is transient
    """

    error_type = ErrorType.LLM_ERROR
    status_code = 502

    def __init__(
        self,
        message: str,
        code: int | None = None,
        status: str | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.code = code
        self.status = status
        self.retryable = retryable

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"code": self.code, "status": self.status})
        return data


class PersistenceError(TranslationError):
    """Unexpected storage failure."""

    error_type = ErrorType.PERSISTENCE_ERROR
    status_code = 500


__all__ = [
    "ErrorType",
    "TranslationError",
    "ValidationError",
    "NotFoundError",
    "PromptBuildError",
    "ProviderError",
    "PersistenceError",
]
