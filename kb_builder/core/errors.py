"""Error taxonomy for the research and content pipeline.

Every failure that can reach a caller is a ``KBError`` subclass with a stable
``code`` and the HTTP status the API layer answers with. Only
``ProviderTransient`` is handled inside the pipeline (by the model gateway);
everything else propagates to the request boundary unchanged in kind.
"""

from typing import Any


class KBError(Exception):
    """Base class for classified pipeline errors."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_detail(self) -> dict[str, Any]:
        """Serialize into the body returned to API callers."""
        detail: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            detail["details"] = self.details
        return detail


class InvalidInput(KBError):
    """Malformed caller input. Never retried."""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFound(KBError):
    """Referenced session, document or image does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class MissingContext(KBError):
    """A step's required prior output (or image set) is absent."""

    code = "MISSING_CONTEXT"
    status_code = 409

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message, {"missing": missing} if missing else None)
        self.missing = missing or []


class InvalidTransition(KBError):
    """Artifact is in a state that does not allow the requested operation."""

    code = "INVALID_TRANSITION"
    status_code = 409


class ProviderUnavailable(KBError):
    """Provider is not configured for this deployment."""

    code = "PROVIDER_UNAVAILABLE"
    status_code = 503


class ProviderTransient(KBError):
    """Timeout, network error, non-2xx answer or empty body. Retried by the gateway."""

    code = "PROVIDER_TRANSIENT"
    status_code = 503


class ProviderExhausted(KBError):
    """Retry budget spent. Carries the last underlying error for diagnostics."""

    code = "PROVIDER_EXHAUSTED"
    status_code = 502

    def __init__(self, message: str, last_error: BaseException | None = None, attempts: int = 0):
        details: dict[str, Any] = {"attempts": attempts}
        if last_error is not None:
            details["last_error"] = f"{type(last_error).__name__}: {last_error}"
        super().__init__(message, details)
        self.last_error = last_error
        self.attempts = attempts


class EmptyContent(KBError):
    """Response had no usable answer once provider-internal markup was removed."""

    code = "EMPTY_CONTENT"
    status_code = 502


class SchemaViolation(KBError):
    """Response is present but structurally unusable (e.g. visual guide missing a section)."""

    code = "SCHEMA_VIOLATION"
    status_code = 502


class PersistenceError(KBError):
    """Store read or write failed."""

    code = "PERSISTENCE_ERROR"
    status_code = 500
