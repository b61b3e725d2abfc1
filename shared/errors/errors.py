"""Error taxonomy shared by clients, services and the HTTP layer.

Every error carries the name of the operation that failed and, where useful,
the id it was working on, so callers can log it and render a user-facing
message without inspecting the cause.
"""

from typing import Any


class AppError(Exception):
    """Base class for all errors raised by the service.

    Attributes:
        message (str): Human-readable description, safe to show to the user.
        operation (str | None): Name of the failing operation (e.g. "send_message").
        context (dict): Extra identifiers (document_id, session_id, ...).
        status_code (int): HTTP-equivalent status used by the API layer.
    """

    status_code: int = 500

    def __init__(self, message: str, operation: str | None = None, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.context = context or {}

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class NotFoundError(AppError):
    """Unknown session or document id."""

    status_code = 404


class ValidationError(AppError):
    """Malformed input or a forbidden state change."""

    status_code = 400


class BackendUnavailableError(AppError):
    """Vector index not initialized or not reachable."""

    status_code = 503


class BackendError(AppError):
    """Vector index reachable but replied with an error."""

    status_code = 502


class ProviderError(AppError):
    """Embedding or completion call failed."""

    status_code = 502


class DimensionMismatchError(AppError):
    """Embedding length differs from the index dimension."""

    status_code = 500


class ExtractionError(AppError):
    """Uploaded file could not be read as a PDF."""

    status_code = 422
