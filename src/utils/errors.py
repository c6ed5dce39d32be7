"""Custom exception hierarchy for DocChat.

All application exceptions inherit from :class:`DocChatError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "chromadb", "sqlite") caused the failure,
and an optional ``stage`` naming the pipeline step that raised it.

The hierarchy is organized by failure domain:

    DocChatError  (base -- catch-all for any DocChat error)
    +-- ValidationError          (bad input: wrong file type, blank question)
    |   +-- FileTooLargeError    (upload over the size limit)
    +-- ExtractionError          (PDF unreadable or too little text)
    +-- ProviderError            (embedding / completion API failure)
    |   +-- RateLimitError       (provider rate-limit exceeded)
    +-- StorageError             (vector store or document store failure)
    +-- DocumentNotFoundError    (unknown document id)
    +-- ConfigurationError       (startup / missing config)

Each class declares the HTTP ``status_code`` the API layer returns for it,
so the error middleware never has to map types by hand.
"""

from __future__ import annotations


class DocChatError(Exception):
    """Base exception for all DocChat errors.

    Every subclass carries a human-readable ``message``, an optional
    ``provider_name`` identifying which external service triggered the
    error, and an optional ``stage`` (``"extract"``, ``"embed"``,
    ``"store"``, ``"search"``, ``"complete"``).  The ``__str__`` method
    prefixes the provider name in brackets for structured log output,
    e.g. ``[openai] Rate limit exceeded``.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        provider_name: str | None = None,
        stage: str | None = None,
    ) -> None:
        self._message = message or self.default_message
        self._provider_name = provider_name
        self._stage = stage
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    @property
    def stage(self) -> str | None:
        return self._stage

    def with_stage(self, stage: str) -> DocChatError:
        """Annotate the error with the pipeline stage that raised it.

        The first stage recorded wins; re-raising through an outer stage
        does not overwrite it.  Returns ``self`` so callers can write
        ``raise exc.with_stage("embed")``.
        """
        if self._stage is None:
            self._stage = stage
        return self

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------

class ValidationError(DocChatError):
    """Raised when caller input is rejected (file type, size, blank question)."""

    status_code = 400
    default_message = "Invalid request"


class FileTooLargeError(ValidationError):
    """Raised when an upload exceeds the configured size limit."""

    status_code = 413
    default_message = "File too large"


class ExtractionError(DocChatError):
    """Raised when a PDF cannot be read or yields too little text."""

    status_code = 422
    default_message = "Could not extract sufficient text from PDF"


class DocumentNotFoundError(DocChatError):
    """Raised when a document id does not exist in the store."""

    status_code = 404
    default_message = "Document not found"


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderError(DocChatError):
    """Raised when an embedding or completion provider call fails."""

    status_code = 502
    default_message = "External provider call failed"


class RateLimitError(ProviderError):
    """Raised when a provider keeps rate-limiting after all retries."""

    status_code = 503
    default_message = "Rate limit exceeded"


# ---------------------------------------------------------------------------
# Storage / configuration errors
# ---------------------------------------------------------------------------

class StorageError(DocChatError):
    """Raised when the vector store or document store fails."""

    status_code = 500
    default_message = "Storage operation failed"


class ConfigurationError(DocChatError):
    """Raised when configuration is invalid or missing."""

    status_code = 500
    default_message = "Invalid or missing configuration"
