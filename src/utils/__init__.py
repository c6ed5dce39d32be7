"""Utility modules for DocChat.

- **errors** -- Exception hierarchy rooted at DocChatError; each class
  carries the HTTP status the API maps it to.
- **concurrency** -- Semaphore-throttled gather, rate-limit retry, and the
  per-document lock registry that serialises ingest/delete of one document.
- **logging** -- structlog setup: coloured console output in development,
  structured JSON in production.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ConfigurationError,
    DocChatError,
    DocumentNotFoundError,
    ExtractionError,
    FileTooLargeError,
    ProviderError,
    RateLimitError,
    StorageError,
    ValidationError,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import DocumentLockRegistry, retry_on_rate_limit, throttled_gather

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "DocChatError",
    "DocumentLockRegistry",
    "DocumentNotFoundError",
    "ExtractionError",
    "FileTooLargeError",
    "ProviderError",
    "RateLimitError",
    "StorageError",
    "ValidationError",
    "configure_logging",
    "get_logger",
    "retry_on_rate_limit",
    "throttled_gather",
]
