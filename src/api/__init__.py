"""DocChat API layer - routes, schemas, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    configure_exception_handlers,
)
from src.api.routes import router
from src.api.schemas import (
    ChatRequest,
    ChatResponse,
    DocumentDeleteResponse,
    DocumentListResponse,
    DocumentUploadResponse,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "configure_exception_handlers",
    "router",
    "ChatRequest",
    "ChatResponse",
    "DocumentDeleteResponse",
    "DocumentListResponse",
    "DocumentUploadResponse",
    "ErrorResponse",
    "HealthResponse",
]
