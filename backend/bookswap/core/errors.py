"""Error Hierarchy — typed, categorized exceptions for all BookSwap failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are not retried; infrastructure errors (500-level) may be
    - to_response() produces the REST envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with BookSwapError base: API handler and consumers catch one type
    - ErrorContext as dataclass: carries correlation data without coupling to logging
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    TRANSPORT = "transport"
    INTERNAL = "internal"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_key: str | None = None
    fact_type: str | None = None
    stream: str | None = None
    message_id: str | None = None
    debug_info: dict[str, Any] | None = None


class BookSwapError(Exception):
    """Base exception for all BookSwap errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "correlation_key": self.context.correlation_key,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class MalformedMessageError(BookSwapError):
    """Inbound event payload is missing fields or cannot be parsed."""
    def __init__(self, message: str, raw: str, context: ErrorContext | None = None):
        super().__init__(
            message, "MALFORMED_MESSAGE", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.raw = raw


class ResourceNotFoundError(BookSwapError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(BookSwapError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class SubjectLookupError(BookSwapError):
    """Existence lookup failed for a reason other than a clean not-found."""
    def __init__(
        self, message: str, source: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Lookup against {source} failed: {message}",
            "LOOKUP_FAILED", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.WARNING, context, 503,
        )
        self.source = source


class EventBusError(BookSwapError):
    """Publishing to or reading from the event transport failed."""
    def __init__(self, message: str, stream: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.stream = stream
        super().__init__(
            f"Event bus error on '{stream}': {message}",
            "EVENT_BUS_ERROR", ErrorCategory.TRANSPORT,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.stream = stream

