"""Error Hierarchy — typed, categorized exceptions for every persistence failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - NotFound and Forbidden both surface as HTTP 404 (existence is not leaked)
    - Conflict-class errors are retryable with new identifiers; Inconsistent never is
    - to_response() produces the REST envelope; no internal details in messages

Design Decisions:
    - Single hierarchy with CalendarError base: FastAPI global handler catches all
    - Store-level exceptions live in item_store.py, not here: they are translated
      into these kinds at the repository boundary and never reach callers
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
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"
    INCONSISTENT = "inconsistent"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    owner_id: str | None = None
    resource_type: str | None = None
    resource_id: str | None = None
    debug_info: dict[str, Any] | None = None


class CalendarError(Exception):
    """Base exception for all AxiCalendar errors."""

    retryable: bool = False

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
                "retryable": self.retryable,
                "timestamp": self.context.timestamp.isoformat(),
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class InvalidArgumentError(CalendarError):
    """Malformed identifier, inverted date range, missing owner, bad payload."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INVALID_ARGUMENT", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class NotFoundError(CalendarError):
    """Requested item does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.resource_type = resource_type
        ctx.resource_id = resource_id
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, ctx, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ForbiddenError(CalendarError):
    """Caller is authenticated but does not own the item.

    Reported as 404 so that a non-owner cannot probe for existence.
    """
    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: str | None = None,
        code: str = "FORBIDDEN",
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.resource_type = resource_type
        ctx.resource_id = resource_id
        super().__init__(
            message or f"{resource_type} '{resource_id}' not found",
            code, ErrorCategory.FORBIDDEN,
            ErrorSeverity.WARNING, ctx, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class DefaultThemeImmutableError(ForbiddenError):
    """Update or delete attempted on a default (system) theme."""
    def __init__(self, theme_id: str, action: str, context: ErrorContext | None = None):
        super().__init__(
            "Theme", theme_id,
            message=f"Cannot {action} default theme '{theme_id}'",
            code="DEFAULT_THEME_IMMUTABLE",
            context=context,
        )
        self.action = action


class ConflictError(CalendarError):
    """Conditional write collided with another writer."""

    retryable = True

    def __init__(
        self, message: str, code: str = "CONFLICT", context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


class AlreadyExistsError(ConflictError):
    """Create collided with an item already stored under the derived key."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.resource_type = resource_type
        ctx.resource_id = resource_id
        super().__init__(
            f"{resource_type} '{resource_id}' already exists",
            "ALREADY_EXISTS", ctx,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


# ─── Infrastructure Errors (500-level) ──────────────────────────

class UnavailableError(CalendarError):
    """Underlying store call failed for infrastructure reasons."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Store {operation} failed: {message}",
            "STORE_UNAVAILABLE", ErrorCategory.UNAVAILABLE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class InconsistentError(CalendarError):
    """A compensating write failed, leaving denormalized data out of sync.

    Not retryable: an operator must reconcile the residual items.
    """
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INCONSISTENT_STATE", ErrorCategory.INCONSISTENT,
            ErrorSeverity.CRITICAL, context, 500,
        )
        self.operation = operation
