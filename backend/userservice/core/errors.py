"""Error Hierarchy — typed, categorized exceptions for every HTTP-visible failure.

Invariants:
    - Every ApiError has a message, code, category, severity and http_status
    - to_response() produces the NormalizedError envelope {message, status, timestamp, path}
    - Unclassified exceptions never become ApiErrors (the catch-all hides their text)
    - ContractConfigurationError is fatal at startup and is not an ApiError

Design Decisions:
    - Single hierarchy with ApiError base: one exception handler renders all of them
    - ErrorContext as dataclass: timestamp and debug info travel with the error
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    ROUTING = "routing"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONTRACT = "contract"
    DATABASE = "database"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    debug_info: dict[str, Any] | None = None


@dataclass(frozen=True)
class FieldViolation:
    """One offending field of a rejected request."""
    field: str
    message: str
    value: str = ""

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message, "value": self.value}


class ApiError(Exception):
    """Base exception for all errors that carry an explicit HTTP status."""

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

    def to_response(self, path: str) -> dict:
        """Convert to the NormalizedError body sent to clients."""
        return {
            "message": self.message,
            "status": self.http_status,
            "timestamp": _isoformat(self.context.timestamp),
            "path": path,
        }

    def to_log_record(self, path: str) -> dict:
        """Full serialized form, logged server-side for 500s."""
        return {
            **self.to_response(path),
            "code": self.code,
            "category": self.category.value,
            "severity": self.severity.value,
            "debug_info": self.context.debug_info,
        }


def _isoformat(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def stringify_value(value: Any) -> str:
    """Render an offending value for the errors[].value field (always a string)."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


# ─── Request Errors (400-level) ─────────────────────────────────

class RequestValidationFailed(ApiError):
    """Request (or domain input) does not satisfy its schema."""
    def __init__(
        self,
        violations: list[FieldViolation],
        message: str = "Validation failed",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.violations = violations

    def to_response(self, path: str) -> dict:
        body = super().to_response(path)
        body["errors"] = [v.to_dict() for v in self.violations]
        return body


class RouteNotFoundError(ApiError):
    """No contract path matches the request."""
    def __init__(self, path: str, context: ErrorContext | None = None):
        super().__init__(
            "not found", "ROUTE_NOT_FOUND", ErrorCategory.ROUTING,
            ErrorSeverity.INFO, context, 404,
        )
        self.path = path


class MethodNotAllowedError(ApiError):
    """Contract path exists but does not declare the method."""
    def __init__(self, method: str, path: str, context: ErrorContext | None = None):
        super().__init__(
            f"{method} method not allowed", "METHOD_NOT_ALLOWED",
            ErrorCategory.ROUTING, ErrorSeverity.INFO, context, 405,
        )
        self.method = method
        self.path = path


class PayloadTooLargeError(ApiError):
    """Request body exceeds the configured size limit."""
    def __init__(self, limit: int, context: ErrorContext | None = None):
        super().__init__(
            f"request entity too large (limit {limit} bytes)",
            "PAYLOAD_TOO_LARGE", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 413,
        )


class UnsupportedMediaTypeError(ApiError):
    """Request body media type is not declared by the operation."""
    def __init__(self, content_type: str, context: ErrorContext | None = None):
        super().__init__(
            f"unsupported media type {content_type or '(none)'}",
            "UNSUPPORTED_MEDIA_TYPE", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 415,
        )


class ResourceNotFoundError(ApiError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} not found", "RESOURCE_NOT_FOUND",
            ErrorCategory.RESOURCE_NOT_FOUND, ErrorSeverity.INFO, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


# ─── Server Errors (500-level) ──────────────────────────────────

class ResponseContractError(ApiError):
    """A response about to be sent does not conform to the contract."""
    def __init__(self, detail: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.debug_info = {**(ctx.debug_info or {}), "detail": detail}
        super().__init__(
            "Response does not conform to the API contract",
            "RESPONSE_CONTRACT_VIOLATION", ErrorCategory.CONTRACT,
            ErrorSeverity.CRITICAL, ctx, 500,
        )
        self.detail = detail


class DatabaseError(ApiError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 500,
        )
        self.operation = operation


class DatabaseUnavailableError(ApiError):
    """A request needed the store before (or after) it was connected."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Database is not connected", "DATABASE_UNAVAILABLE",
            ErrorCategory.DATABASE, ErrorSeverity.CRITICAL, context, 500,
        )


# ─── Startup Errors ─────────────────────────────────────────────

class ContractConfigurationError(Exception):
    """API contract missing, unreadable or structurally invalid."""

    def __init__(self, location: str, reason: str):
        super().__init__(f"Invalid API contract at {location}: {reason}")
        self.location = location
        self.reason = reason
