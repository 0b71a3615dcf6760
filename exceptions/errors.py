"""
Custom exception classes for the application.

Every error surfaced by the API inherits from AppError and renders
as {"error": {code, message, details, timestamp}}.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "SESSION_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# PRODUCT ERRORS
# ===================

class ProductNotFoundError(NotFoundError):
    """Product not found."""

    def __init__(self, product_id: Any):
        super().__init__(
            resource="Product",
            identifier=str(product_id),
            code="PRODUCT_NOT_FOUND"
        )


class StockVersionConflictError(ConflictError):
    """Product stock changed after the preview was built."""

    def __init__(self, product_id: Any, expected: int, actual: Optional[int]):
        super().__init__(
            code="STOCK_VERSION_CONFLICT",
            message="conflict: stock changed since preview",
            details={
                "product_id": product_id,
                "expected_version": expected,
                "actual_version": actual,
            }
        )


class ProductSearchError(ExternalServiceError):
    """Product search failed. Safe to retry."""

    def __init__(self, query: str, message: str):
        super().__init__(
            service="product_search",
            message=message,
            details={"query": query, "retryable": True}
        )


# ===================
# EXCEL PARSER ERRORS
# ===================

class ExcelParseError(ValidationError):
    """Excel file parsing failed."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="EXCEL_PARSE_ERROR",
            message=message,
            details=details
        )


class UnsupportedFileError(ValidationError):
    """Uploaded file is not an accepted spreadsheet."""

    def __init__(self, filename: Optional[str], accepted: list[str]):
        super().__init__(
            code="UNSUPPORTED_FILE",
            message=f"Only {', '.join(accepted)} files are accepted",
            details={"filename": filename, "accepted": accepted}
        )


# ===================
# RECONCILIATION SESSION ERRORS
# ===================

class SessionNotFoundError(NotFoundError):
    """Reconciliation session missing or expired."""

    def __init__(self, session_id: str):
        super().__init__(
            resource="Reconciliation session",
            identifier=session_id,
            code="SESSION_NOT_FOUND"
        )


class InvalidStageTransitionError(ConflictError):
    """Operation not allowed in the session's current stage."""

    def __init__(self, current_stage: str, action: str, allowed: list[str]):
        super().__init__(
            code="INVALID_STAGE_TRANSITION",
            message=f"Cannot {action} while session is in {current_stage}",
            details={
                "current_stage": current_stage,
                "action": action,
                "allowed_stages": allowed,
            }
        )


class ExecutionInProgressError(ConflictError):
    """The session is already being executed."""

    def __init__(self, session_id: str):
        super().__init__(
            code="EXECUTION_IN_PROGRESS",
            message="Updates for this session are already being applied",
            details={"session_id": session_id}
        )


class NothingToPreviewError(ValidationError):
    """No regular updates and no manual matches."""

    def __init__(self):
        super().__init__(
            code="NOTHING_TO_PREVIEW",
            message="No updates to apply",
            details={"updates": 0, "manual_matches": 0}
        )


class UnknownEntryError(ValidationError):
    """Manual match references a row that cannot be matched manually."""

    def __init__(self, entry_id: str):
        super().__init__(
            code="UNKNOWN_ENTRY",
            message=f"Entry {entry_id} is not an unresolved row of this upload",
            details={"entry_id": entry_id}
        )


class ExecutionTransportError(ExternalServiceError):
    """The whole update batch could not be submitted."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="stock_update",
            message=message,
            details=details
        )
