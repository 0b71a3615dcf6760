"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # Product-specific
    ProductNotFoundError,
    StockVersionConflictError,
    ProductSearchError,

    # Excel parser
    ExcelParseError,
    UnsupportedFileError,

    # Reconciliation sessions
    SessionNotFoundError,
    InvalidStageTransitionError,
    ExecutionInProgressError,
    NothingToPreviewError,
    UnknownEntryError,
    ExecutionTransportError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # Product
    "ProductNotFoundError",
    "StockVersionConflictError",
    "ProductSearchError",

    # Excel parser
    "ExcelParseError",
    "UnsupportedFileError",

    # Reconciliation sessions
    "SessionNotFoundError",
    "InvalidStageTransitionError",
    "ExecutionInProgressError",
    "NothingToPreviewError",
    "UnknownEntryError",
    "ExecutionTransportError",
]
