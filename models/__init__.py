"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, FrozenSchema
from models.product import (
    CatalogProduct,
    ProductCandidate,
    CanonicalFinish,
    SpecOption,
    SpecVocabulary,
    DefaultMapping,
)
from models.stock_upload import (
    Stage,
    Dimension,
    StockSemantics,
    ReasonType,
    StockRow,
    MissingComponent,
    MatchedEntry,
    UnmatchedEntry,
    MissingAttribute,
    RegularUpdate,
    NoChangeEntry,
    ParseResult,
    ManualMatch,
    CanonicalUpdate,
    PreviewSummary,
    ItemOutcome,
    ExecutionError,
    ExecutionResult,
    MappingRequest,
    ManualMatchRequest,
    ExecuteRequest,
    PreviewResponse,
    SessionResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",
    # Catalog
    "CatalogProduct",
    "ProductCandidate",
    "CanonicalFinish",
    "SpecOption",
    "SpecVocabulary",
    "DefaultMapping",
    # Stock upload
    "Stage",
    "Dimension",
    "StockSemantics",
    "ReasonType",
    "StockRow",
    "MissingComponent",
    "MatchedEntry",
    "UnmatchedEntry",
    "MissingAttribute",
    "RegularUpdate",
    "NoChangeEntry",
    "ParseResult",
    "ManualMatch",
    "CanonicalUpdate",
    "PreviewSummary",
    "ItemOutcome",
    "ExecutionError",
    "ExecutionResult",
    "MappingRequest",
    "ManualMatchRequest",
    "ExecuteRequest",
    "PreviewResponse",
    "SessionResponse",
]
