"""
Business logic services.

Each service handles one part of the reconciliation pipeline.
"""

from services.catalog_service import CatalogService, get_catalog_service
from services.classifier_service import (
    CatalogClassifier,
    Classifier,
    SourceFile,
    classify_rows,
    get_classifier,
)
from services.mapping_store import MappingStore
from services.manual_match_registry import ManualMatchRegistry
from services.merge_service import build_canonical_updates, summarize_updates
from services.execution_service import ExecutionOrchestrator, get_execution_orchestrator
from services.export_service import ExportService, get_export_service
from services.reconciliation_session import ReconciliationSession

__all__ = [
    "CatalogService",
    "get_catalog_service",
    "CatalogClassifier",
    "Classifier",
    "SourceFile",
    "classify_rows",
    "get_classifier",
    "MappingStore",
    "ManualMatchRegistry",
    "build_canonical_updates",
    "summarize_updates",
    "ExecutionOrchestrator",
    "get_execution_orchestrator",
    "ExportService",
    "get_export_service",
    "ReconciliationSession",
]
