"""
Stock upload API routes.

Upload a physical-count workbook, resolve unmatched rows with mapping
overrides and manual matches, preview the resulting stock changes and
apply them to the catalog.
"""

import json
from typing import Optional

from fastapi import APIRouter, File, Form, Query, Response, UploadFile
from fastapi.responses import JSONResponse
import structlog

from config import settings
from exceptions import AppError, ValidationError
from models.product import (
    CanonicalFinish,
    DefaultMapping,
    ProductCandidate,
    SpecVocabulary,
)
from models.stock_upload import (
    ExecuteRequest,
    ExecutionResult,
    ManualMatchRequest,
    MappingRequest,
    PreviewResponse,
    SessionResponse,
    Stage,
)
from parsers.stock_sheet_parser import validate_filename
from services.catalog_service import get_catalog_service
from services.classifier_service import SourceFile, get_classifier
from services.execution_service import get_execution_orchestrator
from services.export_service import get_export_service
from services.mapping_store import MappingStore
from services.merge_service import summarize_updates
from services.reconciliation_session import ReconciliationSession
from services.session_store_service import (
    delete_session,
    retrieve_session,
    store_session,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/stock-upload", tags=["Stock Upload"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# HELPERS
# ===================

async def _read_upload(file: UploadFile) -> SourceFile:
    """Validate extension and size, return the workbook bytes."""
    validate_filename(file.filename)
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise ValidationError(
            message=f"File exceeds {settings.max_upload_mb} MB",
            code="FILE_TOO_LARGE",
            details={"size": len(content), "max_bytes": settings.max_upload_bytes}
        )
    if not content:
        raise ValidationError(
            message="Uploaded file is empty",
            code="EMPTY_FILE",
            details={"filename": file.filename}
        )
    return SourceFile(filename=file.filename, content=content)


def _parse_mappings(raw: Optional[str]) -> MappingStore:
    if not raw:
        return MappingStore()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(
            message=f"Mappings are not valid JSON: {e.msg}",
            code="INVALID_MAPPINGS"
        )
    return MappingStore.from_dict(data)


def _classify_upload(session: ReconciliationSession, source: SourceFile) -> None:
    """
    First classification of a workbook. Upload -> Review.

    The file is attached only once it has parsed.
    """
    result = get_classifier().parse(source, session.mappings.copy())
    session.load_parse_result(result, source)


# ===================
# SESSION ROUTES
# ===================

@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def create_session(
    file: UploadFile = File(..., description="Stock count workbook (.xlsx or .xls)"),
    mappings: Optional[str] = Form(None, description="Initial mapping overrides as JSON"),
):
    """
    Upload a stock count workbook and classify its rows.

    Optional mappings JSON: {"finish": {"GUN METAL": "Gunmetal"}, ...}

    Raises:
        422: Not an .xlsx or .xls file, unreadable workbook, no usable
             sheet, or bad mappings
    """
    logger.info(
        "stock_upload_started",
        filename=file.filename,
        content_type=file.content_type
    )

    try:
        source = await _read_upload(file)
        session = ReconciliationSession(mappings=_parse_mappings(mappings))
        _classify_upload(session, source)
        store_session(session)

        logger.info(
            "stock_upload_completed",
            session_id=session.session_id,
            total=session.parse_result.total_excel_entries,
            matched=session.parse_result.matched_count
        )
        return session.to_response()

    except Exception as e:
        return handle_error(e)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    """Current state of a reconciliation session."""
    try:
        return retrieve_session(session_id).to_response()
    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/upload", response_model=SessionResponse)
async def upload_to_session(
    session_id: str,
    file: UploadFile = File(..., description="Stock count workbook (.xlsx or .xls)"),
):
    """
    Attach a new workbook to a session that was reset.

    Mappings set while in upload are applied to the first classification.
    """
    try:
        session = retrieve_session(session_id)
        session.require_stage("upload a file", Stage.UPLOAD)
        _classify_upload(session, await _read_upload(file))
        return session.to_response()

    except Exception as e:
        return handle_error(e)


@router.put("/sessions/{session_id}/mappings", response_model=SessionResponse)
async def set_mapping(session_id: str, data: MappingRequest):
    """
    Set or clear (db_value null) one mapping override.

    Does not reclassify. Call /recalculate to apply.
    """
    try:
        session = retrieve_session(session_id)
        session.set_mapping(data.dimension, data.excel_value, data.db_value)
        logger.info(
            "mapping_set",
            session_id=session_id,
            dimension=data.dimension.value,
            excel_value=data.excel_value,
            cleared=data.db_value is None
        )
        return session.to_response()

    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/recalculate", response_model=SessionResponse)
def recalculate(session_id: str):
    """
    Reclassify the uploaded file with the current mappings.

    Concurrent calls may finish in any order; only the most recently
    issued one is applied. The response always carries the session as it
    stands afterwards.
    """
    try:
        session = retrieve_session(session_id)
        generation = session.begin_recalculation()
        source = session.source_file
        snapshot = session.mappings.copy()

        result = get_classifier().preview(source, snapshot)
        session.apply_recalculation(generation, result)
        return session.to_response()

    except Exception as e:
        return handle_error(e)


@router.put("/sessions/{session_id}/manual-matches/{entry_id}", response_model=SessionResponse)
async def set_manual_match(session_id: str, entry_id: str, data: ManualMatchRequest):
    """
    Match an unresolved row to a product. product_id null removes it.

    Product name, stock and version are taken from the catalog when the
    request leaves them out.
    """
    try:
        session = retrieve_session(session_id)
        session.require_stage("edit manual matches", Stage.REVIEW)

        fields = data.model_dump(exclude={"product_id"}, exclude_none=True)
        if data.product_id is not None and (
            data.product_name is None or data.in_house_stock is None
        ):
            candidate = get_catalog_service().get_candidate(data.product_id)
            fields.setdefault("product_name", candidate.product_name)
            fields.setdefault("in_house_stock", candidate.in_house_stock)
            if candidate.version is not None:
                fields.setdefault("version", candidate.version)

        session.set_manual_match(entry_id, data.product_id, fields)
        logger.info(
            "manual_match_set",
            session_id=session_id,
            entry_id=entry_id,
            product_id=data.product_id
        )
        return session.to_response()

    except Exception as e:
        return handle_error(e)


@router.delete("/sessions/{session_id}/manual-matches/{entry_id}", response_model=SessionResponse)
async def remove_manual_match(session_id: str, entry_id: str):
    """Remove a manual match. Removing an absent match is not an error."""
    try:
        session = retrieve_session(session_id)
        session.remove_manual_match(entry_id)
        return session.to_response()
    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/preview", response_model=PreviewResponse)
async def preview_updates(session_id: str):
    """
    Move to preview and return the canonical updates.

    Raises:
        409: Session is not in review or preview
        422: No updates to apply
    """
    try:
        session = retrieve_session(session_id)
        updates = session.go_to_preview()
        no_change = session.parse_result.no_change

        return PreviewResponse(
            session_id=session_id,
            updates=updates,
            no_change=no_change,
            summary=summarize_updates(updates, no_change),
        )

    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/execute", response_model=ExecutionResult)
def execute_updates(session_id: str, data: Optional[ExecuteRequest] = None):
    """
    Apply the previewed updates to the catalog.

    Each product succeeds or fails on its own; the session completes
    whatever the error count. A dry run validates without writing and
    leaves the session in preview.

    Raises:
        409: Session is not in preview, or is already executing
        503: The batch could not be submitted (session stays in preview)
    """
    dry_run = data.dry_run if data else False

    try:
        session = retrieve_session(session_id)
        updates = session.begin_execution()
        try:
            result = get_execution_orchestrator().execute(updates, dry_run=dry_run)
            if not dry_run:
                session.complete(result, updates)
        finally:
            session.end_execution()
        return result

    except Exception as e:
        return handle_error(e)


@router.get("/sessions/{session_id}/summary")
async def download_summary(
    session_id: str,
    fmt: str = Query("csv", alias="format", description="csv, json or xlsx"),
):
    """Download the result of an executed session."""
    try:
        session = retrieve_session(session_id)
        session.require_stage("download summary", Stage.COMPLETE)

        export = get_export_service().export_summary(
            session.executed_updates,
            session.execution_result,
            fmt=fmt,
        )
        return Response(
            content=export.content,
            media_type=export.media_type,
            headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
        )

    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/reset", response_model=SessionResponse)
async def reset_session(session_id: str):
    """Discard file, results, mappings and matches. Returns to upload."""
    try:
        session = retrieve_session(session_id)
        session.reset()
        return session.to_response()
    except Exception as e:
        return handle_error(e)


@router.delete("/sessions/{session_id}", status_code=204)
async def discard_session(session_id: str):
    """Drop a session. Unknown ids are ignored."""
    delete_session(session_id)
    return Response(status_code=204)


# ===================
# CATALOG LOOKUPS
# ===================

@router.get("/finishes", response_model=list[CanonicalFinish])
async def list_finishes():
    """Canonical finishes for finish mapping."""
    try:
        return get_catalog_service().list_finishes()
    except Exception as e:
        return handle_error(e)


@router.get("/specs", response_model=SpecVocabulary)
async def list_specs():
    """Allowed widths, PCDs and hole counts."""
    try:
        return get_catalog_service().list_specs()
    except Exception as e:
        return handle_error(e)


@router.get("/default-mappings", response_model=list[DefaultMapping])
async def list_default_mappings():
    """Suggested finish mappings. The client decides whether to use them."""
    try:
        return get_catalog_service().list_default_mappings()
    except Exception as e:
        return handle_error(e)


@router.get("/search-products", response_model=list[ProductCandidate])
async def search_products(
    search: str = Query("", description="Product name fragment"),
    limit: int = Query(30, ge=1, le=100, description="Max candidates"),
):
    """
    Candidates for manual matching.

    Queries shorter than two characters return an empty list.

    Raises:
        503: Search failed (retryable)
    """
    try:
        return get_catalog_service().search_products(search, limit)
    except Exception as e:
        return handle_error(e)
