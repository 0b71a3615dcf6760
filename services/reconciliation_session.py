"""
Reconciliation session: one upload-to-execution workflow.

Stages move upload -> review -> preview -> complete. The only way back
is reset(), which returns to upload. Every operation checks the stage
first and changes nothing when it raises.

Recalculations are numbered. Only the response for the most recently
issued generation is applied; older responses are discarded.
"""

from threading import Lock
from typing import Any, Optional, Union
from uuid import uuid4
import structlog

from exceptions import (
    ExecutionInProgressError,
    InvalidStageTransitionError,
    NothingToPreviewError,
    UnknownEntryError,
    ValidationError,
)
from models.stock_upload import (
    CanonicalUpdate,
    Dimension,
    ExecutionResult,
    ManualMatch,
    ParseResult,
    SessionResponse,
    Stage,
)
from services.classifier_service import SourceFile
from services.manual_match_registry import ManualMatchRegistry
from services.mapping_store import MappingStore
from services.merge_service import build_canonical_updates

logger = structlog.get_logger(__name__)


class ReconciliationSession:
    """Session-scoped state for one stock upload."""

    def __init__(
        self,
        source_file: Optional[SourceFile] = None,
        mappings: Optional[MappingStore] = None,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or str(uuid4())
        self.source_file = source_file
        self.mappings = mappings or MappingStore()
        self.manual_matches = ManualMatchRegistry()
        self.parse_result: Optional[ParseResult] = None
        self.execution_result: Optional[ExecutionResult] = None
        self.executed_updates: list[CanonicalUpdate] = []
        self.stage = Stage.UPLOAD
        self.generation = 0
        self.executing = False
        self._execution_lock = Lock()

    # ===================
    # STAGE TRANSITIONS
    # ===================

    def load_parse_result(
        self,
        result: ParseResult,
        source_file: Optional[SourceFile] = None,
    ) -> None:
        """
        Upload -> Review with the first classification.

        source_file replaces the session's workbook together with the
        result, so a file that failed to parse is never attached.
        """
        self.require_stage("load parse results", Stage.UPLOAD)
        source_file = source_file or self.source_file
        if source_file is None:
            raise ValidationError(
                message="No file uploaded",
                code="NO_FILE",
                details={"session_id": self.session_id}
            )
        self.source_file = source_file
        self.parse_result = result
        self.stage = Stage.REVIEW
        logger.info(
            "session_parsed",
            session_id=self.session_id,
            total=result.total_excel_entries,
            matched=result.matched_count
        )

    def begin_recalculation(self) -> int:
        """Issue a new recalculation generation. Review -> Review."""
        self.require_stage("recalculate", Stage.REVIEW)
        self.generation += 1
        logger.debug(
            "recalculation_started",
            session_id=self.session_id,
            generation=self.generation
        )
        return self.generation

    def apply_recalculation(self, generation: int, result: ParseResult) -> bool:
        """
        Replace the parse result if this response is the latest one.

        Returns:
            True if applied, False if discarded as stale
        """
        if generation != self.generation or self.stage != Stage.REVIEW:
            logger.warning(
                "stale_recalculation_discarded",
                session_id=self.session_id,
                generation=generation,
                current_generation=self.generation,
                stage=self.stage.value
            )
            return False

        self.parse_result = result
        self._drop_resolved_manual_matches()

        logger.info(
            "recalculation_applied",
            session_id=self.session_id,
            generation=generation,
            matched=result.matched_count,
            updates=result.updates_count
        )
        return True

    def go_to_preview(self) -> list[CanonicalUpdate]:
        """
        Review -> Preview.

        Raises:
            NothingToPreviewError: No regular updates and no manual matches
        """
        self.require_stage("preview updates", Stage.REVIEW, Stage.PREVIEW)
        if self.pending_update_count() == 0:
            raise NothingToPreviewError()
        self.stage = Stage.PREVIEW
        return self.canonical_updates()

    def begin_execution(self) -> list[CanonicalUpdate]:
        """
        Claim the session for one execution and return its updates.

        Raises:
            InvalidStageTransitionError: Not in preview
            ExecutionInProgressError: Another execution holds the session
        """
        with self._execution_lock:
            self.require_stage("execute updates", Stage.PREVIEW)
            if self.executing:
                raise ExecutionInProgressError(self.session_id)
            self.executing = True
        return self.canonical_updates()

    def end_execution(self) -> None:
        with self._execution_lock:
            self.executing = False

    def complete(
        self,
        result: ExecutionResult,
        executed_updates: Optional[list[CanonicalUpdate]] = None,
    ) -> None:
        """Preview -> Complete, whatever the error count."""
        self.require_stage("complete", Stage.PREVIEW)
        self.execution_result = result
        self.executed_updates = (
            executed_updates if executed_updates is not None else self.canonical_updates()
        )
        self.stage = Stage.COMPLETE
        logger.info(
            "session_completed",
            session_id=self.session_id,
            success=result.success_count,
            errors=result.error_count
        )

    def reset(self) -> None:
        """Any stage -> Upload. Discards everything, including the file."""
        if self.executing:
            raise ExecutionInProgressError(self.session_id)
        self.source_file = None
        self.mappings = MappingStore()
        self.manual_matches = ManualMatchRegistry()
        self.parse_result = None
        self.execution_result = None
        self.executed_updates = []
        self.stage = Stage.UPLOAD
        # Responses still in flight belong to the discarded upload
        self.generation += 1
        logger.info("session_reset", session_id=self.session_id)

    # ===================
    # REVIEW EDITS
    # ===================

    def set_mapping(
        self,
        dimension: Union[Dimension, str],
        excel_value: str,
        db_value: Optional[str],
    ) -> None:
        """Set an override; None removes it. Takes effect on recalculation."""
        self.require_stage("edit mappings", Stage.UPLOAD, Stage.REVIEW)
        if db_value is None:
            self.mappings.remove_mapping(dimension, excel_value)
        else:
            self.mappings.set_mapping(dimension, excel_value, db_value)

    def set_manual_match(
        self,
        entry_id: str,
        product_id: Optional[int],
        data: Optional[dict[str, Any]] = None,
    ) -> Optional[ManualMatch]:
        """
        Register, replace or (product_id=None) remove a manual match.

        excel_qty defaults to the row's counted quantity.

        Raises:
            UnknownEntryError: Entry is not an unresolved row of this upload
        """
        self.require_stage("edit manual matches", Stage.REVIEW)

        if product_id is None:
            self.manual_matches.remove_match(entry_id)
            return None

        entry = self.parse_result.unresolved_entries().get(entry_id)
        if entry is None:
            raise UnknownEntryError(entry_id)

        fields = dict(data or {})
        if fields.get("excel_qty") is None:
            fields["excel_qty"] = entry.qty
        if fields["excel_qty"] is None:
            raise ValidationError(
                message=f"Entry {entry_id} has no quantity; provide excel_qty",
                code="MISSING_QUANTITY",
                details={"entry_id": entry_id}
            )

        return self.manual_matches.set_match(entry_id, product_id, fields)

    def remove_manual_match(self, entry_id: str) -> bool:
        self.require_stage("edit manual matches", Stage.REVIEW)
        return self.manual_matches.remove_match(entry_id)

    # ===================
    # DERIVED DATA
    # ===================

    def pending_update_count(self) -> int:
        """Regular updates plus manual matches (the preview guard)."""
        regular = self.parse_result.updates_count if self.parse_result else 0
        return regular + len(self.manual_matches)

    def canonical_updates(self) -> list[CanonicalUpdate]:
        """Merged updates for the current parse result and manual matches."""
        if self.parse_result is None:
            return []
        return build_canonical_updates(
            self.parse_result.updates,
            self.manual_matches.matches(),
        )

    def to_response(self) -> SessionResponse:
        return SessionResponse(
            session_id=self.session_id,
            filename=self.source_file.filename if self.source_file else None,
            stage=self.stage,
            generation=self.generation,
            mappings=self.mappings.as_dict(),
            has_mappings=self.mappings.has_any_mapping(),
            manual_matches=self.manual_matches.matches(),
            parse_result=self.parse_result,
            execution_result=self.execution_result,
            pending_updates=self.pending_update_count(),
        )

    # ===================
    # HELPERS
    # ===================

    def require_stage(self, action: str, *stages: Stage) -> None:
        if self.stage not in stages:
            raise InvalidStageTransitionError(
                current_stage=self.stage.value,
                action=action,
                allowed=[s.value for s in stages],
            )

    def _drop_resolved_manual_matches(self) -> None:
        """Manual matches only apply to rows that are still unresolved."""
        unresolved = self.parse_result.unresolved_entries()
        for entry_id in sorted(self.manual_matches.entry_ids()):
            if entry_id not in unresolved:
                self.manual_matches.remove_match(entry_id)
                logger.warning(
                    "manual_match_dropped",
                    session_id=self.session_id,
                    entry_id=entry_id,
                    reason="entry no longer unresolved"
                )
