"""
Execution orchestrator: submits canonical updates and accounts for
per-item outcomes.

Items succeed or fail independently. A failure of the batch call
itself raises ExecutionTransportError and produces no result.
"""

from typing import Optional, Protocol
from uuid import uuid4
import structlog

from models.stock_upload import CanonicalUpdate, ExecutionError, ExecutionResult, ItemOutcome
from exceptions import ExecutionTransportError

logger = structlog.get_logger(__name__)


class StockUpdateApplier(Protocol):
    """Applies updates one product at a time."""

    def apply_batch(
        self,
        updates: list[CanonicalUpdate],
        batch_id: str,
        dry_run: bool = False,
    ) -> list[ItemOutcome]:
        ...


class ExecutionOrchestrator:
    """Runs a batch and builds its ExecutionResult."""

    def __init__(self, applier: StockUpdateApplier):
        self.applier = applier

    def execute(
        self,
        updates: list[CanonicalUpdate],
        dry_run: bool = False,
    ) -> ExecutionResult:
        """
        Apply a batch of canonical updates.

        Args:
            updates: Canonical updates, one per product
            dry_run: Validate only; the catalog is not changed

        Returns:
            ExecutionResult with success_count + error_count == total_processed
            == len(updates)

        Raises:
            ExecutionTransportError: If the batch could not be submitted
        """
        batch_id = str(uuid4())

        logger.info(
            "executing_stock_updates",
            batch_id=batch_id,
            count=len(updates),
            dry_run=dry_run
        )

        if not updates:
            return ExecutionResult(batch_id=batch_id, dry_run=dry_run)

        try:
            outcomes = self.applier.apply_batch(updates, batch_id, dry_run=dry_run)
        except Exception as e:
            logger.error(
                "stock_update_batch_failed",
                batch_id=batch_id,
                error=str(e),
                error_type=type(e).__name__
            )
            raise ExecutionTransportError(
                f"Failed to execute updates: {getattr(e, 'message', str(e))}",
                details={"batch_id": batch_id}
            ) from e

        if len(outcomes) != len(updates):
            logger.error(
                "stock_update_outcomes_mismatch",
                batch_id=batch_id,
                submitted=len(updates),
                returned=len(outcomes)
            )
            raise ExecutionTransportError(
                "Update service returned an incomplete batch",
                details={
                    "batch_id": batch_id,
                    "submitted": len(updates),
                    "returned": len(outcomes),
                }
            )

        errors = [
            ExecutionError(
                product_id=o.product_id,
                product_name=o.product_name,
                error=o.error or "unknown error",
            )
            for o in outcomes
            if not o.success
        ]
        success_count = len(outcomes) - len(errors)

        result = ExecutionResult(
            success_count=success_count,
            error_count=len(errors),
            total_processed=len(outcomes),
            errors=errors,
            batch_id=batch_id,
            dry_run=dry_run,
        )

        logger.info(
            "stock_updates_executed",
            batch_id=batch_id,
            success=result.success_count,
            errors=result.error_count,
            dry_run=dry_run
        )
        return result


# Singleton instance for convenience
_orchestrator: Optional[ExecutionOrchestrator] = None


def get_execution_orchestrator() -> ExecutionOrchestrator:
    """Get or create the orchestrator backed by the catalog service."""
    global _orchestrator
    if _orchestrator is None:
        from services.catalog_service import get_catalog_service
        _orchestrator = ExecutionOrchestrator(get_catalog_service())
    return _orchestrator
