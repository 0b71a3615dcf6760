"""
Catalog service: canonical products, attribute vocabulary, product
search and per-item stock application.

See services/execution_service.py for how batches are accounted.
"""

from typing import Optional
import structlog

from config import get_supabase_client, settings
from models.product import (
    CatalogProduct,
    ProductCandidate,
    CanonicalFinish,
    SpecOption,
    SpecVocabulary,
    DefaultMapping,
)
from models.stock_upload import CanonicalUpdate, ItemOutcome, StockSemantics
from exceptions import (
    AppError,
    NotFoundError,
    DatabaseError,
    ProductNotFoundError,
    ProductSearchError,
    StockVersionConflictError,
)

logger = structlog.get_logger(__name__)

PRODUCT_COLUMNS = (
    "id, product_name, model_name, inches, width, pcd, holes, finish, "
    "in_house_stock, version"
)

SPEC_TABLES = {
    "widths": "width_master",
    "pcds": "pcd_master",
    "holes": "holes_master",
}

MOVEMENT_REFERENCE_TYPE = "stock_reconciliation"


class CatalogService:
    """
    Catalog reads and stock writes.

    Stock writes are applied independently per product: one failing
    item never blocks or rolls back the others.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = settings.products_table
        self.movements_table = settings.movements_table

    # ===================
    # VOCABULARY
    # ===================

    def list_products(self) -> list[CatalogProduct]:
        """All catalog products with matching attributes and stock."""
        logger.debug("listing_catalog_products")

        try:
            result = (
                self.db.table(self.table)
                .select(PRODUCT_COLUMNS)
                .order("id")
                .execute()
            )
            products = [CatalogProduct(**row) for row in result.data]
            logger.info("catalog_products_loaded", count=len(products))
            return products

        except Exception as e:
            logger.error("list_catalog_products_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def list_finishes(self) -> list[CanonicalFinish]:
        """Canonical finishes for mapping dropdowns."""
        try:
            result = (
                self.db.table("finishes")
                .select("id, finish")
                .order("finish")
                .execute()
            )
            return [CanonicalFinish(**row) for row in result.data]

        except Exception as e:
            logger.error("list_finishes_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def list_specs(self) -> SpecVocabulary:
        """Allowed widths, PCDs and hole counts."""
        specs = {}
        for key, table in SPEC_TABLES.items():
            try:
                result = (
                    self.db.table(table)
                    .select("id, value")
                    .order("value")
                    .execute()
                )
            except Exception as e:
                logger.error("list_specs_failed", table=table, error=str(e))
                raise DatabaseError("select", str(e), details={"table": table})

            specs[key] = [
                SpecOption(id=row["id"], value=str(row["value"]))
                for row in result.data
            ]

        return SpecVocabulary(**specs)

    def list_default_mappings(self) -> list[DefaultMapping]:
        """Suggested finish mappings. Offered to the user, never auto-applied."""
        try:
            result = (
                self.db.table("finish_default_mappings")
                .select("excel_value, finish")
                .order("excel_value")
                .execute()
            )
            return [DefaultMapping(**row) for row in result.data]

        except Exception as e:
            logger.error("list_default_mappings_failed", error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # SEARCH
    # ===================

    def search_products(
        self,
        query: str,
        limit: Optional[int] = None,
    ) -> list[ProductCandidate]:
        """
        Search products by name for manual matching.

        Queries shorter than the configured minimum return no
        candidates without touching the database.

        Raises:
            ProductSearchError: On database failure (retryable)
        """
        query = (query or "").strip()
        if len(query) < settings.search_min_query_length:
            return []

        limit = min(limit or settings.search_default_limit, settings.search_max_limit)

        logger.debug("searching_products", query=query, limit=limit)

        try:
            result = (
                self.db.table(self.table)
                .select("id, product_name, in_house_stock, version")
                .ilike("product_name", f"%{query}%")
                .order("product_name")
                .limit(limit)
                .execute()
            )
            return [ProductCandidate(**row) for row in result.data]

        except Exception as e:
            logger.warning("product_search_failed", query=query, error=str(e))
            raise ProductSearchError(query, f"Product search failed: {e}")

    def get_candidate(self, product_id: int) -> ProductCandidate:
        """
        Current name, stock and version of one product.

        Raises:
            ProductNotFoundError: If the product does not exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("id, product_name, in_house_stock, version")
                .eq("id", product_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_candidate_failed", product_id=product_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise ProductNotFoundError(product_id)
        return ProductCandidate(**result.data[0])

    # ===================
    # STOCK APPLICATION
    # ===================

    def apply_batch(
        self,
        updates: list[CanonicalUpdate],
        batch_id: str,
        dry_run: bool = False,
    ) -> list[ItemOutcome]:
        """
        Apply canonical updates one product at a time.

        Current rows for the whole batch are loaded in one query; if
        that query fails the batch cannot be submitted and the error
        propagates. After that, failures are recorded per item.

        Args:
            updates: Canonical updates (one per product)
            batch_id: Reference written to every movement record
            dry_run: Validate only, write nothing

        Returns:
            One ItemOutcome per update, in input order

        Raises:
            DatabaseError: If current stock cannot be loaded
        """
        if not updates:
            return []

        logger.info(
            "applying_stock_batch",
            batch_id=batch_id,
            count=len(updates),
            dry_run=dry_run
        )

        current_rows = self._load_current_rows([u.product_id for u in updates])

        outcomes = []
        for update in updates:
            try:
                self._apply_one(update, current_rows.get(update.product_id), batch_id, dry_run)
                outcomes.append(ItemOutcome(
                    product_id=update.product_id,
                    product_name=update.product_name,
                    success=True,
                ))
            except NotFoundError:
                outcomes.append(self._failure(update, "not found", batch_id))
            except AppError as e:
                outcomes.append(self._failure(update, e.message, batch_id))
            except Exception as e:
                outcomes.append(self._failure(update, str(e), batch_id))

        return outcomes

    def _load_current_rows(self, product_ids: list[int]) -> dict[int, dict]:
        """Current stock and version for each requested product."""
        try:
            result = (
                self.db.table(self.table)
                .select("id, in_house_stock, version")
                .in_("id", product_ids)
                .execute()
            )
        except Exception as e:
            logger.error("load_current_stock_failed", count=len(product_ids), error=str(e))
            raise DatabaseError("select", str(e))

        return {row["id"]: row for row in result.data}

    def _apply_one(
        self,
        update: CanonicalUpdate,
        current: Optional[dict],
        batch_id: str,
        dry_run: bool,
    ) -> None:
        """Validate and write one product. Raises AppError on failure."""
        if current is None:
            raise ProductNotFoundError(update.product_id)

        current_version = current.get("version")
        if update.version is not None and current_version != update.version:
            raise StockVersionConflictError(update.product_id, update.version, current_version)

        current_stock = int(current.get("in_house_stock") or 0)
        target_stock = _target_stock(update, current_stock)

        if dry_run:
            return

        query = (
            self.db.table(self.table)
            .update({
                "in_house_stock": target_stock,
                "version": (current_version or 0) + 1,
            })
            .eq("id", update.product_id)
        )
        if current_version is not None:
            query = query.eq("version", current_version)
        result = query.execute()

        if not result.data:
            # Row changed or vanished between load and write
            raise StockVersionConflictError(update.product_id, current_version, None)

        self._record_movement(update, current_stock, target_stock, batch_id)

        logger.debug(
            "stock_updated",
            product_id=update.product_id,
            old_stock=current_stock,
            new_stock=target_stock,
            batch_id=batch_id
        )

    def _record_movement(
        self,
        update: CanonicalUpdate,
        previous_stock: int,
        new_stock: int,
        batch_id: str,
    ) -> None:
        """Audit record for an applied update."""
        try:
            self.db.table(self.movements_table).insert({
                "product_id": update.product_id,
                "quantity_change": new_stock - previous_stock,
                "previous_stock": previous_stock,
                "new_stock": new_stock,
                "reference_type": MOVEMENT_REFERENCE_TYPE,
                "reference_id": batch_id,
                "notes": "manual match" if update.is_manual_match else None,
            }).execute()
        except Exception as e:
            raise DatabaseError(
                "insert",
                f"movement record failed: {e}",
                details={"product_id": update.product_id}
            )

    @staticmethod
    def _failure(update: CanonicalUpdate, error: str, batch_id: str) -> ItemOutcome:
        logger.warning(
            "stock_update_item_failed",
            product_id=update.product_id,
            batch_id=batch_id,
            error=error
        )
        return ItemOutcome(
            product_id=update.product_id,
            product_name=update.product_name,
            success=False,
            error=error,
        )


def _target_stock(update: CanonicalUpdate, current_stock: int) -> int:
    """Stock to write, honoring the update's semantics."""
    if update.semantics == StockSemantics.ADDITIVE:
        return current_stock + update.difference
    return update.new_stock


# Singleton instance for convenience
_catalog_service: Optional[CatalogService] = None


def get_catalog_service() -> CatalogService:
    """Get or create CatalogService instance."""
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = CatalogService()
    return _catalog_service
