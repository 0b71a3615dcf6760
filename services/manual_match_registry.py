"""
User-selected fallback matches for rows the classifier left unresolved.

Holds only the user's final selections, one per entry id. Catalog
lookups for candidates go through CatalogService.search_products.
"""

from typing import Any, Optional
import structlog

from models.stock_upload import ManualMatch

logger = structlog.get_logger(__name__)


class ManualMatchRegistry:
    """entry_id -> ManualMatch."""

    def __init__(self):
        self._matches: dict[str, ManualMatch] = {}

    def set_match(
        self,
        entry_id: str,
        product_id: Optional[int],
        data: Optional[dict[str, Any]] = None,
    ) -> Optional[ManualMatch]:
        """
        Register, replace or remove the match for an entry.

        A product_id of None removes the match; it never means
        "matched to nothing".

        Args:
            entry_id: Row entry id (e.g. "row-7")
            product_id: Selected product, or None to clear
            data: product_name, in_house_stock, excel_qty and optionally
                  version / semantics

        Returns:
            The stored ManualMatch, or None when removed
        """
        if product_id is None:
            self.remove_match(entry_id)
            return None

        fields = {k: v for k, v in (data or {}).items() if v is not None}
        fields.update(entry_id=entry_id, product_id=product_id)
        match = ManualMatch(**fields)

        replaced = entry_id in self._matches
        self._matches[entry_id] = match

        logger.info(
            "manual_match_set",
            entry_id=entry_id,
            product_id=product_id,
            replaced=replaced
        )
        return match

    def remove_match(self, entry_id: str) -> bool:
        """Delete the match for an entry. Returns True if one existed."""
        removed = self._matches.pop(entry_id, None) is not None
        if removed:
            logger.info("manual_match_removed", entry_id=entry_id)
        return removed

    def get(self, entry_id: str) -> Optional[ManualMatch]:
        return self._matches.get(entry_id)

    def matches(self) -> list[ManualMatch]:
        """Matches ordered by entry id for stable output."""
        return [self._matches[k] for k in sorted(self._matches)]

    def entry_ids(self) -> set[str]:
        return set(self._matches)

    def clear(self) -> None:
        self._matches.clear()

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._matches

    def __len__(self) -> int:
        return len(self._matches)
