"""
Merge/diff engine: one canonical update per product.

Combines the classifier's regular updates with the session's manual
matches. Each source carries an explicit StockSemantics:

    REPLACE   new_stock = qty              difference = qty - old_stock
    ADDITIVE  new_stock = old_stock + qty  difference = qty

Regular updates default to REPLACE and manual matches to ADDITIVE.
When a manual match hits a product that already has an entry, its
difference is added to that entry's new_stock and difference and the
entry's old_stock is kept.
"""

from typing import Iterable
import structlog

from models.stock_upload import (
    CanonicalUpdate,
    ManualMatch,
    NoChangeEntry,
    PreviewSummary,
    RegularUpdate,
    StockSemantics,
)

logger = structlog.get_logger(__name__)


def apply_semantics(old_stock: int, qty: int, semantics: StockSemantics) -> tuple[int, int]:
    """Return (new_stock, difference) for a counted quantity."""
    if semantics == StockSemantics.ADDITIVE:
        return old_stock + qty, qty
    return qty, qty - old_stock


def regular_to_canonical(update: RegularUpdate) -> CanonicalUpdate:
    new_stock, difference = apply_semantics(update.old_stock, update.excel_qty, update.semantics)
    return CanonicalUpdate(
        product_id=update.product_id,
        product_name=update.product_name,
        old_stock=update.old_stock,
        new_stock=new_stock,
        difference=difference,
        is_manual_match=False,
        semantics=update.semantics,
        version=update.version,
    )


def manual_to_canonical(match: ManualMatch) -> CanonicalUpdate:
    new_stock, difference = apply_semantics(match.in_house_stock, match.excel_qty, match.semantics)
    return CanonicalUpdate(
        product_id=match.product_id,
        product_name=match.product_name,
        old_stock=match.in_house_stock,
        new_stock=new_stock,
        difference=difference,
        is_manual_match=True,
        semantics=match.semantics,
        version=match.version,
    )


def build_canonical_updates(
    regular_updates: Iterable[RegularUpdate],
    manual_matches: Iterable[ManualMatch],
) -> list[CanonicalUpdate]:
    """
    Merge regular updates and manual matches by product_id.

    Manual matches are folded in entry-id order, so the output does not
    depend on the order they were registered in.

    Args:
        regular_updates: Updates from the classifier
        manual_matches: User-selected matches

    Returns:
        Canonical updates sorted by product_id, one per product
    """
    merged: dict[int, CanonicalUpdate] = {}

    for update in regular_updates:
        merged[update.product_id] = regular_to_canonical(update)

    merged_count = 0
    for match in sorted(manual_matches, key=lambda m: m.entry_id):
        manual = manual_to_canonical(match)
        existing = merged.get(manual.product_id)
        if existing is None:
            merged[manual.product_id] = manual
            continue

        existing.new_stock += manual.difference
        existing.difference += manual.difference
        if existing.version is None:
            existing.version = manual.version
        merged_count += 1

    updates = [merged[product_id] for product_id in sorted(merged)]

    logger.debug(
        "canonical_updates_built",
        count=len(updates),
        merged_manual=merged_count
    )
    return updates


def summarize_updates(
    updates: list[CanonicalUpdate],
    no_change: list[NoChangeEntry],
) -> PreviewSummary:
    """Totals for the preview step."""
    increases = [u.difference for u in updates if u.difference > 0]
    decreases = [-u.difference for u in updates if u.difference < 0]

    return PreviewSummary(
        products_to_update=len(updates),
        manual_match_count=sum(1 for u in updates if u.is_manual_match),
        total_increase=sum(increases),
        total_decrease=sum(decreases),
        products_increasing=len(increases),
        products_decreasing=len(decreases),
        no_change_count=len(no_change),
    )
