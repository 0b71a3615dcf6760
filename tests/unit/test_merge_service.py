"""
Tests for the merge/diff engine.
"""

from itertools import permutations

from models.stock_upload import NoChangeEntry, StockSemantics
from services.merge_service import (
    apply_semantics,
    build_canonical_updates,
    summarize_updates,
)
from tests.factories import canonical_update, manual_match, regular_update


class TestApplySemantics:
    """Tests for replace vs additive arithmetic."""

    def test_replace(self):
        assert apply_semantics(10, 7, StockSemantics.REPLACE) == (7, -3)

    def test_additive(self):
        assert apply_semantics(10, 7, StockSemantics.ADDITIVE) == (17, 7)


class TestBuildCanonicalUpdates:
    """Tests for build_canonical_updates."""

    def test_regular_only(self):
        """
        Regular update replaces stock.

        product 1: old 10, counted 7 -> new 7, difference -3
        """
        updates = build_canonical_updates([regular_update(1, old_stock=10, excel_qty=7)], [])

        assert len(updates) == 1
        assert updates[0].new_stock == 7
        assert updates[0].difference == -3
        assert updates[0].is_manual_match is False

    def test_manual_only_is_additive(self):
        """
        Manual match for a product with no regular update.

        product 5: stock 3, counted 4 -> new 7, difference 4
        """
        updates = build_canonical_updates([], [manual_match("row-2", 5, in_house_stock=3, excel_qty=4)])

        assert updates[0].product_id == 5
        assert updates[0].old_stock == 3
        assert updates[0].new_stock == 7
        assert updates[0].difference == 4
        assert updates[0].is_manual_match is True

    def test_manual_merges_into_regular(self):
        """
        Manual match on a product that already has a regular update.

        regular: old 10 -> new 7 (difference -3)
        manual: +5
        merged: old 10 -> new 12, difference 2
        """
        updates = build_canonical_updates(
            [regular_update(1, old_stock=10, excel_qty=7)],
            [manual_match("row-4", 1, in_house_stock=10, excel_qty=5)],
        )

        assert len(updates) == 1
        assert updates[0].old_stock == 10
        assert updates[0].new_stock == 12
        assert updates[0].difference == 2

    def test_two_manual_matches_same_product(self):
        updates = build_canonical_updates([], [
            manual_match("row-1", 5, in_house_stock=3, excel_qty=2),
            manual_match("row-2", 5, in_house_stock=3, excel_qty=4),
        ])

        assert len(updates) == 1
        assert updates[0].old_stock == 3
        assert updates[0].new_stock == 9
        assert updates[0].difference == 6

    def test_one_update_per_product_sorted(self):
        updates = build_canonical_updates(
            [regular_update(3, 0, 1), regular_update(1, 10, 7)],
            [manual_match("row-9", 2, 0, 1), manual_match("row-8", 3, 0, 2)],
        )

        assert [u.product_id for u in updates] == [1, 2, 3]

    def test_empty_manual_matches_keeps_regular(self):
        regular = [regular_update(1, 10, 7), regular_update(2, 4, 9)]

        updates = build_canonical_updates(regular, [])

        assert [(u.product_id, u.old_stock, u.new_stock, u.difference) for u in updates] == [
            (r.product_id, r.old_stock, r.new_stock, r.difference) for r in regular
        ]

    def test_does_not_mutate_regular_updates(self):
        regular = [regular_update(1, 10, 7)]

        build_canonical_updates(regular, [manual_match("row-1", 1, 10, 5)])

        assert regular[0].new_stock == 7
        assert regular[0].difference == -3

    def test_manual_order_does_not_matter(self):
        regular = [regular_update(1, 10, 7)]
        matches = [
            manual_match("row-1", 1, 10, 5),
            manual_match("row-2", 2, 0, 3),
            manual_match("row-3", 1, 10, 2),
        ]

        results = {
            tuple(
                (u.product_id, u.old_stock, u.new_stock, u.difference)
                for u in build_canonical_updates(regular, list(order))
            )
            for order in permutations(matches)
        }

        assert len(results) == 1

    def test_version_taken_from_manual_when_regular_has_none(self):
        updates = build_canonical_updates(
            [regular_update(1, 10, 7, version=None)],
            [manual_match("row-1", 1, 10, 5, version=4)],
        )

        assert updates[0].version == 4


class TestSummarizeUpdates:
    """Tests for preview totals."""

    def test_totals(self):
        updates = [
            canonical_update(1, old_stock=10, new_stock=7),
            canonical_update(2, old_stock=0, new_stock=5, is_manual_match=True,
                             semantics=StockSemantics.ADDITIVE),
            canonical_update(3, old_stock=1, new_stock=4),
        ]
        no_change = [NoChangeEntry(product_id=9, product_name="Product 9", stock=2)]

        summary = summarize_updates(updates, no_change)

        assert summary.products_to_update == 3
        assert summary.manual_match_count == 1
        assert summary.total_increase == 8
        assert summary.total_decrease == 3
        assert summary.products_increasing == 2
        assert summary.products_decreasing == 1
        assert summary.no_change_count == 1
