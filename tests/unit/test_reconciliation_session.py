"""
Tests for ReconciliationSession stage handling and review edits.
"""

import pytest

from exceptions import (
    ExecutionInProgressError,
    InvalidStageTransitionError,
    NothingToPreviewError,
    UnknownEntryError,
    ValidationError,
)
from models.stock_upload import Dimension, ExecutionResult, Stage
from services.classifier_service import SourceFile, classify_rows
from services.mapping_store import MappingStore
from services.reconciliation_session import ReconciliationSession
from tests.factories import (
    CatalogProductFactory,
    StockRowFactory,
    make_finishes,
    make_specs,
)


PRODUCTS = [
    CatalogProductFactory.model(id=1, finish="Gunmetal", in_house_stock=10),
    CatalogProductFactory.model(id=2, finish="Silver", in_house_stock=4),
]


def parse(rows, mappings=None):
    return classify_rows(
        rows=rows,
        products=PRODUCTS,
        finishes=make_finishes(),
        specs=make_specs(),
        mappings=mappings or MappingStore(),
    )


@pytest.fixture
def rows():
    return [
        StockRowFactory.create(id="row-1", finish="Gunmetal", qty=12),
        StockRowFactory.create(id="row-2", finish="GUN METAL", qty=3),
        StockRowFactory.create(id="row-3", model="ZEPHYR", qty=2),
    ]


@pytest.fixture
def session(rows):
    """Session in review with one regular update and two unresolved rows."""
    s = ReconciliationSession(source_file=SourceFile("count.xlsx", b"data"))
    s.load_parse_result(parse(rows))
    return s


def _match_data(**overrides):
    data = {"product_name": "Product 2", "in_house_stock": 4, "version": 1}
    data.update(overrides)
    return data


class TestStageTransitions:
    """Tests for the upload -> review -> preview -> complete flow."""

    def test_new_session_in_upload(self):
        assert ReconciliationSession().stage == Stage.UPLOAD

    def test_load_requires_file(self, rows):
        with pytest.raises(ValidationError):
            ReconciliationSession().load_parse_result(parse(rows))

    def test_load_moves_to_review(self, session):
        assert session.stage == Stage.REVIEW
        assert session.parse_result.matched_count == 1

    def test_preview_returns_canonical_updates(self, session):
        updates = session.go_to_preview()

        assert session.stage == Stage.PREVIEW
        assert [(u.product_id, u.new_stock) for u in updates] == [(1, 12)]

    def test_preview_without_updates_raises(self):
        s = ReconciliationSession(source_file=SourceFile("count.xlsx", b"data"))
        s.load_parse_result(parse([StockRowFactory.create(id="row-1", model="ZEPHYR")]))

        with pytest.raises(NothingToPreviewError):
            s.go_to_preview()

        assert s.stage == Stage.REVIEW

    def test_manual_match_alone_allows_preview(self):
        s = ReconciliationSession(source_file=SourceFile("count.xlsx", b"data"))
        s.load_parse_result(parse([StockRowFactory.create(id="row-1", model="ZEPHYR", qty=2)]))
        s.set_manual_match("row-1", 2, _match_data())

        updates = s.go_to_preview()

        assert updates[0].product_id == 2
        assert updates[0].new_stock == 6

    def test_complete_from_preview(self, session):
        session.go_to_preview()
        result = ExecutionResult(success_count=1, total_processed=1, batch_id="b")

        session.complete(result)

        assert session.stage == Stage.COMPLETE
        assert session.execution_result == result
        assert [u.product_id for u in session.executed_updates] == [1]

    def test_complete_from_review_rejected(self, session):
        with pytest.raises(InvalidStageTransitionError) as exc:
            session.complete(ExecutionResult())

        assert exc.value.status_code == 409
        assert session.stage == Stage.REVIEW

    def test_complete_with_empty_result(self, session):
        session.go_to_preview()

        session.complete(ExecutionResult())

        assert session.stage == Stage.COMPLETE
        assert session.execution_result.total_processed == 0

    def test_load_attaches_given_file(self, rows):
        s = ReconciliationSession()

        s.load_parse_result(parse(rows), SourceFile("recount.xlsx", b"data"))

        assert s.source_file.filename == "recount.xlsx"
        assert s.stage == Stage.REVIEW

    def test_reset_clears_everything(self, session):
        session.set_mapping(Dimension.FINISH, "GUN METAL", "Gunmetal")
        session.set_manual_match("row-3", 2, _match_data())

        session.reset()

        assert session.stage == Stage.UPLOAD
        assert session.source_file is None
        assert session.parse_result is None
        assert session.mappings.has_any_mapping() is False
        assert len(session.manual_matches) == 0

    def test_reset_from_complete(self, session):
        session.go_to_preview()
        session.complete(ExecutionResult())

        session.reset()

        assert session.stage == Stage.UPLOAD
        assert session.execution_result is None


class TestExecutionClaim:
    """Tests for the single-execution guard."""

    def test_begin_returns_canonical_updates(self, session):
        session.go_to_preview()

        updates = session.begin_execution()

        assert [u.product_id for u in updates] == [1]
        assert session.executing is True

    def test_second_execution_rejected(self, session):
        session.go_to_preview()
        session.begin_execution()

        with pytest.raises(ExecutionInProgressError) as exc:
            session.begin_execution()

        assert exc.value.status_code == 409
        assert exc.value.code == "EXECUTION_IN_PROGRESS"

    def test_end_releases_session(self, session):
        session.go_to_preview()
        session.begin_execution()

        session.end_execution()

        assert session.begin_execution()[0].product_id == 1

    def test_begin_requires_preview(self, session):
        with pytest.raises(InvalidStageTransitionError):
            session.begin_execution()

        assert session.executing is False

    def test_reset_rejected_while_executing(self, session):
        session.go_to_preview()
        session.begin_execution()

        with pytest.raises(ExecutionInProgressError):
            session.reset()

        assert session.stage == Stage.PREVIEW


class TestRecalculation:
    """Tests for generation-guarded recalculation."""

    def test_applies_latest_result(self, session, rows):
        mappings = MappingStore()
        mappings.set_mapping(Dimension.FINISH, "GUN METAL", "Gunmetal")

        generation = session.begin_recalculation()
        applied = session.apply_recalculation(generation, parse(rows, mappings))

        assert applied is True
        assert session.parse_result.matched_count == 2
        assert session.parse_result.updates[0].new_stock == 15

    def test_stale_response_discarded(self, session, rows):
        """
        Two recalculations in flight; the older one answers last.

        Only the newer result survives.
        """
        fixed = MappingStore()
        fixed.set_mapping(Dimension.FINISH, "GUN METAL", "Gunmetal")

        older = session.begin_recalculation()
        newer = session.begin_recalculation()

        assert session.apply_recalculation(newer, parse(rows, fixed)) is True
        assert session.apply_recalculation(older, parse(rows)) is False
        assert session.parse_result.matched_count == 2

    def test_response_after_reset_discarded(self, session, rows):
        generation = session.begin_recalculation()
        session.reset()

        assert session.apply_recalculation(generation, parse(rows)) is False
        assert session.parse_result is None

    def test_recalculate_outside_review_rejected(self):
        with pytest.raises(InvalidStageTransitionError):
            ReconciliationSession().begin_recalculation()

    def test_resolved_manual_match_dropped(self, session, rows):
        session.set_manual_match("row-2", 1, _match_data(product_name="Product 1", in_house_stock=10))
        mappings = MappingStore()
        mappings.set_mapping(Dimension.FINISH, "GUN METAL", "Gunmetal")

        session.apply_recalculation(session.begin_recalculation(), parse(rows, mappings))

        assert "row-2" not in session.manual_matches


class TestReviewEdits:
    """Tests for mapping and manual match edits."""

    def test_mapping_does_not_reclassify(self, session):
        session.set_mapping(Dimension.FINISH, "GUN METAL", "Gunmetal")

        assert session.parse_result.matched_count == 1
        assert session.to_response().has_mappings is True

    def test_mapping_cleared_with_none(self, session):
        session.set_mapping(Dimension.FINISH, "GUN METAL", "Gunmetal")
        session.set_mapping(Dimension.FINISH, "GUN METAL", None)

        assert session.mappings.has_any_mapping() is False

    def test_mapping_rejected_in_preview(self, session):
        session.go_to_preview()

        with pytest.raises(InvalidStageTransitionError):
            session.set_mapping(Dimension.FINISH, "X", "Y")

    def test_manual_match_defaults_quantity_from_row(self, session):
        match = session.set_manual_match("row-3", 2, _match_data())

        assert match.excel_qty == 2

    def test_manual_match_on_matched_row_rejected(self, session):
        with pytest.raises(UnknownEntryError):
            session.set_manual_match("row-1", 2, _match_data())

    def test_manual_match_needs_quantity(self):
        s = ReconciliationSession(source_file=SourceFile("count.xlsx", b"data"))
        s.load_parse_result(parse([StockRowFactory.create(id="row-1", qty=None)]))

        with pytest.raises(ValidationError) as exc:
            s.set_manual_match("row-1", 2, _match_data())

        assert exc.value.code == "MISSING_QUANTITY"
        assert len(s.manual_matches) == 0

    def test_manual_match_removed_with_none(self, session):
        session.set_manual_match("row-3", 2, _match_data())

        session.set_manual_match("row-3", None)

        assert len(session.manual_matches) == 0
        assert session.pending_update_count() == 1

    def test_manual_match_rejected_in_upload(self):
        with pytest.raises(InvalidStageTransitionError):
            ReconciliationSession().set_manual_match("row-1", 1, _match_data())
