"""
Stock upload / reconciliation schemas.

Covers the parsed spreadsheet rows, the classification buckets,
manual matches, canonical updates and execution results.
"""

from pydantic import Field, computed_field
from typing import Optional
from enum import Enum

from models.base import BaseSchema, FrozenSchema


class Stage(str, Enum):
    """Reconciliation session stage."""
    UPLOAD = "upload"
    REVIEW = "review"
    PREVIEW = "preview"
    COMPLETE = "complete"


class Dimension(str, Enum):
    """Attribute dimensions that accept user mapping overrides."""
    FINISH = "finish"
    WIDTH = "width"
    PCD = "pcd"
    HOLES = "holes"


class StockSemantics(str, Enum):
    """
    How a quantity is applied to current stock.

    REPLACE: new stock is the counted quantity.
    ADDITIVE: counted quantity is added to current stock.
    """
    REPLACE = "replace"
    ADDITIVE = "additive"


class ReasonType(str, Enum):
    """Why a row could not be matched automatically."""
    MISSING_MODEL = "missing_model"
    MISSING_INCHES = "missing_inches"
    MISSING_COMPONENTS = "missing_components"
    NO_PRODUCT = "no_product"
    AMBIGUOUS = "ambiguous"
    INVALID_QUANTITY = "invalid_quantity"


# ===================
# PARSED ROWS
# ===================

class StockRow(BaseSchema):
    """One spreadsheet row as read from the upload."""

    id: str = Field(..., description="Stable entry id, e.g. row-7")
    sheet: str
    row_number: int = Field(..., description="Excel row (1-indexed, header is 1)")
    alloy_name: Optional[str] = None
    model: Optional[str] = None
    inches: Optional[str] = None
    width: Optional[str] = None
    pcd: Optional[str] = None
    holes: Optional[str] = None
    finish: Optional[str] = None
    qty: Optional[int] = None


class MissingComponent(BaseSchema):
    """A single attribute that did not resolve for a row."""

    type: str
    excel_value: Optional[str] = None


class MatchedEntry(StockRow):
    """Row resolved to exactly one canonical product."""

    product_id: int
    db_name: str
    db_in_house_stock: int


class UnmatchedEntry(StockRow):
    """Row that did not resolve, with the reason it was filed under."""

    reason: str
    reason_type: ReasonType
    missing_components: list[MissingComponent] = Field(default_factory=list)


class MissingAttribute(BaseSchema):
    """Unresolved value of one dimension and how many rows it blocked."""

    excel_value: str
    count: int
    entry_ids: list[str] = Field(default_factory=list)


class RegularUpdate(BaseSchema):
    """Stock change for a matched product whose count differs from the catalog."""

    product_id: int
    product_name: str
    old_stock: int
    excel_qty: int
    new_stock: int
    difference: int
    version: Optional[int] = None
    semantics: StockSemantics = StockSemantics.REPLACE
    entry_ids: list[str] = Field(default_factory=list)


class NoChangeEntry(BaseSchema):
    """Matched product whose count equals the catalog stock."""

    product_id: int
    product_name: str
    stock: int
    entry_ids: list[str] = Field(default_factory=list)


class ParseResult(FrozenSchema):
    """
    Classification snapshot for one (file, mappings) pair.

    Every parsed row lands in exactly one of matched, not_matched,
    missing_models, missing_inches or a dimension bucket.
    """

    matched: list[MatchedEntry] = Field(default_factory=list)
    not_matched: list[UnmatchedEntry] = Field(default_factory=list)
    missing_models: list[UnmatchedEntry] = Field(default_factory=list)
    missing_inches: list[UnmatchedEntry] = Field(default_factory=list)
    missing_finishes: list[MissingAttribute] = Field(default_factory=list)
    missing_widths: list[MissingAttribute] = Field(default_factory=list)
    missing_pcds: list[MissingAttribute] = Field(default_factory=list)
    missing_holes: list[MissingAttribute] = Field(default_factory=list)
    attribute_rows: list[UnmatchedEntry] = Field(
        default_factory=list,
        description="Row detail behind the finish/width/pcd/holes buckets"
    )
    updates: list[RegularUpdate] = Field(default_factory=list)
    no_change: list[NoChangeEntry] = Field(default_factory=list)
    total_excel_entries: int = 0
    warnings: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def matched_count(self) -> int:
        return len(self.matched)

    @computed_field
    @property
    def not_matched_count(self) -> int:
        return len(self.not_matched)

    @computed_field
    @property
    def missing_models_count(self) -> int:
        return len(self.missing_models)

    @computed_field
    @property
    def updates_count(self) -> int:
        return len(self.updates)

    def dimension_buckets(self) -> dict[Dimension, list[MissingAttribute]]:
        """Dimension buckets keyed by dimension."""
        return {
            Dimension.FINISH: self.missing_finishes,
            Dimension.WIDTH: self.missing_widths,
            Dimension.PCD: self.missing_pcds,
            Dimension.HOLES: self.missing_holes,
        }

    def bucket_row_total(self) -> int:
        """Rows accounted for across every bucket."""
        dimension_rows = sum(
            entry.count
            for bucket in self.dimension_buckets().values()
            for entry in bucket
        )
        return (
            len(self.matched)
            + len(self.not_matched)
            + len(self.missing_models)
            + len(self.missing_inches)
            + dimension_rows
        )

    def unresolved_entries(self) -> dict[str, UnmatchedEntry]:
        """Rows that can receive a manual match, keyed by entry id."""
        entries = {}
        for bucket in (self.not_matched, self.missing_models, self.missing_inches, self.attribute_rows):
            for entry in bucket:
                entries[entry.id] = entry
        return entries


# ===================
# MANUAL MATCHES AND UPDATES
# ===================

class ManualMatch(BaseSchema):
    """User-selected product for a row the classifier could not resolve."""

    entry_id: str
    product_id: int
    product_name: str
    in_house_stock: int = Field(..., description="Stock of the product when selected")
    excel_qty: int = Field(..., ge=0, description="Counted quantity added to stock")
    version: Optional[int] = None
    semantics: StockSemantics = StockSemantics.ADDITIVE


class CanonicalUpdate(BaseSchema):
    """Final, deduplicated stock change submitted for execution."""

    product_id: int
    product_name: str
    old_stock: int
    new_stock: int
    difference: int
    is_manual_match: bool = False
    semantics: StockSemantics = StockSemantics.REPLACE
    version: Optional[int] = None


class PreviewSummary(BaseSchema):
    """Totals shown before applying updates."""

    products_to_update: int = 0
    manual_match_count: int = 0
    total_increase: int = 0
    total_decrease: int = 0
    products_increasing: int = 0
    products_decreasing: int = 0
    no_change_count: int = 0


# ===================
# EXECUTION
# ===================

class ItemOutcome(BaseSchema):
    """Result of applying one canonical update."""

    product_id: int
    product_name: str
    success: bool
    error: Optional[str] = None


class ExecutionError(BaseSchema):
    """Per-product failure inside an executed batch."""

    product_id: int
    product_name: Optional[str] = None
    error: str


class ExecutionResult(FrozenSchema):
    """Outcome of one executed batch."""

    success_count: int = 0
    error_count: int = 0
    total_processed: int = 0
    errors: list[ExecutionError] = Field(default_factory=list)
    batch_id: Optional[str] = None
    dry_run: bool = False


# ===================
# API REQUESTS / RESPONSES
# ===================

class MappingRequest(BaseSchema):
    """Set or clear one mapping override."""

    dimension: Dimension
    excel_value: str = Field(..., min_length=1)
    db_value: Optional[str] = Field(
        None,
        description="Canonical value; null removes the override"
    )


class ManualMatchRequest(BaseSchema):
    """Select (or clear with product_id=null) the product for an entry."""

    product_id: Optional[int] = None
    product_name: Optional[str] = None
    in_house_stock: Optional[int] = Field(None, ge=0)
    excel_qty: Optional[int] = Field(None, ge=0)
    version: Optional[int] = None
    semantics: StockSemantics = StockSemantics.ADDITIVE


class ExecuteRequest(BaseSchema):
    """Execute the canonical updates of a session."""

    dry_run: bool = False


class PreviewResponse(BaseSchema):
    """Canonical updates and totals for the preview step."""

    session_id: str
    updates: list[CanonicalUpdate]
    no_change: list[NoChangeEntry] = Field(default_factory=list)
    summary: PreviewSummary


class SessionResponse(BaseSchema):
    """Full state of a reconciliation session."""

    session_id: str
    filename: Optional[str] = None
    stage: Stage
    generation: int = 0
    mappings: dict[str, dict[str, str]]
    has_mappings: bool = False
    manual_matches: list[ManualMatch] = Field(default_factory=list)
    parse_result: Optional[ParseResult] = None
    execution_result: Optional[ExecutionResult] = None
    pending_updates: int = 0
