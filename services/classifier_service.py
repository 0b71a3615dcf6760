"""
Row classification: match spreadsheet rows to canonical products.

Classifier is the pluggable boundary the rest of the pipeline talks to.
CatalogClassifier parses the workbook and runs classify_rows() against
the live catalog; tests can substitute any object with the same methods.

Bucket rules, applied per row in this order:
    1. quantity missing or not a whole number  -> not_matched
    2. model unknown                            -> missing_models
    3. inches not offered for that model        -> missing_inches
    4. finish / width / pcd / holes unresolved  -> first failing dimension
       bucket (the row is annotated with every missing component)
    5. zero or several products for the combination -> not_matched
    6. exactly one product                      -> matched
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Optional, Protocol
import structlog

from models.product import CatalogProduct, CanonicalFinish, SpecVocabulary
from models.stock_upload import (
    Dimension,
    MatchedEntry,
    MissingAttribute,
    MissingComponent,
    NoChangeEntry,
    ParseResult,
    ReasonType,
    RegularUpdate,
    StockRow,
    StockSemantics,
    UnmatchedEntry,
)
from parsers.stock_sheet_parser import parse_stock_workbook
from services.mapping_store import MappingStore
from utils.text_utils import normalize_attribute

logger = structlog.get_logger(__name__)

DIMENSION_ORDER = [Dimension.FINISH, Dimension.WIDTH, Dimension.PCD, Dimension.HOLES]


@dataclass(frozen=True)
class SourceFile:
    """Uploaded workbook kept for re-parsing."""
    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class Classifier(Protocol):
    """Turns a workbook plus mapping overrides into a ParseResult."""

    def parse(self, file: SourceFile, mappings: MappingStore) -> ParseResult:
        ...

    def preview(self, file: SourceFile, mappings: MappingStore) -> ParseResult:
        ...


class CatalogSource(Protocol):
    """Catalog reads the classifier depends on."""

    def list_products(self) -> list[CatalogProduct]:
        ...

    def list_finishes(self) -> list[CanonicalFinish]:
        ...

    def list_specs(self) -> SpecVocabulary:
        ...


class CatalogClassifier:
    """Classifier backed by the product catalog."""

    def __init__(self, catalog: CatalogSource):
        self.catalog = catalog

    def parse(self, file: SourceFile, mappings: MappingStore) -> ParseResult:
        """
        Full parse of a fresh upload.

        Raises:
            ExcelParseError: If the workbook cannot be read
        """
        logger.info("classifying_upload", filename=file.filename, size=file.size)
        return self._classify(file, mappings)

    def preview(self, file: SourceFile, mappings: MappingStore) -> ParseResult:
        """Re-parse with the current mappings. Same shape as parse()."""
        logger.info(
            "reclassifying_upload",
            filename=file.filename,
            mapping_count=len(mappings)
        )
        return self._classify(file, mappings)

    def _classify(self, file: SourceFile, mappings: MappingStore) -> ParseResult:
        sheet = parse_stock_workbook(file.content, filename=file.filename)

        result = classify_rows(
            rows=sheet.rows,
            products=self.catalog.list_products(),
            finishes=self.catalog.list_finishes(),
            specs=self.catalog.list_specs(),
            mappings=mappings,
            warnings=sheet.warnings,
        )

        logger.info(
            "upload_classified",
            filename=file.filename,
            total=result.total_excel_entries,
            matched=result.matched_count,
            not_matched=result.not_matched_count,
            missing_models=result.missing_models_count,
            updates=result.updates_count
        )
        return result


# ===================
# CLASSIFICATION
# ===================

def classify_rows(
    rows: list[StockRow],
    products: list[CatalogProduct],
    finishes: list[CanonicalFinish],
    specs: SpecVocabulary,
    mappings: MappingStore,
    warnings: Optional[list[str]] = None,
) -> ParseResult:
    """
    Partition rows into buckets and compute regular updates.

    Args:
        rows: Parsed spreadsheet rows
        products: Catalog products
        finishes: Canonical finish vocabulary
        specs: Canonical width / pcd / holes vocabulary
        mappings: User overrides applied before lookup
        warnings: Parser warnings carried into the result

    Returns:
        ParseResult where every row is filed in exactly one bucket
    """
    by_model: dict[str, list[CatalogProduct]] = defaultdict(list)
    for product in products:
        key = normalize_attribute(product.model_name)
        if key:
            by_model[key].append(product)

    vocabulary = _build_vocabulary(products, finishes, specs)

    matched: list[MatchedEntry] = []
    not_matched: list[UnmatchedEntry] = []
    missing_models: list[UnmatchedEntry] = []
    missing_inches: list[UnmatchedEntry] = []
    attribute_rows: list[UnmatchedEntry] = []
    dimension_hits: dict[Dimension, dict[str, list[str]]] = {
        dimension: {} for dimension in DIMENSION_ORDER
    }

    for row in rows:
        if row.qty is None:
            not_matched.append(_unmatched(
                row,
                ReasonType.INVALID_QUANTITY,
                "Quantity is missing or not a whole non-negative number",
            ))
            continue

        candidates = by_model.get(normalize_attribute(row.model) or "")
        if not candidates:
            missing_models.append(_unmatched(
                row,
                ReasonType.MISSING_MODEL,
                f"Model '{row.model or ''}' not found in catalog",
                [MissingComponent(type="model", excel_value=row.model)],
            ))
            continue

        inches_key = normalize_attribute(row.inches)
        candidates = [p for p in candidates if normalize_attribute(p.inches) == inches_key]
        if not candidates:
            missing_inches.append(_unmatched(
                row,
                ReasonType.MISSING_INCHES,
                f"Size {row.inches or '?'}\" not available for model '{row.model}'",
                [MissingComponent(type="inches", excel_value=row.inches)],
            ))
            continue

        resolved: dict[Dimension, str] = {}
        missing: list[MissingComponent] = []
        for dimension in DIMENSION_ORDER:
            raw = getattr(row, dimension.value)
            mapped = mappings.get_mapping(dimension, raw)
            key = normalize_attribute(mapped if mapped is not None else raw)
            if key is None or key not in vocabulary[dimension]:
                missing.append(MissingComponent(type=dimension.value, excel_value=raw))
            else:
                resolved[dimension] = key

        if missing:
            first = Dimension(missing[0].type)
            excel_value = missing[0].excel_value or ""
            dimension_hits[first].setdefault(excel_value, []).append(row.id)
            attribute_rows.append(_unmatched(
                row,
                ReasonType.MISSING_COMPONENTS,
                "Unresolved " + ", ".join(
                    f"{m.type} '{m.excel_value or ''}'" for m in missing
                ),
                missing,
            ))
            continue

        hits = [
            p for p in candidates
            if all(
                normalize_attribute(getattr(p, dimension.value)) == key
                for dimension, key in resolved.items()
            )
        ]

        if len(hits) == 1:
            product = hits[0]
            matched.append(MatchedEntry(
                **row.model_dump(),
                product_id=product.id,
                db_name=product.product_name,
                db_in_house_stock=product.in_house_stock,
            ))
        elif not hits:
            not_matched.append(_unmatched(
                row,
                ReasonType.NO_PRODUCT,
                "No product with this model, size, specs and finish",
            ))
        else:
            not_matched.append(_unmatched(
                row,
                ReasonType.AMBIGUOUS,
                f"{len(hits)} products share this model, size, specs and finish",
            ))

    updates, no_change = _compute_updates(matched, products)

    buckets = {
        dimension: [
            MissingAttribute(excel_value=value, count=len(ids), entry_ids=ids)
            for value, ids in values_to_ids.items()
        ]
        for dimension, values_to_ids in dimension_hits.items()
    }

    return ParseResult(
        matched=matched,
        not_matched=not_matched,
        missing_models=missing_models,
        missing_inches=missing_inches,
        missing_finishes=buckets[Dimension.FINISH],
        missing_widths=buckets[Dimension.WIDTH],
        missing_pcds=buckets[Dimension.PCD],
        missing_holes=buckets[Dimension.HOLES],
        attribute_rows=attribute_rows,
        updates=updates,
        no_change=no_change,
        total_excel_entries=len(rows),
        warnings=list(warnings or []),
    )


def _build_vocabulary(
    products: list[CatalogProduct],
    finishes: list[CanonicalFinish],
    specs: SpecVocabulary,
) -> dict[Dimension, set[str]]:
    """Normalized allowed values per dimension (vocabulary plus catalog values)."""
    vocabulary = {
        Dimension.FINISH: {normalize_attribute(f.finish) for f in finishes},
        Dimension.WIDTH: {normalize_attribute(o.value) for o in specs.widths},
        Dimension.PCD: {normalize_attribute(o.value) for o in specs.pcds},
        Dimension.HOLES: {normalize_attribute(o.value) for o in specs.holes},
    }
    for product in products:
        for dimension in DIMENSION_ORDER:
            vocabulary[dimension].add(normalize_attribute(getattr(product, dimension.value)))
    for values in vocabulary.values():
        values.discard(None)
    return vocabulary


def _compute_updates(
    matched: list[MatchedEntry],
    products: list[CatalogProduct],
) -> tuple[list[RegularUpdate], list[NoChangeEntry]]:
    """
    Sum counted quantities per product and compare with catalog stock.

    Regular updates replace stock: new = counted, difference = counted - old.
    """
    by_id = {p.id: p for p in products}
    totals: dict[int, int] = defaultdict(int)
    entry_ids: dict[int, list[str]] = defaultdict(list)
    for entry in matched:
        totals[entry.product_id] += entry.qty or 0
        entry_ids[entry.product_id].append(entry.id)

    updates = []
    no_change = []
    for product_id in sorted(totals):
        product = by_id[product_id]
        counted = totals[product_id]
        if counted == product.in_house_stock:
            no_change.append(NoChangeEntry(
                product_id=product_id,
                product_name=product.product_name,
                stock=product.in_house_stock,
                entry_ids=entry_ids[product_id],
            ))
            continue
        updates.append(RegularUpdate(
            product_id=product_id,
            product_name=product.product_name,
            old_stock=product.in_house_stock,
            excel_qty=counted,
            new_stock=counted,
            difference=counted - product.in_house_stock,
            version=product.version,
            semantics=StockSemantics.REPLACE,
            entry_ids=entry_ids[product_id],
        ))

    return updates, no_change


def _unmatched(
    row: StockRow,
    reason_type: ReasonType,
    reason: str,
    missing: Optional[list[MissingComponent]] = None,
) -> UnmatchedEntry:
    return UnmatchedEntry(
        **row.model_dump(),
        reason=reason,
        reason_type=reason_type,
        missing_components=missing or [],
    )


# Singleton instance for convenience
_classifier: Optional[CatalogClassifier] = None


def get_classifier() -> CatalogClassifier:
    """Get or create the catalog-backed classifier."""
    global _classifier
    if _classifier is None:
        from services.catalog_service import get_catalog_service
        _classifier = CatalogClassifier(get_catalog_service())
    return _classifier
