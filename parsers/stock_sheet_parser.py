"""
Parser for physical stock count workbooks.

Reads every sheet of an uploaded .xlsx/.xls file and returns one
StockRow per non-empty line. Matching against the catalog is done
by the classifier, not here.
"""

from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Optional, Union
import re
import unicodedata
import structlog

import pandas as pd

from exceptions import ExcelParseError, UnsupportedFileError
from models.stock_upload import StockRow
from utils.text_utils import clean_cell

logger = structlog.get_logger(__name__)

ACCEPTED_EXTENSIONS = [".xlsx", ".xls"]

# Normalized header -> field name
COLUMN_ALIASES: dict[str, list[str]] = {
    "model": ["model", "model_name", "modelo"],
    "inches": ["inches", "inch", "size", "diameter", "dia"],
    "width": ["width", "wd", "rim_width"],
    "pcd": ["pcd"],
    "holes": ["holes", "hole", "no_of_holes", "holes_count"],
    "finish": ["finish", "colour", "color"],
    "qty": ["qty", "quantity", "stock", "in_house_stock", "count"],
    "alloy_name": ["alloy_name", "name", "description", "product_name", "alloy"],
}

REQUIRED_COLUMNS = ["model", "inches", "width", "pcd", "finish", "qty"]

# "4x100", "4 X 114.3", "5*112"
_HOLES_BY_PCD = re.compile(r"^\s*(\d+)\s*[xX*]\s*(\d+(?:\.\d+)?)\s*$")


@dataclass
class StockSheetParseResult:
    """Rows read from a stock workbook."""
    rows: list[StockRow] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    sheets_parsed: list[str] = field(default_factory=list)


def validate_filename(filename: Optional[str]) -> None:
    """
    Reject anything that is not an Excel workbook.

    Raises:
        UnsupportedFileError: If extension is not .xlsx or .xls
    """
    suffix = Path(filename or "").suffix.lower()
    if suffix not in ACCEPTED_EXTENSIONS:
        raise UnsupportedFileError(filename, ACCEPTED_EXTENSIONS)


def parse_stock_workbook(
    file: Union[bytes, BytesIO],
    filename: Optional[str] = None,
) -> StockSheetParseResult:
    """
    Parse a stock count workbook.

    Entry ids are assigned sequentially across sheets in workbook
    order, so parsing the same file twice yields the same ids.

    Args:
        file: Raw workbook bytes or file-like object
        filename: Original filename (used to pick the Excel engine)

    Returns:
        StockSheetParseResult with rows and warnings

    Raises:
        ExcelParseError: If the file cannot be read or no sheet is usable
    """
    logger.info("parsing_stock_workbook", filename=filename)

    excel = _open_workbook(file, filename)
    result = StockSheetParseResult()
    next_index = 1

    for sheet_name in excel.sheet_names:
        try:
            df = excel.parse(sheet_name, dtype=object)
        except Exception as e:
            result.warnings.append(f"Sheet '{sheet_name}' could not be read: {e}")
            continue

        columns = _find_columns(list(df.columns))
        missing = [c for c in REQUIRED_COLUMNS if columns.get(c) is None]
        if missing:
            logger.debug("sheet_skipped", sheet=sheet_name, missing=missing)
            result.warnings.append(
                f"Sheet '{sheet_name}' skipped: missing columns {', '.join(missing)}"
            )
            continue

        result.sheets_parsed.append(sheet_name)

        for idx, raw in df.iterrows():
            values = {
                name: clean_cell(raw[col]) if col is not None else None
                for name, col in columns.items()
            }

            # Skip empty rows
            if not values["model"] and not values["alloy_name"] and values["qty"] is None:
                continue

            holes = values["holes"]
            pcd = values["pcd"]
            if holes is None and pcd:
                combined = _HOLES_BY_PCD.match(pcd)
                if combined:
                    holes, pcd = combined.group(1), combined.group(2)

            result.rows.append(StockRow(
                id=f"row-{next_index}",
                sheet=str(sheet_name),
                row_number=int(idx) + 2,  # Excel row (1-indexed + header)
                alloy_name=values["alloy_name"],
                model=values["model"],
                inches=values["inches"],
                width=values["width"],
                pcd=pcd,
                holes=holes,
                finish=values["finish"],
                qty=_parse_quantity(raw[columns["qty"]]),
            ))
            next_index += 1

    if not result.sheets_parsed:
        raise ExcelParseError(
            message="No sheet contains the required stock columns",
            details={
                "required": REQUIRED_COLUMNS,
                "warnings": result.warnings,
            }
        )

    logger.info(
        "stock_workbook_parsed",
        rows=len(result.rows),
        sheets=len(result.sheets_parsed),
        warnings=len(result.warnings),
    )

    return result


# ===================
# HELPER FUNCTIONS
# ===================

def _open_workbook(file: Union[bytes, BytesIO], filename: Optional[str]) -> pd.ExcelFile:
    """Open the workbook, trying the engine that fits the extension first."""
    if isinstance(file, bytes):
        file = BytesIO(file)

    engines = ["openpyxl", "xlrd"]
    if (filename or "").lower().endswith(".xls"):
        engines = ["xlrd", "openpyxl"]

    last_error: Optional[Exception] = None
    for engine in engines:
        try:
            file.seek(0)
            return pd.ExcelFile(file, engine=engine)
        except Exception as e:
            last_error = e
            continue

    logger.error("excel_read_failed", filename=filename, error=str(last_error))
    raise ExcelParseError(
        message="Failed to read Excel file",
        details={"original_error": str(last_error)}
    )


def _normalize_column(col) -> str:
    """
    Normalize column name for consistent matching.

    "Alloy Name" -> "alloy_name"
    "Qty (pcs)" -> "qty"
    "No. of Holes" -> "no_of_holes"
    """
    col = str(col).lower().strip()
    col = unicodedata.normalize("NFKD", col)
    col = "".join(c for c in col if not unicodedata.combining(c))
    col = re.sub(r"\(.*?\)", "", col)
    col = re.sub(r"[^a-z0-9]+", "_", col)
    return col.strip("_")


def _find_columns(columns: list) -> dict[str, Optional[str]]:
    """Map each known field to the sheet column that carries it."""
    normalized = {_normalize_column(c): c for c in columns}
    result = {}
    for name, aliases in COLUMN_ALIASES.items():
        result[name] = None
        for alias in aliases:
            if alias in normalized:
                result[name] = normalized[alias]
                break
    return result


def _parse_quantity(value) -> Optional[int]:
    """Whole, non-negative quantity or None."""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    try:
        number = float(str(value).strip())
    except (ValueError, TypeError):
        return None
    if number < 0 or not number.is_integer():
        return None
    return int(number)
