"""
Spreadsheet parsers module.
"""

from parsers.stock_sheet_parser import (
    parse_stock_workbook,
    validate_filename,
    StockSheetParseResult,
    ACCEPTED_EXTENSIONS,
)

__all__ = [
    "parse_stock_workbook",
    "validate_filename",
    "StockSheetParseResult",
    "ACCEPTED_EXTENSIONS",
]
