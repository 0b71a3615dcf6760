"""
Text utilities for comparing spreadsheet values with catalog values.

Spreadsheet cells arrive with inconsistent case, accents, stray spaces
and Excel's float rendering of whole numbers ("7.0" for 7).
"""

import math
import re
import unicodedata
from typing import Any, Optional


_WHITESPACE = re.compile(r"\s+")
_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")


def clean_cell(value: Any) -> Optional[str]:
    """
    Convert a raw cell to a trimmed string.

    - None / NaN / empty -> None
    - 7.0 -> "7"
    - "  Chrome  " -> "Chrome"

    Args:
        value: Cell value as returned by pandas

    Returns:
        Cleaned string or None
    """
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
    text = str(value).strip()
    if not text or text.lower() == "nan":
        return None
    return text


def normalize_attribute(value: Optional[str]) -> Optional[str]:
    """
    Normalize an attribute value for comparison only.

    Handles accents, case, inner whitespace and numeric formatting:
    - "Crómo  Brillante" -> "CROMO BRILLANTE"
    - "7.0" -> "7"
    - "114.30" -> "114.3"
    - "4x100" -> "4X100"

    Args:
        value: Raw or canonical attribute value

    Returns:
        Comparison key, or None if the value is empty
    """
    if value is None:
        return None

    text = str(value).strip()
    if not text:
        return None

    if _NUMERIC.match(text):
        number = float(text)
        if number.is_integer():
            return str(int(number))
        return repr(number)

    # Remove accent marks (combining characters in Unicode category 'Mn')
    decomposed = unicodedata.normalize("NFD", text)
    ascii_text = "".join(
        c for c in decomposed
        if unicodedata.category(c) != "Mn"
    )

    return _WHITESPACE.sub(" ", ascii_text).upper()
