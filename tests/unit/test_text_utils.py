"""
Tests for text utilities used to compare spreadsheet and catalog values.
"""

import math

from utils.text_utils import clean_cell, normalize_attribute


class TestCleanCell:
    """Tests for raw cell cleaning."""

    def test_none_is_none(self):
        assert clean_cell(None) is None

    def test_nan_is_none(self):
        assert clean_cell(math.nan) is None

    def test_whole_float_drops_decimal(self):
        assert clean_cell(7.0) == "7"

    def test_fractional_float_kept(self):
        assert clean_cell(114.3) == "114.3"

    def test_int(self):
        assert clean_cell(17) == "17"

    def test_strips_whitespace(self):
        assert clean_cell("  Chrome  ") == "Chrome"

    def test_blank_string_is_none(self):
        assert clean_cell("   ") is None

    def test_literal_nan_string_is_none(self):
        assert clean_cell("nan") is None


class TestNormalizeAttribute:
    """Tests for comparison keys."""

    def test_uppercases(self):
        assert normalize_attribute("Gunmetal") == "GUNMETAL"

    def test_removes_accents(self):
        assert normalize_attribute("Crómo") == "CROMO"

    def test_collapses_inner_whitespace(self):
        assert normalize_attribute("Matt   Black") == "MATT BLACK"

    def test_whole_number_string(self):
        assert normalize_attribute("7.0") == "7"

    def test_trailing_zero_decimal(self):
        assert normalize_attribute("114.30") == "114.3"

    def test_decimal_matches_canonical(self):
        assert normalize_attribute("114.30") == normalize_attribute("114.3")

    def test_holes_by_pcd_notation_kept(self):
        assert normalize_attribute("4x100") == "4X100"

    def test_none(self):
        assert normalize_attribute(None) is None

    def test_empty(self):
        assert normalize_attribute("  ") is None
