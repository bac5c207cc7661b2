"""Tests for EIN normalization, validation and match keys."""

import pytest
from grant_import.utils.ein_utils import compare_eins, ein_match_key, normalize_ein, validate_and_format


class TestNormalizeEin:
    """Standard XX-XXXXXXX formatting."""

    @pytest.mark.parametrize("raw", ["042694280", "04-2694280", " 04-2694280 "])
    def test_formats(self, raw):
        assert normalize_ein(raw) == "04-2694280"

    @pytest.mark.parametrize("raw", ["", "12345", "1234567890", "00-1234567"])
    def test_invalid_returns_none(self, raw):
        assert normalize_ein(raw) is None


class TestEinMatchKey:
    """Hyphen- and whitespace-free key used for matching."""

    @pytest.mark.parametrize("raw", ["04-2694280", "042694280", " 04-269 4280 "])
    def test_same_key_for_any_hyphenation(self, raw):
        assert ein_match_key(raw) == "042694280"

    @pytest.mark.parametrize("raw", [None, "", "  ", "-"])
    def test_blank_has_no_key(self, raw):
        assert ein_match_key(raw) is None

    def test_malformed_value_still_has_key(self):
        """Malformed tax IDs only match identical malformed values."""
        assert ein_match_key("12-345") == "12345"

    def test_compare_eins(self):
        assert compare_eins("04-2694280", "042694280")
        assert not compare_eins("04-2694280", "13-3433452")
        assert not compare_eins(None, None)


class TestValidateAndFormat:
    def test_valid(self):
        assert validate_and_format("042694280") == (True, "04-2694280", None)

    def test_wrong_length(self):
        assert validate_and_format("12345") == (False, None, "EIN must be exactly 9 digits (got 5)")

    def test_letters_rejected(self):
        is_valid, formatted, error = validate_and_format("04-26942AB")
        assert not is_valid
        assert formatted is None
        assert "only contain digits" in error

    def test_all_same_digit(self):
        assert validate_and_format("111111111") == (False, None, "EIN cannot be all same digit")

    def test_bad_prefix(self):
        assert validate_and_format("001234567") == (False, None, "EIN prefix is not a valid IRS prefix")

    def test_empty(self):
        assert validate_and_format("") == (False, None, "EIN is required")
