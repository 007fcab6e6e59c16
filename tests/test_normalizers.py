"""
Tests for text preprocessing and amount/date normalization.

Run with: pytest tests/ -v
"""

from decimal import Decimal

import pytest

from invoice_parser.parser.normalizers import (
    CurrencyNormalizer,
    DateNormalizer,
    TextNormalizer,
    format_amount,
    normalize_date,
    to_minor_units,
    to_number,
)
from invoice_parser.parser.preprocessor import InvoicePreprocessor, preprocess


class TestToNumber:
    """The float conversion used by callers that need a plain number."""

    def test_european_format(self):
        assert to_number("1.234,56 €") == 1234.56

    def test_us_format(self):
        assert to_number("1,234.56") == 1234.56

    def test_empty_string(self):
        assert to_number("") == 0

    def test_none(self):
        assert to_number(None) == 0

    def test_simple_comma_decimal(self):
        assert to_number("49,99 €") == 49.99

    def test_dollar_amount(self):
        assert to_number("$97.17") == 97.17

    @pytest.mark.parametrize("value", [
        "abc", "€", "--", "1.2.3,4,5", ",,,", "1,2,3", "()", "N/A", "   ", "€ -",
    ])
    def test_never_raises(self, value):
        result = to_number(value)
        assert isinstance(result, float)


class TestCurrencyNormalizer:
    """Tests for amount parsing and minor-unit arithmetic."""

    def setup_method(self):
        self.normalizer = CurrencyNormalizer()

    def test_parse_thousands_dots(self):
        assert self.normalizer.parse_amount("1.234.567,89 €") == Decimal("1234567.89")

    def test_parse_thousands_commas_only(self):
        assert self.normalizer.parse_amount("¥1,234") == Decimal("1234")

    def test_parse_negative(self):
        assert self.normalizer.parse_amount("-5,00 €") == Decimal("-5.00")

    def test_parse_accounting_negative(self):
        assert self.normalizer.parse_amount("($12.50)") == Decimal("-12.50")

    def test_parse_no_digits(self):
        assert self.normalizer.parse_amount("EUR") is None

    def test_to_minor_units_usd(self):
        assert to_minor_units("$97.17", "USD") == 9717

    def test_to_minor_units_eur(self):
        assert to_minor_units("1.234,56 €", "EUR") == 123456

    def test_to_minor_units_jpy_has_no_decimals(self):
        assert to_minor_units("¥1,234", "JPY") == 1234

    def test_to_minor_units_unparsable(self):
        assert to_minor_units("n/a", "USD") is None

    def test_exponents(self):
        assert self.normalizer.exponent_for("JPY") == 0
        assert self.normalizer.exponent_for("EUR") == 2
        assert self.normalizer.exponent_for("XYZ") == 2

    def test_format_usd(self):
        assert format_amount(9717, "USD") == "$97.17"

    def test_format_eur(self):
        assert format_amount(123456, "EUR") == "1.234,56 €"

    def test_format_gbp(self):
        assert format_amount(1234, "GBP") == "£12.34"

    def test_format_jpy(self):
        assert format_amount(1234, "JPY") == "¥1,234"

    def test_format_chf(self):
        assert format_amount(1250, "CHF") == "CHF 12.50"

    def test_format_negative(self):
        assert format_amount(-500, "USD") == "-$5.00"

    def test_format_template_override(self):
        assert format_amount(4999, "EUR", "€{amount}") == "€49,99"

    def test_minor_round_trip_keeps_cents(self):
        minor = self.normalizer.decimal_to_minor(Decimal("0.1") + Decimal("0.2"), "USD")
        assert minor == 30
        assert self.normalizer.minor_to_decimal(minor, "USD") == Decimal("0.30")

    def test_extract_symbol(self):
        assert self.normalizer.extract_symbol("1.234,56 €") == "€"
        assert self.normalizer.extract_symbol("CHF 12.50") == "CHF"
        assert self.normalizer.extract_symbol("12.50") is None

    def test_extract_currency_code(self):
        assert self.normalizer.extract_currency_code("$5.00") == "USD"
        assert self.normalizer.extract_currency_code("12,00 EUR") == "EUR"
        assert self.normalizer.extract_currency_code("£3.00") == "GBP"


class TestDateNormalizer:
    """Tests for locale-aware date normalization."""

    def setup_method(self):
        self.normalizer = DateNormalizer()

    def test_english_month_first(self):
        assert self.normalizer.normalize("December 15, 2023") == "2023-12-15"

    def test_english_abbreviation(self):
        assert self.normalizer.normalize("Jan 5, 2024") == "2024-01-05"

    def test_german(self):
        assert self.normalizer.normalize("15. Dezember 2023", "de") == "2023-12-15"

    def test_german_umlaut_month(self):
        assert self.normalizer.normalize("1. März 2024", "de") == "2024-03-01"

    def test_french_premier(self):
        assert self.normalizer.normalize("1er mars 2024", "fr") == "2024-03-01"

    def test_spanish_de(self):
        assert self.normalizer.normalize("15 de marzo de 2024", "es") == "2024-03-15"

    def test_italian(self):
        assert self.normalizer.normalize("3 febbraio 2024", "it") == "2024-02-03"

    def test_japanese(self):
        assert self.normalizer.normalize("2024年3月15日", "ja") == "2024-03-15"

    def test_iso(self):
        assert self.normalizer.normalize("2024-03-15") == "2024-03-15"

    def test_numeric_day_first(self):
        assert self.normalizer.normalize("03.04.2024", "de") == "2024-04-03"

    def test_numeric_month_first_for_us(self):
        assert self.normalizer.normalize("03/04/2024", "us") == "2024-03-04"

    def test_numeric_swaps_impossible_day_first(self):
        assert self.normalizer.normalize("12/25/2023", "de") == "2023-12-25"

    def test_month_name_from_other_language(self):
        assert self.normalizer.normalize("15 Dezember 2023", "en") == "2023-12-15"

    def test_invalid_date(self):
        assert self.normalizer.normalize("not a date") is None

    def test_empty_input(self):
        assert self.normalizer.normalize("") is None
        assert self.normalizer.normalize(None) is None

    def test_module_function(self):
        assert normalize_date("16 juillet 2024", "fr") == "2024-07-16"


class TestTextNormalizer:

    def test_truncate(self):
        assert TextNormalizer.truncate("abcdefghij", 8) == "abcde..."

    def test_truncate_short(self):
        assert TextNormalizer.truncate("abc", 8) == "abc"


class TestPreprocessor:
    """Tests for encoding repair and whitespace cleanup."""

    def setup_method(self):
        self.preprocessor = InvoicePreprocessor()

    def test_empty_and_non_string(self):
        assert self.preprocessor.preprocess("") == ""
        assert self.preprocessor.preprocess(None) == ""
        assert self.preprocessor.preprocess(42) == ""

    def test_fixes_euro_mojibake(self):
        assert self.preprocessor.preprocess("Gesamt: 25,98 â‚¬") == "Gesamt: 25,98 €"

    def test_fixes_accents(self):
        assert self.preprocessor.preprocess("NumÃ©ro de commande") == "Numéro de commande"

    def test_whitespace_and_line_endings(self):
        raw = "Zwischensumme:\t\t25,98 €\r\n\r\n\r\n\r\nGesamt"
        assert self.preprocessor.preprocess(raw) == "Zwischensumme: 25,98 €\n\nGesamt"

    def test_keeps_line_structure(self):
        raw = "Line one\nLine two\nLine three"
        assert self.preprocessor.preprocess(raw).split("\n") == ["Line one", "Line two", "Line three"]

    def test_encoding_repair_can_be_disabled(self):
        preprocessor = InvoicePreprocessor(fix_encoding=False)
        assert "â‚¬" in preprocessor.preprocess("25,98 â‚¬")

    def test_module_function(self):
        assert preprocess("  a  b  ") == "a b"
