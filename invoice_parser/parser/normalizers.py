"""
Normalizers Module

This module turns locale-formatted invoice strings into canonical values.
Every financial check in the package goes through here, so the rules are
deterministic: the same input always yields the same output.

What normalization does:
- Amounts → Decimal / integer minor units ("1.234,56 €" → 123456 cents)
- Minor units → locale-formatted strings at output boundaries
- Dates → ISO format (YYYY-MM-DD) across en/de/fr/es/it/ja grammars
- Whitespace → single spaces, line structure preserved

Why this matters:
Amazon invoices arrive in many locales with different separator conventions:
- "$1,234.56", "1.234,56 €", "CHF 1'234.50", "¥1,234"
- "December 15, 2023", "15. Dezember 2023", "1er novembre 2024", "2024年3月5日"

Floats are never used for arithmetic. Amounts are parsed into Decimal and
carried as integer minor units; formatting happens only when a value leaves
the package.
"""

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from loguru import logger


class TextNormalizer:
    """Normalizes text values."""

    @staticmethod
    def normalize_whitespace(text: str) -> str:
        """
        Normalize whitespace in text.

        - Collapse runs of spaces/tabs to a single space
        - Normalize line endings
        - Strip trailing spaces on each line
        - Collapse 3+ blank lines
        """
        if not text:
            return ""

        text = text.replace('\r\n', '\n').replace('\r', '\n')
        text = re.sub(r'[^\S\n]+', ' ', text)
        text = '\n'.join(line.rstrip() for line in text.split('\n'))
        text = re.sub(r'\n{3,}', '\n\n', text)

        return text.strip()

    @staticmethod
    def truncate(text: str, max_length: int, suffix: str = '...') -> str:
        """Truncate text to max length, adding suffix if truncated."""
        if not text or len(text) <= max_length:
            return text

        return text[:max_length - len(suffix)] + suffix


@dataclass(frozen=True)
class MoneyFormat:
    """How a currency is rendered at output boundaries."""
    code: str
    template: str           # e.g. "${amount}" or "{amount} €"
    decimal_sep: str = '.'
    thousands_sep: str = ','
    exponent: int = 2       # minor-unit exponent (JPY has none)


class CurrencyNormalizer:
    """
    Parses and formats money values.

    Usage:
        normalizer = CurrencyNormalizer()
        normalizer.to_number("1.234,56 €")          # 1234.56
        normalizer.to_minor_units("$97.17", "USD")   # 9717
        normalizer.format_amount(123456, "EUR")      # "1.234,56 €"
    """

    SYMBOL_TO_CODE = {
        '$': 'USD',
        '€': 'EUR',
        '£': 'GBP',
        '¥': 'JPY',
        '円': 'JPY',
        'CHF': 'CHF',
        'Fr': 'CHF',
    }

    FORMATS = {
        'USD': MoneyFormat('USD', '${amount}'),
        'CAD': MoneyFormat('CAD', '${amount}'),
        'AUD': MoneyFormat('AUD', '${amount}'),
        'GBP': MoneyFormat('GBP', '£{amount}'),
        'EUR': MoneyFormat('EUR', '{amount} €', decimal_sep=',', thousands_sep='.'),
        'CHF': MoneyFormat('CHF', 'CHF {amount}', thousands_sep="'"),
        'JPY': MoneyFormat('JPY', '¥{amount}', exponent=0),
    }

    SYMBOL_PATTERN = re.compile(r'([$€£¥]|CHF|Fr)')

    def parse_amount(self, value: Optional[str]) -> Optional[Decimal]:
        """
        Parse a locale-formatted amount into a Decimal.

        Handles:
        - Currency symbols and codes ($, €, CHF, EUR, ...)
        - Thousands separators (1,234 / 1.234 / 1 234 / 1'234)
        - Decimal separators (1.50 / 1,50)
        - Leading minus and accounting parentheses for negatives

        Returns:
            Decimal value, or None when the string carries no digits
        """
        if value is None:
            return None

        value = str(value).strip()
        if not any(c.isdigit() for c in value):
            return None

        is_negative = value.startswith('-') or ('(' in value and ')' in value)

        cleaned = re.sub(r'[^\d.,]', '', value)
        cleaned = self._normalize_number_format(cleaned)

        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            logger.debug(f"Could not parse amount: {value!r}")
            return None

        return -abs(result) if is_negative else result

    def _normalize_number_format(self, value: str) -> str:
        """
        Resolve thousand/decimal separator conventions.

        - Both '.' and ',' present: the right-most one is the decimal mark
        - Only ',' present: decimal iff it occurs once with 1-2 digits after it
        - Only '.' present: several dots are thousands separators
        """
        value = value.strip('.,')

        dots = value.count('.')
        commas = value.count(',')

        if dots and commas:
            if value.rfind(',') > value.rfind('.'):
                # European format (1.234,56)
                return value.replace('.', '').replace(',', '.')
            # US format (1,234.56)
            return value.replace(',', '')

        if commas:
            after_comma = len(value) - value.rfind(',') - 1
            if commas == 1 and 1 <= after_comma <= 2:
                return value.replace(',', '.')
            return value.replace(',', '')

        if dots > 1:
            return value.replace('.', '')

        return value

    def to_number(self, value: Optional[str]) -> float:
        """
        Convert an amount string to a float.

        Never raises. Unparsable or empty input yields 0.
        """
        try:
            parsed = self.parse_amount(value)
        except (TypeError, ValueError) as e:
            logger.debug(f"Amount conversion failed for {value!r}: {e}")
            return 0.0

        return float(parsed) if parsed is not None else 0.0

    def exponent_for(self, currency: Optional[str]) -> int:
        """Minor-unit exponent of a currency (2 unless known otherwise)."""
        fmt = self.FORMATS.get((currency or '').upper())
        return fmt.exponent if fmt else 2

    def to_minor_units(
        self,
        value: Optional[str],
        currency: Optional[str] = None,
    ) -> Optional[int]:
        """
        Convert an amount string to integer minor units.

        Args:
            value: Locale-formatted amount
            currency: ISO code; detected from the string when omitted

        Returns:
            Integer amount in minor units, or None if unparsable
        """
        parsed = self.parse_amount(value)
        if parsed is None:
            return None

        currency = currency or self.extract_currency_code(value)
        return self.decimal_to_minor(parsed, currency)

    def decimal_to_minor(self, amount: Decimal, currency: Optional[str] = None) -> int:
        """Scale a Decimal amount into integer minor units."""
        scale = Decimal(10) ** self.exponent_for(currency)
        return int((amount * scale).quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    def minor_to_decimal(self, minor: int, currency: Optional[str] = None) -> Decimal:
        """Inverse of decimal_to_minor."""
        return Decimal(minor) / (Decimal(10) ** self.exponent_for(currency))

    def format_amount(
        self,
        minor: int,
        currency: str,
        template: Optional[str] = None,
    ) -> str:
        """
        Render integer minor units with the currency's conventions.

        Args:
            minor: Amount in minor units
            currency: ISO currency code
            template: Optional override, e.g. "€{amount}"
        """
        fmt = self.FORMATS.get((currency or '').upper(), MoneyFormat(currency or '', '{amount}'))
        sign = '-' if minor < 0 else ''
        minor = abs(minor)

        if fmt.exponent:
            whole, frac = divmod(minor, 10 ** fmt.exponent)
            frac_str = f"{fmt.decimal_sep}{frac:0{fmt.exponent}d}"
        else:
            whole, frac_str = minor, ''

        grouped = f"{whole:,}".replace(',', fmt.thousands_sep)
        return sign + (template or fmt.template).format(amount=grouped + frac_str)

    def extract_symbol(self, value: Optional[str]) -> Optional[str]:
        """Return the first currency symbol found in an amount string."""
        if not value:
            return None
        match = self.SYMBOL_PATTERN.search(str(value))
        return match.group(0) if match else None

    def extract_currency_code(self, value: Optional[str]) -> Optional[str]:
        """
        Extract a 3-letter ISO currency code from a value string.

        ISO codes win over symbols; '$' maps to USD.
        """
        if not value:
            return None

        upper = str(value).upper()
        for code in ('EUR', 'USD', 'GBP', 'JPY', 'CHF', 'CAD', 'AUD'):
            if code in upper:
                return code

        symbol = self.extract_symbol(value)
        return self.SYMBOL_TO_CODE.get(symbol) if symbol else None


class DateNormalizer:
    """
    Normalizes locale-formatted order dates to ISO format.

    Month names are resolved against the requested language first, then
    against every known language, so "15 Dezember 2023" still parses when
    the caller passed language='en'.
    """

    MONTHS = {
        'en': {
            'january': 1, 'february': 2, 'march': 3, 'april': 4, 'may': 5,
            'june': 6, 'july': 7, 'august': 8, 'september': 9, 'october': 10,
            'november': 11, 'december': 12,
            'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'jun': 6, 'jul': 7,
            'aug': 8, 'sep': 9, 'sept': 9, 'oct': 10, 'nov': 11, 'dec': 12,
        },
        'de': {
            'januar': 1, 'jänner': 1, 'februar': 2, 'märz': 3, 'maerz': 3,
            'april': 4, 'mai': 5, 'juni': 6, 'juli': 7, 'august': 8,
            'september': 9, 'oktober': 10, 'november': 11, 'dezember': 12,
            'okt': 10, 'dez': 12,
        },
        'fr': {
            'janvier': 1, 'février': 2, 'fevrier': 2, 'mars': 3, 'avril': 4,
            'mai': 5, 'juin': 6, 'juillet': 7, 'août': 8, 'aout': 8,
            'septembre': 9, 'octobre': 10, 'novembre': 11, 'décembre': 12,
            'decembre': 12,
        },
        'es': {
            'enero': 1, 'febrero': 2, 'marzo': 3, 'abril': 4, 'mayo': 5,
            'junio': 6, 'julio': 7, 'agosto': 8, 'septiembre': 9,
            'setiembre': 9, 'octubre': 10, 'noviembre': 11, 'diciembre': 12,
        },
        'it': {
            'gennaio': 1, 'febbraio': 2, 'marzo': 3, 'aprile': 4,
            'maggio': 5, 'giugno': 6, 'luglio': 7, 'agosto': 8,
            'settembre': 9, 'ottobre': 10, 'novembre': 11, 'dicembre': 12,
        },
    }

    # Locales whose slash dates are month-first
    MONTH_FIRST = {'us'}

    _JAPANESE = re.compile(r'(\d{4})\s*年\s*(\d{1,2})\s*月\s*(\d{1,2})\s*日')
    _ISO = re.compile(r'^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})$')
    _DAY_FIRST = re.compile(r'^(\d{1,2})(?:er|º|°)?\.?\s+([^\W\d_]+)\.?,?\s+(\d{4})$')
    _MONTH_FIRST = re.compile(r'^([^\W\d_]+)\.?\s+(\d{1,2}),?\s+(\d{4})$')
    _NUMERIC = re.compile(r'^(\d{1,2})[./-](\d{1,2})[./-](\d{4})$')

    def normalize(self, value: Optional[str], language: str = 'en') -> Optional[str]:
        """
        Normalize a date string to YYYY-MM-DD.

        Args:
            value: Date as it appears on the invoice
            language: Language/locale hint (en, de, fr, es, it, ja, us, ...)

        Returns:
            ISO date string or None
        """
        if not value:
            return None

        value = str(value).strip()
        language = (language or 'en').lower()

        parsed = self._parse(value, language)
        if parsed:
            return parsed.isoformat()

        # dateutil as last resort
        try:
            from dateutil import parser as date_parser
            result = date_parser.parse(
                value,
                dayfirst=language not in self.MONTH_FIRST,
            )
            return result.date().isoformat()
        except (ValueError, OverflowError):
            pass

        logger.debug(f"Could not parse date: {value!r}")
        return None

    def _parse(self, value: str, language: str) -> Optional[date]:
        match = self._JAPANESE.search(value)
        if match:
            return self._make_date(*match.groups())

        # "15 de marzo de 2024"
        value = re.sub(r'\s+del?\s+', ' ', value, flags=re.IGNORECASE)

        match = self._ISO.match(value)
        if match:
            return self._make_date(*match.groups())

        match = self._DAY_FIRST.match(value)
        if match:
            day, month_name, year = match.groups()
            month = self.month_number(month_name, language)
            if month:
                return self._make_date(year, month, day)

        match = self._MONTH_FIRST.match(value)
        if match:
            month_name, day, year = match.groups()
            month = self.month_number(month_name, language)
            if month:
                return self._make_date(year, month, day)

        match = self._NUMERIC.match(value)
        if match:
            first, second, year = match.groups()
            if language in self.MONTH_FIRST:
                first, second = second, first
            parsed = self._make_date(year, second, first)
            if parsed is None:
                # 12/25/2023 in a day-first locale
                parsed = self._make_date(year, first, second)
            return parsed

        return None

    def month_number(self, name: str, language: str = 'en') -> Optional[int]:
        """Look up a month name, preferring the given language."""
        key = name.lower().rstrip('.')
        lang = language[:2]

        if lang in self.MONTHS and key in self.MONTHS[lang]:
            return self.MONTHS[lang][key]

        for table in self.MONTHS.values():
            if key in table:
                return table[key]
        return None

    @staticmethod
    def _make_date(year, month, day) -> Optional[date]:
        try:
            return date(int(year), int(month), int(day))
        except ValueError:
            return None


# Convenience functions

_currency = CurrencyNormalizer()
_dates = DateNormalizer()


def to_number(value: Optional[str]) -> float:
    """Quick function to convert an amount string to a number (never raises)."""
    return _currency.to_number(value)


def to_minor_units(value: Optional[str], currency: Optional[str] = None) -> Optional[int]:
    """Quick function to convert an amount string to integer minor units."""
    return _currency.to_minor_units(value, currency)


def format_amount(minor: int, currency: str, template: Optional[str] = None) -> str:
    """Quick function to format minor units for output."""
    return _currency.format_amount(minor, currency, template)


def normalize_date(value: Optional[str], language: str = 'en') -> Optional[str]:
    """Quick function to normalize a date to ISO format."""
    return _dates.normalize(value, language)
