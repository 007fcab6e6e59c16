"""
Base Extractor

Shared field-extraction logic for every locale.

A locale extractor is the base class plus a locale code: the ordered
pattern ladders come from the rule table (config/rules.yaml), so
subclasses only override what genuinely differs between locales, usually
text preparation or item extraction.

Field contract:
- Every extract_* method is independently callable on preprocessed text
- Each returns a value or None (items: a possibly empty list)
- None of them raise on malformed input; a missing field is the
  validator's business, not an exception
- Candidates are tried in rule order and the first ACCEPTED one wins.
  An order number candidate that is not exactly 3-7-7 digits is skipped,
  never returned as partial.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from ..parser.normalizers import CurrencyNormalizer, DateNormalizer
from ..parser.rules import LocaleRules, RuleTable, load_settings
from ..parser.validators import enforce_schema, is_valid_order_number
from ..tables.line_items import LineItemExtractor
from ..validation import InvoiceValidator, ValidationResult, ValidatorConfig
from .models import CategorizedError, InvoiceRecord, LineItem, PartialRecord, RecoverySuggestion
from .recovery import ErrorRecovery

logger = logging.getLogger(__name__)


class BaseExtractor:
    """
    Locale extractor built on a rule table entry.

    Subclasses set `code` to a locale key of the rule table.

    Usage:
        extractor = GermanExtractor()
        record = extractor.extract(text)
        print(record.order_number, record.total, record.validation.score)
    """

    code: str = ''

    def __init__(
        self,
        rules: Optional[LocaleRules] = None,
        settings: Optional[dict] = None,
    ):
        """
        Args:
            rules: Resolved locale rules (defaults to the packaged table)
            settings: Thresholds as returned by load_settings()
        """
        self.rules = rules or RuleTable.default().get(self.code)
        self.settings = settings if settings is not None else load_settings()

        self.currency = CurrencyNormalizer()
        self.dates = DateNormalizer()
        self.validator = InvoiceValidator(ValidatorConfig.from_dict(self.settings.get('validator')))

        recovery = self.settings.get('recovery', {}) or {}
        self.recovery = ErrorRecovery(
            self,
            usable_threshold=recovery.get('usable_threshold', 0.3),
            high_confidence=recovery.get('high_confidence', 0.7),
        )

    @property
    def name(self) -> str:
        return self.rules.name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.rules.code!r})"

    # --- main entry -----------------------------------------------------

    def prepare(self, text: str) -> str:
        """Locale-specific cleanup applied before any field is extracted."""
        return text

    def extract(self, text: str) -> InvoiceRecord:
        """
        Extract, schema-check and validate one invoice.

        Args:
            text: Preprocessed invoice text

        Returns:
            Frozen InvoiceRecord with its ValidationResult attached
        """
        text = self.prepare(text) if isinstance(text, str) else ''

        data = self.extract_fields(text)
        record = InvoiceRecord.from_dict(enforce_schema(data))
        return record.with_changes(validation=self.validate(record, text))

    def extract_fields(self, text: str) -> Dict[str, Any]:
        """Run every field extractor and assemble a raw record dict."""
        items = self.extract_items(text)
        order_date = self.extract_order_date(text)

        subtotal = self.extract_subtotal(text)
        if subtotal is None and items:
            subtotal = self.subtotal_from_items(items)

        return {
            'order_number': self.extract_order_number(text),
            'order_date': order_date,
            'order_date_iso': self.dates.normalize(order_date, self.rules.language) if order_date else None,
            'items': [asdict(item) for item in items],
            'subtotal': subtotal,
            'shipping': self.extract_shipping(text),
            'tax': self.extract_tax(text),
            'discount': self.extract_discount(text),
            'total': self.extract_total(text),
            'currency': self.rules.currency,
            'locale': self.rules.code,
            'format': self.rules.format,
            'subtype': self.rules.subtype,
        }

    # --- field extractors -----------------------------------------------

    def extract_order_number(self, text: str) -> Optional[str]:
        for rule, value in self.rules.candidates('order_number', text):
            if is_valid_order_number(value):
                return value
            logger.debug(f"Rejected order number candidate {value!r} ({rule.locale})")
        return None

    def extract_order_date(self, text: str) -> Optional[str]:
        """
        First date candidate that normalizes to a real calendar date.

        Locales flagged `iso_dates` report the ISO form; the others keep
        the date as printed.
        """
        for rule, value in self.rules.candidates('order_date', text):
            iso = self.dates.normalize(value, self.rules.language)
            if iso:
                return iso if self.rules.iso_dates else value
            logger.debug(f"Rejected date candidate {value!r} ({rule.locale})")
        return None

    def extract_items(self, text: str) -> List[LineItem]:
        if not text:
            return []
        extractor = LineItemExtractor(
            self.rules.items,
            currency=self.rules.currency,
            default_description=self.rules.default_description,
        )
        return extractor.extract(text)

    def extract_subtotal(self, text: str) -> Optional[str]:
        return self._extract_money('subtotal', text)

    def extract_shipping(self, text: str) -> Optional[str]:
        return self._extract_money('shipping', text)

    def extract_tax(self, text: str) -> Optional[str]:
        return self._extract_money('tax', text)

    def extract_discount(self, text: str) -> Optional[str]:
        return self._extract_money('discount', text)

    def extract_total(self, text: str) -> Optional[str]:
        return self._extract_money('total', text)

    def _extract_money(self, field_name: str, text: str) -> Optional[str]:
        for _, value in self.rules.candidates(field_name, text):
            if self.currency.parse_amount(value) is not None:
                return self.rules.money(value)
        logger.debug(f"{self.rules.code}: no {field_name} found")
        return None

    def subtotal_from_items(self, items: List[LineItem]) -> Optional[str]:
        """
        Sum item line totals and render them in the locale's format.

        The sum is taken in integer minor units.
        """
        minor = sum(
            self.currency.decimal_to_minor(item.total_price, self.rules.currency)
            for item in items
        )
        if minor <= 0:
            return None

        logger.warning(f"Subtotal not found; computed from {len(items)} items")
        return self.currency.format_amount(minor, self.rules.currency, self.rules.money_template)

    # --- validation and recovery ----------------------------------------

    def validate(self, record: InvoiceRecord, text: Optional[str] = None) -> ValidationResult:
        return self.validator.validate(record, text)

    def categorize_error(self, error: BaseException, context: str = '') -> CategorizedError:
        return self.recovery.categorize_error(error, context)

    def extract_partial(self, text: str, original_error: Optional[BaseException] = None) -> PartialRecord:
        return self.recovery.extract_partial(text, original_error)

    def suggest_recovery(
        self,
        error: CategorizedError,
        partial: PartialRecord,
    ) -> List[RecoverySuggestion]:
        return self.recovery.suggest_recovery(error, partial)
