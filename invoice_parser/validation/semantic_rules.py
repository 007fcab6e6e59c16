"""
Semantic Validation Rules

Field-level checks on an extracted invoice record: order number format,
order date plausibility, currency consistency and data completeness.

Why Semantic Validation:
- A record can satisfy the schema and still be wrong
- "$1.234,56" is a string with digits but not a valid dollar amount
- A year of 1999 on an Amazon order usually means the wrong date was captured
- An item table that produced nothing while a subtotal exists points at a
  layout the extractor did not understand

Design Philosophy:
- Flag issues, don't silently fix
- Findings never raise; they are collected and scored
- Every finding carries its own score penalty so callers can see why a
  record scored what it did
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from ..parser.normalizers import CurrencyNormalizer
from ..parser.validators import is_valid_order_number

logger = logging.getLogger(__name__)


class FindingKind(Enum):
    """Errors make a record invalid; warnings only lower its score."""
    ERROR = "error"
    WARNING = "warning"


@dataclass
class ValidationFinding:
    """
    A single issue found while validating a record.

    `penalty` is subtracted from the starting score of 100.
    """
    type: str
    kind: FindingKind
    severity: str               # 'low' | 'medium' | 'high' | 'info'
    message: str
    fields: List[str] = field(default_factory=list)
    penalty: int = 0
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.kind == FindingKind.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'severity': self.severity,
            'message': self.message,
            'fields': self.fields,
            'penalty': self.penalty,
            'details': self.details,
        }

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.type}: {self.message}"


@dataclass
class ValidatorConfig:
    """Thresholds for validation (settings.yaml → validator)."""
    tolerance_ratio: float = 0.01
    tolerance_floor: float = 0.10
    complex_multiplier: int = 3
    complex_floor_ratio: float = 0.05
    subtotal_anchors: List[str] = field(default_factory=lambda: [
        r'Item\(s\) Subtotal', 'Zwischensumme', 'Sous-total',
    ])
    complex_anchor_count: int = 1
    complex_subtotal_ratio: float = 2.0
    item_tolerance: float = 0.10
    low_total_ratio: float = 0.8
    high_total_amount: float = 10000
    low_total_amount: float = 1
    very_old_year: int = 2010
    future_year_slack: int = 1

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'ValidatorConfig':
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


# Accepted renderings of an invoice-level amount
CURRENCY_FORMATS = [re.compile(p) for p in [
    r'^\$[\d,]*\d+\.\d{2}$',                # $1,234.56
    r'^€[\d.]*\d+,\d{2}$',                  # €1.234,56
    r'^[\d.]*\d+,\d{2}\s*€$',               # 1.234,56 €
    r'^[\d,]*\d+\.\d{2}\s*€$',              # 1,234.56 €
    r'^[\d\s.]*\d+,\d{2}\s*\$$',            # 1 234,56 $
    r'^£[\d,]*\d+\.\d{2}$',                 # £1,234.56
    r'^¥[\d,]*\d+$',                        # ¥1,234
    r"^CHF\s[\d',]*\d+(\.\d{2})?$",         # CHF 1'234.50
    r"^Fr\.?\s[\d',]*\d+(\.\d{2})?$",       # Fr. 1234.50
    r'^USD\s[\d,]*\d+(\.\d{2})?$',
    r'^EUR\s[\d.,]*\d+([,.]\d{2})?$',
    r'^GBP\s[\d,]*\d+(\.\d{2})?$',
]]

# Text that shows an item section was present
ITEM_EVIDENCE = re.compile(
    r'ASIN:\s*[A-Z0-9]{10}'
    r'|^\s*\|.*\d+[.,]\d{2}.*\|'
    r'|^\s*\d+\s*(?:x|×)\s+\S'
    r'|\b(?:Items Ordered|Qty|Quantity|Menge|Quantité|Cantidad|Quantità|数量)\b',
    re.IGNORECASE | re.MULTILINE,
)

PLACEHOLDER_DATE = re.compile(r'undefined|null|none|nan', re.IGNORECASE)

MONEY_FIELDS = ('subtotal', 'shipping', 'tax', 'total')


class SemanticRules:
    """
    Field, date, currency and completeness rules.

    Usage:
        rules = SemanticRules(ValidatorConfig())
        findings = rules.check_all(record, text)
    """

    def __init__(self, config: Optional[ValidatorConfig] = None, today: Optional[date] = None):
        self.config = config or ValidatorConfig()
        self.today = today
        self.currency = CurrencyNormalizer()

    def check_all(self, record, text: Optional[str] = None) -> List[ValidationFinding]:
        findings: List[ValidationFinding] = []
        findings.extend(self.check_order_number(record))
        findings.extend(self.check_date(record))
        findings.extend(self.check_amounts(record))
        findings.extend(self.check_currency(record))
        findings.extend(self.check_completeness(record, text))
        return findings

    def check_order_number(self, record) -> List[ValidationFinding]:
        if not record.order_number:
            return [ValidationFinding(
                'missing_critical_field', FindingKind.ERROR, 'high',
                "Critical field 'order_number' is missing",
                ['order_number'], penalty=25,
            )]

        if not is_valid_order_number(record.order_number):
            return [ValidationFinding(
                'format_error', FindingKind.ERROR, 'medium',
                f"Invalid order number format: {record.order_number}",
                ['order_number'], penalty=15,
            )]
        return []

    def check_date(self, record) -> List[ValidationFinding]:
        if not record.order_date:
            # Without an order number either, nothing identifies the order
            penalty = 20 if not record.order_number else 10
            return [ValidationFinding(
                'missing_date', FindingKind.WARNING, 'high' if penalty == 20 else 'medium',
                'Order date is missing', ['order_date'], penalty=penalty,
            )]

        if PLACEHOLDER_DATE.search(str(record.order_date)):
            return [ValidationFinding(
                'invalid_date_format', FindingKind.ERROR, 'high',
                'Date contains invalid placeholder values', ['order_date'], penalty=20,
            )]

        year = self._year_of(record)
        if year is None:
            return [ValidationFinding(
                'unparsed_date', FindingKind.WARNING, 'low',
                f"Order date could not be normalized: {record.order_date}",
                ['order_date'], penalty=5,
            )]

        current_year = (self.today or date.today()).year
        if year > current_year + self.config.future_year_slack:
            return [ValidationFinding(
                'future_date', FindingKind.WARNING, 'low',
                f"Order date appears to be in the future: {record.order_date}",
                ['order_date'], penalty=5,
            )]
        if year < self.config.very_old_year:
            return [ValidationFinding(
                'very_old_date', FindingKind.WARNING, 'low',
                f"Order date appears to be very old: {record.order_date}",
                ['order_date'], penalty=5,
            )]
        return []

    @staticmethod
    def _year_of(record) -> Optional[int]:
        if record.order_date_iso:
            return int(record.order_date_iso[:4])
        match = re.search(r'\b((?:19|20)\d{2})\b', str(record.order_date))
        return int(match.group(1)) if match else None

    def check_amounts(self, record) -> List[ValidationFinding]:
        """Money fields must parse; total must be present and plausible."""
        findings = []

        for name in MONEY_FIELDS:
            value = getattr(record, name)
            if value and self.currency.parse_amount(value) is None:
                findings.append(ValidationFinding(
                    'non_numeric_amount', FindingKind.ERROR, 'medium',
                    f"{name} contains non-numeric value: {value}",
                    [name], penalty=10,
                ))

        if not record.total:
            findings.append(ValidationFinding(
                'missing_critical_field', FindingKind.ERROR, 'high',
                "Critical field 'total' is missing", ['total'], penalty=20,
            ))
            return findings

        total = self.currency.parse_amount(record.total)
        subtotal = self.currency.parse_amount(record.subtotal)
        if total is None:
            return findings

        if subtotal is not None and total < subtotal * Decimal(str(self.config.low_total_ratio)):
            findings.append(ValidationFinding(
                'data_consistency', FindingKind.WARNING, 'medium',
                f"Total ({record.total}) seems too low compared to subtotal ({record.subtotal})",
                ['total', 'subtotal'], penalty=5,
            ))

        if total > Decimal(str(self.config.high_total_amount)):
            findings.append(ValidationFinding(
                'high_total_amount', FindingKind.WARNING, 'low',
                f"Total amount is unusually high: {total:.2f}", ['total'], penalty=5,
            ))
        elif 0 < total < Decimal(str(self.config.low_total_amount)):
            findings.append(ValidationFinding(
                'low_total_amount', FindingKind.WARNING, 'low',
                f"Total amount is unusually low: {total:.2f}", ['total'], penalty=5,
            ))

        return findings

    def check_currency(self, record) -> List[ValidationFinding]:
        """
        Invoice-level fields must agree on a currency symbol.

        Items carry ISO codes; if only they disagree the finding is
        informational and costs nothing.
        """
        findings = []

        symbols = set()
        for name in MONEY_FIELDS:
            symbol = self.currency.extract_symbol(getattr(record, name))
            if symbol:
                symbols.add(symbol)

        if len(symbols) > 1:
            findings.append(ValidationFinding(
                'inconsistent_invoice_currencies', FindingKind.WARNING, 'medium',
                f"Inconsistent currencies in invoice fields: {', '.join(sorted(symbols))}",
                list(MONEY_FIELDS), penalty=10,
            ))
        else:
            item_currencies = {item.currency for item in record.items if item.currency}
            if len(item_currencies) > 1:
                findings.append(ValidationFinding(
                    'multiple_currencies', FindingKind.WARNING, 'info',
                    'Items have different currencies but invoice totals are consistent',
                    ['items'], penalty=0,
                ))

        for name in MONEY_FIELDS:
            value = getattr(record, name)
            if value and not any(p.match(value.strip()) for p in CURRENCY_FORMATS):
                findings.append(ValidationFinding(
                    'invalid_currency_format', FindingKind.WARNING, 'medium',
                    f"Invalid currency format in {name}: {value}",
                    [name], penalty=10,
                ))

        return findings

    def check_completeness(self, record, text: Optional[str] = None) -> List[ValidationFinding]:
        """
        Items missing while a subtotal exists.

        Only reported when the source text shows an item section; an
        order summary without itemization is a legitimate document.
        """
        findings = []

        if record.items:
            for index, item in enumerate(record.items):
                if not item.description or not item.description.strip():
                    findings.append(ValidationFinding(
                        'data_quality', FindingKind.ERROR, 'medium',
                        f"Item {index + 1} missing description",
                        [f'items[{index}].description'], penalty=5,
                    ))
            return findings

        subtotal = self.currency.parse_amount(record.subtotal)
        if not subtotal or subtotal <= 0 or not text:
            return findings

        evidence = ITEM_EVIDENCE.findall(text)
        if not evidence:
            logger.debug("No items and no item section in text; not flagging")
            return findings

        anchored = any(e.upper().startswith('ASIN') for e in evidence)
        findings.append(ValidationFinding(
            'no_items_found', FindingKind.WARNING, 'high' if anchored else 'medium',
            'No items were extracted from the invoice despite having a subtotal',
            ['items'], penalty=15 if anchored else 5,
        ))
        return findings
