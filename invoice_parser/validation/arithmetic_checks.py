"""
Arithmetic Validation Module

Checks that the extracted amounts add up.

Checks Performed:
- Subtotal + Shipping + Tax ≈ Total
- Sum(line item totals) ≈ Subtotal
- Quantity × Unit Price ≈ Line Total (per item)

Why This Matters:
- A regex that grabbed a line-item amount instead of the invoice total
  still produces a perfectly formatted number
- Multi-shipment orders print one subtotal per shipment, so simple
  addition legitimately fails; those orders get a wider band

Design Philosophy:
- All sums run on integer minor units, never floats
- Mismatches are warnings, never errors
- Report the computed difference so a reviewer can judge it
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..parser.normalizers import CurrencyNormalizer
from .semantic_rules import FindingKind, ValidationFinding, ValidatorConfig

logger = logging.getLogger(__name__)


@dataclass
class TotalsCheck:
    """
    Outcome of the subtotal + shipping + tax comparison.

    Amounts are in minor units of the record's currency.
    """
    calculated: int
    total: int
    tolerance: Decimal
    is_complex: bool
    components: Dict[str, int] = field(default_factory=dict)

    @property
    def difference(self) -> int:
        return abs(self.calculated - self.total)

    @property
    def difference_percent(self) -> float:
        if not self.total:
            return 0.0
        return self.difference / self.total * 100

    @property
    def within_tolerance(self) -> bool:
        return self.difference <= self.tolerance

    def to_dict(self) -> Dict[str, Any]:
        return {
            'calculated': self.calculated,
            'total': self.total,
            'difference': self.difference,
            'difference_percent': round(self.difference_percent, 1),
            'tolerance': float(self.tolerance),
            'is_complex': self.is_complex,
            'components': self.components,
        }


class ArithmeticChecker:
    """
    Arithmetic validation for invoice records.

    Usage:
        checker = ArithmeticChecker()
        findings = checker.check(record, text)
        for finding in findings:
            print(finding.message)
    """

    def __init__(self, config: Optional[ValidatorConfig] = None):
        self.config = config or ValidatorConfig()
        self.currency = CurrencyNormalizer()
        self._anchors = [re.compile(p) for p in self.config.subtotal_anchors]

    def check(self, record, text: Optional[str] = None) -> List[ValidationFinding]:
        findings = []
        totals = self.check_totals(record, text)
        if totals and not totals.within_tolerance:
            findings.append(self._totals_finding(totals, record.currency))
        findings.extend(self.check_items(record))
        return findings

    def _minor(self, value: Optional[str], currency: Optional[str]) -> Optional[int]:
        if not value:
            return None
        return self.currency.to_minor_units(value, currency)

    def is_complex_order(self, subtotal: int, total: int, text: Optional[str]) -> bool:
        """
        Multi-shipment heuristic.

        Repeated subtotal anchors in the text, or a subtotal far above the
        total, suggest several shipments summarized on one invoice.
        """
        if text:
            for anchor in self._anchors:
                if len(anchor.findall(text)) > self.config.complex_anchor_count:
                    return True
        return subtotal > total * self.config.complex_subtotal_ratio

    def check_totals(self, record, text: Optional[str] = None) -> Optional[TotalsCheck]:
        """
        Compare subtotal + shipping + tax with the total.

        Returns None when there is no positive total to compare against.
        """
        currency = record.currency
        total = self._minor(record.total, currency)
        if not total or total <= 0:
            return None

        components = {
            name: self._minor(getattr(record, name), currency) or 0
            for name in ('subtotal', 'shipping', 'tax')
        }
        calculated = sum(components.values())

        scale = Decimal(10) ** self.currency.exponent_for(currency or self.currency.extract_currency_code(record.total))
        base = max(
            Decimal(total) * Decimal(str(self.config.tolerance_ratio)),
            Decimal(str(self.config.tolerance_floor)) * scale,
        )
        is_complex = self.is_complex_order(components['subtotal'], total, text)
        if is_complex:
            tolerance = max(
                base * self.config.complex_multiplier,
                Decimal(total) * Decimal(str(self.config.complex_floor_ratio)),
            )
        else:
            tolerance = base

        return TotalsCheck(calculated, total, tolerance, is_complex, components)

    def _totals_finding(self, check: TotalsCheck, currency: Optional[str]) -> ValidationFinding:
        calculated = self.currency.minor_to_decimal(check.calculated, currency)
        total = self.currency.minor_to_decimal(check.total, currency)
        difference = self.currency.minor_to_decimal(check.difference, currency)

        message = (
            f"{'Complex order: ' if check.is_complex else ''}"
            f"Calculated total ({calculated:.2f}) differs from extracted total ({total:.2f}) "
            f"by {difference:.2f} ({check.difference_percent:.1f}%)"
            f"{' (multi-shipment order may have complex pricing)' if check.is_complex else ''}"
        )
        logger.debug(message)

        return ValidationFinding(
            'mathematical_inconsistency',
            FindingKind.WARNING,
            'low' if check.is_complex else 'medium',
            message,
            ['subtotal', 'shipping', 'tax', 'total'],
            penalty=5 if check.is_complex else 10,
            details=check.to_dict(),
        )

    def check_items(self, record) -> List[ValidationFinding]:
        """Per-item quantity × unit price, then sum of items vs subtotal."""
        if not record.items:
            return []

        findings = []
        tolerance = Decimal(str(self.config.item_tolerance))

        for index, item in enumerate(record.items):
            expected = item.unit_price * item.quantity
            if abs(expected - item.total_price) >= tolerance:
                findings.append(ValidationFinding(
                    'line_item_mismatch', FindingKind.WARNING, 'low',
                    f"Item {index + 1}: {item.quantity} × {item.unit_price} = {expected}, "
                    f"but line total is {item.total_price}",
                    [f'items[{index}]'], penalty=5,
                ))

        subtotal = self.currency.parse_amount(record.subtotal)
        if subtotal and subtotal > 0:
            items_total = sum((item.total_price for item in record.items), Decimal('0'))
            if abs(items_total - subtotal) > tolerance:
                findings.append(ValidationFinding(
                    'item_subtotal_mismatch', FindingKind.WARNING, 'low',
                    f"Sum of item prices ({items_total:.2f}) doesn't match subtotal ({subtotal:.2f})",
                    ['items', 'subtotal'], penalty=5,
                ))

        return findings
