"""
Line-Oriented Item Extraction

Used by locales whose item lists survive text extraction as one product per
line ("2 x USB-C Cable $12.99", "Kaffeemaschine | 89,99 €").

Strategy:
1. Anchor + price line pairs (ASIN line followed by "net € rate% gross € total €")
   are taken wherever they occur
2. Other lines are read inside the item section only: after a heading such
   as "Items Ordered" when one is present, else from the top
3. Each line is tried against the locale's ordered line patterns
4. A section-boundary keyword (subtotal, payment, ...) ends the section
   once it has started producing items
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from ..extractors.models import LineItem
from ..parser.normalizers import CurrencyNormalizer
from ..parser.rules import ItemRules

logger = logging.getLogger(__name__)


def correct_quantity(
    unit_price: Decimal,
    total_price: Decimal,
    fallback: int = 1,
    tolerance: Decimal = Decimal('0.10'),
    min_quantity: int = 1,
    max_quantity: int = 100,
) -> int:
    """
    Derive quantity as round(total / unit).

    The derived value replaces `fallback` only when it round-trips within
    `tolerance` and lies in [min_quantity, max_quantity]. Layout corruption
    often glues quantity digits onto a price token; the line total is the
    reliable witness.
    """
    if not unit_price or unit_price <= 0 or total_price is None:
        return fallback

    derived = int((total_price / unit_price).quantize(Decimal('1'), rounding=ROUND_HALF_UP))
    if min_quantity <= derived <= max_quantity and abs(derived * unit_price - total_price) < tolerance:
        return derived
    return fallback


class LineItemExtractor:
    """
    Reads one item per line using a locale's item rules.

    Usage:
        extractor = LineItemExtractor(rules.items, currency='USD')
        items = extractor.extract(text)
    """

    def __init__(
        self,
        rules: ItemRules,
        currency: Optional[str] = None,
        default_description: str = 'Product',
    ):
        self.rules = rules
        self.currency = currency
        self.default_description = default_description
        self.normalizer = CurrencyNormalizer()

    def extract(self, text: str) -> List[LineItem]:
        if not text or not isinstance(text, str):
            return []

        lines = text.split('\n')
        items: List[LineItem] = []
        consumed = set()

        if self.rules.anchor:
            items.extend(self._anchor_items(lines, consumed))

        has_heading = bool(self.rules.headings) and any(
            self.rules.headings.search(line.strip()) for line in lines
        )
        in_section = not has_heading
        line_items: List[LineItem] = []

        for index, raw_line in enumerate(lines):
            line = raw_line.strip()
            if not line or index in consumed:
                continue

            if not in_section:
                if self.rules.headings.search(line):
                    in_section = True
                continue

            if self.rules.stop and self.rules.stop.search(line):
                if has_heading or line_items:
                    break
                continue

            item = self._parse_line(line)
            if item:
                line_items.append(item)

        items.extend(line_items)
        logger.debug(f"Line-oriented extraction found {len(items)} items")
        return items

    def _anchor_items(self, lines: List[str], consumed: set) -> List[LineItem]:
        rule = self.rules.anchor
        items = []

        for index, raw_line in enumerate(lines[:-1]):
            anchor = rule.anchor.search(raw_line)
            if not anchor:
                continue

            prices = rule.price_line.search(lines[index + 1])
            if not prices:
                continue

            unit = self.normalizer.parse_amount(prices.group(rule.unit_group))
            total = self.normalizer.parse_amount(prices.group(rule.total_group))
            if unit is None or total is None:
                continue

            items.append(LineItem(
                description=self._description_before(lines, index),
                quantity=correct_quantity(unit, total),
                unit_price=unit,
                total_price=total,
                currency=self.currency,
                asin=anchor.group(1).upper(),
            ))
            consumed.update((index, index + 1))

        return items

    def _description_before(self, lines: List[str], index: int) -> str:
        """Nearest preceding line that reads like a product name."""
        for line in reversed(lines[max(0, index - 5):index]):
            line = line.strip()
            if len(line) > 10 and '€' not in line and not (
                self.rules.exclude and self.rules.exclude.search(line)
            ):
                return line
        return self.default_description

    def _parse_line(self, line: str) -> Optional[LineItem]:
        for pattern in self.rules.lines:
            values = pattern.parse(line)
            if not values:
                continue

            description = values.get('description', '').strip(' :-|')
            if self.rules.exclude and self.rules.exclude.search(description):
                return None
            if len(description) < 2:
                continue

            price = self.normalizer.parse_amount(values.get('unit_price') or values.get('total_price'))
            if price is None:
                continue

            quantity = int(values['quantity']) if values.get('quantity', '').isdigit() else 1
            quantity = max(quantity, 1)

            if 'unit_price' in values:
                unit_price, total_price = price, price * quantity
            else:
                total_price = price
                unit_price = (price / quantity).quantize(Decimal('0.01'))

            return LineItem(
                description=description,
                quantity=quantity,
                unit_price=unit_price,
                total_price=total_price,
                currency=self.currency,
            )

        return None
