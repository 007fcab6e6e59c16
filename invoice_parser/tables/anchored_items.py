"""
Table-Anchored Item Extraction

Recovers line items from EU business/consumer invoices whose item table
was flattened by text extraction.

The table has six logical columns: description, quantity, unit price
excluding VAT, VAT rate, unit price including VAT, line total. Renderers
disagree on where the line breaks fall, and digits from neighbouring
columns frequently merge ("537,37 €" for quantity 5 at 37,37 €). The only
stable landmark is the product anchor ("ASIN: B0XXXXXXXX") printed with
every row.

Algorithm:
1. Find every product anchor
2. Search a bounded window BEFORE the anchor with the "before" ladder;
   if nothing matches, search a bounded window AFTER it
3. Ladder order matters: explicit pipe rows and full six-column rows know
   which price carries VAT; the loose patterns at the bottom only know
   "some price, a (qty), two prices" and must pass a math check
4. Quantity is re-derived as round(total / unit) when that round-trips
5. Description comes from the row itself or from the lines before the anchor
6. Each accepted row marks its character span as processed; later anchors
   may not reuse a processed span. Identical rows at different positions
   are kept: repeat purchases are legitimate.

The processed set is an immutable ProcessedRanges value threaded through
the scan and returned to the caller.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from ..extractors.models import LineItem
from ..parser.normalizers import CurrencyNormalizer
from .line_items import correct_quantity
from .ranges import ProcessedRanges

logger = logging.getLogger(__name__)


ANCHOR_PATTERN = re.compile(r'ASIN:\s*([A-Z0-9]{10})')

_MONEY = r'(\d{1,3}(?:\.\d{3})+,\d{2}|\d+,\d{2})'


def _rx(pattern: str) -> re.Pattern:
    return re.compile(pattern.replace('<M>', _MONEY), re.MULTILINE)


ROW_HEADER_WORDS = re.compile(r'\b(?:Bestellung|Artikel|Produkt|Summe|Total|Gesamt|Menge|Stückpreis)\b', re.I)
TABLE_HEADER_START = re.compile(r'^(?:Description|Qté|Prix|Unitaire|Taux|TVA|Total|TTC|HT|Beschreibung|Menge)', re.I)
NUMERIC_NOISE = re.compile(r'^[\d\s€%,.()|:-]+$')


@dataclass
class TableConfig:
    """Search windows and tolerances (settings.yaml → tables)."""
    window_before: int = 600
    window_after: int = 400
    quantity_tolerance: float = 0.10
    min_quantity: int = 1
    max_quantity: int = 100
    min_description_length: int = 10
    max_description_length: int = 200

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'TableConfig':
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class RowPattern:
    """One rung of the structural ladder."""
    name: str
    regex: re.Pattern
    direction: str                      # 'before' | 'after'
    groups: Dict[str, int]
    description: str = 'group'          # 'group' | 'nearest' | 'joined'
    strict_math: bool = False


LADDER: List[RowPattern] = [
    # | Echo Dot (5th Gen) | 2 | 42,01 € | 19 % | 49,99 € | 99,98 € |
    RowPattern(
        'pipe_row',
        _rx(r'\|\s*([^|\n]+?)\s*\|\s*(\d{1,3})\s*\|\s*<M>\s*€\s*\|\s*(\d+)\s*%\s*\|\s*<M>\s*€\s*\|\s*<M>\s*€\s*\|'),
        'before',
        {'description': 1, 'quantity': 2, 'unit_price': 5, 'total_price': 6},
    ),
    RowPattern(
        'pipe_row_loose',
        _rx(r'\|\s*([^|\n]+?)\s*\|\s*(\d{1,3})\s*\|\s*<M>\s*€[^|\n]*\|[^|\n]*\|[^|\n]*\|\s*<M>\s*€\s*\|'),
        'before',
        {'description': 1, 'quantity': 2, 'unit_price': 3, 'total_price': 4},
    ),
    # Description 2 42,01 € 19% (2) 49,99 € 99,98 €
    RowPattern(
        'spaced_row',
        _rx(r'([^\n|]{20,400}?)\s+(\d{1,3})\s+<M>\s*€\s+\d+\s*%?\s*\((\d+)\)\s+<M>\s*€\s*<M>\s*€'),
        'before',
        {'description': 1, 'quantity': 2, 'unit_price': 5, 'total_price': 6},
    ),
    # Description / 42,01 € / 19% / (2) / 49,99 €99,98 €  (one value per line)
    RowPattern(
        'stacked_before',
        _rx(r'^([^\n]{10,300})\n\s*<M>\s*€\s*\n\s*\d+\s*%?\s*\n\s*\((\d+)\)\s*\n\s*<M>\s*€\s*<M>\s*€'),
        'before',
        {'description': 1, 'quantity': 3, 'unit_price': 4, 'total_price': 5},
    ),
    RowPattern(
        'pipe_row_after',
        _rx(r'\A[^\n]*\n\s*\|\s*([^|\n]+?)\s*\|\s*(\d{1,3})\s*\|\s*<M>\s*€\s*\|\s*(\d+)\s*%\s*\|\s*<M>\s*€\s*\|\s*<M>\s*€\s*\|'),
        'after',
        {'description': 1, 'quantity': 2, 'unit_price': 5, 'total_price': 6},
    ),
    RowPattern(
        'spaced_row_after',
        _rx(r'\A[^\n]*\n\s*([^\n|]{10,400}?)\s+(\d{1,3})\s+<M>\s*€\s+\d+\s*%?\s*\((\d+)\)\s+<M>\s*€\s*<M>\s*€'),
        'after',
        {'description': 1, 'quantity': 2, 'unit_price': 5, 'total_price': 6},
    ),
    # Merged quantity and price: "537,37 €" / 19 % / (1) / 37,37 €186,85 €
    RowPattern(
        'stacked_after',
        _rx(r'\A[^\n]*\n\s*(\d{1,4})(,\d{2})\s*€\s*\n\s*\d+\s*%\s*\n\s*\((\d+)\)\s*\n\s*<M>\s*€\s*<M>\s*€'),
        'after',
        {'quantity': 3, 'unit_price': 4, 'total_price': 5},
        description='nearest',
    ),
    RowPattern(
        'loose_after',
        _rx(r'<M>\s*€[\s\S]*?\d+\s*%[\s\S]*?\((\d+)\)[\s\S]*?<M>\s*€\s*<M>\s*€'),
        'after',
        {'quantity': 2, 'unit_price': 3, 'total_price': 4},
        description='joined',
        strict_math=True,
    ),
    RowPattern(
        'paren_after',
        _rx(r'\((\d+)\)[\s\S]*?<M>\s*€\s*<M>\s*€'),
        'after',
        {'quantity': 1, 'unit_price': 2, 'total_price': 3},
        description='joined',
        strict_math=True,
    ),
]


@dataclass
class AnchorHit:
    """A product anchor occurrence."""
    code: str
    start: int
    end: int


@dataclass
class RowMatch:
    """An accepted ladder match, in absolute text positions."""
    pattern: str
    start: int
    end: int
    item: LineItem
    span: Tuple[int, int] = field(default=(0, 0))


class TableAnchoredItemExtractor:
    """
    Scans product anchors and recovers one item per anchor.

    Usage:
        extractor = TableAnchoredItemExtractor()
        items, ranges = extractor.scan(text)
        for start, end in ranges:
            print(text[start:end])
    """

    def __init__(
        self,
        config: Optional[TableConfig] = None,
        currency: str = 'EUR',
        default_description: str = 'Product',
        ladder: Optional[List[RowPattern]] = None,
    ):
        self.config = config or TableConfig()
        self.currency = currency
        self.default_description = default_description
        self.ladder = ladder or LADDER
        self.normalizer = CurrencyNormalizer()
        self._tolerance = Decimal(str(self.config.quantity_tolerance))

    @staticmethod
    def find_anchors(text: str) -> List[AnchorHit]:
        return [AnchorHit(m.group(1), m.start(), m.end()) for m in ANCHOR_PATTERN.finditer(text)]

    # --- business layout ------------------------------------------------

    def scan(
        self,
        text: str,
        ranges: Optional[ProcessedRanges] = None,
    ) -> Tuple[List[LineItem], ProcessedRanges]:
        """
        Extract items from a business-layout table.

        Args:
            text: Preprocessed invoice text
            ranges: Spans already consumed (defaults to empty)

        Returns:
            (items in anchor order, ranges including every consumed span)
        """
        ranges = ranges or ProcessedRanges()
        if not text:
            return [], ranges

        anchors = self.find_anchors(text)
        items: List[LineItem] = []
        logger.debug(f"Found {len(anchors)} product anchors")

        for index, anchor in enumerate(anchors):
            if ranges.contains(anchor.start):
                logger.debug(f"Skipping anchor {anchor.code}: inside a processed span")
                continue

            prev_end = anchors[index - 1].end if index > 0 else 0
            next_start = anchors[index + 1].start if index + 1 < len(anchors) else len(text)

            row = self._match_row(text, anchor, prev_end, next_start, ranges)
            if row is None:
                logger.debug(f"No table row matched anchor {anchor.code}")
                continue

            items.append(row.item)
            ranges = ranges.add(*row.span)
            logger.debug(
                f"{row.pattern}: {row.item.description[:40]} "
                f"({row.item.quantity} x {row.item.unit_price} = {row.item.total_price})"
            )

        return items, ranges

    def _match_row(
        self,
        text: str,
        anchor: AnchorHit,
        prev_end: int,
        next_start: int,
        ranges: ProcessedRanges,
    ) -> Optional[RowMatch]:
        before_start = max(prev_end, anchor.start - self.config.window_before)
        before = text[before_start:anchor.start]
        after_end = min(next_start, anchor.end + self.config.window_after)
        after = text[anchor.end:after_end]

        for direction, window, offset in (('before', before, before_start), ('after', after, anchor.end)):
            for pattern in self.ladder:
                if pattern.direction != direction:
                    continue

                matches = list(pattern.regex.finditer(window))
                if direction == 'before':
                    # Closest to the anchor first
                    matches.reverse()

                for match in matches:
                    start, end = offset + match.start(), offset + match.end()
                    if ranges.overlaps(start, end):
                        continue

                    item = self._build_item(pattern, match, anchor, before)
                    if item is None:
                        continue

                    if direction == 'before':
                        span = (start, anchor.end)
                    else:
                        span = (anchor.start, end)
                    return RowMatch(pattern.name, start, end, item, span)

        return None

    def _build_item(
        self,
        pattern: RowPattern,
        match: re.Match,
        anchor: AnchorHit,
        before: str,
    ) -> Optional[LineItem]:
        groups = pattern.groups
        unit = self.normalizer.parse_amount(match.group(groups['unit_price']))
        total = self.normalizer.parse_amount(match.group(groups['total_price']))
        if unit is None or total is None:
            return None

        stated = int(match.group(groups['quantity'])) if 'quantity' in groups else 1
        quantity = correct_quantity(
            unit, total,
            fallback=max(stated, 1),
            tolerance=self._tolerance,
            min_quantity=self.config.min_quantity,
            max_quantity=self.config.max_quantity,
        )

        if pattern.strict_math and abs(quantity * unit - total) >= self._tolerance:
            return None

        if pattern.description == 'group':
            description = match.group(groups['description']).strip()
            if self.is_header_text(description):
                logger.debug(f"Rejected header-like description: {description!r}")
                return None
        elif pattern.description == 'joined':
            description = self.joined_description(before)
        else:
            description = self.nearest_description(before)

        return LineItem(
            description=description[:self.config.max_description_length],
            quantity=quantity,
            unit_price=unit,
            total_price=total,
            currency=self.currency,
            asin=anchor.code,
        )

    # --- consumer layout ------------------------------------------------

    def scan_consumer(
        self,
        text: str,
        ranges: Optional[ProcessedRanges] = None,
        lookahead_lines: int = 5,
    ) -> Tuple[List[LineItem], ProcessedRanges]:
        """
        Extract items from a consumer-layout table.

        Consumer rows print the description before the anchor and the
        prices on the lines after it. One amount means unit = total; with
        several, the first is the unit price and the last the line total.
        """
        ranges = ranges or ProcessedRanges()
        if not text:
            return [], ranges

        items: List[LineItem] = []
        money = re.compile(_MONEY + r'\s*€')

        for anchor in self.find_anchors(text):
            if ranges.contains(anchor.start):
                continue

            line_end = text.find('\n', anchor.end)
            if line_end == -1:
                continue

            position = line_end + 1
            found = None
            for _ in range(lookahead_lines):
                if position >= len(text):
                    break
                next_break = text.find('\n', position)
                end = len(text) if next_break == -1 else next_break
                line = text[position:end].strip()

                if ANCHOR_PATTERN.search(line):
                    break
                amounts = money.findall(line)
                if amounts:
                    found = (amounts, end)
                    break
                position = end + 1

            if not found:
                continue

            amounts, end = found
            span = (anchor.start, end)
            if ranges.overlaps(*span):
                continue

            unit = self.normalizer.parse_amount(amounts[0])
            total = self.normalizer.parse_amount(amounts[-1])
            before = text[max(0, anchor.start - self.config.window_before):anchor.start]

            items.append(LineItem(
                description=self.consumer_description(before),
                quantity=correct_quantity(
                    unit, total,
                    tolerance=self._tolerance,
                    min_quantity=self.config.min_quantity,
                    max_quantity=self.config.max_quantity,
                ),
                unit_price=unit,
                total_price=total,
                currency=self.currency,
                asin=anchor.code,
            ))
            ranges = ranges.add(*span)

        return items, ranges

    # --- description recovery -------------------------------------------

    def is_header_text(self, description: str) -> bool:
        """Too short, numeric noise, or table-header vocabulary."""
        return (
            len(description) < self.config.min_description_length
            or bool(NUMERIC_NOISE.match(description))
            or bool(ROW_HEADER_WORDS.search(description))
        )

    def nearest_description(self, before: str) -> str:
        """Last line before the anchor that reads like a product name."""
        for line in reversed(before.split('\n')):
            line = line.strip()
            if (
                len(line) > 20
                and 'ASIN:' not in line
                and '€' not in line
                and '|' not in line
                and not NUMERIC_NOISE.match(line)
                and not ROW_HEADER_WORDS.search(line)
            ):
                return line
        return self.default_description

    def joined_description(self, before: str, max_lines: int = 3) -> str:
        """Up to three description lines before the anchor, joined."""
        lines = [l.strip() for l in before.split('\n') if l.strip()]
        picked: List[str] = []

        for line in reversed(lines[-8:]):
            if (
                len(line) > 20
                and 'ASIN:' not in line
                and '€' not in line
                and not TABLE_HEADER_START.match(line)
                and not NUMERIC_NOISE.match(line)
            ):
                picked.insert(0, line)
                if len(picked) >= max_lines:
                    break

        if not picked:
            return self.default_description
        return ' '.join(picked)[:self.config.max_description_length]

    def consumer_description(self, before: str) -> str:
        for line in reversed(before.split('\n')):
            line = line.strip()
            if len(line) > self.config.min_description_length and 'ASIN:' not in line and '€' not in line:
                return line
        return self.default_description


def scan(text: str, ranges: Optional[ProcessedRanges] = None) -> Tuple[List[LineItem], ProcessedRanges]:
    """Quick function to scan a business-layout table with default settings."""
    return TableAnchoredItemExtractor().scan(text, ranges)
