"""
Item Table Extraction

This package recovers line items from item sections whose layout was
flattened by text extraction.

- line_items: one product per line (most locales)
- anchored_items: product-anchor scan over six-column VAT tables (amazon.eu)
- ranges: the immutable set of consumed character spans
"""

from .ranges import ProcessedRanges
from .line_items import (
    LineItemExtractor,
    correct_quantity,
)
from .anchored_items import (
    TableAnchoredItemExtractor,
    TableConfig,
    RowPattern,
    LADDER,
    scan,
)

__all__ = [
    'ProcessedRanges',
    'LineItemExtractor',
    'correct_quantity',
    'TableAnchoredItemExtractor',
    'TableConfig',
    'RowPattern',
    'LADDER',
    'scan',
]
