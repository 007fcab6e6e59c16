"""
EU Business and EU Consumer Extractors

amazon.eu invoices share one multilingual header vocabulary and one
tabular item block per subtype, whatever the language. Invoice-level
fields come from the EU-BUSINESS / EU-CONSUMER rule table entries; items
come from the table-anchored scanner.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from ..tables.anchored_items import TableAnchoredItemExtractor, TableConfig
from ..tables.ranges import ProcessedRanges
from .base import BaseExtractor
from .models import LineItem

logger = logging.getLogger(__name__)


class _TableAnchoredExtractor(BaseExtractor):
    """Shared wiring for the two EU subtypes."""

    def table_extractor(self) -> TableAnchoredItemExtractor:
        return TableAnchoredItemExtractor(
            config=TableConfig.from_dict(self.settings.get('tables')),
            currency=self.rules.currency,
            default_description=self.rules.default_description,
        )

    def scan_items(
        self,
        text: str,
        ranges: Optional[ProcessedRanges] = None,
    ) -> Tuple[List[LineItem], ProcessedRanges]:
        """
        Items plus the character spans they were read from.

        The rule table's `table_anchored` layout picks the scan: 'business'
        reads six-column rows, 'consumer' reads description/anchor/price
        blocks.
        """
        scanner = self.table_extractor()
        if self.rules.items.table_anchored == 'consumer':
            return scanner.scan_consumer(text, ranges)
        return scanner.scan(text, ranges)

    def extract_items(self, text: str) -> List[LineItem]:
        if not text:
            return []
        items, ranges = self.scan_items(text)
        logger.debug(f"{self.rules.code}: {len(items)} items from {len(ranges)} spans")
        return items


class EUBusinessExtractor(_TableAnchoredExtractor):
    """
    Business invoices: six-column VAT table, one product anchor per row.

    Usage:
        extractor = EUBusinessExtractor()
        items, ranges = extractor.scan_items(text)
    """
    code = 'EU-BUSINESS'


class EUConsumerExtractor(_TableAnchoredExtractor):
    """Consumer invoices: description, anchor, then a price line."""
    code = 'EU-CONSUMER'
