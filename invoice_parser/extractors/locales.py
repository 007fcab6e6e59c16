"""
Locale Extractors

One class per supported language/country. The field ladders live in the
rule table; these classes add the text preparation each locale needs
before those ladders can match:

- French and Canadian French group thousands with (narrow) spaces
- Swiss amounts group thousands with apostrophes
- Japanese invoices mix full-width digits and yen signs
"""

from __future__ import annotations

import re

from .base import BaseExtractor


_SPACE_THOUSANDS = re.compile(r'(?<=\d)[ \u00a0\u202f](?=\d{3}(?:\D|$))')
_APOSTROPHE_THOUSANDS = re.compile(r"(?<=\d)['’](?=\d{3}(?:\D|$))")
_FULLWIDTH = str.maketrans('０１２３４５６７８９，．：－￥', '0123456789,.:-¥')


class EnglishExtractor(BaseExtractor):
    """amazon.com style invoices in English (also used for AU)."""
    code = 'EN'


class USExtractor(EnglishExtractor):
    """US invoices: month-first slash dates, "Item(s) Subtotal"."""
    code = 'US'


class UKExtractor(EnglishExtractor):
    """amazon.co.uk: pounds, day-first dates, "Postage & Packing"."""
    code = 'UK'


class GermanExtractor(BaseExtractor):
    code = 'DE'


class SwissExtractor(GermanExtractor):
    """amazon.de orders shipped to Switzerland, priced in CHF."""
    code = 'CH'

    def prepare(self, text: str) -> str:
        return _APOSTROPHE_THOUSANDS.sub('', text)


class FrenchExtractor(BaseExtractor):
    code = 'FR'

    def prepare(self, text: str) -> str:
        # "1 234,56 €" -> "1234,56 €"
        return _SPACE_THOUSANDS.sub('', text)


class CanadianFrenchExtractor(FrenchExtractor):
    """amazon.ca in French: dollar sign after the amount, GST/QST."""
    code = 'CA'


class ItalianExtractor(BaseExtractor):
    code = 'IT'


class SpanishExtractor(BaseExtractor):
    code = 'ES'


class JapaneseExtractor(BaseExtractor):
    code = 'JP'

    def prepare(self, text: str) -> str:
        return text.translate(_FULLWIDTH)
