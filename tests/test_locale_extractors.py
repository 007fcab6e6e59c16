"""
Tests for the per-locale extractors and the extractor registry.
"""

from decimal import Decimal

import pytest

from invoice_parser.exceptions import UnsupportedLocaleError
from invoice_parser.extractors import (
    EnglishExtractor,
    ExtractorRegistry,
    GermanExtractor,
    get_extractor,
    list_locales,
)

US_TEXT = """Order Placed: December 15, 2023
Order #123-4567890-1234567
Subtotal: $89.98
Tax: $7.19
Grand Total: $97.17"""

GERMAN_TEXT = """Bestellnummer: 302-1234567-7654321
Bestelldatum: 15. März 2024
Artikel
2 x USB-C Ladekabel 12,99 €
Zwischensumme: 21,83 €
Versandkosten: 0,00 €
MwSt. 19%: 4,15 €
Gesamtbetrag: 25,98 €"""

SWISS_TEXT = """Bestellnummer: 302-1234567-7654321
Bestelldatum: 15.03.2024
Zwischensumme: CHF 1'200.00
MwSt. 7.7%: CHF 92.40
Gesamtbetrag: CHF 1'292.40"""

FRENCH_TEXT = """Numéro de commande : 402-1234567-7654321
Date de commande : 1er mars 2024
Sous-total : 1 000,00 €
Frais de livraison : 0,00 €
TVA 20% : 200,00 €
Total TTC : 1 200,00 €"""

CANADIAN_TEXT = """Numéro de commande : 702-1234567-1234567
Commande passée le : 12 mars 2024
Sous-total : 1 000,00 $
TPS : 50,00 $
Total : 1 050,00 $"""

ITALIAN_TEXT = """Numero d'ordine: 171-1234567-1234567
Data dell'ordine: 05/02/2024
Subtotale: €40,98
Spedizione: €0,00
IVA 22%: €9,02
Totale: €50,00"""

SPANISH_TEXT = """Número de pedido: 405-1234567-1234567
Fecha del pedido: 15 de marzo de 2024
Subtotal: 41,32 €
Envío: 0,00 €
IVA 21%: 8,68 €
Total: 50,00 €"""

UK_TEXT = """Order Number: 203-1234567-1234567
Order Date: 3 January 2024
Subtotal: £20.00
Postage & Packing: £2.99
VAT: £4.00
Total: £26.99"""

JAPANESE_TEXT = """注文番号: 250-1234567-1234567
注文日: 2024年3月15日
商品
USBケーブル × 2 ￥1,000
小計: ￥2,000
配送料: ￥0
消費税: ￥200
合計: ￥2,200"""


class TestUSExtractor:
    """The reference amazon.com invoice."""

    def setup_method(self):
        self.record = get_extractor('US').extract(US_TEXT)

    def test_fields(self):
        assert self.record.order_number == '123-4567890-1234567'
        assert self.record.order_date == 'December 15, 2023'
        assert self.record.order_date_iso == '2023-12-15'
        assert self.record.subtotal == '$89.98'
        assert self.record.tax == '$7.19'
        assert self.record.total == '$97.17'
        assert self.record.items == ()

    def test_metadata(self):
        assert self.record.locale == 'US'
        assert self.record.currency == 'USD'
        assert self.record.vendor == 'Amazon'

    def test_clean_validation(self):
        assert self.record.validation.is_valid
        assert self.record.validation.score == 100
        assert self.record.validation.findings == []

    def test_malformed_order_number_is_skipped(self):
        extractor = get_extractor('EN')
        text = "Order #123-4567890-123456\nGrand Total: $5.00"
        assert extractor.extract_order_number(text) is None

    def test_fields_are_independent(self):
        extractor = get_extractor('US')
        assert extractor.extract_total("Grand Total: $97.17") == '$97.17'
        assert extractor.extract_subtotal("Grand Total: $97.17") is None

    def test_empty_text(self):
        record = get_extractor('US').extract('')
        assert record.order_number is None
        assert record.total is None
        assert not record.validation.is_valid


class TestGermanExtractor:

    def setup_method(self):
        self.record = get_extractor('DE').extract(GERMAN_TEXT)

    def test_fields(self):
        assert self.record.order_number == '302-1234567-7654321'
        assert self.record.order_date == '15. März 2024'
        assert self.record.order_date_iso == '2024-03-15'
        assert self.record.subtotal == '21,83 €'
        assert self.record.shipping == '0,00 €'
        assert self.record.tax == '4,15 €'
        assert self.record.total == '25,98 €'
        assert self.record.currency == 'EUR'

    def test_line_item(self):
        assert len(self.record.items) == 1
        item = self.record.items[0]
        assert item.description == 'USB-C Ladekabel'
        assert item.quantity == 2
        assert item.unit_price == Decimal('12.99')
        assert item.total_price == Decimal('25.98')
        assert item.currency == 'EUR'

    def test_totals_add_up(self):
        assert not self.record.validation.find('mathematical_inconsistency')
        assert self.record.validation.is_valid

    def test_subtotal_computed_from_items(self):
        text = "Artikel\n2 x USB-C Ladekabel 12,99 €\nGesamtbetrag: 25,98 €"
        record = GermanExtractor().extract(text)
        assert record.subtotal == '25,98 €'


class TestSwissExtractor:

    def test_apostrophe_thousands(self):
        record = get_extractor('CH').extract(SWISS_TEXT)
        assert record.subtotal == 'CHF 1200.00'
        assert record.tax == 'CHF 92.40'
        assert record.total == 'CHF 1292.40'
        assert record.currency == 'CHF'
        assert record.order_date_iso == '2024-03-15'
        assert record.validation.score == 100


class TestFrenchExtractors:

    def test_space_thousands(self):
        record = get_extractor('FR').extract(FRENCH_TEXT)
        assert record.order_number == '402-1234567-7654321'
        assert record.order_date == '1er mars 2024'
        assert record.order_date_iso == '2024-03-01'
        assert record.subtotal == '1000,00 €'
        assert record.shipping == '0,00 €'
        assert record.tax == '200,00 €'
        assert record.total == '1200,00 €'
        assert record.validation.score == 100

    def test_canadian_dollar_after_amount(self):
        record = get_extractor('CA').extract(CANADIAN_TEXT)
        assert record.order_number == '702-1234567-1234567'
        assert record.order_date_iso == '2024-03-12'
        assert record.subtotal == '1000,00 $'
        assert record.tax == '50,00 $'
        assert record.total == '1050,00 $'
        assert record.currency == 'CAD'
        assert record.items == ()


class TestItalianAndSpanish:

    def test_italian(self):
        record = get_extractor('IT').extract(ITALIAN_TEXT)
        assert record.order_number == '171-1234567-1234567'
        assert record.order_date_iso == '2024-02-05'
        assert record.subtotal == '€40,98'
        assert record.tax == '€9,02'
        assert record.total == '€50,00'
        assert not record.validation.find('mathematical_inconsistency')

    def test_spanish(self):
        record = get_extractor('ES').extract(SPANISH_TEXT)
        assert record.order_number == '405-1234567-1234567'
        assert record.order_date_iso == '2024-03-15'
        assert record.subtotal == '41,32 €'
        assert record.shipping == '0,00 €'
        assert record.tax == '8,68 €'
        assert record.total == '50,00 €'


class TestUKExtractor:

    def test_fields(self):
        record = get_extractor('UK').extract(UK_TEXT)
        assert record.order_date_iso == '2024-01-03'
        assert record.shipping == '£2.99'
        assert record.tax == '£4.00'
        assert record.total == '£26.99'
        assert record.currency == 'GBP'

    def test_summary_lines_are_not_items(self):
        record = get_extractor('UK').extract(UK_TEXT)
        assert record.items == ()


class TestJapaneseExtractor:

    def setup_method(self):
        self.record = get_extractor('JP').extract(JAPANESE_TEXT)

    def test_fields(self):
        assert self.record.order_number == '250-1234567-1234567'
        assert self.record.order_date_iso == '2024-03-15'
        assert self.record.subtotal == '¥2,000'
        assert self.record.shipping == '¥0'
        assert self.record.tax == '¥200'
        assert self.record.total == '¥2,200'

    def test_item(self):
        assert len(self.record.items) == 1
        item = self.record.items[0]
        assert item.description == 'USBケーブル'
        assert item.quantity == 2
        assert item.unit_price == Decimal('1000')

    def test_yen_has_no_minor_unit(self):
        assert self.record.validation.score == 100


class TestExtractorRegistry:

    def test_builtin_locales(self):
        codes = list_locales()
        assert len(codes) == 12
        for code in ['EN', 'US', 'UK', 'DE', 'CH', 'FR', 'CA', 'IT', 'ES', 'JP',
                     'EU-BUSINESS', 'EU-CONSUMER']:
            assert code in codes

    def test_lookup_is_case_insensitive(self):
        assert get_extractor('de') is get_extractor('DE')

    def test_unknown_locale(self):
        with pytest.raises(UnsupportedLocaleError):
            get_extractor('NL')

    def test_duplicate_registration(self):
        registry = ExtractorRegistry()
        registry.register(EnglishExtractor)
        with pytest.raises(ValueError):
            registry.register(EnglishExtractor)

    def test_overwrite_and_alias(self):
        registry = ExtractorRegistry()
        registry.register(EnglishExtractor, code='AU')
        registry.register(GermanExtractor, code='AU', overwrite=True)
        assert isinstance(registry.get('AU'), GermanExtractor)

    def test_unregister(self):
        registry = ExtractorRegistry.with_builtins()
        assert registry.unregister('JP')
        assert 'JP' not in registry
        assert not registry.unregister('JP')

    def test_create_returns_fresh_instance(self):
        registry = ExtractorRegistry.with_builtins()
        assert registry.create('DE') is not registry.create('DE')


class TestEUExtractors:

    BUSINESS_ROW = (
        "| Echo Dot (5th Gen) Smart Speaker | 2 | 42,01 € | 19 % | 49,99 € | 99,98 € |\n"
        "ASIN: B09B8V1LZ3"
    )
    CONSUMER_ROW = (
        "Echo Dot (5th Gen) Smart Speaker\n"
        "ASIN: B09B8V1LZ3\n"
        "49,99 € 99,98 €"
    )

    def test_business_reads_table_rows(self):
        items, ranges = get_extractor('EU-BUSINESS').scan_items(self.BUSINESS_ROW)
        assert len(items) == 1
        assert items[0].quantity == 2
        assert items[0].asin == 'B09B8V1LZ3'
        assert len(ranges) == 1

    def test_consumer_reads_price_lines(self):
        items, _ = get_extractor('EU-CONSUMER').scan_items(self.CONSUMER_ROW)
        assert len(items) == 1
        assert items[0].description == 'Echo Dot (5th Gen) Smart Speaker'
        assert items[0].unit_price == Decimal('49.99')
        assert items[0].total_price == Decimal('99.98')

    def test_layouts_do_not_cross(self):
        items, _ = get_extractor('EU-BUSINESS').scan_items(self.CONSUMER_ROW)
        assert items == []
