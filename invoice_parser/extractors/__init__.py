"""
Locale Extractors Package

Turns preprocessed invoice text into an InvoiceRecord.

Components:
- models: record types (InvoiceRecord, LineItem, PartialRecord, ...)
- base: the shared extractor contract
- recovery: error categorization and partial recovery
- locales / eu: one extractor per supported locale
- registry: locale code → extractor

Usage:
    from invoice_parser.extractors import get_extractor

    record = get_extractor('DE').extract(text)
"""

# models first: the tables package imports it while base is loading
from .models import (
    InvoiceRecord,
    LineItem,
    CategorizedError,
    ErrorLevel,
    FieldAttempt,
    PartialRecord,
    Priority,
    RecoverySuggestion,
    DEFAULT_VENDOR,
)
from .recovery import ErrorRecovery
from .base import BaseExtractor
from .locales import (
    EnglishExtractor,
    USExtractor,
    UKExtractor,
    GermanExtractor,
    SwissExtractor,
    FrenchExtractor,
    CanadianFrenchExtractor,
    ItalianExtractor,
    SpanishExtractor,
    JapaneseExtractor,
)
from .eu import EUBusinessExtractor, EUConsumerExtractor
from .registry import (
    ExtractorRegistry,
    get_registry,
    get_extractor,
    list_locales,
)

__all__ = [
    # Records
    'InvoiceRecord',
    'LineItem',
    'CategorizedError',
    'ErrorLevel',
    'FieldAttempt',
    'PartialRecord',
    'Priority',
    'RecoverySuggestion',
    'DEFAULT_VENDOR',

    # Contract
    'BaseExtractor',
    'ErrorRecovery',

    # Locales
    'EnglishExtractor',
    'USExtractor',
    'UKExtractor',
    'GermanExtractor',
    'SwissExtractor',
    'FrenchExtractor',
    'CanadianFrenchExtractor',
    'ItalianExtractor',
    'SpanishExtractor',
    'JapaneseExtractor',
    'EUBusinessExtractor',
    'EUConsumerExtractor',

    # Registry
    'ExtractorRegistry',
    'get_registry',
    'get_extractor',
    'list_locales',
]
