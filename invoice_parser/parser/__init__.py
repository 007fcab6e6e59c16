"""
Parser Package

Text-level building blocks shared by every extractor:
- preprocessor: encoding repair and whitespace normalization
- normalizers: locale-aware amounts, integer minor units and dates
- rules: the ordered rule table and YAML settings
- validators: the pydantic schema contract for extracted records

Usage:
    from invoice_parser.parser import RuleTable, to_number, normalize_date

    rules = RuleTable.default().get('DE')
    for rule, value in rules.candidates('total', text):
        print(rule.pattern, to_number(value))
        break

    normalize_date('15. Dezember 2023', 'de')   # '2023-12-15'
"""

from .normalizers import (
    TextNormalizer,
    CurrencyNormalizer,
    DateNormalizer,
    MoneyFormat,
    to_number,
    to_minor_units,
    format_amount,
    normalize_date,
)
from .preprocessor import InvoicePreprocessor, preprocess
from .rules import (
    RuleTable,
    LocaleRules,
    FieldRule,
    ItemRules,
    ConfigLoader,
    load_settings,
)
from .validators import (
    InvoiceSchema,
    LineItemSchema,
    enforce_schema,
    is_valid_order_number,
)

__all__ = [
    # Normalizers
    'TextNormalizer',
    'CurrencyNormalizer',
    'DateNormalizer',
    'MoneyFormat',
    'to_number',
    'to_minor_units',
    'format_amount',
    'normalize_date',

    # Preprocessing
    'InvoicePreprocessor',
    'preprocess',

    # Rules and settings
    'RuleTable',
    'LocaleRules',
    'FieldRule',
    'ItemRules',
    'ConfigLoader',
    'load_settings',

    # Schema
    'InvoiceSchema',
    'LineItemSchema',
    'enforce_schema',
    'is_valid_order_number',
]
