"""
Invoice Parser

Locale-aware extraction of structured data from Amazon invoice text.

Features:
- Locale detection for English (US/UK), German, Swiss, French, Canadian
  French, Italian, Spanish and Japanese invoices
- amazon.com / amazon.eu layout classification with EU business and
  consumer subtypes
- Ordered, data-driven rule table per locale and field (config/rules.yaml)
- Product-anchored scanning of flattened VAT tables
- Cross-field validation with a 0-100 score
- Partial recovery when a full extraction fails
- Parallel batch processing with currency, monthly and category aggregates

Quick Start:
    from invoice_parser import extract, detect

    record = extract(text)
    print(record.order_number, record.total)
    print(record.validation.score, record.validation.summary)

    detect(text).language    # 'DE'

Batch Usage:
    from invoice_parser import BatchProcessor, BatchDocument

    batch = BatchProcessor().process([BatchDocument('a.pdf', text)])
    print(batch.summary.formatted_totals())
"""

__version__ = '2.0.0'

# pipeline first: it fixes the import order of the subpackages
from .pipeline import (
    InvoicePipeline,
    PipelineConfig,
    calculate_extraction_metrics,
    setup_logging,
    get_pipeline,
    extract,
    detect,
)
from .exceptions import (
    InvoiceParserError,
    ExtractionError,
    FileAccessError,
    ConfigurationError,
    UnsupportedLocaleError,
)
from .extractors import (
    InvoiceRecord,
    LineItem,
    PartialRecord,
    BaseExtractor,
    ExtractorRegistry,
    get_extractor,
    list_locales,
)
from .detection import DetectionResult, FormatClassification, UNKNOWN
from .validation import InvoiceValidator, ValidationResult
from .parser import to_number, format_amount, normalize_date
from .performance import BatchProcessor, BatchDocument, BatchSummary, generate_performance_report

__all__ = [
    '__version__',

    # Entry points
    'InvoicePipeline',
    'PipelineConfig',
    'calculate_extraction_metrics',
    'setup_logging',
    'get_pipeline',
    'extract',
    'detect',

    # Errors
    'InvoiceParserError',
    'ExtractionError',
    'FileAccessError',
    'ConfigurationError',
    'UnsupportedLocaleError',

    # Records and extractors
    'InvoiceRecord',
    'LineItem',
    'PartialRecord',
    'BaseExtractor',
    'ExtractorRegistry',
    'get_extractor',
    'list_locales',

    # Detection and validation
    'DetectionResult',
    'FormatClassification',
    'UNKNOWN',
    'InvoiceValidator',
    'ValidationResult',

    # Helpers
    'to_number',
    'format_amount',
    'normalize_date',

    # Batch
    'BatchProcessor',
    'BatchDocument',
    'BatchSummary',
    'generate_performance_report',
]
