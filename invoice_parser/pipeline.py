"""
Invoice Extraction Pipeline

Main orchestration module: preprocessed text in, InvoiceRecord out.

Flow:
1. Preprocess (encoding repair, whitespace)
2. Classify the layout (amazon.com / amazon.eu, EU subtype)
3. Detect the locale
4. Select an extractor from the registry
5. Extract, schema-check and validate
6. Attach extraction metadata (detection, classification, timings, metrics)

Why partial recovery lives here:
Extractors never raise on malformed fields, so an exception reaching the
pipeline is unexpected. Instead of losing the whole document, every field
extractor is re-run on its own. The caller gets None only when even that
salvage is unusable, so batch consumers can tell "no data" (None) from
"low-confidence data" (low validation score) from "clean data" (score
100, no findings).
"""

import re
import sys
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger

from .parser.preprocessor import InvoicePreprocessor
from .parser.rules import load_settings
from .parser.validators import enforce_schema
from .detection.language_detector import (
    UNKNOWN,
    DetectionResult,
    DetectorConfig,
    LanguageDetector,
)
from .detection.format_classifier import AMAZON_COM, AMAZON_EU, FormatClassification, FormatClassifier
from .extractors.models import ErrorLevel, InvoiceRecord
from .extractors.registry import ExtractorRegistry
from .extractors.base import BaseExtractor
from .tables.anchored_items import ANCHOR_PATTERN
from .exceptions import FileAccessError

# Fields that count towards extraction success
METRIC_FIELDS = ['order_number', 'order_date', 'items', 'subtotal', 'tax', 'shipping', 'total']

# The EU table extractors only read euro amounts
EURO_AMOUNT = re.compile(r'\d[.,]\d{2}\s*€|€\s*\d')


@dataclass
class PipelineConfig:
    """Configuration for the extraction pipeline."""

    # Extractor used when detection fails
    fallback_locale: str = 'EN'

    # Detected code -> registered extractor code
    locale_aliases: dict[str, str] = field(default_factory=lambda: {'AU': 'EN', 'GB': 'UK'})

    # Route amazon.eu documents with product anchors to the EU extractors
    route_eu_tables: bool = True

    # Run partial recovery when an extractor raises
    enable_recovery: bool = True

    # Preprocessing
    fix_encoding: bool = True

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'PipelineConfig':
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

    def to_dict(self) -> dict:
        return asdict(self)


class InvoicePipeline:
    """
    End-to-end invoice extraction.

    Usage:
        pipeline = InvoicePipeline()
        record = pipeline.extract(text)
        if record is not None:
            print(record.order_number, record.total, record.validation.score)

        # Force a locale
        record = pipeline.extract(text, {'locale': 'DE'})
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        settings: Optional[Union[dict, str, Path]] = None,
        registry: Optional[ExtractorRegistry] = None,
    ):
        """
        Args:
            config: Dispatch behaviour
            settings: Threshold overrides (dict or YAML path) merged over the packaged settings
            registry: Extractor registry (defaults to the built-in locales)
        """
        self.config = config or PipelineConfig.from_dict(None)
        self.settings = load_settings(settings)

        self.preprocessor = InvoicePreprocessor(fix_encoding=self.config.fix_encoding)
        self.detector = LanguageDetector(DetectorConfig.from_dict(self.settings.get('detector')))
        self.classifier = FormatClassifier()

        if registry is not None:
            self.registry = registry
        elif settings is None:
            self.registry = ExtractorRegistry.get_instance()
        else:
            self.registry = ExtractorRegistry.with_builtins(self.settings)

    # --- entry points ---------------------------------------------------

    def detect(self, text: Any) -> DetectionResult:
        """Standalone locale detection on raw text."""
        return self.detector.detect(self.preprocessor.preprocess(text))

    def extract(self, text: Any, options: Optional[dict] = None) -> Optional[InvoiceRecord]:
        """
        Extract one invoice.

        Args:
            text: Invoice text as produced by the PDF text layer
            options: Optional overrides; 'locale' forces an extractor

        Returns:
            InvoiceRecord, or None when extraction failed and the partial
            recovery was not usable

        Raises:
            FileAccessError: Critical errors are surfaced to the caller
            UnsupportedLocaleError: An explicit locale is not registered
        """
        options = options or {}
        timings: dict[str, float] = {}

        start = time.perf_counter()
        clean = self.preprocessor.preprocess(text)
        timings['preprocess'] = time.perf_counter() - start

        start = time.perf_counter()
        classification = self.classifier.classify(clean)
        timings['classify'] = time.perf_counter() - start

        start = time.perf_counter()
        detection = self.detector.detect(clean)
        timings['detect'] = time.perf_counter() - start

        extractor = self.select_extractor(clean, detection, classification, options.get('locale'))
        logger.debug(f"Using {extractor!r} (detected {detection.language}, format {classification.format})")

        start = time.perf_counter()
        try:
            record = extractor.extract(clean)
        except Exception as e:
            if not self.config.enable_recovery:
                raise
            return self.recover(extractor, clean, e, detection, classification)
        timings['extract'] = time.perf_counter() - start

        metadata = {
            'mode': 'full',
            'detection': detection.to_dict(),
            'classification': classification.to_dict(),
            'extractor': extractor.name,
            'timings': {k: round(v, 4) for k, v in timings.items()},
            'metrics': calculate_extraction_metrics(record),
        }
        logger.info(
            f"Extracted {record.order_number or 'unknown order'} "
            f"({extractor.rules.code}, score {record.validation.score if record.validation else 'n/a'})"
        )
        return record.with_changes(extraction_metadata=metadata)

    # --- dispatch -------------------------------------------------------

    def select_extractor(
        self,
        text: str,
        detection: DetectionResult,
        classification: FormatClassification,
        locale: Optional[str] = None,
    ) -> BaseExtractor:
        """
        Pick the extractor for a document.

        Order: explicit locale, amazon.eu table routing, detected locale,
        fallback locale. Table routing needs product anchors and euro
        amounts; pound and franc invoices go to their language extractor.
        """
        if locale:
            return self.registry.get(locale)

        if (
            self.config.route_eu_tables
            and classification.format == AMAZON_EU
            and ANCHOR_PATTERN.search(text)
            and EURO_AMOUNT.search(text)
        ):
            code = 'EU-BUSINESS' if classification.subtype == 'business' else 'EU-CONSUMER'
            if code in self.registry:
                return self.registry.get(code)

        code = detection.language
        if code == UNKNOWN:
            logger.warning(f"Locale not detected, falling back to {self.config.fallback_locale}")
            return self.registry.get(self.config.fallback_locale)

        code = self.config.locale_aliases.get(code, code)
        if code == 'EN' and (classification.format == AMAZON_COM or 'amazon.com' in text.lower()):
            code = 'US'

        if code not in self.registry:
            logger.warning(f"No extractor for {code}, falling back to {self.config.fallback_locale}")
            code = self.config.fallback_locale
        return self.registry.get(code)

    # --- recovery -------------------------------------------------------

    def recover(
        self,
        extractor: BaseExtractor,
        text: str,
        error: Exception,
        detection: DetectionResult,
        classification: FormatClassification,
    ) -> Optional[InvoiceRecord]:
        """Partial recovery after an unexpected extractor failure."""
        categorized = extractor.categorize_error(error, 'extraction')
        if categorized.level == ErrorLevel.CRITICAL or isinstance(error, FileAccessError):
            logger.error(f"Critical error: {error}")
            raise error

        logger.warning(f"Extraction failed ({categorized.type}): {error}")
        partial = extractor.extract_partial(text, error)
        if not partial.usable:
            logger.error(f"Partial recovery unusable ({partial.overall:.0%} of fields)")
            return None

        data = dict(partial.data)
        data['items'] = [asdict(item) for item in data.get('items') or []]
        data.update(
            currency=extractor.rules.currency,
            locale=extractor.rules.code,
            format=extractor.rules.format,
            subtype=extractor.rules.subtype,
        )
        if data.get('order_date'):
            data['order_date_iso'] = extractor.dates.normalize(data['order_date'], extractor.rules.language)

        record = InvoiceRecord.from_dict(enforce_schema(data))
        suggestions = extractor.suggest_recovery(categorized, partial)
        return record.with_changes(
            validation=extractor.validate(record, text),
            error_recovery={
                'error': categorized.to_dict(),
                'partial': {
                    'field_confidence': partial.field_confidence,
                    'overall': round(partial.overall, 2),
                    'missing_fields': partial.missing_fields,
                    'errors': partial.errors,
                },
                'suggestions': [s.to_dict() for s in suggestions],
            },
            extraction_metadata={
                **partial.metadata,
                'detection': detection.to_dict(),
                'classification': classification.to_dict(),
                'extractor': extractor.name,
            },
        )

    # --- health ---------------------------------------------------------

    def health_check(self) -> dict:
        """
        Exercise each component once.

        Returns:
            {'overall': 'healthy' | 'unhealthy', 'components': {...}}
        """
        components: dict[str, dict] = {}

        try:
            self.preprocessor.preprocess('Order Total:\t$1.00\r\n')
            components['preprocessor'] = {'status': 'healthy'}
        except Exception as e:
            components['preprocessor'] = {'status': 'unhealthy', 'error': str(e)}

        try:
            result = self.detector.detect('Order Placed: December 15, 2023 Grand Total: $97.17')
            components['detector'] = {'status': 'healthy', 'sample': result.language}
        except Exception as e:
            components['detector'] = {'status': 'unhealthy', 'error': str(e)}

        extractors = {}
        for code in self.registry.list_codes():
            try:
                self.registry.create(code)
                extractors[code] = 'healthy'
            except Exception as e:
                extractors[code] = f'unhealthy: {e}'
        components['extractors'] = {
            'status': 'healthy' if all(v == 'healthy' for v in extractors.values()) else 'unhealthy',
            'locales': extractors,
        }

        overall = all(c['status'] == 'healthy' for c in components.values())
        return {'overall': 'healthy' if overall else 'unhealthy', 'components': components}


def calculate_extraction_metrics(record: Optional[InvoiceRecord]) -> dict:
    """
    Per-field success flags for a record.

    Returns:
        {'fields': {name: bool}, 'overall': float, 'items': {...}}
    """
    if record is None:
        return {'fields': {name: False for name in METRIC_FIELDS}, 'overall': 0.0,
                'items': {'count': 0, 'with_description': 0, 'with_asin': 0}}

    fields = {name: bool(getattr(record, name)) for name in METRIC_FIELDS}
    return {
        'fields': fields,
        'overall': round(sum(fields.values()) / len(METRIC_FIELDS), 2),
        'items': {
            'count': len(record.items),
            'with_description': sum(1 for item in record.items if item.description),
            'with_asin': sum(1 for item in record.items if item.asin),
        },
    }


def setup_logging(level: str = "INFO", log_file: Optional[Union[str, Path]] = None) -> None:
    """Configure loguru logging."""
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level=level,
        colorize=True,
    )

    if log_file:
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}",
            level="DEBUG",
            rotation="10 MB",
        )


_default_pipeline: Optional[InvoicePipeline] = None


def get_pipeline() -> InvoicePipeline:
    """Shared pipeline with default settings."""
    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = InvoicePipeline()
    return _default_pipeline


def extract(text: Any, options: Optional[dict] = None) -> Optional[InvoiceRecord]:
    """Quick function to extract one invoice."""
    return get_pipeline().extract(text, options)


def detect(text: Any) -> DetectionResult:
    """Quick function to detect the locale of invoice text."""
    return get_pipeline().detect(text)
