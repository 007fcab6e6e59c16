"""
Error Recovery

What happens when a full extraction fails.

Flow:
1. categorize_error() maps the exception onto critical / recoverable / info
2. extract_partial() re-runs every field extractor on its own, so one
   poisoned field cannot block the others, and scores the outcome
3. suggest_recovery() turns both into actionable, prioritized suggestions

Why the usability gate:
Partial data flows into the same financial aggregates as clean data. It
is marked usable only when the two identifying fields (order number and
order date) were recovered AND more than 30% of all fields came back.
Everything else is reported, not silently summed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..exceptions import ExtractionError, FileAccessError
from .models import (
    CategorizedError,
    ErrorLevel,
    FieldAttempt,
    PartialRecord,
    Priority,
    RecoverySuggestion,
)

if TYPE_CHECKING:
    from .base import BaseExtractor

logger = logging.getLogger(__name__)


# (field, extractor method, critical)
RECOVERY_FIELDS = [
    ('order_number', 'extract_order_number', True),
    ('order_date', 'extract_order_date', True),
    ('items', 'extract_items', False),
    ('subtotal', 'extract_subtotal', False),
    ('shipping', 'extract_shipping', False),
    ('tax', 'extract_tax', False),
    ('total', 'extract_total', False),
]

CRITICAL_FIELDS = ('order_number', 'order_date')

FILE_ACCESS_KEYWORDS = ('file not found', 'permission denied', 'access denied', 'invalid file type')
PDF_KEYWORDS = ('pdf parsing failed', 'invalid pdf')
EXTRACTION_KEYWORDS = ('extraction failed', 'no data found')


class ErrorRecovery:
    """
    Partial recovery for one extractor.

    Usage:
        recovery = ErrorRecovery(extractor)
        error = recovery.categorize_error(exc, 'field-extraction')
        partial = recovery.extract_partial(text, exc)
        if partial.usable:
            suggestions = recovery.suggest_recovery(error, partial)
    """

    def __init__(
        self,
        extractor: 'BaseExtractor',
        usable_threshold: float = 0.3,
        high_confidence: float = 0.7,
    ):
        self.extractor = extractor
        self.usable_threshold = usable_threshold
        self.high_confidence = high_confidence

    # --- categorization -------------------------------------------------

    def categorize_error(self, error: BaseException, context: str = '') -> CategorizedError:
        """
        Map an exception onto the recovery taxonomy.

        Exception classes are checked first, then message keywords.
        Anything unrecognized is informational.
        """
        message = str(error)
        lowered = message.lower()
        context = context or ''

        if isinstance(error, (FileAccessError, FileNotFoundError, PermissionError)) or any(
            k in lowered for k in FILE_ACCESS_KEYWORDS
        ):
            return CategorizedError(
                ErrorLevel.CRITICAL, 'file_access_error', message, context,
                recoverable=False, suggestion='Check file path and permissions',
            )

        if any(k in lowered for k in PDF_KEYWORDS) or context == 'pdf-parsing':
            return CategorizedError(
                ErrorLevel.RECOVERABLE, 'pdf_parsing_error', message, context,
                recoverable=True, suggestion='Try re-saving PDF or check file corruption',
            )

        if isinstance(error, ExtractionError) or 'extraction' in context or any(
            k in lowered for k in EXTRACTION_KEYWORDS
        ):
            return CategorizedError(
                ErrorLevel.RECOVERABLE, 'field_extraction_error', message, context,
                recoverable=True, suggestion='Partial data extraction attempted - check results',
            )

        if 'validation' in lowered or 'validation' in context:
            return CategorizedError(
                ErrorLevel.INFO, 'validation_warning', message, context,
                recoverable=True, suggestion='Data validated with warnings - review validation results',
            )

        return CategorizedError(
            ErrorLevel.INFO, 'unknown_error', message, context,
            recoverable=True, suggestion='Unexpected error occurred - partial recovery attempted',
        )

    # --- partial extraction ---------------------------------------------

    def attempt(self, method: str, text: str) -> FieldAttempt:
        """Run one field extractor, capturing any failure."""
        try:
            value = getattr(self.extractor, method)(text)
        except Exception as e:
            logger.warning(f"{method} failed during recovery: {e}")
            return FieldAttempt(None, 0.0, 'extraction_error', str(e))

        if value is None or (isinstance(value, list) and not value):
            return FieldAttempt(value, 0.0, 'field_not_found')
        return FieldAttempt(value, 1.0)

    def is_usable(self, field_confidence: Dict[str, float], overall: float) -> bool:
        """Both identifying fields recovered and overall above the threshold."""
        return (
            all(field_confidence.get(name, 0.0) > 0 for name in CRITICAL_FIELDS)
            and overall > self.usable_threshold
        )

    def extract_partial(
        self,
        text: str,
        original_error: Optional[BaseException] = None,
    ) -> PartialRecord:
        """
        Re-run every field extractor independently.

        Args:
            text: Invoice text (locale preparation is applied here)
            original_error: Exception that made the full extraction fail

        Returns:
            PartialRecord with per-field confidence and the usability verdict
        """
        text = self.extractor.prepare(text) if isinstance(text, str) else ''

        data: Dict[str, Any] = {}
        confidence: Dict[str, float] = {}
        errors: List[Dict[str, Any]] = []

        for name, method, critical in RECOVERY_FIELDS:
            result = self.attempt(method, text)
            data[name] = result.value if result.confidence else ([] if name == 'items' else None)
            confidence[name] = result.confidence

            if result.error == 'extraction_error':
                errors.append({'field': name, 'type': 'extraction_error', 'message': result.message})
                if critical:
                    errors.append({
                        'field': name,
                        'type': 'critical_field_error',
                        'message': f"Critical field {name} failed: {result.message}",
                    })
            elif result.error and critical:
                errors.append({
                    'field': name,
                    'type': 'field_not_found',
                    'message': f"{name} could not be extracted",
                })

        overall = sum(1 for c in confidence.values() if c > 0) / len(RECOVERY_FIELDS)
        usable = self.is_usable(confidence, overall)

        logger.warning(
            f"Partial recovery: {overall:.0%} of fields, usable={usable}"
        )

        return PartialRecord(
            data=data,
            field_confidence=confidence,
            overall=overall,
            usable=usable,
            errors=errors,
            metadata={
                'mode': 'partial_recovery',
                'original_error': str(original_error) if original_error else None,
                'recovery_attempted': datetime.now(timezone.utc).isoformat(),
            },
        )

    # --- suggestions ----------------------------------------------------

    def suggest_recovery(
        self,
        error: CategorizedError,
        partial: PartialRecord,
    ) -> List[RecoverySuggestion]:
        """Prioritized actions for the caller, confidence band first."""
        suggestions: List[RecoverySuggestion] = []

        if error.type == 'pdf_parsing_error':
            suggestions.append(RecoverySuggestion(
                'resave_pdf', Priority.HIGH, 'Re-save the PDF using "Save As" in your PDF viewer'))
            suggestions.append(RecoverySuggestion(
                'check_corruption', Priority.HIGH, 'Verify PDF is not corrupted by opening in a PDF viewer'))
            if partial.usable:
                suggestions.append(RecoverySuggestion(
                    'use_partial_data', Priority.MEDIUM,
                    'Partial data extracted successfully - review and supplement manually'))

        elif error.type == 'field_extraction_error':
            if partial.usable:
                suggestions.append(RecoverySuggestion(
                    'manual_review', Priority.MEDIUM, 'Review partial data and manually add missing fields'))
            suggestions.append(RecoverySuggestion(
                'check_format', Priority.LOW, 'Verify invoice format matches supported Amazon templates'))

        elif error.type == 'file_access_error':
            suggestions.append(RecoverySuggestion(
                'check_permissions', Priority.HIGH, 'Ensure read permissions on file and directory'))
            suggestions.append(RecoverySuggestion(
                'verify_path', Priority.HIGH, 'Double-check file path and filename'))

        else:
            if partial.usable:
                suggestions.append(RecoverySuggestion(
                    'use_extracted_data', Priority.MEDIUM, 'Partial data available for use'))
            suggestions.append(RecoverySuggestion(
                'contact_support', Priority.LOW, 'Report issue for investigation'))

        if partial.overall > self.high_confidence:
            suggestions.insert(0, RecoverySuggestion(
                'high_confidence_data', Priority.HIGH, 'High confidence data extracted - safe to use'))
        elif partial.overall > self.usable_threshold:
            suggestions.insert(0, RecoverySuggestion(
                'medium_confidence_data', Priority.MEDIUM, 'Medium confidence data - manual verification recommended'))

        return suggestions
