"""
Detection Package

Cheap checks that run before any field is extracted:
- language_detector: which locale wrote the invoice
- format_classifier: amazon.com or amazon.eu layout, and the EU subtype
"""

from .language_detector import (
    LanguageDetector,
    DetectionResult,
    DetectorConfig,
    LanguageSignature,
    SIGNATURES,
    UNKNOWN,
    detect_language,
)
from .format_classifier import (
    FormatClassifier,
    FormatClassification,
    AMAZON_COM,
    AMAZON_EU,
)

__all__ = [
    'LanguageDetector',
    'DetectionResult',
    'DetectorConfig',
    'LanguageSignature',
    'SIGNATURES',
    'UNKNOWN',
    'detect_language',
    'FormatClassifier',
    'FormatClassification',
    'AMAZON_COM',
    'AMAZON_EU',
]
