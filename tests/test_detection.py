"""
Tests for locale detection and amazon.com / amazon.eu classification.
"""

from invoice_parser.detection.format_classifier import (
    AMAZON_COM,
    AMAZON_EU,
    FormatClassifier,
)
from invoice_parser.detection.language_detector import (
    UNKNOWN,
    DetectorConfig,
    LanguageDetector,
    detect_language,
)

ENGLISH_TEXT = """Order Placed: December 15, 2023
Order #123-4567890-1234567
Subtotal: $89.98
Tax: $7.19
Grand Total: $97.17"""

GERMAN_TEXT = """Bestellnummer: 302-1234567-7654321
Bestelldatum: 15.03.2024
Zwischensumme: 21,83 €
MwSt: 4,15 €
Gesamtbetrag: 25,98 €"""

FRENCH_TEXT = """Numéro de commande : 402-1234567-7654321
Date de commande : 12 mars 2024
Sous-total : 20,00 €
TVA 20% : 4,00 €
Total TTC : 24,00 €"""

JAPANESE_TEXT = """注文番号: 250-1234567-1234567
注文日: 2024年3月15日
小計: ￥1,200
合計: ￥1,320"""

EU_BUSINESS_TEXT = """amazon.de
Rechnung an
Musterfirma GmbH
USt-IdNr: DE123456789
| Echo Dot (5th Gen) Smart Speaker | 2 | 42,01 € | 19 % | 49,99 € | 99,98 € |
ASIN: B09B8V1LZ3"""

EU_CONSUMER_TEXT = """amazon.de
Lieferanschrift
Zahlungsmethode
Echo Dot (5th Gen) Smart Speaker
ASIN: B09B8V1LZ3
49,99 €"""


class TestLanguageDetector:
    """Tests for lexical locale detection."""

    def setup_method(self):
        self.detector = LanguageDetector()

    def test_empty_text(self):
        result = self.detector.detect("")
        assert result.language == UNKNOWN
        assert result.confidence == 0
        assert result.is_unknown

    def test_non_string(self):
        result = self.detector.detect(None)
        assert result.language == UNKNOWN
        assert result.confidence == 0

    def test_english(self):
        result = self.detector.detect(ENGLISH_TEXT)
        assert result.language == 'EN'
        assert result.confidence >= 0.8
        assert result.supported

    def test_german(self):
        result = self.detector.detect(GERMAN_TEXT)
        assert result.language == 'DE'
        assert result.confidence == 1.0

    def test_french(self):
        assert self.detector.detect(FRENCH_TEXT).language == 'FR'

    def test_japanese(self):
        assert self.detector.detect(JAPANESE_TEXT).language == 'JP'

    def test_no_patterns(self):
        result = self.detector.detect("hello world")
        assert result.language == UNKNOWN
        assert result.confidence == 0

    def test_below_threshold(self):
        result = self.detector.detect("Total: 5")
        assert result.language == UNKNOWN
        assert 0 < result.confidence < 0.3

    def test_threshold_is_configurable(self):
        detector = LanguageDetector(DetectorConfig(min_confidence=0.1))
        assert detector.detect("Total: 5").language == 'ES'

    def test_scores_cover_all_signatures(self):
        scores = self.detector.score_all(GERMAN_TEXT)
        assert set(scores) == set(self.detector.supported_languages)
        assert all(0.0 <= s <= 1.0 for s in scores.values())

    def test_language_name(self):
        assert self.detector.language_name('DE') == 'German'
        assert self.detector.language_name('XX') == 'Unknown'

    def test_config_from_dict_ignores_unknown(self):
        config = DetectorConfig.from_dict({'min_confidence': 0.5, 'bogus': 1})
        assert config.min_confidence == 0.5

    def test_module_function(self):
        assert detect_language(GERMAN_TEXT).language == 'DE'

    def test_to_dict(self):
        data = self.detector.detect(GERMAN_TEXT).to_dict()
        assert data['language'] == 'DE'
        assert 'scores' in data


class TestFormatClassifier:
    """Tests for layout classification and EU subtype detection."""

    def setup_method(self):
        self.classifier = FormatClassifier()

    def test_empty(self):
        result = self.classifier.classify("")
        assert result.format is None
        assert result.confidence == 0
        assert result.action == 'reject'

    def test_amazon_com(self):
        result = self.classifier.classify(ENGLISH_TEXT)
        assert result.format == AMAZON_COM
        assert result.subtype is None
        assert not result.is_eu
        assert result.quality == 'HIGH'
        assert result.action == 'accept'

    def test_eu_business(self):
        result = self.classifier.classify(EU_BUSINESS_TEXT)
        assert result.format == AMAZON_EU
        assert result.subtype == 'business'
        assert result.is_eu

    def test_eu_consumer(self):
        result = self.classifier.classify(EU_CONSUMER_TEXT)
        assert result.format == AMAZON_EU
        assert result.subtype == 'consumer'

    def test_insignificant_scores(self):
        result = self.classifier.classify("nothing to see here")
        assert result.format is None
        assert result.quality == 'VERY LOW'

    def test_eu_wins_ties(self):
        assert FormatClassifier.determine_format({AMAZON_COM: 40, AMAZON_EU: 40}) == AMAZON_EU

    def test_ambiguous_confidence_lowered(self):
        clear = FormatClassifier.calculate_confidence({AMAZON_COM: 85, AMAZON_EU: 0}, AMAZON_COM)
        ambiguous = FormatClassifier.calculate_confidence({AMAZON_COM: 85, AMAZON_EU: 30}, AMAZON_COM)
        assert clear == 80
        assert ambiguous == 60

    def test_subtype_tie_falls_back_to_table(self):
        text = "| Kabel | 1 | 9,99 € |\nASIN: B000000001"
        assert FormatClassifier.detect_eu_subtype(text) == 'business'

    def test_subtype_default_consumer(self):
        assert FormatClassifier.detect_eu_subtype("ASIN: B000000001") == 'consumer'

    def test_quality_bands(self):
        scores = {AMAZON_COM: 100, AMAZON_EU: 0}
        assert FormatClassifier.determine_quality(100, scores) == ('HIGH', 'accept')
        assert FormatClassifier.determine_quality(60, scores) == ('MEDIUM', 'review')
        assert FormatClassifier.determine_quality(25, scores) == ('LOW', 'review')
