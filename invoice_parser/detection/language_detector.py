"""
Language Detection

Scores raw invoice text against per-locale lexical signatures and picks the
best-guess locale.

Why this matters:
Every downstream step is locale specific: labels ("Zwischensumme" vs
"Subtotal"), date grammar ("15. Dezember 2023" vs "December 15, 2023") and
separator conventions ("1.234,56" vs "1,234.56"). Picking the wrong
extractor produces confident garbage, so detection reports a confidence
and declines (UNKNOWN) below a threshold instead of guessing.

Scoring per locale (independent, capped at 1.0):
- +0.15 per high-confidence anchor ("BESTELLNUMMER", "ORDER PLACED")
- +0.08 per medium-confidence phrase ("THANK YOU", "VIELE GRÜSSE")
- currency-format bonus (locale-typical amount notation)
- +0.10 for a locale-typical date format

Detection is pure: no state survives a call.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


UNKNOWN = 'UNKNOWN'

_EN_MONTHS = (
    'January|February|March|April|May|June|July|August|'
    'September|October|November|December'
)


@dataclass
class DetectorConfig:
    """Detector thresholds (settings.yaml → detector)."""
    min_confidence: float = 0.3
    high_pattern_weight: float = 0.15
    medium_pattern_weight: float = 0.08
    currency_bonus: float = 0.15
    date_bonus: float = 0.10

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'DetectorConfig':
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class DetectionResult:
    """Best-guess locale for a document."""
    language: str
    confidence: float
    evidence: str
    supported: bool
    scores: Dict[str, float] = field(default_factory=dict)

    @property
    def is_unknown(self) -> bool:
        return self.language == UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        return {
            'language': self.language,
            'confidence': self.confidence,
            'evidence': self.evidence,
            'supported': self.supported,
            'scores': self.scores,
        }


@dataclass
class LanguageSignature:
    """Lexical fingerprint of one locale."""
    code: str
    name: str
    high: List[str]
    medium: List[str]
    currency_bonus: Optional[Callable[[str, DetectorConfig], float]] = None
    date_pattern: Optional[str] = None
    word_boundaries: bool = True

    def __post_init__(self):
        self._high = [self._compile(p) for p in self.high]
        self._medium = [self._compile(p) for p in self.medium]
        self._date = re.compile(self.date_pattern, re.IGNORECASE) if self.date_pattern else None

    def _compile(self, pattern: str) -> re.Pattern:
        # Only anchor at word characters ("ASIN:" must still match "ASIN: B0...")
        if self.word_boundaries:
            if pattern[0].isalnum():
                pattern = r'\b' + pattern
            if pattern[-1].isalnum():
                pattern = pattern + r'\b'
        return re.compile(pattern, re.IGNORECASE)

    def score(self, text: str, config: DetectorConfig) -> float:
        total = 0.0
        total += config.high_pattern_weight * sum(1 for p in self._high if p.search(text))
        total += config.medium_pattern_weight * sum(1 for p in self._medium if p.search(text))

        if self.currency_bonus:
            total += self.currency_bonus(text, config)

        if self._date and self._date.search(text):
            total += config.date_bonus

        return min(total, 1.0)


# --- currency bonuses -------------------------------------------------------

def _count(pattern: str, text: str) -> int:
    return len(re.findall(pattern, text))


def _spanish_currency(text: str, config: DetectorConfig) -> float:
    count = _count(r'\d+[,.]\d{2}\s*€', text) + _count(r'\d{1,3}(?:\.\d{3})*,\d{2}\s*€', text)
    return min(count * 0.05, 0.20)


def _english_currency(text: str, config: DetectorConfig) -> float:
    count = _count(r'[$£]\s*\d{1,3}(?:[,.]\d{3})*[,.]?\d*', text)
    return min(count * 0.05, 0.15)


def _flat_bonus(pattern: str) -> Callable[[str, DetectorConfig], float]:
    regex = re.compile(pattern)

    def bonus(text: str, config: DetectorConfig) -> float:
        return config.currency_bonus if regex.search(text) else 0.0

    return bonus


_EURO_AMOUNT = r'\d+[,.]\d{2}\s*€'
_DOLLAR_AMOUNT = r'\$\s*\d{1,3}(?:[,.]\d{3})*[,.]\d{2}'
_SLASH_DATE = r'\d{1,2}/\d{1,2}/\d{4}'


SIGNATURES: List[LanguageSignature] = [
    LanguageSignature(
        code='ES', name='Spanish',
        high=[r'ASIN:', r'IVA \d', r'ESPAÑA', r'IMPORTE TOTAL', r'PEDIDO REALIZADO',
              r'FECHA DEL PEDIDO', r'NÚMERO DE PEDIDO', r'SUBTOTAL', r'TOTAL',
              r'ENVÍO', r'PRODUCTOS', r'DESCRIPCIÓN'],
        medium=[r'EL PEDIDO', r'SU PEDIDO', r'HA SIDO', r'GRACIAS POR', r'SU COMPRA'],
        currency_bonus=_spanish_currency,
        date_pattern=r'\d{1,2}[./]\d{1,2}[./]\d{4}',
    ),
    LanguageSignature(
        code='DE', name='German',
        high=[r'BESTELLNUMMER', r'BESTELLDATUM', r'ARTIKEL', r'ZWISCHENSUMME', r'VERSAND',
              r'MWST', r'GESAMTBETRAG', r'RECHNUNGSADRESSE', r'LIEFERADRESSE',
              r'ZAHLUNGSART', r'AMAZON\.DE'],
        medium=[r'IHR AUFTRAG', r'VIELE GRÜSSE', r'AMAZON EU S\.À R\.L', r'STEUERNR',
                r'UST-IDNR'],
        currency_bonus=_flat_bonus(_EURO_AMOUNT),
        date_pattern=r'\d{1,2}\.\d{1,2}\.\d{4}',
    ),
    LanguageSignature(
        code='EN', name='English',
        high=[r'ORDER PLACED', r'ORDER NUMBER', r'ORDER CONFIRMATION', r'ITEMS ORDERED',
              r'SHIPPING', r'SUBTOTAL', r'TAX', r'GRAND TOTAL', r'PAYMENT METHOD',
              r'BILLING ADDRESS', r'SHIPPING ADDRESS'],
        medium=[r'THANK YOU', r'FOR YOUR ORDER', r'AMAZON\.COM', r'AMAZON\.CA',
                r'AMAZON\.CO\.UK'],
        currency_bonus=_english_currency,
        date_pattern=rf'(?:{_EN_MONTHS})\s+\d{{1,2}},?\s+\d{{4}}',
    ),
    LanguageSignature(
        code='FR', name='French',
        high=[r'NUMÉRO DE COMMANDE', r'DATE DE COMMANDE', r'ARTICLES', r'SOUS-TOTAL',
              r'LIVRAISON', r'TVA', r'TOTAL TTC', r'MODE DE PAIEMENT',
              r'ADRESSE DE FACTURATION', r'ADRESSE DE LIVRAISON', r'AMAZON\.FR'],
        medium=[r'VOTRE COMMANDE', r'MERCI POUR', r'VOTRE ACHAT', r'NOUS VOUS', r'TÉLÉPHONE'],
        currency_bonus=_flat_bonus(_EURO_AMOUNT),
        date_pattern=r'\d{1,2}[./]\d{1,2}[./]\d{4}',
    ),
    LanguageSignature(
        code='IT', name='Italian',
        high=[r"NUMERO D'ORDINE", r"DATA DELL'ORDINE", r'ARTICOLI', r'SUBTOTALE',
              r'SPEDIZIONE', r'IVA', r'TOTALE', r'AMAZON\.IT'],
        medium=[r'IL TUO ORDINE', r'GRAZIE PER', r'IL TUO ACQUISTO', r'TELEFONO'],
        currency_bonus=_flat_bonus(_EURO_AMOUNT),
        date_pattern=r'\d{1,2}[./]\d{1,2}[./]\d{4}',
    ),
    LanguageSignature(
        code='JP', name='Japanese',
        high=[r'注文番号', r'注文日', r'商品', r'小計', r'配送料', r'消費税', r'合計',
              r'AMAZON\.CO\.JP'],
        medium=[r'お届け先', r'お支払い方法', r'円', r'年\d{1,2}月\d{1,2}日'],
        currency_bonus=_flat_bonus(r'[¥￥]\s*\d'),
        date_pattern=r'\d{4}年\d{1,2}月\d{1,2}日',
        word_boundaries=False,
    ),
    LanguageSignature(
        code='CA', name='Canadian French',
        high=[r'NUMÉRO DE COMMANDE', r'COMMANDE PASSÉE', r'ARTICLES', r'SOUS-TOTAL',
              r'LIVRAISON', r'TPS', r'TVH', r'À PAYER', r'AMAZON\.CA'],
        medium=[r'VOTRE COMMANDE', r'ADRESSE DE LIVRAISON', r'MODE DE PAIEMENT',
                r'CANADA', r'QUÉBEC'],
        currency_bonus=_flat_bonus(_DOLLAR_AMOUNT),
        date_pattern=_SLASH_DATE,
    ),
    LanguageSignature(
        code='AU', name='Australian English',
        high=[r'ORDER PLACED', r'ORDER NUMBER', r'ITEMS ORDERED', r'SHIPPING', r'SUBTOTAL',
              r'GST', r'GRAND TOTAL', r'PAYMENT METHOD', r'AMAZON\.COM\.AU'],
        medium=[r'DELIVERY', r'AUSTRALIA', r'THANK YOU', r'FOR YOUR ORDER'],
        currency_bonus=_flat_bonus(_DOLLAR_AMOUNT),
        date_pattern=_SLASH_DATE,
    ),
    LanguageSignature(
        code='CH', name='Swiss German',
        high=[r'BESTELLNUMMER', r'BESTELLDATUM', r'ARTIKEL', r'ZWISCHENSUMME', r'VERSAND',
              r'MWST', r'GESAMTBETRAG', r'ZAHLUNGSART', r'AMAZON\.DE', r'SCHWEIZ'],
        medium=[r'IHR AUFTRAG', r'VIELE GRÜSSE', r'CHF', r'STEUERNR'],
        currency_bonus=_flat_bonus(r'CHF\s*\d+[,.]\d{2}'),
        date_pattern=r'\d{1,2}\.\d{1,2}\.\d{4}',
    ),
    LanguageSignature(
        code='GB', name='British English',
        high=[r'ORDER PLACED', r'ORDER NUMBER', r'ORDER CONFIRMATION', r'ITEMS ORDERED',
              r'SHIPPING', r'SUBTOTAL', r'VAT', r'GRAND TOTAL', r'PAYMENT METHOD',
              r'AMAZON\.CO\.UK'],
        medium=[r'DELIVERY', r'POSTAGE', r'UNITED KINGDOM', r'THANK YOU', r'FOR YOUR ORDER'],
        currency_bonus=_flat_bonus(r'£\s*\d'),
        date_pattern=_SLASH_DATE,
    ),
]


class LanguageDetector:
    """
    Detects the locale of invoice text.

    Usage:
        detector = LanguageDetector()
        result = detector.detect(text)
        if not result.is_unknown:
            print(result.language, result.confidence)
    """

    def __init__(
        self,
        config: Optional[DetectorConfig] = None,
        signatures: Optional[List[LanguageSignature]] = None,
    ):
        self.config = config or DetectorConfig()
        self.signatures = signatures or SIGNATURES
        self._by_code = {s.code: s for s in self.signatures}

    @property
    def supported_languages(self) -> List[str]:
        return list(self._by_code)

    def language_name(self, code: str) -> str:
        signature = self._by_code.get(code)
        return signature.name if signature else 'Unknown'

    def score_all(self, text: str) -> Dict[str, float]:
        """Independent 0-1 score per locale, rounded to 2 decimals."""
        return {
            sig.code: round(sig.score(text, self.config), 2)
            for sig in self.signatures
        }

    def detect(self, text: Any) -> DetectionResult:
        """
        Detect the locale of a document.

        Args:
            text: Preprocessed invoice text (non-strings are treated as empty)

        Returns:
            DetectionResult; language is UNKNOWN below the confidence floor
        """
        if not text or not isinstance(text, str):
            return DetectionResult(UNKNOWN, 0.0, 'No text provided', False)

        scores = self.score_all(text)

        # Ties go to the earlier signature
        best_code, best_score = None, 0.0
        for code, score in scores.items():
            if score > best_score:
                best_code, best_score = code, score

        if best_code is None:
            logger.debug("No language patterns matched")
            return DetectionResult(UNKNOWN, 0.0, 'No language patterns detected', False, scores)

        if best_score < self.config.min_confidence:
            logger.debug(f"Best language {best_code} below threshold ({best_score:.2f})")
            return DetectionResult(UNKNOWN, best_score, 'Low confidence detection', False, scores)

        name = self.language_name(best_code)
        logger.debug(f"Detected {name} ({best_score:.2f})")
        return DetectionResult(
            language=best_code,
            confidence=best_score,
            evidence=f'Detected {name} patterns',
            supported=best_code in self._by_code,
            scores=scores,
        )


def detect_language(text: Any) -> DetectionResult:
    """Quick function to detect the locale of text."""
    return LanguageDetector().detect(text)
