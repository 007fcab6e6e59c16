"""
Format Classification

Decides whether a document follows the amazon.com layout or one of the
amazon.eu layouts, and for EU documents whether it is a business invoice
(VAT ids, company forms, tabular item block) or a consumer one.

Why this matters:
The language detector answers "which words", this answers "which layout".
A German amazon.de business invoice and a German consumer order
confirmation share a language but not an item-table structure; routing
them to the same extractor loses line items.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


AMAZON_COM = 'amazon.com'
AMAZON_EU = 'amazon.eu'

_EN_MONTHS = ['January', 'February', 'March', 'April', 'May', 'June', 'July',
              'August', 'September', 'October', 'November', 'December']

FORMAT_TOKENS: Dict[str, Dict[str, int]] = {
    AMAZON_COM: {
        'amazon.com': 40, 'Order #': 40, 'Order Placed:': 40,
        'Shipped to:': 40, 'Sold by:': 40, 'Shipped by:': 40,
        '$': 20, 'USD': 20,
        **{month: 15 for month in _EN_MONTHS},
    },
    AMAZON_EU: {
        'amazon.de': 40, 'amazon.fr': 40, 'amazon.it': 40, 'amazon.es': 40,
        'amazon.co.uk': 40, 'amazon.nl': 40, 'amazon.se': 40, 'amazon.pl': 40,
        'ASIN:': 40,
        '€': 20, 'EUR': 20, '£': 20, 'GBP': 20, 'CHF': 20,
        # German
        'Januar': 15, 'Februar': 15, 'März': 15, 'April': 15, 'Mai': 15,
        'Juni': 15, 'Juli': 15, 'August': 15, 'September': 15,
        'Oktober': 15, 'November': 15, 'Dezember': 15,
        # French (mai/avril/... collapse onto the German keys case-insensitively)
        'janvier': 15, 'février': 15, 'mars': 15, 'juin': 15, 'juillet': 15,
        'août': 15, 'septembre': 15, 'octobre': 15, 'novembre': 15, 'décembre': 15,
        # Spanish
        'enero': 15, 'febrero': 15, 'marzo': 15, 'abril': 15, 'mayo': 15,
        'junio': 15, 'julio': 15, 'agosto': 15, 'septiembre': 15,
        'octubre': 15, 'noviembre': 15, 'diciembre': 15,
        # Italian
        'gennaio': 15, 'febbraio': 15, 'aprile': 15, 'maggio': 15,
        'giugno': 15, 'luglio': 15, 'settembre': 15, 'ottobre': 15,
        'dicembre': 15,
        'Rechnung': 25, 'Commande': 25, 'Ordine': 25, 'Pedido': 25,
        'Bestellung': 25, 'Facture': 25, 'Fattura': 25, 'Factura': 25,
    },
}

SIGNIFICANT_SCORE = 25

BUSINESS_INDICATORS = [re.compile(p, flags) for p, flags in [
    (r'amazon\s+business', re.I),
    (r'Geschäftsadresse', 0),
    (r'Auftraggeber', 0),
    (r'Rechnung\s+an', 0),
    (r'Firma', 0),
    (r'USt-IdNr', 0),
    (r'Steuernummer', 0),
    (r'\bGmbH\b', re.I),
    (r'\bAG\b', 0),
    (r'\bUG\b', re.I),
    (r'\be\.V\.', re.I),
    (r'\bKGaA\b', re.I),
    (r'Dirección comercial', 0),
    (r'NIF sujeto de IVA', 0),
    (r'Adresse (?:professionnelle|commerciale)', 0),
    (r'Numéro de TVA', 0),
    (r'TVA\s+[A-Z]{2}\d', 0),
    (r'Facture\s+à', 0),
    (r'Entreprise', 0),
    (r'Société', 0),
    (r'S\.A\.R\.L', 0),
    (r'S\.A\.S', 0),
    (r'IVA\s+ES', 0),
    (r'TVA\s+FR', 0),
    (r'IVA\s+IT', 0),
    (r'Partita IVA', 0),
    (r'P\.?I\.?\s+\d', 0),
    (r'società', re.I),
    (r'azienda', re.I),
]]

CONSUMER_INDICATORS = [re.compile(p, flags) for p, flags in [
    (r'amazon\.de\b', re.I),
    (r'amazon\.fr\b', re.I),
    (r'amazon\.co\.uk\b', re.I),
    (r'Rechnungsadresse(?!.*Geschäftsadresse)', 0),
    (r'Steuerfreie Ausfuhrlieferung', 0),
    (r'Privatkunde', 0),
    (r'Endverbraucher', 0),
    (r'Lieferanschrift', 0),
    (r'Zahlungsmethode', 0),
]]

GERMAN_BUSINESS_TERMS = re.compile(r'Geschäftsadresse|USt-IdNr|Steuernummer|Rechnung\s+an|Firma', re.I)
GERMAN_CONSUMER_TERMS = re.compile(r'Privatkunde|Endverbraucher', re.I)
TABLE_BEFORE_ANCHOR = re.compile(r'\|\s*\d+\s*\|.*?ASIN:', re.S)
BUSINESS_ADDRESS_BLOCK = re.compile(r'Rechnung\s+an[\s\S]*?\n.*?\n.*?\n', re.I)


@dataclass
class FormatClassification:
    """Layout verdict for one document."""
    format: Optional[str]
    subtype: Optional[str]
    confidence: int
    quality: str
    action: str
    scores: Dict[str, int] = field(default_factory=dict)

    @property
    def is_eu(self) -> bool:
        return self.format == AMAZON_EU

    def to_dict(self) -> Dict[str, Any]:
        return {
            'format': self.format,
            'subtype': self.subtype,
            'confidence': self.confidence,
            'quality': self.quality,
            'action': self.action,
            'scores': self.scores,
        }


class FormatClassifier:
    """
    Weighted token scoring for amazon.com vs amazon.eu.

    Usage:
        classifier = FormatClassifier()
        result = classifier.classify(text)
        if result.is_eu and result.subtype == 'business':
            ...
    """

    def __init__(self, tokens: Optional[Dict[str, Dict[str, int]]] = None):
        self.tokens = tokens or FORMAT_TOKENS

    def classify(self, text: str) -> FormatClassification:
        """
        Classify the layout of a document.

        Empty input yields format None with a reject action.
        """
        if not text or not isinstance(text, str) or not text.strip():
            return FormatClassification(None, None, 0, 'VERY LOW', 'reject',
                                        {AMAZON_COM: 0, AMAZON_EU: 0})

        scores = self.calculate_scores(text)
        fmt = self.determine_format(scores)
        subtype = self.detect_eu_subtype(text) if fmt == AMAZON_EU else None
        confidence = self.calculate_confidence(scores, fmt)
        quality, action = self.determine_quality(confidence, scores)

        logger.debug(f"Format {fmt} ({subtype}) confidence={confidence} scores={scores}")
        return FormatClassification(fmt, subtype, confidence, quality, action, scores)

    def calculate_scores(self, text: str) -> Dict[str, int]:
        lowered = text.lower()
        scores = {}
        for fmt, tokens in self.tokens.items():
            # Keys differing only in case count once
            seen = set()
            total = 0
            for token, points in tokens.items():
                key = token.lower()
                if key in seen:
                    continue
                seen.add(key)
                if key in lowered:
                    total += points
            scores[fmt] = total
        return scores

    @staticmethod
    def determine_format(scores: Dict[str, int]) -> Optional[str]:
        com, eu = scores.get(AMAZON_COM, 0), scores.get(AMAZON_EU, 0)
        if com < SIGNIFICANT_SCORE and eu < SIGNIFICANT_SCORE:
            return None
        # EU wins ties: the product anchor is the stronger signal
        return AMAZON_EU if eu >= com else AMAZON_COM

    @staticmethod
    def calculate_confidence(scores: Dict[str, int], fmt: Optional[str]) -> int:
        if not fmt:
            return 0

        winner = scores[fmt]
        loser = scores[AMAZON_EU if fmt == AMAZON_COM else AMAZON_COM]
        ambiguous = winner >= SIGNIFICANT_SCORE and loser >= SIGNIFICANT_SCORE

        if winner >= 100:
            return 100
        if winner >= 80:
            return 60 if ambiguous else 80
        if winner >= 60:
            return 55 if ambiguous else 60
        if winner >= 40:
            return 40
        if winner >= SIGNIFICANT_SCORE:
            return 25
        return 15

    @staticmethod
    def determine_quality(confidence: int, scores: Dict[str, int]) -> Tuple[str, str]:
        """Quality band and recommended action."""
        if confidence < 25 or all(s < SIGNIFICANT_SCORE for s in scores.values()):
            return 'VERY LOW', 'reject'
        if confidence < 40:
            return 'LOW', 'review'
        if confidence < 70:
            return 'MEDIUM', 'review'
        return 'HIGH', 'accept'

    @staticmethod
    def detect_eu_subtype(text: str) -> str:
        """
        'business' or 'consumer'.

        Indicator counts decide; German-specific terms weigh double. On a
        tie, a pipe table in front of a product anchor or a "Rechnung an"
        address block means business. Everything else is consumer.
        """
        business = sum(1 for p in BUSINESS_INDICATORS if p.search(text))
        consumer = sum(1 for p in CONSUMER_INDICATORS if p.search(text))

        if GERMAN_BUSINESS_TERMS.search(text):
            business += 2
        if GERMAN_CONSUMER_TERMS.search(text):
            consumer += 2

        if business > consumer:
            return 'business'
        if consumer > business:
            return 'consumer'

        if TABLE_BEFORE_ANCHOR.search(text):
            return 'business'
        if BUSINESS_ADDRESS_BLOCK.search(text):
            return 'business'
        return 'consumer'
