"""
Text Preprocessor

Cleans text handed over by the PDF-to-text step before detection and
extraction see it.

Why this matters:
Invoices saved by one tool and re-read by another frequently arrive with
UTF-8 bytes decoded as Latin-1 ("â‚¬" instead of "€", "Ã©" instead of "é").
Lexical anchors like "Numéro de commande" or "Zwischensumme" then never
match, and every downstream score collapses. Whitespace is also erratic:
tabs between table columns, runs of spaces, blank-line padding.

The preprocessor keeps line structure intact because the item extractors
reason line by line.
"""

from loguru import logger

from .normalizers import TextNormalizer


# Order matters: multi-byte sequences first, the bare 'Ã' last.
MOJIBAKE_FIXES = [
    ('â‚¬', '€'),
    ('Â£', '£'),
    ('Â¥', '¥'),
    ('Â°', '°'),
    ('Âº', 'º'),
    ('Â ', ' '),
    ('â€™', "'"),
    ('â€“', '-'),
    ('â€”', '-'),
    ('â€œ', '"'),
    ('â€', '"'),
    ('Ã©', 'é'),
    ('Ã¨', 'è'),
    ('Ãª', 'ê'),
    ('Ã«', 'ë'),
    ('Ã¡', 'á'),
    ('Ã¢', 'â'),
    ('Ã¤', 'ä'),
    ('Ã£', 'ã'),
    ('Ã¥', 'å'),
    ('Ã§', 'ç'),
    ('Ã­', 'í'),
    ('Ã®', 'î'),
    ('Ã¯', 'ï'),
    ('Ã³', 'ó'),
    ('Ã´', 'ô'),
    ('Ã¶', 'ö'),
    ('Ãµ', 'õ'),
    ('Ãº', 'ú'),
    ('Ã»', 'û'),
    ('Ã¼', 'ü'),
    ('Ã±', 'ñ'),
    ('Ã‰', 'É'),
    ('Ã„', 'Ä'),
    ('Ã–', 'Ö'),
    ('Ãœ', 'Ü'),
    ('ÃŸ', 'ß'),
    ('Ã', 'à'),
]


class InvoicePreprocessor:
    """
    Normalizes encoding artifacts and whitespace.

    Usage:
        preprocessor = InvoicePreprocessor()
        clean = preprocessor.preprocess(raw_text)
    """

    def __init__(self, fix_encoding: bool = True):
        self.fix_encoding = fix_encoding

    def preprocess(self, text) -> str:
        """
        Clean raw invoice text.

        Args:
            text: Raw text from the PDF-to-text step

        Returns:
            Cleaned text, or "" for empty/non-string input
        """
        if not text or not isinstance(text, str):
            return ""

        if self.fix_encoding:
            text = self.fix_mojibake(text)

        return TextNormalizer.normalize_whitespace(text)

    @staticmethod
    def fix_mojibake(text: str) -> str:
        """Replace common UTF-8-as-Latin-1 sequences."""
        if 'Ã' not in text and 'â' not in text and 'Â' not in text:
            return text

        fixed = text
        for broken, correct in MOJIBAKE_FIXES:
            fixed = fixed.replace(broken, correct)

        if fixed != text:
            logger.debug("Repaired mojibake sequences in input text")
        return fixed


def preprocess(text) -> str:
    """Quick function to preprocess text with default settings."""
    return InvoicePreprocessor().preprocess(text)
