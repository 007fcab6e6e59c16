"""
Exception hierarchy for invoice parsing.

Field extractors never raise on malformed text; they return None. These
exceptions cover the cases that genuinely cannot continue:

- ExtractionError: an extractor failed unexpectedly (recoverable, the
  pipeline falls back to partial recovery)
- FileAccessError: the upstream document could not be read (critical)
- ConfigurationError: the rule table or settings are invalid
- UnsupportedLocaleError: a caller asked for a locale nobody registered
"""


class InvoiceParserError(Exception):
    """Base class for all invoice parser errors."""


class ExtractionError(InvoiceParserError):
    """Extraction failed in a way that partial recovery may still rescue."""

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class FileAccessError(InvoiceParserError):
    """Source document missing, unreadable, or of the wrong type."""


class ConfigurationError(InvoiceParserError):
    """Invalid rule table or settings file."""


class UnsupportedLocaleError(InvoiceParserError):
    """Requested locale has no registered extractor."""

    def __init__(self, locale: str):
        super().__init__(f"No extractor registered for locale '{locale}'")
        self.locale = locale
