"""
Extractor Registry

Locale code → extractor class, with a process-wide default instance that
knows every built-in locale.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Type

from ..exceptions import UnsupportedLocaleError
from .base import BaseExtractor
from .eu import EUBusinessExtractor, EUConsumerExtractor
from .locales import (
    CanadianFrenchExtractor,
    EnglishExtractor,
    FrenchExtractor,
    GermanExtractor,
    ItalianExtractor,
    JapaneseExtractor,
    SpanishExtractor,
    SwissExtractor,
    UKExtractor,
    USExtractor,
)

logger = logging.getLogger(__name__)


BUILTIN_EXTRACTORS: List[Type[BaseExtractor]] = [
    EnglishExtractor,
    USExtractor,
    UKExtractor,
    GermanExtractor,
    SwissExtractor,
    FrenchExtractor,
    CanadianFrenchExtractor,
    ItalianExtractor,
    SpanishExtractor,
    JapaneseExtractor,
    EUBusinessExtractor,
    EUConsumerExtractor,
]


class ExtractorRegistry:
    """
    Registry of locale extractors.

    Extractors are stateless, so one instance per locale is created
    lazily and reused.

    Usage:
        registry = ExtractorRegistry.get_instance()

        # Register a custom locale
        registry.register(MyDutchExtractor)

        # Get an extractor by locale code
        extractor = registry.get('DE')
        record = extractor.extract(text)
    """

    _instance: Optional['ExtractorRegistry'] = None

    def __init__(self, settings: Optional[dict] = None):
        self._classes: Dict[str, Type[BaseExtractor]] = {}
        self._instances: Dict[str, BaseExtractor] = {}
        self.settings = settings

    @classmethod
    def get_instance(cls) -> 'ExtractorRegistry':
        """Get singleton instance with the built-in locales registered."""
        if cls._instance is None:
            cls._instance = cls.with_builtins()
        return cls._instance

    @classmethod
    def with_builtins(cls, settings: Optional[dict] = None) -> 'ExtractorRegistry':
        registry = cls(settings)
        for extractor_cls in BUILTIN_EXTRACTORS:
            registry.register(extractor_cls)
        return registry

    def register(
        self,
        extractor_cls: Type[BaseExtractor],
        code: Optional[str] = None,
        overwrite: bool = False,
    ) -> None:
        """
        Register an extractor class.

        Args:
            extractor_cls: BaseExtractor subclass
            code: Locale code (defaults to the class's `code`)
            overwrite: Whether to replace an existing registration

        Raises:
            ValueError: If the code is taken and overwrite=False
        """
        code = (code or extractor_cls.code).upper()
        if not code:
            raise ValueError(f"{extractor_cls.__name__} has no locale code")
        if code in self._classes and not overwrite:
            raise ValueError(f"Extractor for locale '{code}' already registered")

        self._classes[code] = extractor_cls
        self._instances.pop(code, None)
        logger.debug(f"Registered extractor: {code} -> {extractor_cls.__name__}")

    def unregister(self, code: str) -> bool:
        code = code.upper()
        if code in self._classes:
            del self._classes[code]
            self._instances.pop(code, None)
            logger.info(f"Unregistered extractor: {code}")
            return True
        return False

    def get(self, code: str) -> BaseExtractor:
        """
        Get the extractor for a locale.

        Raises:
            UnsupportedLocaleError: If nothing is registered for the code
        """
        key = (code or '').upper()
        if key not in self._classes:
            raise UnsupportedLocaleError(code)

        if key not in self._instances:
            self._instances[key] = self._classes[key](settings=self.settings)
        return self._instances[key]

    def create(self, code: str) -> BaseExtractor:
        """A fresh, unshared extractor instance."""
        key = (code or '').upper()
        if key not in self._classes:
            raise UnsupportedLocaleError(code)
        return self._classes[key](settings=self.settings)

    def __contains__(self, code: str) -> bool:
        return (code or '').upper() in self._classes

    def list_codes(self) -> List[str]:
        """List all registered locale codes."""
        return list(self._classes.keys())


def get_registry() -> ExtractorRegistry:
    """Get the global registry instance."""
    return ExtractorRegistry.get_instance()


def get_extractor(code: str) -> BaseExtractor:
    """Get an extractor from the global registry."""
    return get_registry().get(code)


def list_locales() -> List[str]:
    """List all registered locale codes."""
    return get_registry().list_codes()
