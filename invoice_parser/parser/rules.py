"""
Rule Table Module

This module loads the ordered, locale-keyed extraction rules from
config/rules.yaml and the numeric thresholds from config/settings.yaml.

Architecture:
1. Load raw YAML with ConfigLoader
2. Expand shared macros ({amount}, {order}, ...) into every pattern
3. Resolve `extends:` chains so a child locale's rules run before its parent's
4. Compile every regex once; a bad pattern fails loudly at load time

Why a data-driven table:
Each locale needs a ladder of candidate patterns per field, from the most
specific label ("Grand Total") down to generic fallbacks. Keeping those
ladders as data means "first match wins" is enforced in one place, and a
single rule can be tested on its own without instantiating an extractor.
"""

import copy
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional, Union

import yaml
from loguru import logger

from ..exceptions import ConfigurationError, UnsupportedLocaleError


CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"
DEFAULT_RULES_PATH = CONFIG_DIR / "rules.yaml"
DEFAULT_SETTINGS_PATH = CONFIG_DIR / "settings.yaml"

FIELDS = ('order_number', 'order_date', 'subtotal', 'shipping', 'tax', 'discount', 'total')
MONEY_FIELDS = ('subtotal', 'shipping', 'tax', 'discount', 'total')

_FLAGS = re.IGNORECASE | re.MULTILINE


@dataclass
class FieldRule:
    """One candidate pattern for one field of one locale."""
    field_name: str
    pattern: str
    regex: re.Pattern
    locale: str                 # Locale the rule was declared in
    pick: str = 'first'         # 'first' or 'last' match in the text

    def matches(self, text: str) -> list[re.Match]:
        found = list(self.regex.finditer(text))
        return found[::-1] if self.pick == 'last' else found


@dataclass
class ItemLinePattern:
    """Line pattern for line-oriented item extraction."""
    regex: re.Pattern
    groups: list[str]

    def parse(self, line: str) -> Optional[dict]:
        match = self.regex.search(line)
        if not match:
            return None

        values: dict[str, str] = {}
        for name, value in zip(self.groups, match.groups()):
            if value is not None and name not in values:
                values[name] = value.strip()
        return values


@dataclass
class AnchorPriceRule:
    """Anchor line followed by a price line (ASIN then 'net € rate% gross € total €')."""
    anchor: re.Pattern
    price_line: re.Pattern
    unit_group: int
    total_group: int


@dataclass
class ItemRules:
    """Item-section configuration of a locale."""
    headings: Optional[re.Pattern] = None
    stop: Optional[re.Pattern] = None
    exclude: Optional[re.Pattern] = None
    anchor: Optional[AnchorPriceRule] = None
    lines: list[ItemLinePattern] = field(default_factory=list)
    table_anchored: Optional[str] = None    # 'business' | 'consumer'


@dataclass
class LocaleRules:
    """Resolved rules for a single locale."""
    code: str
    name: str
    language: str
    currency: str
    money_template: str
    default_description: str = 'Product'
    iso_dates: bool = False
    format: Optional[str] = None
    subtype: Optional[str] = None
    fields: dict[str, list[FieldRule]] = field(default_factory=dict)
    items: ItemRules = field(default_factory=ItemRules)
    parent: Optional[str] = None

    def rules_for(self, field_name: str) -> list[FieldRule]:
        return self.fields.get(field_name, [])

    def candidates(self, field_name: str, text: str) -> Iterator[tuple[FieldRule, str]]:
        """
        Yield (rule, captured value) for every match, in rule order.

        Callers take the first candidate they accept.
        """
        if not text:
            return

        for rule in self.rules_for(field_name):
            for match in rule.matches(text):
                value = match.group(1) if match.groups() else match.group(0)
                if value:
                    yield rule, value.strip()

    def money(self, amount: str) -> str:
        """Render a captured amount with the locale's currency template."""
        return self.money_template.format(amount=amount)


class ConfigLoader:
    """
    Loads YAML configuration files.

    Usage:
        loader = ConfigLoader()
        config = loader.load(Path("config/rules.yaml"))
    """

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path
        self.config: dict = {}

        if config_path:
            self.load(config_path)

    def load(self, config_path: Path) -> dict:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML config file

        Returns:
            Loaded configuration dict
        """
        logger.debug(f"Loading configuration from: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                self.config = yaml.safe_load(f) or {}
            self.config_path = Path(config_path)
            return self.config

        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load config {config_path}: {e}")
            raise ConfigurationError(f"Cannot load {config_path}: {e}") from e


def _deep_merge(base: dict, overrides: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(
    source: Union[str, Path, dict, None] = None,
) -> dict:
    """
    Load thresholds, merged over the packaged defaults.

    Args:
        source: Override file path or dict (partial overrides are fine)

    Returns:
        Settings dict with the detector/validator/tables/recovery/batch sections
    """
    settings = ConfigLoader(DEFAULT_SETTINGS_PATH).config

    if source is None:
        return settings
    if isinstance(source, dict):
        return _deep_merge(settings, source)
    return _deep_merge(settings, ConfigLoader(Path(source)).config)


class RuleTable:
    """
    Locale → field → ordered pattern list.

    Usage:
        table = RuleTable.default()
        rules = table.get("DE")
        for rule, value in rules.candidates("total", text):
            ...
    """

    _default: Optional['RuleTable'] = None

    def __init__(self, config: dict):
        self.macros: dict[str, str] = config.get('macros', {}) or {}
        self._raw_locales: dict[str, dict] = config.get('locales', {}) or {}
        self._defaults: dict = config.get('defaults', {}) or {}
        self.locales: dict[str, LocaleRules] = {}

        for code in self._raw_locales:
            self.locales[code] = self._build(code)

        logger.debug(f"Rule table ready with {len(self.locales)} locales")

    @classmethod
    def load(cls, path: Optional[Path] = None) -> 'RuleTable':
        return cls(ConfigLoader(path or DEFAULT_RULES_PATH).config)

    @classmethod
    def default(cls) -> 'RuleTable':
        """Packaged rule table, compiled once per process."""
        if cls._default is None:
            cls._default = cls.load()
        return cls._default

    def get(self, code: str) -> LocaleRules:
        try:
            return self.locales[code.upper()]
        except KeyError:
            raise UnsupportedLocaleError(code) from None

    def codes(self) -> list[str]:
        return list(self.locales)

    def __contains__(self, code: str) -> bool:
        return code.upper() in self.locales

    # --- building -----------------------------------------------------

    def expand(self, pattern: str) -> str:
        """Substitute {macro} placeholders."""
        for name, value in self.macros.items():
            pattern = pattern.replace('{' + name + '}', value)
        return pattern

    def compile(self, pattern: str, where: str) -> re.Pattern:
        expanded = self.expand(pattern)
        try:
            return re.compile(expanded, _FLAGS)
        except re.error as e:
            raise ConfigurationError(f"Invalid pattern in {where}: {pattern!r} ({e})") from e

    def _chain(self, code: str) -> list[str]:
        """Locale followed by its ancestors."""
        chain = []
        current: Optional[str] = code
        while current:
            if current in chain:
                raise ConfigurationError(f"Circular 'extends' at locale {current}")
            if current not in self._raw_locales:
                raise ConfigurationError(f"Locale {code} extends unknown locale {current}")
            chain.append(current)
            current = self._raw_locales[current].get('extends')
        return chain

    def _build(self, code: str) -> LocaleRules:
        chain = self._chain(code)
        raw = [self._raw_locales[c] for c in chain]

        def inherited(key: str, default: Any = None) -> Any:
            for entry in raw:
                if entry.get(key) is not None:
                    return entry[key]
            return default

        fields: dict[str, list[FieldRule]] = {}
        for field_name in FIELDS:
            rules = []
            for owner, entry in zip(chain, raw):
                rules.extend(self._field_rules(owner, field_name, entry.get('fields', {})))
            rules.extend(self._field_rules('defaults', field_name, self._defaults.get('fields', {})))
            fields[field_name] = rules

        return LocaleRules(
            code=code,
            name=inherited('name', code),
            language=inherited('language', 'en'),
            currency=inherited('currency', 'USD'),
            money_template=inherited('money_template', '{amount}'),
            default_description=inherited('default_description', 'Product'),
            iso_dates=bool(inherited('iso_dates', False)),
            format=inherited('format'),
            subtype=inherited('subtype'),
            fields=fields,
            items=self._item_rules(code, [entry.get('items', {}) or {} for entry in raw]),
            parent=self._raw_locales[code].get('extends'),
        )

    def _field_rules(self, owner: str, field_name: str, declared: dict) -> list[FieldRule]:
        rules = []
        for entry in declared.get(field_name, []) or []:
            if isinstance(entry, str):
                pattern, pick = entry, 'first'
            else:
                pattern, pick = entry['pattern'], entry.get('pick', 'first')

            rules.append(FieldRule(
                field_name=field_name,
                pattern=pattern,
                regex=self.compile(pattern, f"{owner}.{field_name}"),
                locale=owner,
                pick=pick,
            ))
        return rules

    def _item_rules(self, code: str, chain: list[dict]) -> ItemRules:
        def first(key: str) -> Any:
            for entry in chain:
                if entry.get(key):
                    return entry[key]
            return None

        where = f"{code}.items"
        items = ItemRules(table_anchored=first('table_anchored'))

        for key in ('headings', 'stop', 'exclude'):
            pattern = first(key)
            if pattern:
                setattr(items, key, self.compile(pattern, where))

        anchor = first('anchor')
        if anchor:
            items.anchor = AnchorPriceRule(
                anchor=self.compile(anchor['pattern'], where),
                price_line=self.compile(anchor['price_line'], where),
                unit_group=int(anchor.get('unit_group', 1)),
                total_group=int(anchor.get('total_group', 1)),
            )

        # Own line patterns first, then inherited ones
        for entry in chain:
            for line in entry.get('lines', []) or []:
                items.lines.append(ItemLinePattern(
                    regex=self.compile(line['pattern'], where),
                    groups=list(line.get('groups', [])),
                ))

        return items
