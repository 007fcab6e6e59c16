"""
Record Types

Data carried between extractors, the validator and downstream consumers.

InvoiceRecord is the boundary contract: it is built fresh for every parse,
filled field by field by one extractor, and frozen once returned. Attaching
the validation result or pipeline metadata produces a new record via
`with_changes()` rather than mutating the old one.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from ..validation.validator import ValidationResult


DEFAULT_VENDOR = 'Amazon'


@dataclass(frozen=True)
class LineItem:
    """A single purchased product."""

    description: str
    unit_price: Decimal
    total_price: Decimal
    quantity: int = 1
    currency: Optional[str] = None
    asin: Optional[str] = None      # Product anchor code, when present

    def to_dict(self) -> Dict[str, Any]:
        return {
            'description': self.description,
            'quantity': self.quantity,
            'unit_price': float(self.unit_price),
            'total_price': float(self.total_price),
            'currency': self.currency,
            'asin': self.asin,
        }


@dataclass(frozen=True)
class InvoiceRecord:
    """
    Structured result of parsing one invoice.

    Monetary fields keep the locale formatting of the source ("$97.17",
    "1.234,56 €"); arithmetic goes through the normalizers.
    """

    order_number: Optional[str] = None
    order_date: Optional[str] = None
    order_date_iso: Optional[str] = None
    items: Tuple[LineItem, ...] = ()
    subtotal: Optional[str] = None
    shipping: Optional[str] = None
    tax: Optional[str] = None
    discount: Optional[str] = None
    total: Optional[str] = None
    currency: Optional[str] = None
    vendor: str = DEFAULT_VENDOR
    locale: Optional[str] = None
    format: Optional[str] = None
    subtype: Optional[str] = None
    validation: Optional['ValidationResult'] = None
    error_recovery: Optional[Dict[str, Any]] = None
    extraction_metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InvoiceRecord':
        """Build a record from a schema-clean dict."""
        items = tuple(
            item if isinstance(item, LineItem) else LineItem(**item)
            for item in data.get('items') or ()
        )
        known = {
            k: v for k, v in data.items()
            if k in cls.__dataclass_fields__ and k != 'items' and v is not None
        }
        return cls(items=items, **known)

    def with_changes(self, **changes) -> 'InvoiceRecord':
        """Return a copy with some fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'order_number': self.order_number,
            'order_date': self.order_date,
            'order_date_iso': self.order_date_iso,
            'items': [item.to_dict() for item in self.items],
            'subtotal': self.subtotal,
            'shipping': self.shipping,
            'tax': self.tax,
            'discount': self.discount,
            'total': self.total,
            'currency': self.currency,
            'vendor': self.vendor,
            'locale': self.locale,
            'format': self.format,
            'subtype': self.subtype,
            'validation': self.validation.to_dict() if self.validation else None,
            'error_recovery': self.error_recovery,
            'extraction_metadata': self.extraction_metadata,
        }


class ErrorLevel(Enum):
    """How bad a categorized error is."""
    CRITICAL = "critical"       # Stop, surface to caller
    RECOVERABLE = "recoverable" # Try partial recovery
    INFO = "info"               # Log and continue


@dataclass
class CategorizedError:
    """An exception mapped onto the recovery taxonomy."""

    level: ErrorLevel
    type: str
    message: str
    context: str = ''
    recoverable: bool = False
    suggestion: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'level': self.level.value,
            'type': self.type,
            'message': self.message,
            'context': self.context,
            'recoverable': self.recoverable,
            'suggestion': self.suggestion,
        }


@dataclass
class FieldAttempt:
    """Outcome of re-running one field extractor during partial recovery."""
    value: Any
    confidence: float
    error: Optional[str] = None     # 'field_not_found' | 'extraction_error'
    message: Optional[str] = None


@dataclass
class PartialRecord:
    """Whatever could be salvaged from a failed extraction."""

    data: Dict[str, Any]
    field_confidence: Dict[str, float]
    overall: float
    usable: bool
    errors: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def missing_fields(self) -> List[str]:
        return [name for name, conf in self.field_confidence.items() if conf == 0.0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'data': {
                k: ([i.to_dict() for i in v] if k == 'items' and v else v)
                for k, v in self.data.items()
            },
            'field_confidence': self.field_confidence,
            'overall': round(self.overall, 2),
            'usable': self.usable,
            'errors': self.errors,
            'metadata': self.metadata,
        }


class Priority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class RecoverySuggestion:
    """An action a caller or operator can take after a failure."""
    action: str
    priority: Priority
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'action': self.action,
            'priority': self.priority.value,
            'description': self.description,
        }
