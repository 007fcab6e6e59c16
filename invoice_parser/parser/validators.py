"""
Schema Contract Module

Pydantic models that enforce the InvoiceRecord boundary contract: field
set, types and nullability.

Why this matters:
Extractors hand over loosely typed dicts assembled from regex captures.
Downstream consumers (exporters, batch aggregation) rely on exact types:
an order number that is always 3-7-7, a quantity that is a positive int,
non-negative prices. A single bad field must not sink the whole parse, so
enforcement is field-local:
- Unknown keys are ignored
- A failing field is reset to its default and a warning is logged
- A failing line item is dropped on its own
"""

import re
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from loguru import logger


ORDER_NUMBER_PATTERN = re.compile(r'^\d{3}-\d{7}-\d{7}$')


def is_valid_order_number(value: Optional[str]) -> bool:
    """Three digit groups of exactly 3, 7 and 7 digits."""
    if not value:
        return False
    return bool(ORDER_NUMBER_PATTERN.match(value))


class LineItemSchema(BaseModel):
    """One purchased product."""
    model_config = ConfigDict(extra='ignore')

    description: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal = Field(ge=0)
    total_price: Decimal = Field(ge=0)
    currency: Optional[str] = None
    asin: Optional[str] = None

    @field_validator('description')
    @classmethod
    def strip_description(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Description is blank')
        return v


class InvoiceSchema(BaseModel):
    """
    Invoice-level fields.

    Items are validated separately through LineItemSchema so a broken row
    can be dropped without touching the rest of the invoice.
    """
    model_config = ConfigDict(extra='ignore')

    order_number: Optional[str] = None
    order_date: Optional[str] = None
    order_date_iso: Optional[str] = None
    subtotal: Optional[str] = None
    shipping: Optional[str] = None
    tax: Optional[str] = None
    discount: Optional[str] = None
    total: Optional[str] = None
    currency: Optional[str] = None
    vendor: str = 'Amazon'
    locale: Optional[str] = None
    format: Optional[str] = None
    subtype: Optional[str] = None

    @field_validator('order_number')
    @classmethod
    def validate_order_number(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        if not is_valid_order_number(v):
            raise ValueError(f'Order number {v!r} is not 3-7-7 digits')
        return v

    @field_validator('subtotal', 'shipping', 'tax', 'discount', 'total')
    @classmethod
    def validate_money(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        if not any(c.isdigit() for c in v):
            raise ValueError(f'Amount {v!r} has no digits')
        return v

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v):
        if v is None:
            return None
        v = str(v).strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError(f'Invalid currency: {v}')
        return v


def enforce_schema(data: dict) -> dict:
    """
    Validate a raw extraction dict against the boundary contract.

    Args:
        data: Raw dict from an extractor (may contain unknown keys)

    Returns:
        Clean dict; invalid fields reset, invalid items dropped
    """
    items = []
    for index, raw_item in enumerate(data.get('items') or []):
        try:
            items.append(LineItemSchema.model_validate(raw_item).model_dump())
        except ValidationError as e:
            logger.warning(f"Dropping line item {index}: {e.errors()[0]['msg']}")

    fields: dict[str, Any] = {k: v for k, v in data.items() if k != 'items'}

    # Each pass removes at least one offending field
    for _ in range(len(InvoiceSchema.model_fields) + 1):
        try:
            model = InvoiceSchema.model_validate(fields)
            break
        except ValidationError as e:
            for error in e.errors():
                name = error['loc'][0] if error['loc'] else None
                if name in fields:
                    logger.warning(f"Schema rejected {name}={fields[name]!r}: {error['msg']}")
                    fields.pop(name)
    else:
        model = InvoiceSchema()

    clean = model.model_dump()
    clean['items'] = items
    return clean
