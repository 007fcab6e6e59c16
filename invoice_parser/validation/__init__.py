"""
Cross-Field Validation Package

Checks that an extracted invoice is internally consistent, beyond what the
schema can express.

Validation Types:
- Arithmetic checks (subtotal + shipping + tax vs total, items vs subtotal)
- Field rules (order number format, date plausibility)
- Currency consistency and format
- Completeness (critical fields, item section)

Key Principle: findings are scored, never raised. A multi-shipment order
that does not add up is a warning, not a failed parse.

Usage:
    from invoice_parser.validation import InvoiceValidator

    result = InvoiceValidator().validate(record, text)
    for warning in result.warnings:
        print(f"{warning.severity}: {warning.message}")
"""

from .semantic_rules import (
    SemanticRules,
    ValidationFinding,
    ValidatorConfig,
    FindingKind,
)
from .arithmetic_checks import (
    ArithmeticChecker,
    TotalsCheck,
)
from .validator import (
    InvoiceValidator,
    ValidationResult,
    check_mathematical_consistency,
)

__all__ = [
    # Field rules
    'SemanticRules',
    'ValidationFinding',
    'ValidatorConfig',
    'FindingKind',

    # Arithmetic checks
    'ArithmeticChecker',
    'TotalsCheck',

    # Facade
    'InvoiceValidator',
    'ValidationResult',
    'check_mathematical_consistency',
]
