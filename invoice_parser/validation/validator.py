"""
Cross-Field Validator

Combines the arithmetic checks and the semantic rules into one scored
ValidationResult.

Scoring model:
- Start at 100
- Subtract each finding's penalty (5-25 by severity and criticality)
- Clamp at 0
- `is_valid` is True iff no finding is an error; arithmetic mismatches
  are always warnings

Validation never raises. A record that cannot be checked at all is an
error finding, not an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from .arithmetic_checks import ArithmeticChecker
from .semantic_rules import FindingKind, SemanticRules, ValidationFinding, ValidatorConfig

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """
    Outcome of validating one record.

    Usage:
        result = InvoiceValidator().validate(record)
        if not result.is_valid:
            for error in result.errors:
                print(error)
    """
    score: int
    is_valid: bool
    warnings: List[ValidationFinding] = field(default_factory=list)
    errors: List[ValidationFinding] = field(default_factory=list)
    summary: str = ''

    @property
    def findings(self) -> List[ValidationFinding]:
        return self.errors + self.warnings

    def find(self, finding_type: str) -> List[ValidationFinding]:
        """All findings of one type."""
        return [f for f in self.findings if f.type == finding_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'is_valid': self.is_valid,
            'warnings': [w.to_dict() for w in self.warnings],
            'errors': [e.to_dict() for e in self.errors],
            'summary': self.summary,
        }


def summarize(errors: int, warnings: int) -> str:
    issues = errors + warnings
    if issues == 0:
        return 'All validations passed'

    parts = []
    if errors:
        parts.append(f"{errors} error{'s' if errors > 1 else ''}")
    if warnings:
        parts.append(f"{warnings} warning{'s' if warnings > 1 else ''}")
    return f"{issues} validation issue{'s' if issues > 1 else ''} found: {', '.join(parts)}"


class InvoiceValidator:
    """
    Scores an InvoiceRecord.

    The optional source text feeds the multi-shipment heuristic and the
    item-section check; everything else looks at the record alone.

    Usage:
        validator = InvoiceValidator(ValidatorConfig.from_dict(settings['validator']))
        result = validator.validate(record, text)
        print(result.score, result.summary)
    """

    def __init__(self, config: Optional[ValidatorConfig] = None, today: Optional[date] = None):
        self.config = config or ValidatorConfig()
        self.arithmetic = ArithmeticChecker(self.config)
        self.rules = SemanticRules(self.config, today=today)

    def validate(self, record, text: Optional[str] = None) -> ValidationResult:
        if record is None:
            error = ValidationFinding(
                'null_invoice', FindingKind.ERROR, 'high',
                'Invoice data is null', penalty=100,
            )
            return ValidationResult(0, False, [], [error], 'Invoice data is null')

        findings = self.arithmetic.check(record, text)
        findings.extend(self.rules.check_all(record, text))

        errors = [f for f in findings if f.is_error]
        warnings = [f for f in findings if not f.is_error]
        score = max(0, 100 - sum(f.penalty for f in findings))

        result = ValidationResult(
            score=score,
            is_valid=not errors,
            warnings=warnings,
            errors=errors,
            summary=summarize(len(errors), len(warnings)),
        )
        logger.debug(f"Validation score={score} ({result.summary})")
        return result


def check_mathematical_consistency(
    record,
    text: Optional[str] = None,
    config: Optional[ValidatorConfig] = None,
) -> List[ValidationFinding]:
    """Quick function to run only the totals check."""
    checker = ArithmeticChecker(config)
    check = checker.check_totals(record, text)
    if check is None or check.within_tolerance:
        return []
    return [checker._totals_finding(check, record.currency)]
