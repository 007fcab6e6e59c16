"""
Tests for arithmetic checks, semantic rules and scoring.
"""

from datetime import date
from decimal import Decimal

from invoice_parser.extractors.models import InvoiceRecord, LineItem
from invoice_parser.validation import (
    ArithmeticChecker,
    FindingKind,
    InvoiceValidator,
    ValidatorConfig,
    check_mathematical_consistency,
)


def _record(**overrides):
    data = {
        'order_number': '123-4567890-1234567',
        'order_date': 'December 15, 2023',
        'order_date_iso': '2023-12-15',
        'subtotal': '$89.98',
        'tax': '$7.19',
        'total': '$97.17',
        'currency': 'USD',
    }
    data.update(overrides)
    return InvoiceRecord(**data)


def _item(description='Echo Dot (5th Gen)', quantity=1, unit='10.00', total=None, currency='USD'):
    return LineItem(
        description=description,
        quantity=quantity,
        unit_price=Decimal(unit),
        total_price=Decimal(total if total is not None else unit),
        currency=currency,
    )


class TestScoring:

    def setup_method(self):
        self.validator = InvoiceValidator(today=date(2024, 1, 1))

    def test_clean_record(self):
        result = self.validator.validate(_record())
        assert result.score == 100
        assert result.is_valid
        assert result.findings == []
        assert result.summary == 'All validations passed'

    def test_null_record(self):
        result = self.validator.validate(None)
        assert result.score == 0
        assert not result.is_valid
        assert result.find('null_invoice')

    def test_missing_order_number_is_error(self):
        result = self.validator.validate(_record(order_number=None))
        assert not result.is_valid
        assert result.score == 75
        assert result.errors[0].type == 'missing_critical_field'

    def test_malformed_order_number(self):
        result = self.validator.validate(_record(order_number='123-456-789'))
        assert result.find('format_error')
        assert result.score == 85

    def test_missing_total(self):
        result = self.validator.validate(_record(total=None))
        assert not result.is_valid
        assert result.find('missing_critical_field')[0].fields == ['total']

    def test_warnings_keep_record_valid(self):
        result = self.validator.validate(_record(total='$150.00'))
        assert result.is_valid
        assert result.score == 90
        assert result.warnings[0].kind == FindingKind.WARNING

    def test_score_clamped_at_zero(self):
        record = InvoiceRecord(order_date='undefined', subtotal='abc', shipping='xyz', tax='n/a', total='$0.50')
        result = self.validator.validate(record)
        assert result.score == 0

    def test_summary_counts(self):
        result = self.validator.validate(_record(order_number=None, total='$150.00'))
        assert result.summary == '2 validation issues found: 1 error, 1 warning'

    def test_to_dict(self):
        data = self.validator.validate(_record(total='$150.00')).to_dict()
        assert data['score'] == 90
        assert data['warnings'][0]['type'] == 'mathematical_inconsistency'


class TestArithmetic:

    def test_exact_sum(self):
        record = _record(subtotal='$90.00', shipping='$5.00', tax='$5.00', total='$100.00')
        assert check_mathematical_consistency(record) == []

    def test_inconsistent_total(self):
        record = _record(subtotal='$90.00', shipping='$5.00', tax='$5.00', total='$150.00')
        findings = check_mathematical_consistency(record)
        assert len(findings) == 1
        assert findings[0].type == 'mathematical_inconsistency'
        assert '33.3%' in findings[0].message
        assert findings[0].severity == 'medium'

    def test_within_one_percent(self):
        record = _record(subtotal='$1000.00', tax='$0.00', total='$1005.00')
        assert check_mathematical_consistency(record) == []

    def test_minor_unit_arithmetic(self):
        record = _record(subtotal='$0.10', shipping='$0.20', tax=None, total='$0.30')
        check = ArithmeticChecker().check_totals(record)
        assert check.calculated == 30
        assert check.difference == 0

    def test_multi_shipment_widens_tolerance(self):
        record = _record(subtotal='$90.00', tax='$6.00', total='$100.00')
        text = "Item(s) Subtotal: $45.00\nItem(s) Subtotal: $45.00"
        assert len(check_mathematical_consistency(record)) == 1
        assert check_mathematical_consistency(record, text) == []

    def test_complex_order_is_low_severity(self):
        record = _record(subtotal='$90.00', tax='$6.00', total='$150.00')
        text = "Item(s) Subtotal: $45.00\nItem(s) Subtotal: $45.00"
        finding = check_mathematical_consistency(record, text)[0]
        assert finding.severity == 'low'
        assert finding.penalty == 5
        assert finding.message.startswith('Complex order')

    def test_no_total_no_check(self):
        assert ArithmeticChecker().check_totals(_record(total=None)) is None

    def test_yen_tolerance(self):
        record = _record(subtotal='¥2,000', tax='¥200', total='¥2,200', currency='JPY')
        check = ArithmeticChecker().check_totals(record)
        assert check.total == 2200
        assert check.within_tolerance

    def test_line_item_mismatch(self):
        record = _record(subtotal='$25.00', tax=None, total='$25.00',
                         items=(_item(quantity=2, unit='10.00', total='25.00'),))
        findings = ArithmeticChecker().check_items(record)
        assert [f.type for f in findings] == ['line_item_mismatch']

    def test_item_subtotal_mismatch(self):
        record = _record(subtotal='$50.00', tax=None, total='$50.00', items=(_item(),))
        findings = ArithmeticChecker().check_items(record)
        assert [f.type for f in findings] == ['item_subtotal_mismatch']


class TestSemanticRules:

    def setup_method(self):
        self.validator = InvoiceValidator(today=date(2024, 1, 1))

    def test_future_date(self):
        result = self.validator.validate(_record(order_date='January 1, 2026', order_date_iso='2026-01-01'))
        assert result.find('future_date')

    def test_next_year_tolerated(self):
        result = self.validator.validate(_record(order_date='March 1, 2025', order_date_iso='2025-03-01'))
        assert not result.find('future_date')

    def test_very_old_date(self):
        result = self.validator.validate(_record(order_date='March 1, 2005', order_date_iso='2005-03-01'))
        assert result.find('very_old_date')

    def test_configurable_old_year(self):
        validator = InvoiceValidator(ValidatorConfig(very_old_year=2000), today=date(2024, 1, 1))
        result = validator.validate(_record(order_date='March 1, 2005', order_date_iso='2005-03-01'))
        assert not result.find('very_old_date')

    def test_placeholder_date(self):
        result = self.validator.validate(_record(order_date='undefined', order_date_iso=None))
        assert result.find('invalid_date_format')
        assert not result.is_valid

    def test_missing_date_penalty_depends_on_order_number(self):
        with_number = self.validator.validate(_record(order_date=None, order_date_iso=None))
        without = self.validator.validate(_record(order_number=None, order_date=None, order_date_iso=None))
        assert with_number.find('missing_date')[0].penalty == 10
        assert without.find('missing_date')[0].penalty == 20

    def test_inconsistent_invoice_currencies(self):
        result = self.validator.validate(_record(subtotal='$10.00', tax=None, total='10,00 €'))
        assert result.find('inconsistent_invoice_currencies')

    def test_item_only_currency_difference_is_free(self):
        record = _record(
            subtotal='$20.00', tax=None, total='$20.00',
            items=(_item(currency='USD'), _item(currency='EUR')),
        )
        result = self.validator.validate(record)
        finding = result.find('multiple_currencies')[0]
        assert finding.severity == 'info'
        assert finding.penalty == 0
        assert result.score == 100

    def test_invalid_currency_format(self):
        result = self.validator.validate(_record(subtotal='89.98', tax='7.19', total='97.17'))
        assert len(result.find('invalid_currency_format')) == 3

    def test_high_total(self):
        result = self.validator.validate(_record(subtotal='$12,000.00', tax=None, total='$12,000.00'))
        assert result.find('high_total_amount')

    def test_total_far_below_subtotal(self):
        result = self.validator.validate(_record(subtotal='$100.00', tax=None, total='$50.00'))
        assert result.find('data_consistency')


class TestCompleteness:

    def setup_method(self):
        self.validator = InvoiceValidator(today=date(2024, 1, 1))

    def test_summary_without_item_section(self):
        result = self.validator.validate(_record(), "Subtotal: $89.98\nGrand Total: $97.17")
        assert not result.find('no_items_found')

    def test_item_section_without_items(self):
        result = self.validator.validate(_record(), "Items Ordered\nSubtotal: $89.98")
        finding = result.find('no_items_found')[0]
        assert finding.severity == 'medium'
        assert finding.penalty == 5

    def test_anchor_without_items(self):
        result = self.validator.validate(_record(), "ASIN: B09B8V1LZ3\nSubtotal: $89.98")
        finding = result.find('no_items_found')[0]
        assert finding.severity == 'high'
        assert finding.penalty == 15
