"""
Tests for batch processing, aggregation and the worker pool.
"""

import time

from invoice_parser.parser.rules import load_settings
from invoice_parser.performance import (
    BatchDocument,
    BatchProcessor,
    BatchSummary,
    CategoryMatcher,
    Task,
    TaskStatus,
    WorkerConfig,
    WorkerPool,
    generate_performance_report,
)
from invoice_parser.pipeline import InvoicePipeline

ENGLISH_TEXT = """Order Placed: December 15, 2023
Order #123-4567890-1234567
Subtotal: $89.98
Tax: $7.19
Grand Total: $97.17"""

GERMAN_TEXT = """Bestellnummer: 302-1234567-7654321
Bestelldatum: 15. März 2024
Artikel
2 x USB-C Ladekabel 12,99 €
Zwischensumme: 21,83 €
Versandkosten: 0,00 €
MwSt. 19%: 4,15 €
Gesamtbetrag: 25,98 €"""


class FlakyPipeline:
    """Real pipeline that blows up on one marker document."""

    def __init__(self):
        self.pipeline = InvoicePipeline()

    def extract(self, text):
        if text == 'BOOM':
            raise RuntimeError('boom')
        return self.pipeline.extract(text)


class TestBatchProcessor:

    def setup_method(self):
        processor = BatchProcessor(FlakyPipeline(), WorkerConfig(num_workers=2))
        self.batch = processor.process([
            BatchDocument('us.pdf', ENGLISH_TEXT),
            BatchDocument('de.pdf', GERMAN_TEXT),
            BatchDocument('broken.pdf', 'BOOM'),
        ])

    def test_results_in_input_order(self):
        ids = [r.document_id for r in self.batch.results]
        assert ids == ['us.pdf', 'de.pdf', 'broken.pdf']

    def test_failure_reported(self):
        assert [r.status for r in self.batch.results] == ['success', 'success', 'failed']
        failed = self.batch.failed
        assert len(failed) == 1
        assert failed[0].document_id == 'broken.pdf'
        assert failed[0].error == 'boom'
        assert failed[0].record is None

    def test_records(self):
        assert [r.locale for r in self.batch.records] == ['US', 'DE']

    def test_currency_totals(self):
        summary = self.batch.summary
        assert summary.documents == 3
        assert summary.records == 2
        assert summary.currency_totals == {'USD': 9717, 'EUR': 2598}
        assert summary.formatted_totals() == {'USD': '$97.17', 'EUR': '25,98 €'}

    def test_monthly_spending(self):
        assert self.batch.summary.monthly_spending == {
            '2023-12': {'USD': 9717},
            '2024-03': {'EUR': 2598},
        }

    def test_categories(self):
        summary = self.batch.summary
        assert summary.category_counts == {'Electronics': 1}
        assert summary.category_spending == {'Electronics': {'EUR': 2598}}

    def test_locale_counts(self):
        assert self.batch.summary.locale_counts == {'US': 1, 'DE': 1}

    def test_report(self):
        report = self.batch.report
        assert report['total_documents'] == 3
        assert report['successful'] == 2
        assert report['failed'] == 1
        assert report['success_rate'] == 0.667
        assert report['field_success_rates']['order_number'] == 1.0
        assert report['field_success_rates']['items'] == 0.5
        assert report['field_success_rates']['shipping'] == 0.5

    def test_pool_statistics(self):
        stats = self.batch.pool_statistics
        assert stats['tasks_submitted'] == 3
        assert stats['tasks_completed'] == 2
        assert stats['tasks_failed'] == 1

    def test_to_dict(self):
        data = self.batch.to_dict()
        assert data['summary']['currency_totals_formatted']['USD'] == '$97.17'
        assert data['results'][2]['status'] == 'failed'
        assert data['results'][0]['record']['total'] == '$97.17'

    def test_plain_strings_get_ids(self):
        processor = BatchProcessor(FlakyPipeline(), WorkerConfig(num_workers=1))
        batch = processor.process([ENGLISH_TEXT])
        assert batch.results[0].document_id == 'doc-0'


class TestBatchSummary:

    def test_empty(self):
        summary = BatchSummary.from_records([])
        assert summary.documents == 0
        assert summary.currency_totals == {}

    def test_missing_records_count_as_documents(self):
        record = InvoicePipeline().extract(ENGLISH_TEXT)
        summary = BatchSummary.from_records([record, None, record])
        assert summary.documents == 3
        assert summary.records == 2
        assert summary.currency_totals == {'USD': 19434}
        assert summary.formatted_totals() == {'USD': '$194.34'}

    def test_empty_report(self):
        report = generate_performance_report([])
        assert report['success_rate'] == 0.0
        assert report['field_success_rates']['total'] == 0.0


class TestCategoryMatcher:

    def setup_method(self):
        self.matcher = CategoryMatcher(load_settings()['batch']['categories'])

    def test_keyword_match(self):
        assert self.matcher.categorize('Echo Dot (5th Gen) Smart Speaker') == 'Electronics'
        assert self.matcher.categorize('Organic coffee beans 1kg') == 'Food & Grocery'

    def test_word_boundary(self):
        assert self.matcher.categorize('Smartphone') == 'Other'

    def test_first_category_wins(self):
        assert self.matcher.categorize('Kindle book') == 'Electronics'

    def test_missing_description(self):
        assert self.matcher.categorize(None) == 'Other'

    def test_no_categories(self):
        assert CategoryMatcher().categorize('Echo Dot') == 'Other'


class TestWorkerPool:

    def test_results_keep_order(self):
        with WorkerPool(WorkerConfig(num_workers=3)) as pool:
            results = pool.run([Task.create(str.upper, word) for word in ['a', 'b', 'c', 'd']])
        assert [r.result for r in results] == ['A', 'B', 'C', 'D']
        assert all(r.status == TaskStatus.COMPLETED for r in results)

    def test_failure_captured(self):
        with WorkerPool(WorkerConfig(num_workers=1)) as pool:
            result = pool.run([Task.create(int, 'x')])[0]
        assert result.status == TaskStatus.FAILED
        assert 'invalid literal' in result.error

    def test_timeout(self):
        with WorkerPool(WorkerConfig(num_workers=1, poll_interval=0.01)) as pool:
            result = pool.run([Task.create(time.sleep, 0.5, timeout=0.05)])[0]
            stats = pool.get_statistics()
        assert result.status == TaskStatus.TIMEOUT
        assert stats['tasks_timed_out'] == 1

    def test_statistics(self):
        with WorkerPool(WorkerConfig(num_workers=2)) as pool:
            pool.run([Task.create(len, 'abc'), Task.create(int, 'x')])
            stats = pool.get_statistics()
        assert stats['tasks_submitted'] == 2
        assert stats['tasks_completed'] == 1
        assert stats['tasks_failed'] == 1
        assert stats['success_rate'] == 0.5

    def test_completion_callback(self):
        seen = []
        config = WorkerConfig(num_workers=1, on_task_complete=seen.append)
        with WorkerPool(config) as pool:
            pool.run([Task.create(len, 'ab')])
        assert [r.result for r in seen] == [2]

    def test_config_from_settings(self):
        config = WorkerConfig.from_dict({'max_workers': 8, 'timeout_per_document': 5})
        assert config.num_workers == 8
        assert config.default_timeout == 5.0
