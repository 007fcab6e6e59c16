"""
Batch Processing

Fan a list of documents out across the worker pool, then aggregate.

Fork/join:
Every worker produces its own independent InvoiceRecord. Nothing shared
is touched while workers run; currency totals, monthly spending and
category breakdowns are computed from the finished list only. A failed
or timed-out document shows up in the results with its status, it is
never silently dropped.

All money aggregation is done in integer minor units and formatted once,
at the end.
"""

from __future__ import annotations

import logging
import re
import time
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Union

from ..parser.normalizers import CurrencyNormalizer, TextNormalizer
from ..parser.rules import load_settings
from .worker_pool import Task, TaskResult, TaskStatus, WorkerConfig, WorkerPool

if TYPE_CHECKING:
    from ..extractors.models import InvoiceRecord
    from ..pipeline import InvoicePipeline

logger = logging.getLogger(__name__)

OTHER_CATEGORY = 'Other'

_currency = CurrencyNormalizer()


@dataclass
class BatchDocument:
    """Text of one document as handed over by the PDF text layer."""
    document_id: str
    text: str
    page_count: int = 0
    byte_size: int = 0


@dataclass
class DocumentResult:
    """Outcome of one document in a batch."""
    document_id: str
    status: str                 # success | unusable | failed | timeout
    record: Optional['InvoiceRecord'] = None
    error: Optional[str] = None
    processing_time: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == 'success'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'document_id': self.document_id,
            'status': self.status,
            'record': self.record.to_dict() if self.record else None,
            'error': self.error,
            'processing_time': round(self.processing_time, 3),
        }


class CategoryMatcher:
    """
    Keyword categories for line item descriptions.

    Keywords match on word boundaries, case-insensitive; the first
    category with a hit wins.
    """

    def __init__(self, categories: Optional[Dict[str, List[str]]] = None):
        self.categories = {
            name: re.compile(r'\b(?:' + '|'.join(re.escape(k) for k in keywords) + r')\b', re.I)
            for name, keywords in (categories or {}).items()
            if keywords
        }

    def categorize(self, description: Optional[str]) -> str:
        if description:
            for name, pattern in self.categories.items():
                if pattern.search(description):
                    return name
        return OTHER_CATEGORY


@dataclass
class BatchSummary:
    """
    Locale-keyed aggregates over a finished batch.

    Money is kept as {currency: minor units}; `formatted` renders it.
    """
    documents: int = 0
    records: int = 0
    currency_totals: Dict[str, int] = field(default_factory=dict)
    monthly_spending: Dict[str, Dict[str, int]] = field(default_factory=dict)
    category_spending: Dict[str, Dict[str, int]] = field(default_factory=dict)
    category_counts: Dict[str, int] = field(default_factory=dict)
    locale_counts: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_records(
        cls,
        records: Sequence[Optional['InvoiceRecord']],
        categories: Optional[Dict[str, List[str]]] = None,
    ) -> 'BatchSummary':
        """
        Aggregate finished records.

        Args:
            records: One entry per document; None entries count as documents only
            categories: Category name -> keywords (settings.yaml → batch.categories)
        """
        matcher = CategoryMatcher(categories)
        totals: Dict[str, int] = defaultdict(int)
        monthly: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        by_category: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        category_counts: Counter = Counter()
        locales: Counter = Counter()

        present = [r for r in records if r is not None]
        for record in present:
            locales[record.locale or 'UNKNOWN'] += 1
            currency = record.currency or _currency.extract_currency_code(record.total) or 'USD'

            total = _currency.to_minor_units(record.total, currency) if record.total else None
            if total is not None:
                totals[currency] += total
                if record.order_date_iso:
                    monthly[record.order_date_iso[:7]][currency] += total

            for item in record.items:
                category = matcher.categorize(item.description)
                category_counts[category] += 1
                item_currency = item.currency or currency
                by_category[category][item_currency] += _currency.decimal_to_minor(
                    item.total_price, item_currency)

        return cls(
            documents=len(records),
            records=len(present),
            currency_totals=dict(totals),
            monthly_spending={month: dict(v) for month, v in sorted(monthly.items())},
            category_spending={name: dict(v) for name, v in by_category.items()},
            category_counts=dict(category_counts),
            locale_counts=dict(locales),
        )

    @staticmethod
    def _format(amounts: Dict[str, int]) -> Dict[str, str]:
        return {code: _currency.format_amount(minor, code) for code, minor in amounts.items()}

    def formatted_totals(self) -> Dict[str, str]:
        return self._format(self.currency_totals)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'documents': self.documents,
            'records': self.records,
            'currency_totals': self.currency_totals,
            'currency_totals_formatted': self.formatted_totals(),
            'monthly_spending': {m: self._format(v) for m, v in self.monthly_spending.items()},
            'category_spending': {c: self._format(v) for c, v in self.category_spending.items()},
            'category_counts': self.category_counts,
            'locale_counts': self.locale_counts,
        }


@dataclass
class BatchResult:
    """Per-document results plus the aggregates computed after the join."""
    results: List[DocumentResult]
    summary: BatchSummary
    report: Dict[str, Any]
    total_time: float = 0.0
    pool_statistics: Dict[str, Any] = field(default_factory=dict)

    @property
    def records(self) -> List['InvoiceRecord']:
        return [r.record for r in self.results if r.record is not None]

    @property
    def failed(self) -> List[DocumentResult]:
        return [r for r in self.results if r.status in ('failed', 'timeout')]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'results': [r.to_dict() for r in self.results],
            'summary': self.summary.to_dict(),
            'report': self.report,
            'total_time': round(self.total_time, 2),
            'pool_statistics': self.pool_statistics,
        }


class BatchProcessor:
    """
    Parallel extraction over many documents.

    Usage:
        processor = BatchProcessor()
        batch = processor.process([
            BatchDocument('a.pdf', text_a),
            BatchDocument('b.pdf', text_b),
        ])
        print(batch.summary.formatted_totals())
        for failure in batch.failed:
            print(failure.document_id, failure.error)
    """

    def __init__(
        self,
        pipeline: Optional['InvoicePipeline'] = None,
        config: Optional[WorkerConfig] = None,
        settings: Optional[dict] = None,
    ):
        self.settings = settings if settings is not None else load_settings()
        batch = self.settings.get('batch', {}) or {}

        if pipeline is None:
            from ..pipeline import get_pipeline
            pipeline = get_pipeline()
        self.pipeline = pipeline
        self.config = config or WorkerConfig.from_dict(batch)
        self.categories = batch.get('categories', {}) or {}

    def process(self, documents: Sequence[Union[BatchDocument, str]]) -> BatchResult:
        """
        Extract every document, then aggregate.

        Args:
            documents: BatchDocuments (plain strings get positional ids)

        Returns:
            BatchResult in input order
        """
        docs = [
            d if isinstance(d, BatchDocument) else BatchDocument(document_id=f'doc-{i}', text=d)
            for i, d in enumerate(documents)
        ]
        start = time.time()

        tasks = [
            Task.create(self.pipeline.extract, doc.text, metadata={'document_id': doc.document_id})
            for doc in docs
        ]
        with WorkerPool(self.config) as pool:
            outcomes = pool.run(tasks)
            statistics = pool.get_statistics()

        # Join: everything below runs on the finished list only
        results = [self._to_result(doc, outcome) for doc, outcome in zip(docs, outcomes)]
        summary = BatchSummary.from_records([r.record for r in results], self.categories)
        report = generate_performance_report(results)

        total_time = time.time() - start
        logger.info(
            f"Batch of {len(docs)} documents: {report['successful']} ok, "
            f"{report['failed']} failed in {total_time:.2f}s"
        )
        return BatchResult(results, summary, report, total_time, statistics)

    @staticmethod
    def _to_result(doc: BatchDocument, outcome: TaskResult) -> DocumentResult:
        if outcome.status == TaskStatus.COMPLETED:
            record = outcome.result
            return DocumentResult(
                document_id=doc.document_id,
                status='success' if record is not None else 'unusable',
                record=record,
                error=None if record is not None else 'Partial recovery not usable',
                processing_time=outcome.duration,
            )

        status = 'timeout' if outcome.status == TaskStatus.TIMEOUT else 'failed'
        logger.warning(f"{doc.document_id}: {status} ({TextNormalizer.truncate(outcome.error or '', 200)})")
        return DocumentResult(
            document_id=doc.document_id,
            status=status,
            error=outcome.error,
            processing_time=outcome.duration,
        )


def generate_performance_report(results: Sequence[DocumentResult]) -> Dict[str, Any]:
    """
    Success rate, timings and per-field extraction rates for a batch.

    Per-field rates are taken from the extraction metrics each record
    carries; records without metrics (partial recovery) are measured
    directly.
    """
    from ..pipeline import METRIC_FIELDS, calculate_extraction_metrics

    total = len(results)
    successful = [r for r in results if r.success]
    times = [r.processing_time for r in results if r.processing_time > 0]

    field_hits: Counter = Counter()
    overall_scores: List[float] = []
    locales: Counter = Counter()
    for result in successful:
        metrics = result.record.extraction_metadata.get('metrics') or calculate_extraction_metrics(result.record)
        overall_scores.append(metrics['overall'])
        for name, ok in metrics['fields'].items():
            field_hits[name] += int(bool(ok))
        locales[result.record.locale or 'UNKNOWN'] += 1

    return {
        'total_documents': total,
        'successful': len(successful),
        'failed': total - len(successful),
        'success_rate': round(len(successful) / total, 3) if total else 0.0,
        'processing_time': {
            'min': round(min(times), 3) if times else 0.0,
            'avg': round(sum(times) / len(times), 3) if times else 0.0,
            'max': round(max(times), 3) if times else 0.0,
        },
        'average_extraction_success': (
            round(sum(overall_scores) / len(overall_scores), 3) if overall_scores else 0.0
        ),
        'field_success_rates': {
            name: round(field_hits[name] / len(successful), 3) if successful else 0.0
            for name in METRIC_FIELDS
        },
        'locale_counts': dict(locales),
    }
