"""
Performance Package

Parallel extraction across documents.

- worker_pool: bounded thread pool with a per-task time budget
- batch: fork/join batch processing, aggregates and performance report
"""

from .worker_pool import (
    WorkerPool,
    WorkerConfig,
    Task,
    TaskResult,
    TaskStatus,
)
from .batch import (
    BatchProcessor,
    BatchDocument,
    BatchResult,
    BatchSummary,
    CategoryMatcher,
    DocumentResult,
    generate_performance_report,
)

__all__ = [
    'WorkerPool',
    'WorkerConfig',
    'Task',
    'TaskResult',
    'TaskStatus',
    'BatchProcessor',
    'BatchDocument',
    'BatchResult',
    'BatchSummary',
    'CategoryMatcher',
    'DocumentResult',
    'generate_performance_report',
]
