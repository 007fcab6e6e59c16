"""
Worker Pool

Bounded thread pool for parallel invoice extraction with a per-task
wall-clock budget.

Extraction is CPU-bound regex matching over an in-memory string and holds
no shared state, so documents can run side by side without locking. The
budget bounds worst-case pattern matching on adversarial input: a task
that overruns is reported as TIMEOUT and its result discarded.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class TaskStatus(Enum):
    """Status of a task."""

    PENDING = auto()
    RUNNING = auto()
    COMPLETED = auto()
    FAILED = auto()
    TIMEOUT = auto()


@dataclass
class Task:
    """
    A unit of work for the pool.
    """
    task_id: str
    func: Callable
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    timeout: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        func: Callable,
        *args,
        timeout: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> 'Task':
        """Create a new task."""
        return cls(
            task_id=str(uuid.uuid4()),
            func=func,
            args=args,
            kwargs=kwargs,
            timeout=timeout,
            metadata=metadata or {},
        )


@dataclass
class TaskResult:
    """
    Result of task execution.
    """
    task_id: str
    status: TaskStatus
    result: Any = None
    error: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        """Execution duration in seconds."""
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0

    @property
    def success(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'task_id': self.task_id,
            'status': self.status.name,
            'error': self.error,
            'duration': round(self.duration, 3),
            'metadata': self.metadata,
        }


@dataclass
class WorkerConfig:
    """Configuration for the worker pool (settings.yaml → batch)."""

    num_workers: int = 4
    default_timeout: float = 30.0
    poll_interval: float = 0.05

    # Called with every finished TaskResult
    on_task_complete: Optional[Callable[[TaskResult], None]] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'WorkerConfig':
        data = data or {}
        return cls(
            num_workers=int(data.get('max_workers', cls.num_workers)),
            default_timeout=float(data.get('timeout_per_document', cls.default_timeout)),
        )


class WorkerPool:
    """
    Thread pool that runs tasks and collects their results in order.

    Features:
    - Bounded number of worker threads
    - Per-task timeout
    - Failures captured as results, never raised from run()
    - Statistics

    Usage:
        with WorkerPool(WorkerConfig(num_workers=4)) as pool:
            tasks = [Task.create(extract, text, timeout=30) for text in texts]
            for result in pool.run(tasks):
                print(result.status, result.duration)
    """

    def __init__(self, config: Optional[WorkerConfig] = None):
        self.config = config or WorkerConfig()
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, self.config.num_workers),
            thread_name_prefix='extract',
        )

        self._started: Dict[str, float] = {}
        self._tasks_submitted = 0
        self._tasks_completed = 0
        self._tasks_failed = 0
        self._tasks_timed_out = 0

        self._lock = threading.Lock()
        self._shutdown = False

        logger.info(f"Worker pool initialized with {self.config.num_workers} threads")

    def submit(self, task: Task) -> Future:
        """Submit a task; the future resolves to a TaskResult."""
        if self._shutdown:
            raise RuntimeError("Pool is shut down")

        with self._lock:
            self._tasks_submitted += 1
        return self._executor.submit(self._execute_task, task)

    def _execute_task(self, task: Task) -> TaskResult:
        start_time = datetime.now()
        with self._lock:
            self._started[task.task_id] = time.monotonic()

        try:
            result = task.func(*task.args, **task.kwargs)
            return TaskResult(
                task_id=task.task_id,
                status=TaskStatus.COMPLETED,
                result=result,
                start_time=start_time,
                end_time=datetime.now(),
                metadata=task.metadata,
            )
        except Exception as e:
            logger.warning(f"Task {task.task_id} failed: {e}")
            return TaskResult(
                task_id=task.task_id,
                status=TaskStatus.FAILED,
                error=str(e),
                start_time=start_time,
                end_time=datetime.now(),
                metadata=task.metadata,
            )

    def run(self, tasks: List[Task]) -> List[TaskResult]:
        """
        Run tasks and wait for all of them.

        Args:
            tasks: Tasks to execute

        Returns:
            One TaskResult per task, in submission order
        """
        futures = {self.submit(task): index for index, task in enumerate(tasks)}
        results: Dict[int, TaskResult] = {}
        pending = set(futures)

        while pending:
            done, pending = wait(pending, timeout=self.config.poll_interval, return_when=FIRST_COMPLETED)

            for future in done:
                index = futures[future]
                results[index] = self._record(future.result())

            now = time.monotonic()
            for future in list(pending):
                task = tasks[futures[future]]
                budget = task.timeout or self.config.default_timeout
                with self._lock:
                    started = self._started.get(task.task_id)
                if started is not None and now - started > budget:
                    # The thread cannot be interrupted; its result is dropped
                    pending.discard(future)
                    future.cancel()
                    results[futures[future]] = self._record(TaskResult(
                        task_id=task.task_id,
                        status=TaskStatus.TIMEOUT,
                        error=f"Timed out after {budget:.1f}s",
                        metadata=task.metadata,
                    ))

        return [results[index] for index in range(len(tasks))]

    def _record(self, result: TaskResult) -> TaskResult:
        with self._lock:
            self._started.pop(result.task_id, None)
            if result.success:
                self._tasks_completed += 1
            elif result.status == TaskStatus.TIMEOUT:
                self._tasks_timed_out += 1
            else:
                self._tasks_failed += 1

        if self.config.on_task_complete:
            self.config.on_task_complete(result)
        return result

    def get_statistics(self) -> Dict[str, Any]:
        """Get pool statistics."""
        with self._lock:
            return {
                'num_workers': self.config.num_workers,
                'tasks_submitted': self._tasks_submitted,
                'tasks_completed': self._tasks_completed,
                'tasks_failed': self._tasks_failed,
                'tasks_timed_out': self._tasks_timed_out,
                'success_rate': (
                    self._tasks_completed / self._tasks_submitted
                    if self._tasks_submitted > 0 else 0.0
                ),
            }

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown the worker pool.

        Args:
            wait: Whether to wait for running tasks
        """
        self._shutdown = True
        self._executor.shutdown(wait=wait)
        logger.info("Worker pool shut down")

    def __enter__(self) -> 'WorkerPool':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        # Do not block on threads that overran their budget
        self.shutdown(wait=self._tasks_timed_out == 0)
