"""
Concurrent all-pairs comparison.

A producer thread feeds every unordered index pair into a bounded job
queue, a fixed pool of worker threads scores the pairs, and the calling
thread drains a bounded results queue while reporting progress. The pool
lives only for the duration of one ``find_similar`` call.
"""

import logging
import os
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from ..errors import ComparisonError, ComparisonRunError, ConfigurationError
from ..core.function import FunctionDescriptor
from .detector import Match, SimilarityDetector

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

_POLL_INTERVAL = 0.05
_MAX_REPORTED_ERRORS = 20


class SchedulerState(Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ComparisonJob:
    """One unordered pair of descriptor indices (index_a < index_b)."""

    index_a: int
    index_b: int


@dataclass
class ComparisonResult:
    """Outcome of a single job."""

    job: ComparisonJob
    match: Optional[Match] = None
    error: Optional[ComparisonError] = None
    completed: bool = True

    @property
    def success(self) -> bool:
        return self.completed and self.error is None


def resolve_workers(workers: int) -> int:
    """Non-positive worker counts mean one worker per CPU."""
    if workers <= 0:
        return os.cpu_count() or 1
    return workers


class ParallelComparisonScheduler:
    """
    Runs the O(n^2) pairwise comparison across a pool of worker threads.
    """

    def __init__(self, detector: SimilarityDetector,
                 workers: Optional[int] = None,
                 progress_interval: Optional[int] = None,
                 queue_size: Optional[int] = None,
                 stop_on_error: bool = False):
        """
        Initialize the scheduler.

        Args:
            detector: Detector used for every comparison
            workers: Worker threads; <= 0 means CPU count, None uses the
                detector's configuration
            progress_interval: Completed comparisons between progress callbacks
            queue_size: Capacity of the job and result queues
            stop_on_error: Skip the remaining comparisons after the first failure
        """
        config = detector.config
        self.detector = detector
        self.workers = resolve_workers(config.workers if workers is None else workers)
        self.progress_interval = progress_interval or config.progress_interval
        self.queue_size = queue_size or self.workers * 64
        self.stop_on_error = stop_on_error

        if self.progress_interval <= 0:
            raise ConfigurationError("progress_interval must be positive",
                                     field_name="progress_interval", value=self.progress_interval)
        if self.queue_size <= 0:
            raise ConfigurationError("queue_size must be positive",
                                     field_name="queue_size", value=self.queue_size)

        self.state = SchedulerState.IDLE
        self._run_lock = threading.Lock()

    def find_similar(
        self,
        functions: Sequence[FunctionDescriptor],
        progress_callback: Optional[ProgressCallback] = None
    ) -> Tuple[List[Match], Optional[ComparisonRunError]]:
        """
        Compare every unordered pair of functions.

        Args:
            functions: Descriptors to compare
            progress_callback: Called as ``callback(completed, total)`` every
                ``progress_interval`` results and once after the last one

        Returns:
            Matches ordered by pair index, and an aggregate error when any
            comparison failed or was skipped (None otherwise)
        """
        functions = list(functions)
        n = len(functions)
        if n < 2:
            return [], None

        with self._run_lock:
            return self._run(functions, progress_callback)

    def _run(self, functions: List[FunctionDescriptor],
             progress_callback: Optional[ProgressCallback]):
        n = len(functions)
        total = n * (n - 1) // 2
        worker_count = min(self.workers, total)

        jobs: queue.Queue = queue.Queue(maxsize=self.queue_size)
        results: queue.Queue = queue.Queue(maxsize=self.queue_size)
        stop_event = threading.Event()
        failure_event = threading.Event()

        logger.info(f"Comparing {n} functions ({total} pairs) with {worker_count} workers")
        start_time = time.time()

        threads = [threading.Thread(
            target=self._produce,
            args=(n, worker_count, jobs, stop_event),
            name="ComparisonProducer",
            daemon=True,
        )]
        for i in range(worker_count):
            threads.append(threading.Thread(
                target=self._worker,
                args=(functions, jobs, results, stop_event, failure_event),
                name=f"ComparisonWorker-{i}",
                daemon=True,
            ))

        matches: List[Tuple[ComparisonJob, Match]] = []
        errors: List[ComparisonError] = []
        failed = skipped = 0

        self.state = SchedulerState.DISPATCHING
        try:
            for thread in threads:
                thread.start()

            self.state = SchedulerState.DRAINING
            received = 0
            while received < total:
                try:
                    result = results.get(timeout=_POLL_INTERVAL)
                except queue.Empty:
                    continue
                received += 1

                if result.error is not None:
                    failed += 1
                    if len(errors) < _MAX_REPORTED_ERRORS:
                        errors.append(result.error)
                elif not result.completed:
                    skipped += 1
                elif result.match is not None:
                    matches.append((result.job, result.match))

                if progress_callback is not None and (
                        received % self.progress_interval == 0 or received == total):
                    progress_callback(received, total)
        finally:
            stop_event.set()
            for thread in threads:
                thread.join()
            self.state = SchedulerState.COMPLETE

        matches.sort(key=lambda item: (item[0].index_a, item[0].index_b))
        duration = time.time() - start_time
        logger.info(f"Finished {total} comparisons in {duration:.2f}s: "
                    f"{len(matches)} matches, {failed} errors, {skipped} skipped")

        run_error = None
        if failed or skipped:
            run_error = ComparisonRunError(failed=failed, total=total,
                                           skipped=skipped, errors=errors)
        return [match for _, match in matches], run_error

    def _produce(self, n: int, worker_count: int,
                 jobs: queue.Queue, stop_event: threading.Event):
        """Enqueue every pair, then one sentinel per worker."""
        for i in range(n):
            for j in range(i + 1, n):
                if not _put(jobs, ComparisonJob(i, j), stop_event):
                    return
        for _ in range(worker_count):
            if not _put(jobs, None, stop_event):
                return

    def _worker(self, functions: List[FunctionDescriptor],
                jobs: queue.Queue, results: queue.Queue,
                stop_event: threading.Event, failure_event: threading.Event):
        """Worker thread function."""
        while not stop_event.is_set():
            try:
                job = jobs.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue

            if job is None:  # Sentinel
                break

            if self.stop_on_error and failure_event.is_set():
                result = ComparisonResult(job, completed=False)
            else:
                result = self._compare(functions, job, failure_event)

            if not _put(results, result, stop_event):
                break

    def _compare(self, functions: List[FunctionDescriptor], job: ComparisonJob,
                 failure_event: threading.Event) -> ComparisonResult:
        a, b = functions[job.index_a], functions[job.index_b]
        try:
            return ComparisonResult(job, match=self.detector.compare(a, b))
        except Exception as e:
            failure_event.set()
            logger.warning(f"Comparison of {a.qualified_location} and "
                           f"{b.qualified_location} failed: {e}")
            error = ComparisonError(
                f"Failed to compare {a.name} and {b.name}: {e}",
                index_a=job.index_a, index_b=job.index_b, cause=e,
            )
            return ComparisonResult(job, error=error, completed=False)


def _put(target: queue.Queue, item, stop_event: threading.Event) -> bool:
    """Blocking put that gives up once the run is being torn down."""
    while not stop_event.is_set():
        try:
            target.put(item, timeout=_POLL_INTERVAL)
            return True
        except queue.Full:
            continue
    return False
