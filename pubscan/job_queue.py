"""Background job queue for scan jobs.

Scan jobs are created synchronously by the HTTP layer and then handed to this
queue, which runs them on daemon worker threads. Each submitted job gets a
completion event so callers (and tests) can wait for it explicitly.
"""

from __future__ import annotations

import logging
import os
import threading
import uuid
from collections import deque
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger('pubscan.job_queue')

# Job statuses
STATUS_PROCESSING = 'processing'
STATUS_COMPLETED = 'completed'
STATUS_FAILED = 'failed'

FailureHandler = Callable[[str, Exception], None]

# Completion events kept for finished jobs before the oldest are dropped
DEFAULT_MAX_FINISHED = 1000


def generate_job_id() -> str:
    """Generate unique job ID."""
    return f"scan_{uuid.uuid4().hex}"


def _default_workers() -> int:
    try:
        return max(1, int(os.environ.get('PUBSCAN_JOB_WORKERS', '2')))
    except ValueError:
        return 2


class ScanJobQueue:
    """Worker pool running one scan job per thread at a time.

    Jobs never share a thread, so several jobs may progress concurrently as
    independent sequential loops. There is no mid-job cancellation: stopping
    the queue lets running jobs finish before their threads exit.
    """

    def __init__(self, workers: Optional[int] = None, on_failure: Optional[FailureHandler] = None,
                 poll_interval: float = 0.5, max_finished: int = DEFAULT_MAX_FINISHED):
        """Initialize job queue.

        Args:
            workers: Number of worker threads (default PUBSCAN_JOB_WORKERS or 2)
            on_failure: Called with (job_id, exc) when a job function raises
            poll_interval: Idle wait between queue checks, in seconds
            max_finished: Finished jobs remembered by wait/is_done
        """
        self._workers = workers if workers is not None else _default_workers()
        self._on_failure = on_failure
        self._poll_interval = poll_interval
        self._threads: List[threading.Thread] = []
        self._stop_event = threading.Event()
        self._job_queue: List[Tuple[str, Callable, tuple]] = []
        self._queue_lock = threading.Lock()
        self._done: Dict[str, threading.Event] = {}
        self._finished: deque = deque()
        self._max_finished = max(1, max_finished)
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def set_failure_handler(self, handler: Optional[FailureHandler]):
        self._on_failure = handler

    def start_worker(self):
        """Start background worker threads."""
        if self._started:
            return
        self._stop_event.clear()
        self._threads = []
        for i in range(self._workers):
            t = threading.Thread(target=self._worker_loop, daemon=True, name=f'scan-worker-{i}')
            t.start()
            self._threads.append(t)
        self._started = True
        logger.info("Job queue started workers=%d", self._workers)

    def stop_worker(self, timeout: float = 5.0):
        """Stop background worker threads."""
        if not self._started:
            return
        self._stop_event.set()
        for t in self._threads:
            t.join(timeout=timeout)
        self._threads = []
        self._started = False
        logger.info("Job queue stopped")

    def submit(self, job_id: str, fn: Callable, *args) -> str:
        """Queue ``fn(*args)`` under ``job_id``. Returns immediately."""
        with self._queue_lock:
            if job_id in self._done:
                raise ValueError(f'job {job_id} already submitted')
            self._done[job_id] = threading.Event()
            self._job_queue.append((job_id, fn, args))
        logger.debug("job queued id=%s pending=%d", job_id, self.pending())
        return job_id

    def wait(self, job_id: str, timeout: Optional[float] = None) -> bool:
        """Block until the job finished (either way). False on timeout or unknown id."""
        with self._queue_lock:
            event = self._done.get(job_id)
        if event is None:
            return False
        return event.wait(timeout)

    def is_done(self, job_id: str) -> bool:
        with self._queue_lock:
            event = self._done.get(job_id)
        return bool(event and event.is_set())

    def pending(self) -> int:
        with self._queue_lock:
            return len(self._job_queue)

    def _dequeue(self) -> Optional[Tuple[str, Callable, tuple]]:
        """Get next job from queue."""
        with self._queue_lock:
            if self._job_queue:
                return self._job_queue.pop(0)
            return None

    def _worker_loop(self):
        """Background worker loop."""
        logger.debug("Worker loop started thread=%s", threading.current_thread().name)
        while not self._stop_event.is_set():
            item = self._dequeue()
            if item is None:
                self._stop_event.wait(self._poll_interval)
                continue
            self._run(*item)
        logger.debug("Worker loop stopped thread=%s", threading.current_thread().name)

    def _run(self, job_id: str, fn: Callable, args: tuple):
        try:
            fn(*args)
        except Exception as e:
            logger.error("Error processing job %s: %s", job_id, e, exc_info=True)
            if self._on_failure is not None:
                try:
                    self._on_failure(job_id, e)
                except Exception as cb_err:
                    logger.error("failure handler raised for job %s: %s", job_id, cb_err)
        finally:
            with self._queue_lock:
                event = self._done.get(job_id)
                self._finished.append(job_id)
                while len(self._finished) > self._max_finished:
                    self._done.pop(self._finished.popleft(), None)
            if event is not None:
                event.set()


# Global job queue instance
_job_queue: Optional[ScanJobQueue] = None


def get_job_queue() -> ScanJobQueue:
    """Get or create global job queue instance."""
    global _job_queue
    if _job_queue is None:
        _job_queue = ScanJobQueue()
    return _job_queue


def init_job_queue(workers: Optional[int] = None, on_failure: Optional[FailureHandler] = None) -> ScanJobQueue:
    """Initialize and start the global job queue."""
    global _job_queue
    if _job_queue is not None:
        _job_queue.stop_worker()
    _job_queue = ScanJobQueue(workers=workers, on_failure=on_failure)
    _job_queue.start_worker()
    return _job_queue


def shutdown_job_queue():
    """Stop the job queue workers."""
    global _job_queue
    if _job_queue:
        _job_queue.stop_worker()
        _job_queue = None
