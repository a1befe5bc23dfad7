"""
=============================================================================
WORKER POOL
=============================================================================

A fixed number of long-lived worker threads, all consuming from one
JobQueue. Each worker runs the same loop forever:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Worker Loop                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. job = queue.take()         (blocks while the queue is empty)   │
    │          │                                                           │
    │          ├── QueueClosed → exit loop, thread terminates             │
    │          │                                                           │
    │   2. handler(job)               (one request, end to end)           │
    │          │                                                           │
    │          └── exception → log it, keep the worker alive              │
    │                                                                      │
    │   3. back to 1                                                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

There is no work stealing and no resizing: N workers are created by
start() and live until shutdown(). A job is owned by exactly one worker,
because take() hands each slot out once.

=============================================================================
"""

import threading
import time
import logging
from enum import Enum
from typing import Callable, Generic, List, Optional, TypeVar

from .job_queue import JobQueue, QueueClosed


logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkerState(Enum):
    """
    Worker thread states.

    Used for monitoring and debugging the pool.
    """
    IDLE = "idle"        # Waiting in take()
    BUSY = "busy"        # Handling a job
    STOPPED = "stopped"  # Thread exited


class Worker(threading.Thread, Generic[T]):
    """Worker thread that handles jobs taken from the queue."""

    def __init__(
        self,
        job_queue: JobQueue[T],
        handler: Callable[[T], None],
        worker_id: int,
    ):
        """
        Initialize the worker.

        Args:
            job_queue: Queue to take jobs from.
            handler: Called once per job. Must fully consume the job.
            worker_id: Identifier used in the thread name and logs.
        """
        # daemon=True: workers never keep the process alive on their own
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.job_queue = job_queue
        self.handler = handler
        self.worker_id = worker_id

        self.state = WorkerState.IDLE

        # Metrics
        self.jobs_completed = 0
        self.jobs_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while True:
            try:
                job = self.job_queue.take()
            except QueueClosed:
                break

            self._handle(job)

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _handle(self, job: T):
        """
        Run the handler on one job.

        Any exception is absorbed here: one failed request must not end
        the worker or touch other jobs.
        """
        self.state = WorkerState.BUSY
        start_time = time.monotonic()

        try:
            self.handler(job)

            elapsed = time.monotonic() - start_time
            logger.debug(f"Worker {self.worker_id} completed job in {elapsed:.3f}s")
            self.jobs_completed += 1

        except Exception as e:
            elapsed = time.monotonic() - start_time
            logger.exception(
                f"Worker {self.worker_id} job failed after {elapsed:.3f}s: {e}"
            )
            self.jobs_failed += 1

        finally:
            self.state = WorkerState.IDLE


class WorkerPool(Generic[T]):
    """
    Fixed-size pool of Worker threads sharing one JobQueue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      WorkerPool Usage                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   jobs = JobQueue(capacity=100)                                     │
    │   pool = WorkerPool(jobs, handle_connection, size=4)                │
    │   pool.start()                                                       │
    │                                                                      │
    │   jobs.submit(conn)        # some worker picks it up                │
    │                                                                      │
    │   print(pool.stats)        # {"workers": {"busy": 1, ...}, ...}     │
    │                                                                      │
    │   pool.shutdown()          # closes the queue, joins workers        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(
        self,
        job_queue: JobQueue[T],
        handler: Callable[[T], None],
        size: int = 4,
    ):
        """
        Initialize the pool. No threads are created until start().

        Args:
            job_queue: The shared queue every worker consumes from.
            handler: Per-job callable run inside a worker thread.
            size: Number of workers (N).
        """
        if size < 1:
            raise ValueError(f"size must be >= 1, got {size}")

        self.job_queue = job_queue
        self.handler = handler
        self.size = size

        self._workers: List[Worker[T]] = []
        self._lock = threading.Lock()  # Protects _workers and _started
        self._started = False

    def start(self):
        """Create and start all N workers."""
        with self._lock:
            if self._started:
                return  # Already started

            logger.info(f"Starting worker pool with {self.size} workers")

            for worker_id in range(self.size):
                worker = Worker(self.job_queue, self.handler, worker_id)
                self._workers.append(worker)
                worker.start()

            self._started = True

    def shutdown(self, timeout: Optional[float] = 5.0):
        """
        Stop every worker.

        Closing the queue is the stop signal: workers finish the jobs that
        are still pending, then take() raises QueueClosed and they exit.

        Args:
            timeout: Seconds to wait for each worker to exit.
        """
        with self._lock:
            if not self._started:
                return

            logger.info("Shutting down worker pool...")
            self.job_queue.close()

            for worker in self._workers:
                worker.join(timeout=timeout)
                if worker.is_alive():
                    logger.warning(f"Worker {worker.worker_id} did not stop within {timeout}s")

            self._started = False

        logger.info("Worker pool shutdown complete")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def workers(self) -> List[Worker[T]]:
        return list(self._workers)

    @property
    def active_workers(self) -> int:
        """Count of workers whose thread is still alive."""
        return sum(1 for w in self._workers if w.is_alive())

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def stats(self) -> dict:
        """
        Worker and job counts for logs and tests.

        Counters are read without locking; values are approximate while
        workers are running.
        """
        return {
            "workers": {
                "total": len(self._workers),
                "active": self.active_workers,
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "jobs": {
                "queued": self.job_queue.size,
                "completed": sum(w.jobs_completed for w in self._workers),
                "failed": sum(w.jobs_failed for w in self._workers),
            },
        }
