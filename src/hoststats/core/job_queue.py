"""
=============================================================================
BOUNDED JOB QUEUE
=============================================================================

A fixed-capacity circular buffer that hands accepted connections from the
acceptor (the only producer) to the worker threads (the consumers).

=============================================================================
RING BUFFER LAYOUT
=============================================================================

    capacity = 8, count = 3

        head              tail
          │                 │
          ▼                 ▼
    ┌───┬───┬───┬───┬───┬───┬───┬───┐
    │   │ A │ B │ C │   │   │   │   │
    └───┴───┴───┴───┴───┴───┴───┴───┘
          0   1   2     (FIFO order)

    submit(D):  slots[tail] = D; tail = (tail + 1) % capacity; count += 1
    take():     job = slots[head]; head = (head + 1) % capacity; count -= 1

    empty  <=>  count == 0
    full   <=>  count == capacity

=============================================================================
SYNCHRONIZATION
=============================================================================

One lock guards the buffer and the three indices. Two conditions share it:

    not_empty   consumers wait here while count == 0
    not_full    the producer waits here while count == capacity
                (only under OverflowPolicy.BLOCK)

Both waits release the lock while suspended, so a blocked consumer never
stops the producer from inserting the job it is waiting for.

=============================================================================
OVERFLOW POLICY
=============================================================================

    BLOCK       producer waits for space (default)
    REJECT      submit() raises QueueFull, caller drops the job
    OVERWRITE   the oldest pending job is displaced and returned to the
                caller; the slot it occupied receives the new job

=============================================================================
"""

import threading
import time
import logging
from enum import Enum
from typing import Generic, List, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueueFull(Exception):
    """Raised by submit() when no slot became free."""


class QueueClosed(Exception):
    """Raised once the queue has been closed and has nothing left to give."""


class OverflowPolicy(Enum):
    """What submit() does when count == capacity."""
    BLOCK = "block"
    REJECT = "reject"
    OVERWRITE = "overwrite"


class JobQueue(Generic[T]):
    """
    Fixed-capacity FIFO with producer/consumer synchronization.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       JobQueue Usage                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   jobs = JobQueue(capacity=100)                                     │
    │                                                                      │
    │   # Acceptor thread                                                  │
    │   jobs.submit(conn)                                                  │
    │                                                                      │
    │   # Worker threads                                                   │
    │   conn = jobs.take()      # blocks while empty                      │
    │                                                                      │
    │   # Shutdown                                                         │
    │   jobs.close()            # wakes every waiter                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(self, capacity: int = 100, policy: OverflowPolicy = OverflowPolicy.BLOCK):
        """
        Initialize an empty queue.

        Args:
            capacity: Number of slots. Fixed for the queue's lifetime.
            policy: Behavior of submit() on a full queue.
        """
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")

        self._capacity = capacity
        self._policy = policy

        self._slots: List[Optional[T]] = [None] * capacity
        self._head = 0
        self._tail = 0
        self._count = 0
        self._closed = False

        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)

    # =========================================================================
    # PRODUCER SIDE
    # =========================================================================

    def submit(self, job: T, timeout: Optional[float] = None) -> Optional[T]:
        """
        Insert a job at the tail and wake one waiting consumer.

        Args:
            job: The job to enqueue.
            timeout: Under BLOCK, maximum seconds to wait for a free slot.
                     None waits indefinitely.

        Returns:
            The displaced job under OVERWRITE when the queue was full,
            otherwise None.

        Raises:
            QueueFull: REJECT on a full queue, or BLOCK when timeout expires.
            QueueClosed: If close() was called.
        """
        displaced: Optional[T] = None

        with self._lock:
            if self._closed:
                raise QueueClosed("submit() on a closed queue")

            if self._count == self._capacity:
                if self._policy is OverflowPolicy.REJECT:
                    raise QueueFull(f"queue full ({self._capacity} jobs)")

                if self._policy is OverflowPolicy.OVERWRITE:
                    # tail == head here, so the slot about to be written is
                    # the next one a consumer would read.
                    displaced = self._slots[self._head]
                    self._slots[self._head] = None
                    self._head = (self._head + 1) % self._capacity
                    self._count -= 1
                else:
                    self._wait_for_space(timeout)

            self._slots[self._tail] = job
            self._tail = (self._tail + 1) % self._capacity
            self._count += 1
            self._not_empty.notify()

        if displaced is not None:
            logger.warning("Job queue full, oldest pending job displaced")
        return displaced

    def _wait_for_space(self, timeout: Optional[float]):
        """Block on not_full. Caller holds the lock."""
        deadline = None if timeout is None else time.monotonic() + timeout

        while self._count == self._capacity:
            if self._closed:
                raise QueueClosed("queue closed while waiting for space")

            if deadline is None:
                self._not_full.wait()
                continue

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise QueueFull(f"no free slot within {timeout}s")
            self._not_full.wait(remaining)

        if self._closed:
            raise QueueClosed("queue closed while waiting for space")

    # =========================================================================
    # CONSUMER SIDE
    # =========================================================================

    def take(self) -> T:
        """
        Remove and return the job at the head, blocking while empty.

        There is no "empty" result: the call only returns with a job.
        Jobs still pending when close() is called are drained first.

        Raises:
            QueueClosed: The queue is closed and empty.
        """
        with self._lock:
            while self._count == 0:
                if self._closed:
                    raise QueueClosed("take() on a closed, empty queue")
                self._not_empty.wait()

            job = self._slots[self._head]
            self._slots[self._head] = None
            self._head = (self._head + 1) % self._capacity
            self._count -= 1
            self._not_full.notify()
            return job

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> List[T]:
        """
        Close the queue and wake every blocked producer and consumer.

        Returns:
            The jobs still pending. They stay queued; take() drains them.
        """
        with self._lock:
            self._closed = True
            pending = [
                self._slots[(self._head + i) % self._capacity]
                for i in range(self._count)
            ]
            self._not_empty.notify_all()
            self._not_full.notify_all()
        return pending

    # =========================================================================
    # INSPECTION
    # =========================================================================

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def policy(self) -> OverflowPolicy:
        return self._policy

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def size(self) -> int:
        """Number of pending jobs."""
        with self._lock:
            return self._count

    def is_empty(self) -> bool:
        with self._lock:
            return self._count == 0

    def is_full(self) -> bool:
        with self._lock:
            return self._count == self._capacity

    def __len__(self) -> int:
        return self.size
