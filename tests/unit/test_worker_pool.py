"""
Unit tests for the worker pool.
"""

import threading

import pytest

from hoststats.core.job_queue import JobQueue
from hoststats.core.worker_pool import WorkerPool, WorkerState


class TestWorkerPool:
    """Tests for WorkerPool lifecycle and failure isolation."""

    def test_every_job_handled_once(self):
        queue = JobQueue(capacity=10)
        handled = []
        lock = threading.Lock()

        def handler(job):
            with lock:
                handled.append(job)

        pool = WorkerPool(queue, handler, size=4)
        pool.start()
        for job in range(50):
            queue.submit(job)
        pool.shutdown(timeout=5.0)

        assert sorted(handled) == list(range(50))
        assert pool.stats["jobs"]["completed"] == 50

    def test_start_creates_n_workers(self):
        queue = JobQueue(capacity=2)
        pool = WorkerPool(queue, lambda job: None, size=3)
        pool.start()
        try:
            assert len(pool.workers) == 3
            assert pool.active_workers == 3
            assert {w.name for w in pool.workers} == {"Worker-0", "Worker-1", "Worker-2"}
        finally:
            pool.shutdown()

    def test_start_is_idempotent(self):
        queue = JobQueue(capacity=2)
        pool = WorkerPool(queue, lambda job: None, size=2)
        pool.start()
        pool.start()
        try:
            assert len(pool.workers) == 2
        finally:
            pool.shutdown()

    def test_failing_job_does_not_kill_worker(self, caplog):
        queue = JobQueue(capacity=10)
        handled = []

        def handler(job):
            if job == "boom":
                raise RuntimeError("handler exploded")
            handled.append(job)

        pool = WorkerPool(queue, handler, size=1)
        pool.start()

        with caplog.at_level("ERROR", logger="hoststats.core.worker_pool"):
            queue.submit("before")
            queue.submit("boom")
            queue.submit("after")
            pool.shutdown(timeout=5.0)

        assert handled == ["before", "after"]
        assert pool.stats["jobs"]["failed"] == 1
        assert pool.stats["jobs"]["completed"] == 2
        assert "handler exploded" in caplog.text

    def test_shutdown_stops_workers(self):
        queue = JobQueue(capacity=2)
        pool = WorkerPool(queue, lambda job: None, size=2)
        pool.start()
        pool.shutdown(timeout=5.0)

        assert pool.active_workers == 0
        assert all(w.state == WorkerState.STOPPED for w in pool.workers)
        assert queue.closed

    def test_busy_state_while_handling(self):
        queue = JobQueue(capacity=2)
        started = threading.Event()
        release = threading.Event()

        def handler(job):
            started.set()
            release.wait(5.0)

        pool = WorkerPool(queue, handler, size=2)
        pool.start()
        try:
            queue.submit("slow")
            assert started.wait(2.0)
            assert pool.busy_workers == 1
            assert pool.stats["workers"]["busy"] == 1
        finally:
            release.set()
            pool.shutdown()

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            WorkerPool(JobQueue(capacity=1), lambda job: None, size=0)
