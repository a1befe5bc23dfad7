"""
=============================================================================
CORE: CONNECTION HAND-OFF
=============================================================================

The producer/consumer path every request takes:

    SocketServer ──submit()──► JobQueue ──take()──► WorkerPool
    (1 acceptor)              (ring buffer)         (N workers)

    socket_server.py   bind/listen/accept, wraps sockets in Connections
    connection.py      one request in, one response out, then close
    job_queue.py       bounded FIFO with an explicit overflow policy
    worker_pool.py     fixed set of threads draining the queue

=============================================================================
"""

from .connection import Connection, ConnectionState
from .job_queue import JobQueue, OverflowPolicy, QueueClosed, QueueFull
from .socket_server import SocketServer
from .worker_pool import Worker, WorkerPool, WorkerState

__all__ = [
    "Connection",
    "ConnectionState",
    "JobQueue",
    "OverflowPolicy",
    "QueueClosed",
    "QueueFull",
    "SocketServer",
    "Worker",
    "WorkerPool",
    "WorkerState",
]
