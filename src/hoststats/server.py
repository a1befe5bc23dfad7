"""
=============================================================================
TELEMETRY SERVER
=============================================================================

The orchestrator that wires every component together.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      STATS SERVER ARCHITECTURE                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ┌──────────────┐  submit()  ┌──────────┐  take()  ┌─────────────┐  │
    │   │ SocketServer │ ─────────► │ JobQueue │ ───────► │ WorkerPool  │  │
    │   │  (acceptor)  │            │ (ring)   │          │ N × Worker  │  │
    │   └──────────────┘            └──────────┘          └──────┬──────┘  │
    │                                                            │         │
    │                                   read request, parse      │         │
    │                                   middleware → router      ▼         │
    │   ┌──────────────┐  publish() ┌─────────────────┐  read() ┌───────┐  │
    │   │   Sampler    │ ─────────► │ MetricsSnapshot │ ──────► │ Stats │  │
    │   │ (1s cadence) │            │  (lock-guarded) │         │Handler│  │
    │   └──────┬───────┘            └─────────────────┘         └───┬───┘  │
    │          │                                                    │      │
    │          └──────────────► SystemReader ◄──────────────────────┘      │
    │                     (psutil, /sys, /etc, /proc)                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Lock ownership: the JobQueue lock is taken by the acceptor and the
workers, the snapshot lock by the sampler and the workers. No thread ever
holds both.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. SocketServer accepts, wraps the socket in a Connection
    2. _enqueue() submits it to the JobQueue
    3. A Worker takes it and runs _process_connection():
         read head → parse → middleware → router → handler
    4. Response is serialized with Connection: close and sent
    5. The Connection is closed, whatever happened above

A malformed request gets the same 404 as an unknown path. Read/write
errors end that one connection. A handler exception is logged by the
worker and the connection is closed without a response.

=============================================================================
"""

import logging
from typing import Callable, Optional, Tuple

from .config import MonitorConfig
from .core import (
    Connection,
    JobQueue,
    OverflowPolicy,
    QueueClosed,
    QueueFull,
    SocketServer,
    WorkerPool,
)
from .handlers import StatsHandler
from .http import HTTPParseError, HTTPRequest, HTTPResponse, RequestParser, Router, not_found
from .metrics import MetricsSnapshot, Sampler, SystemReader, SAMPLE_INTERVAL
from .middleware import Middleware, MiddlewarePipeline


logger = logging.getLogger(__name__)


class StatsServer:
    """
    Host telemetry HTTP server.

    =========================================================================
    USAGE
    =========================================================================

        server = StatsServer(MonitorConfig(port=3040))
        server.use(LoggingMiddleware())
        server.run()        # blocks until shutdown() or Ctrl+C

    From another thread (tests):

        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        server.wait_until_ready(5.0)
        host, port = server.address
        ...
        server.shutdown()
        thread.join()

    =========================================================================
    """

    def __init__(
        self,
        config: Optional[MonitorConfig] = None,
        reader: Optional[SystemReader] = None,
        sample_interval: float = SAMPLE_INTERVAL,
    ):
        """
        Initialize the server. No thread runs and no socket is bound until
        run().

        Args:
            config: Server configuration. Defaults are used if not provided.
            reader: Metric source. Built from the config's paths if omitted.
            sample_interval: Seconds between sampling passes.
        """
        self.config = config or MonitorConfig()
        self.config.validate()

        self.reader = reader or SystemReader(
            thermal_path=self.config.thermal_path,
            os_release_path=self.config.os_release_path,
            proc_version_path=self.config.proc_version_path,
            meminfo_path=self.config.meminfo_path,
        )

        # ─────────────────────────────────────────────────────────────────
        # SHARED STATE
        # ─────────────────────────────────────────────────────────────────
        self.snapshot = MetricsSnapshot()
        self._jobs: JobQueue[Connection] = JobQueue(
            capacity=self.config.queue_capacity,
            policy=OverflowPolicy(self.config.overflow_policy),
        )

        # ─────────────────────────────────────────────────────────────────
        # THREADS
        # ─────────────────────────────────────────────────────────────────
        self._sampler = Sampler(self.snapshot, self.reader, interval=sample_interval)
        self._pool: WorkerPool[Connection] = WorkerPool(
            self._jobs,
            self._process_connection,
            size=self.config.workers,
        )
        self._socket_server = SocketServer(self.config)

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION
        # ─────────────────────────────────────────────────────────────────
        self._parser = RequestParser()
        self._router = Router()
        self._middleware = MiddlewarePipeline()

        handler = StatsHandler(self.snapshot, self.reader, self.config)
        self._router.add_route("/stats", handler.stats)
        self._router.add_route("/distro", handler.distro)

        # middleware.wrap(router.handle), built in run()
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "StatsServer":
        """Add middleware. Must be called before run()."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) once listening, the configured pair before."""
        return self._socket_server.address

    @property
    def stats(self) -> dict:
        """Worker pool and queue counters."""
        return self._pool.stats

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the sampler, the worker pool and the accept loop.

        Blocks until shutdown() is called or Ctrl+C.

        Raises:
            OSError: The listening socket could not be bound, or accept()
                     failed. The sampler and pool are stopped first.
        """
        self._setup_logging()
        self._handler = self._middleware.wrap(self._router.handle)

        self._sampler.start()
        self._pool.start()

        logger.info(
            f"Starting system monitor API on port {self.config.port} "
            f"with a thread pool of {self.config.workers} workers"
        )

        try:
            self._socket_server.start(self._enqueue)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._stop()

    def shutdown(self):
        """
        Stop accepting and let run() return.

        Closing the queue also releases an acceptor blocked on a full queue.
        Connections already queued are still answered.
        """
        self._socket_server.shutdown()
        self._jobs.close()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def _stop(self):
        logger.info("Stopping server...")
        self._sampler.stop()
        self._pool.shutdown()
        logger.info("Server stopped")

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("hoststats").setLevel(level)

    # =========================================================================
    # ACCEPTOR SIDE
    # =========================================================================

    def _enqueue(self, conn: Connection):
        """
        Hand an accepted connection to the workers.

        Runs on the acceptor thread. Under the default policy this blocks
        while the queue is full, which in turn stops accept() and lets the
        kernel backlog absorb the burst. Dropped connections are aborted,
        not drained, so shedding never stalls accept().
        """
        try:
            displaced = self._jobs.submit(conn)
        except QueueFull:
            logger.warning(f"[{conn.id}] Job queue full, dropping connection from {conn.client_ip}")
            conn.abort()
            return
        except QueueClosed:
            conn.abort()
            return

        if displaced is not None:
            logger.warning(f"[{displaced.id}] Displaced from a full job queue, aborting")
            displaced.abort()

    # =========================================================================
    # WORKER SIDE
    # =========================================================================

    def _process_connection(self, conn: Connection):
        """
        Answer exactly one request on conn, then close it.

        Runs on a worker thread.
        """
        with conn:
            try:
                raw_request = conn.read_request()
            except TimeoutError as e:
                logger.warning(f"{e}, closing")
                return
            except OSError as e:
                logger.warning(f"[{conn.id}] Read failed: {e}")
                return

            if raw_request is None:
                return  # Client connected and left

            try:
                request = self._parser.parse(raw_request, conn.address)
            except HTTPParseError as e:
                logger.debug(f"[{conn.id}] Unparseable request: {e}")
                response = not_found()
            else:
                response = self._handler(request)

            response.headers["Connection"] = "close"
            conn.send_response(response.to_bytes(self.config.server_name))
