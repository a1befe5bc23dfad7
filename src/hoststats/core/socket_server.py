"""
=============================================================================
ACCEPTOR: TCP SOCKET SERVER
=============================================================================

Owns the listening socket and is the only producer into the JobQueue.
Everything it accepts is wrapped in a Connection and handed to a callback;
the callback decides what happens next (normally JobQueue.submit).

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    1. socket()    Create the listening socket
    2. bind()      Reserve HOST:PORT          ─┐
    3. listen()    Start the kernel backlog    ├─ failures here are fatal
    4. accept()    Block until a client        ─┘
    5. close()     Release the listener on shutdown

Socket options:

    SO_REUSEADDR   restart immediately, even with sockets in TIME_WAIT
    TCP_NODELAY    small JSON responses go out without Nagle delay

The listener has a 1 second timeout so the accept loop can notice
shutdown() without needing a signal or a self-connect.

=============================================================================
"""

import socket
import logging
import threading
from typing import Callable, Optional, Tuple

from ..config import MonitorConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP acceptor.

    Usage:
        def on_connection(conn: Connection):
            job_queue.submit(conn)

        server = SocketServer(config)
        server.start(on_connection)  # Blocks until shutdown()
    """

    ACCEPT_POLL_INTERVAL = 1.0

    def __init__(self, config: MonitorConfig):
        """
        Initialize the acceptor. The socket is created lazily in start().

        Args:
            config: Supplies host, port, backlog and per-connection settings.
        """
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False

        # Set once listen() succeeded, cleared again on cleanup
        self._ready_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); reflects the real port when port=0."""
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return (host, port)
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(self.ACCEPT_POLL_INTERVAL)
        return sock

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and run the accept loop.

        This method BLOCKS until shutdown() is called.

        Raises:
            OSError: bind/listen failed, or accept() failed while running.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
            self._socket.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to listen on {self.config.host}:{self.config.port}: {e}")
            self._cleanup()
            raise

        self._running = True
        self._ready_event.set()

        host, port = self.address
        logger.info(f"Listening on {host}:{port}")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        """Accept until shutdown(); every client becomes one Connection."""
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue  # Poll the running flag
            except OSError as e:
                if not self._running:
                    break  # Listener closed by shutdown
                logger.error(f"Accept error: {e}")
                raise

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.read_timeout,
                max_request_size=self.config.max_request_size,
            )

            connection_handler(conn)

    def shutdown(self):
        """
        Stop the accept loop within one poll interval.

        Safe to call from any thread, and more than once.
        """
        logger.info("Shutting down acceptor...")
        self._running = False

    def _cleanup(self):
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass  # Already closed
            self._socket = None

        self._running = False
        self._ready_event.clear()
        logger.info("Acceptor stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listener is accepting. Returns False on timeout."""
        return self._ready_event.wait(timeout)
