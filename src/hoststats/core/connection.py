"""
=============================================================================
CONNECTION
=============================================================================

One accepted client socket. A Connection is the Job that travels from the
acceptor, through the JobQueue, to exactly one worker, which reads one
request, writes one response and closes it.

=============================================================================
ONE REQUEST PER CONNECTION
=============================================================================

    accept() ──► Connection(NEW)
                     │
                     ▼  read_request()      until \r\n\r\n, EOF or size cap
                 READING
                     │
                     ▼  send_response()     headers + body, one sendall()
                 WRITING
                     │
                     ▼  close()             SHUT_WR, drain, close
                 CLOSED

No keep-alive, no pipelining, no chunked bodies. Anything after the header
terminator is ignored.

TCP is a byte stream, so the request line may arrive split across several
recv() calls. We buffer until the blank line that ends the header block.

=============================================================================
"""

import socket
import time
import uuid
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"              # Just accepted, nothing read yet
    READING = "reading"      # Reading request bytes
    PROCESSING = "processing"  # Request read, handler is executing
    WRITING = "writing"      # Sending response bytes
    CLOSING = "closing"      # Shutdown sequence in progress
    CLOSED = "closed"        # Socket released


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier for log lines.
        state: Current lifecycle state.
        created_at: Timestamp when the connection was accepted.
        timeout: Socket timeout for reads and writes. None = block forever.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 4096
    timeout: Optional[float] = 30.0
    max_request_size: int = 64 * 1024

    def __post_init__(self):
        # Accepted sockets may inherit the listener's accept timeout
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else ""

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read the request head from the socket.

        Returns:
            Bytes up to and including the blank line that ends the headers.
            If the client stops sending first (EOF) or the size cap is hit,
            whatever arrived is returned; the parser decides what it means.
            None if the client closed without sending anything.

        Raises:
            TimeoutError: No complete request within the socket timeout.
            OSError: Socket-level failure (reset, etc).
        """
        self.state = ConnectionState.READING
        buffer = b""

        try:
            while b"\r\n\r\n" not in buffer:
                chunk = self.socket.recv(self.buffer_size)
                if not chunk:
                    break  # Client half-closed
                buffer += chunk

                if len(buffer) >= self.max_request_size:
                    logger.debug(f"[{self.id}] Request head exceeds {self.max_request_size} bytes")
                    break
        except socket.timeout:
            raise TimeoutError(f"[{self.id}] Request read timeout")

        if not buffer:
            return None

        end = buffer.find(b"\r\n\r\n")
        if end != -1:
            buffer = buffer[:end + 4]

        self.state = ConnectionState.PROCESSING
        return buffer

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send the complete response.

        sendall() keeps writing until every byte is out or the socket fails.

        Returns:
            True if the send succeeded, False if the client went away.
        """
        self.state = ConnectionState.WRITING

        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            # Includes ConnectionResetError, BrokenPipeError and timeouts
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection.

        1. shutdown(SHUT_WR) sends FIN so the client sees end-of-body
        2. drain anything the client still sends, briefly
        3. close() releases the file descriptor

        Idempotent.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass  # socket.timeout is an OSError subclass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def abort(self):
        """
        Drop a connection that will never get a response.

        shutdown(SHUT_RDWR) then close(), without waiting for the client.
        Used when shedding load on the acceptor thread, where close()'s
        drain would stall accept(). Idempotent.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection aborted after {self.age:.3f}s")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
