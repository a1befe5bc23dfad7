"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Dict, Generator, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from hoststats import StatsServer, MonitorConfig
from hoststats.metrics.readers import CpuTimes, DiskUsage, MemoryUsage, NetCounters


class FakeReader:
    """
    Stand-in for SystemReader with scripted cumulative counters.

    Each cpu_times() call starts a new pass n (1, 2, 3, ...):

        total      += 100          every pass
        busy       += n % 90 + 1   so pass n (n >= 2) yields that percent
        bytes_recv  = 1000 * n     identifies the pass in a /stats response
        bytes_sent  = 500 * n

    A /stats response is consistent iff its cpu_usage_percent is the one
    scripted for the pass named by net_total_bytes_recv.
    """

    def __init__(
        self,
        kernel: str = "6.1.0-test",
        distro: str = "Test Linux 1.0",
        temp: int = 48312,
    ):
        self._lock = threading.Lock()
        self.passes = 0
        self._busy = 0.0
        self._total = 0.0
        self.kernel = kernel
        self.distro = distro
        self.temp = temp
        self.cpu_available = True
        self.net_available = True

    def cpu_times(self) -> Optional[CpuTimes]:
        with self._lock:
            if not self.cpu_available:
                return None
            self.passes += 1
            self._busy += self.passes % 90 + 1
            self._total += 100
            return CpuTimes(busy=self._busy, total=self._total)

    def net_counters(self) -> Optional[NetCounters]:
        with self._lock:
            if not self.net_available:
                return None
            return NetCounters(bytes_sent=500 * self.passes, bytes_recv=1000 * self.passes)

    def uptime_seconds(self) -> int:
        return 5321

    def memory(self) -> MemoryUsage:
        return MemoryUsage(
            ram_total_kb=8000000,
            ram_used_kb=2500000,
            swap_total_kb=1000000,
            swap_used_kb=0,
        )

    def disk_usage(self, path: str) -> DiskUsage:
        if path == "/":
            return DiskUsage(total_bytes=1000, used_bytes=250, usage_percent=25.0)
        return DiskUsage()

    def cpu_temp_millicelsius(self) -> int:
        return self.temp

    def kernel_version(self) -> str:
        return self.kernel

    def distro_name(self) -> str:
        return self.distro


@pytest.fixture
def fake_reader() -> FakeReader:
    return FakeReader()


@pytest.fixture
def config() -> MonitorConfig:
    """Default test server configuration."""
    return MonitorConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        workers=4,
        queue_capacity=16,
        read_timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


def http_get(address: Tuple[str, int], path: str, method: str = "GET",
             timeout: float = 5.0) -> Tuple[int, Dict[str, str], bytes]:
    """
    Send one request on a fresh connection and read until the server closes.

    Returns:
        (status code, headers with lowercased names, body)
    """
    request = f"{method} {path} HTTP/1.1\r\nHost: localhost\r\n\r\n".encode()
    return raw_request(address, request, timeout)


def raw_request(address: Tuple[str, int], data: bytes,
                timeout: float = 5.0) -> Tuple[int, Dict[str, str], bytes]:
    with socket.create_connection(address, timeout=timeout) as s:
        s.sendall(data)
        chunks = []
        while True:
            chunk = s.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)

    response = b"".join(chunks)
    head, _, body = response.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    status = int(lines[0].split()[1])
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()
    return status, headers, body


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # Not a test class, despite the name

    def __init__(self, server: StatsServer):
        self.server = server
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Tuple[str, int]:
        return self.server.address

    def _run(self):
        try:
            self.server.run()
        except BaseException as e:  # Surfaced by start()/stop()
            self.error = e

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError(f"Server failed to start: {self.error!r}")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def test_server(config: MonitorConfig, fake_reader: FakeReader) -> Generator[TestServer, None, None]:
    """A running server whose sampler never fires during the test."""
    server = StatsServer(config, reader=fake_reader, sample_interval=3600.0)

    test_srv = TestServer(server)
    test_srv.start()

    yield test_srv

    test_srv.stop()
