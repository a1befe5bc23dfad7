"""
End-to-end tests against a running StatsServer on a loopback port.
"""

import json
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import FakeReader, TestServer, http_get, raw_request
from hoststats import MonitorConfig, StatsServer
from hoststats.handlers import STATS_FIELDS
from hoststats.metrics.readers import SystemReader, UNKNOWN


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestEndpoints:
    """Responses from a server whose sampler has not run yet."""

    def test_stats_before_first_pass(self, test_server):
        status, headers, body = http_get(test_server.address, "/stats")

        assert status == 200
        assert headers["content-type"] == "application/json"
        assert headers["access-control-allow-origin"] == "*"
        assert headers["connection"] == "close"
        assert int(headers["content-length"]) == len(body)

        stats = json.loads(body)
        assert list(stats) == list(STATS_FIELDS)
        assert stats["cpu_usage_percent"] == 0
        assert stats["net_upload_bytes_sec"] == 0
        assert stats["net_download_bytes_sec"] == 0
        assert stats["net_total_bytes_sent"] == 0
        assert stats["net_total_bytes_recv"] == 0
        assert b'"cpu_usage_percent": 0.00' in body

    def test_unknown_path(self, test_server):
        status, headers, body = http_get(test_server.address, "/unknown")

        assert status == 404
        assert body == b"Not Found"
        assert headers["content-type"] == "text/plain"
        assert headers["content-length"] == "9"

    def test_wrong_method_is_404(self, test_server):
        status, _, body = http_get(test_server.address, "/stats", method="POST")

        assert status == 404
        assert body == b"Not Found"

    def test_malformed_request_is_404(self, test_server):
        status, _, body = raw_request(test_server.address, b"NONSENSE\r\n\r\n")

        assert status == 404
        assert body == b"Not Found"

    def test_distro(self, test_server):
        status, headers, body = http_get(test_server.address, "/distro")

        assert status == 200
        assert headers["access-control-allow-origin"] == "*"
        assert json.loads(body) == {
            "kernel_version": "6.1.0-test",
            "distro_name": "Test Linux 1.0",
        }

    def test_server_headers(self, test_server):
        _, headers, _ = http_get(test_server.address, "/distro")

        assert headers["server"].startswith("hoststats/")
        assert headers["date"].endswith("GMT")

    def test_client_that_sends_nothing_is_harmless(self, test_server):
        with socket.create_connection(test_server.address, timeout=2.0):
            pass

        status, _, _ = http_get(test_server.address, "/distro")
        assert status == 200


class TestDistroFromFiles:
    """Round-trip through the real SystemReader and fixture files."""

    def start(self, config, reader) -> TestServer:
        server = TestServer(StatsServer(config, reader=reader, sample_interval=3600.0))
        server.start()
        return server

    def test_present_files(self, config, tmp_path):
        (tmp_path / "os-release").write_text('PRETTY_NAME="Raspbian GNU/Linux 11 (bullseye)"\n')
        (tmp_path / "version").write_text("Linux version 6.1.21-v8+ (dom@buildbot) #1642 SMP PREEMPT\n")
        reader = SystemReader(
            thermal_path=tmp_path / "temp",
            os_release_path=tmp_path / "os-release",
            proc_version_path=tmp_path / "version",
        )

        server = self.start(config, reader)
        try:
            _, _, body = http_get(server.address, "/distro")
        finally:
            server.stop()

        assert json.loads(body) == {
            "kernel_version": "6.1.21-v8+",
            "distro_name": "Raspbian GNU/Linux 11 (bullseye)",
        }

    def test_missing_files(self, config, tmp_path):
        reader = SystemReader(
            thermal_path=tmp_path / "temp",
            os_release_path=tmp_path / "os-release",
            proc_version_path=tmp_path / "version",
        )

        server = self.start(config, reader)
        try:
            _, _, body = http_get(server.address, "/distro")
        finally:
            server.stop()

        assert json.loads(body) == {"kernel_version": UNKNOWN, "distro_name": UNKNOWN}


class TestConcurrency:
    """The sampler and the worker pool under load."""

    def test_concurrent_stats_are_consistent(self, config):
        reader = FakeReader()
        server = TestServer(StatsServer(config, reader=reader, sample_interval=0.005))
        server.start()

        try:
            with ThreadPoolExecutor(max_workers=50) as executor:
                futures = [
                    executor.submit(http_get, server.address, "/stats")
                    for _ in range(50)
                ]
                results = [f.result(timeout=10.0) for f in futures]
            pool_stats = server.server.stats
        finally:
            server.stop()

        assert len(results) == 50
        for status, headers, body in results:
            assert status == 200
            assert int(headers["content-length"]) == len(body)

            stats = json.loads(body)
            n = stats["net_total_bytes_recv"] // 1000
            assert stats["net_total_bytes_recv"] == 1000 * n
            assert stats["net_total_bytes_sent"] == 500 * n

            expected = float(n % 90 + 1) if n >= 2 else 0.0
            assert stats["cpu_usage_percent"] == pytest.approx(expected)

        assert pool_stats["jobs"]["failed"] == 0

    def test_sampler_publishes_while_serving(self, config):
        reader = FakeReader()
        server = TestServer(StatsServer(config, reader=reader, sample_interval=0.01))
        server.start()

        try:
            assert wait_for(lambda: server.server.snapshot.read().passes >= 2)
            _, _, body = http_get(server.address, "/stats")
        finally:
            server.stop()

        assert json.loads(body)["net_total_bytes_recv"] >= 2000

    def test_slow_client_does_not_block_others(self, config):
        config.read_timeout = 1.0
        server = TestServer(StatsServer(config, reader=FakeReader(), sample_interval=3600.0))
        server.start()

        try:
            with socket.create_connection(server.address, timeout=5.0) as silent:
                silent.sendall(b"GET /stats HTTP/1.1\r\n")  # never finishes

                status, _, _ = http_get(server.address, "/distro")
                assert status == 200

                # The silent connection is dropped once its read times out
                silent.settimeout(5.0)
                assert silent.recv(1024) == b""
        finally:
            server.stop()

    def test_reject_policy_drops_excess_connections(self, config):
        config.workers = 1
        config.queue_capacity = 1
        config.overflow_policy = "reject"
        config.read_timeout = 2.0

        server = TestServer(StatsServer(config, reader=FakeReader(), sample_interval=3600.0))
        server.start()

        holders = []
        try:
            # Occupy the only worker, then fill the only queue slot
            holders.append(socket.create_connection(server.address, timeout=5.0))
            assert wait_for(lambda: server.server.stats["workers"]["busy"] == 1)
            holders.append(socket.create_connection(server.address, timeout=5.0))
            assert wait_for(lambda: server.server.stats["jobs"]["queued"] == 1)

            with socket.create_connection(server.address, timeout=5.0) as extra:
                assert extra.recv(1024) == b""  # Closed without a response
        finally:
            for sock in holders:
                sock.close()
            server.stop()

    def test_reject_policy_sheds_held_open_connections_quickly(self, config):
        config.workers = 1
        config.queue_capacity = 1
        config.overflow_policy = "reject"
        config.read_timeout = 5.0

        server = TestServer(StatsServer(config, reader=FakeReader(), sample_interval=3600.0))
        server.start()

        holders = []
        try:
            holders.append(socket.create_connection(server.address, timeout=5.0))
            assert wait_for(lambda: server.server.stats["workers"]["busy"] == 1)
            holders.append(socket.create_connection(server.address, timeout=5.0))
            assert wait_for(lambda: server.server.stats["jobs"]["queued"] == 1)

            # None of these clients ever closes its end
            start = time.monotonic()
            extras = [socket.create_connection(server.address, timeout=5.0) for _ in range(10)]
            holders.extend(extras)
            for sock in extras:
                try:
                    assert sock.recv(1024) == b""
                except ConnectionResetError:
                    pass  # Aborted before the client read
            elapsed = time.monotonic() - start

            assert elapsed < 1.0
        finally:
            for sock in holders:
                sock.close()
            server.stop()


class TestLifecycle:
    def test_shutdown_stops_all_threads(self, config):
        server = StatsServer(config, reader=FakeReader(), sample_interval=0.01)
        helper = TestServer(server)
        helper.start()
        helper.stop()

        assert helper.error is None
        assert server.stats["workers"]["active"] == 0
        assert not any(t.name == "Sampler" for t in threading.enumerate())

    def test_port_in_use_raises(self, config, free_port):
        config.port = free_port
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(("127.0.0.1", free_port))
            blocker.listen(1)

            server = StatsServer(config, reader=FakeReader(), sample_interval=3600.0)
            with pytest.raises(OSError):
                server.run()

        assert server.stats["workers"]["active"] == 0
