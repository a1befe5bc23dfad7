"""
Unit tests for command-line parsing.
"""

import pytest

from hoststats.__main__ import build_parser, config_from_args, main


def parse(*argv):
    return config_from_args(build_parser().parse_args(list(argv)))


class TestCli:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("HOSTSTATS_PORT", raising=False)
        config = parse()

        assert config.port == 3040
        assert config.workers == 4

    def test_flags_override(self):
        config = parse(
            "--host", "127.0.0.1", "-p", "8000", "-w", "2",
            "--queue-capacity", "5", "--overflow", "overwrite",
            "--main-disk", "/data", "--usb-disk", "/media/usb",
            "--thermal-path", "/tmp/t", "-l", "debug",
        )

        assert config.host == "127.0.0.1"
        assert config.port == 8000
        assert config.workers == 2
        assert config.queue_capacity == 5
        assert config.overflow_policy == "overwrite"
        assert config.main_disk_path == "/data"
        assert config.usb_disk_path == "/media/usb"
        assert config.thermal_path == "/tmp/t"
        assert config.log_level == "DEBUG"

    def test_cli_beats_environment(self, monkeypatch):
        monkeypatch.setenv("HOSTSTATS_PORT", "9000")
        monkeypatch.setenv("HOSTSTATS_WORKERS", "6")

        config = parse("--port", "8000")

        assert config.port == 8000
        assert config.workers == 6

    @pytest.mark.parametrize("value, expected", [("0", None), ("2.5", 2.5)])
    def test_read_timeout(self, value, expected):
        assert parse("--read-timeout", value).read_timeout == expected

    def test_invalid_overflow_choice(self):
        with pytest.raises(SystemExit):
            parse("--overflow", "drop")

    def test_invalid_config_exits(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--workers", "0"])

        assert exc_info.value.code == 2
        assert "workers" in capsys.readouterr().err

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            main(["--version"])
        assert "hoststats" in capsys.readouterr().out

    def test_bind_failure_returns_1(self, free_port, monkeypatch):
        import socket

        monkeypatch.setenv("HOSTSTATS_LOG_LEVEL", "CRITICAL")
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(("127.0.0.1", free_port))
            blocker.listen(1)

            code = main(["--host", "127.0.0.1", "--port", str(free_port)])

        assert code == 1
