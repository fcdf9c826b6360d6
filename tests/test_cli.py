from __future__ import annotations

import argparse
import json
import logging
import socket
import threading

import pytest

from conftest import FailingStream

from cmdstream import cli
from cmdstream.cli import EXIT_ABORTED, EXIT_FATAL, EXIT_OK, main, parse_hostport
from cmdstream.source import CommandSource


@pytest.fixture()
def gcode(tmp_path):
    path = tmp_path / "part.gcode"
    path.write_text("; generated\nG28\nG1 X10 Y10 ; move\n(pause)\nG1 X20\nM84\n")
    return path


@pytest.fixture()
def ok_server():
    """Tcp bridge stand-in answering every line with 'ok'."""
    server = socket.socket()
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    received = []

    def serve():
        conn, _ = server.accept()
        with conn, conn.makefile("rb") as lines:
            try:
                for line in lines:
                    received.append(line)
                    conn.sendall(b"ok\n")
            except OSError:
                # client hung up mid-reply
                return

    t = threading.Thread(target=serve, daemon=True)
    t.start()
    yield server.getsockname()[1], received
    t.join(2.0)
    server.close()


def test_parse_hostport():
    assert parse_hostport("printer.local:2323") == ("printer.local", 2323)
    with pytest.raises(argparse.ArgumentTypeError):
        parse_hostport("printer.local")


def test_missing_file_is_fatal(tmp_path):
    assert main(["send", str(tmp_path / "missing.gcode"), "--settle-ms", "0"]) == EXIT_FATAL


def test_missing_port_is_fatal(gcode):
    rc = main(["send", str(gcode), "-p", "/dev/cmdstream-no-such-port", "--settle-ms", "0"])
    assert rc == EXIT_FATAL


def test_bad_config_is_fatal(gcode, tmp_path):
    cfg = tmp_path / "settings.yaml"
    cfg.write_text("window: 0\n")
    assert main(["send", str(gcode), "--config", str(cfg)]) == EXIT_FATAL


def test_badly_typed_config_is_fatal(gcode, tmp_path):
    cfg = tmp_path / "settings.yaml"
    cfg.write_text('window: "4"\nsettle_ms:\n')
    assert main(["send", str(gcode), "--config", str(cfg)]) == EXIT_FATAL


def test_send_over_tcp(gcode, ok_server, capsys):
    port, received = ok_server
    rc = main(
        [
            "send",
            str(gcode),
            "--tcp",
            f"127.0.0.1:{port}",
            "--settle-ms",
            "0",
            "--grace-ms",
            "200",
            "-c",
            "2",
            "-l",
            "-e",
            "--json",
        ]
    )
    assert rc == EXIT_OK
    payload = json.loads(capsys.readouterr().out)
    assert payload["commands"] == 4
    assert payload["acks"] == 4
    assert payload["skipped_lines"] == 2
    assert payload["peak_in_flight"] <= 2
    assert received == [b"G28\n", b"G1 X10 Y10\n", b"G1 X20\n", b"M84\n"]


def test_send_prints_total_time(gcode, ok_server, capsys):
    port, _ = ok_server
    rc = main(["send", str(gcode), "--tcp", f"127.0.0.1:{port}", "--settle-ms", "0", "--grace-ms", "200"])
    assert rc == EXIT_OK
    out = capsys.readouterr().out
    assert out.startswith("Total time: ")
    assert out.strip().endswith("msec")


def test_bench(capsys):
    rc = main(["bench", "--commands", "20", "--window", "3", "--latency-ms", "0", "1", "--json"])
    assert rc == EXIT_OK
    payload = json.loads(capsys.readouterr().out)
    assert payload["role"] == "bench"
    assert payload["commands"] == 20
    assert payload["peak_in_flight"] <= 3
    assert payload["max_pending"] <= 3


def test_config_prints_yaml(capsys):
    assert main(["config"]) == EXIT_OK
    out = capsys.readouterr().out
    assert "window: 4" in out
    assert "baudrate: 115200" in out


def test_bench_rejects_empty_window(caplog):
    with caplog.at_level(logging.ERROR):
        assert main(["bench", "--window", "0"]) == EXIT_FATAL
    assert "--window >= 1" in caplog.text


def test_source_read_error_is_not_a_write_error(gcode, ok_server, monkeypatch, caplog):
    port, _ = ok_server
    broken = CommandSource(FailingStream(b"G28\nG1 X1\n"), total_bytes=10, name=str(gcode))
    monkeypatch.setattr(cli.CommandSource, "open", classmethod(lambda cls, path: broken))
    with caplog.at_level(logging.ERROR):
        rc = main(["send", str(gcode), "--tcp", f"127.0.0.1:{port}", "--settle-ms", "0", "--grace-ms", "0"])
    assert rc == EXIT_ABORTED
    assert "reading command file failed" in caplog.text
    assert "write to channel failed" not in caplog.text
