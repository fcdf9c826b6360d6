from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
from typing import Any

from .bench import run_benchmark
from .channel import ChannelError, ChannelOpenError, open_channel
from .config import ConfigError, dump_settings, load_settings
from .constants import DEFAULT_DEVICE_BUFFER, DEFAULT_WINDOW
from .events import LoggingSink
from .session import Session
from .source import CommandSource, CommandSourceError

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_FATAL = 2


def parse_hostport(value: str) -> tuple[str, int]:
    host, sep, port = value.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise argparse.ArgumentTypeError(f"expected HOST:PORT, got {value!r}")
    return host, int(port)


def raise_priority() -> None:
    if not hasattr(os, "nice"):
        logging.warning("raising process priority is not supported on this platform")
        return
    try:
        os.nice(-10)
    except PermissionError:
        logging.warning("not permitted to raise process priority; running at normal priority")


def cmd_send(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {
        "port": args.port,
        "baudrate": args.baudrate,
        "window": args.window,
        "settle_ms": args.settle_ms,
        "grace_ms": args.grace_ms,
        "log": args.log or None,
        "progress": args.progress or None,
        "debug": args.debug or None,
        "realtime": args.realtime or None,
    }
    if args.tcp is not None:
        overrides["connection_type"] = "tcp"
        overrides["host"], overrides["tcp_port"] = args.tcp
    try:
        settings = load_settings(args.config).merged(overrides)
    except ConfigError as exc:
        logging.error("%s", exc)
        return EXIT_FATAL

    if settings.debug:
        if settings.connection_type == "tcp":
            logging.info("Port: %s:%d (tcp)", settings.host, settings.tcp_port)
        else:
            logging.info("Port: %s %dbps", settings.port, settings.baudrate)
        logging.info("File: %s window: %d", args.file, settings.window)
        logging.info("Realtime priority: %s", "ENABLED" if settings.realtime else "DISABLED")
    if settings.realtime:
        raise_priority()

    try:
        source = CommandSource.open(args.file)
    except CommandSourceError as exc:
        logging.error("%s", exc)
        return EXIT_FATAL

    with source:
        try:
            channel = open_channel(settings)
        except ChannelOpenError as exc:
            logging.error("%s", exc)
            return EXIT_FATAL

        session = Session(
            channel,
            window=settings.window,
            settle_ms=settings.settle_ms,
            grace_ms=settings.grace_ms,
            sink=LoggingSink(log=settings.log, debug=settings.debug),
            progress=settings.progress,
        )
        try:
            report = session.run(source)
        except CommandSourceError as exc:
            logging.error("reading command file failed: %s", exc)
            return EXIT_ABORTED
        except ChannelError as exc:
            logging.error("write to channel failed: %s", exc)
            return EXIT_ABORTED

    if args.json:
        payload = {
            "role": "sender",
            "commands": report.commands_sent,
            "acks": report.acks_received,
            "anomalies": report.anomalies,
            "skipped_lines": report.skipped_lines,
            "bytes": report.bytes_sent,
            "elapsed_ms": report.elapsed_ms,
            "bytes_per_s": report.throughput_bps,
            "peak_in_flight": report.peak_in_flight,
        }
        print(json.dumps(payload, indent=2))
    else:
        print(f"Total time: {report.elapsed_ms} msec")
    return EXIT_OK


def cmd_bench(args: argparse.Namespace) -> int:
    if args.window < 1 or args.commands < 1:
        logging.error("bench needs --window >= 1 and --commands >= 1, got %d and %d", args.window, args.commands)
        return EXIT_FATAL
    r = run_benchmark(
        commands=args.commands,
        window=args.window,
        latency_min_ms=args.latency_ms[0],
        latency_max_ms=args.latency_ms[1],
        buffer_size=args.buffer_size,
    )
    payload = {"role": "bench", **dataclasses.asdict(r)}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return EXIT_OK


def cmd_config(args: argparse.Namespace) -> int:
    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        logging.error("%s", exc)
        return EXIT_FATAL
    print(dump_settings(settings), end="")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="cmdstream", description="Stream command files to a small-buffer receiver.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    send = sub.add_parser("send", help="stream a command file over a serial port or tcp bridge")
    send.add_argument("file")
    send.add_argument("--config", default=None, help="YAML settings file")
    send.add_argument("-c", "--window", type=int, default=None, help=f"commands in flight (1 = no pipelining, default {DEFAULT_WINDOW})")
    send.add_argument("-p", "--port", default=None, help="serial port name")
    send.add_argument("-b", "--baudrate", type=int, default=None)
    send.add_argument("--tcp", type=parse_hostport, default=None, metavar="HOST:PORT", help="use a tcp serial bridge")
    send.add_argument("-l", "--log", action="store_true", help="log every command sent")
    send.add_argument("-e", "--progress", action="store_true", help="log completion estimates")
    send.add_argument("-d", "--debug", action="store_true", help="log settings and every response")
    send.add_argument("-r", "--realtime", action="store_true", help="raise process priority")
    send.add_argument("--settle-ms", type=int, default=None)
    send.add_argument("--grace-ms", type=int, default=None)
    send.add_argument("--json", action="store_true")
    send.set_defaults(func=cmd_send)

    bench = sub.add_parser("bench", help="stream to a simulated receiver in-process")
    bench.add_argument("--commands", type=int, default=200)
    bench.add_argument("--window", type=int, default=DEFAULT_WINDOW)
    bench.add_argument("--latency-ms", type=float, nargs=2, default=[1.0, 5.0], metavar=("MIN", "MAX"))
    bench.add_argument("--buffer-size", type=int, default=DEFAULT_DEVICE_BUFFER)
    bench.add_argument("--json", action="store_true")
    bench.set_defaults(func=cmd_bench)

    config = sub.add_parser("config", help="print effective settings as YAML")
    config.add_argument("--config", default=None, help="YAML settings file")
    config.set_defaults(func=cmd_config)

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
