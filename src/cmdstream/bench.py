from __future__ import annotations

import math
from dataclasses import dataclass

from .constants import DEFAULT_DEVICE_BUFFER, DEFAULT_WINDOW
from .loopback import Latency, SimulatedReceiver
from .session import Session
from .source import CommandSource


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    commands: int
    acks: int
    window: int
    duration_s: float
    commands_per_s: float
    peak_in_flight: int
    max_pending: int
    overflowed: bool


def run_benchmark(
    *,
    commands: int,
    window: int = DEFAULT_WINDOW,
    latency_min_ms: float = 0.0,
    latency_max_ms: float = 0.0,
    command_text: str = "G1 X10 Y10 F3000",
    buffer_size: int = DEFAULT_DEVICE_BUFFER,
) -> BenchmarkResult:
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    device = SimulatedReceiver(latency=Latency(latency_min_ms, latency_max_ms), buffer_size=buffer_size)
    source = CommandSource.from_lines([command_text] * commands)
    # long enough for the device to work through the last full window
    grace_ms = math.ceil(latency_max_ms * window) + 20
    session = Session(device, window=window, settle_ms=0, grace_ms=grace_ms)

    report = session.run(source)
    duration_s = max(0.001, report.duration_s)

    return BenchmarkResult(
        commands=report.commands_sent,
        acks=report.acks_received,
        window=window,
        duration_s=duration_s,
        commands_per_s=report.commands_sent / duration_s,
        peak_in_flight=report.peak_in_flight,
        max_pending=device.max_pending,
        overflowed=device.overflowed,
    )
