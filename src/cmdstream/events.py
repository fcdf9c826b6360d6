from __future__ import annotations

import logging
from dataclasses import dataclass

from .progress import ProgressSnapshot


@dataclass(frozen=True, slots=True)
class CommandSent:
    elapsed_ms: int
    line_number: int
    raw_line: str


@dataclass(frozen=True, slots=True)
class AckReceived:
    elapsed_ms: int
    ack_index: int
    raw_line: str
    anomaly: bool = False


@dataclass(frozen=True, slots=True)
class SessionReport:
    commands_sent: int
    acks_received: int
    anomalies: int
    bytes_sent: int
    elapsed_ms: int
    peak_in_flight: int
    skipped_lines: int = 0

    @property
    def duration_s(self) -> float:
        return max(0.0, self.elapsed_ms / 1000.0)

    @property
    def commands_per_s(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return self.commands_sent / self.duration_s

    @property
    def throughput_bps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return self.bytes_sent / self.duration_s


class EventSink:
    """Receives per-command, per-acknowledgment and progress events.

    Called from both the writer and the reader thread; implementations must
    not block.
    """

    def command_sent(self, event: CommandSent) -> None:
        pass

    def ack_received(self, event: AckReceived) -> None:
        pass

    def progress(self, snapshot: ProgressSnapshot) -> None:
        pass


class LoggingSink(EventSink):
    def __init__(self, log: bool = False, debug: bool = False):
        self.log = log
        self.debug = debug

    def command_sent(self, event: CommandSent) -> None:
        if self.log:
            logging.info("%d %d > %s", event.elapsed_ms, event.line_number, event.raw_line)

    def ack_received(self, event: AckReceived) -> None:
        if not self.debug:
            return
        if event.anomaly:
            logging.debug("%d %d << %s", event.elapsed_ms, event.ack_index, event.raw_line)
        else:
            logging.info("%d %d < %s", event.elapsed_ms, event.ack_index, event.raw_line)

    def progress(self, snapshot: ProgressSnapshot) -> None:
        logging.info("%s", snapshot.format())
