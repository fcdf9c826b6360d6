from __future__ import annotations

import logging
import time
from typing import Iterable

from .channel import Channel
from .constants import DEFAULT_GRACE_MS, DEFAULT_JOIN_TIMEOUT_S, DEFAULT_SETTLE_MS, DEFAULT_WINDOW
from .context import SessionContext
from .credit import CreditPool
from .events import EventSink, SessionReport
from .reader import AckReader
from .source import Command
from .writer import CommandWriter


class Session:
    """Runs one streaming session over an already open channel.

    The session owns the channel from the moment ``run`` is called and
    closes it on every exit path. A write failure stops the reader and is
    re-raised once the channel is closed.
    """

    def __init__(
        self,
        channel: Channel,
        window: int = DEFAULT_WINDOW,
        settle_ms: int = DEFAULT_SETTLE_MS,
        grace_ms: int = DEFAULT_GRACE_MS,
        sink: EventSink | None = None,
        progress: bool = False,
        join_timeout_s: float = DEFAULT_JOIN_TIMEOUT_S,
    ):
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        self.channel = channel
        self.window = window
        self.settle_ms = settle_ms
        self.grace_ms = grace_ms
        self.sink = sink or EventSink()
        self.progress = progress
        self.join_timeout_s = join_timeout_s
        self.context: SessionContext | None = None
        self.reader: AckReader | None = None
        self.writer: CommandWriter | None = None

    def run(self, commands: Iterable[Command], total_bytes: int | None = None) -> SessionReport:
        if total_bytes is None:
            total_bytes = getattr(commands, "total_bytes", 0)
        try:
            if self.settle_ms > 0:
                logging.debug("waiting %d ms for the receiver to boot", self.settle_ms)
                time.sleep(self.settle_ms / 1000.0)

            ctx = SessionContext(
                channel=self.channel,
                pool=CreditPool(self.window),
                sink=self.sink,
                progress=self.progress,
                total_bytes=total_bytes,
            )
            self.context = ctx
            self.reader = AckReader(ctx)
            self.writer = CommandWriter(ctx)

            self.reader.start()
            logging.info("session start; window=%d total_bytes=%d", self.window, total_bytes)
            self.writer.run(commands)
            elapsed_ms = ctx.elapsed_ms()

            if self.grace_ms > 0:
                logging.debug("all commands written; waiting %d ms for final acknowledgments", self.grace_ms)
                time.sleep(self.grace_ms / 1000.0)
        finally:
            self._shutdown()

        report = SessionReport(
            commands_sent=self.writer.lines_sent,
            acks_received=self.reader.acks,
            anomalies=self.reader.anomalies,
            bytes_sent=self.writer.bytes_sent,
            elapsed_ms=elapsed_ms,
            peak_in_flight=ctx.pool.peak_in_flight,
            skipped_lines=getattr(commands, "skipped", 0),
        )
        logging.info(
            "done; commands=%d acks=%d elapsed=%d ms", report.commands_sent, report.acks_received, report.elapsed_ms
        )
        return report

    def _shutdown(self) -> None:
        if self.context is not None:
            self.context.request_shutdown()
        # the reader polls in short slices, so it is joined before the port
        # is closed underneath it
        if self.reader is not None and self.reader.is_alive():
            if not self.reader.join(self.join_timeout_s):
                logging.warning("reader did not stop within %.1f s", self.join_timeout_s)
        self.channel.close()
