from __future__ import annotations

import logging
import threading

from .constants import LINE_TERMINATOR
from .context import SessionContext
from .events import AckReceived


class AckReader:
    """Background loop turning response lines into window credit.

    Every non-empty line releases exactly one credit. Responses are not
    parsed and not matched to commands; the receiver is trusted to answer
    each command once, in order.
    """

    def __init__(self, ctx: SessionContext):
        self.ctx = ctx
        self.lines = 0
        self.acks = 0
        self.anomalies = 0
        self.error: OSError | None = None
        self._residual = bytearray()
        self._thread = threading.Thread(target=self.run, name="ack-reader", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: float | None = None) -> bool:
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def run(self) -> None:
        while not self.ctx.shutdown_requested:
            try:
                data = self.ctx.channel.read()
            except OSError as exc:
                if not self.ctx.shutdown_requested:
                    self.error = exc
                    logging.error("unexpected read error: %s", exc)
                return
            if data:
                self.feed(data)
        logging.debug("reader stopped; lines=%d acks=%d anomalies=%d", self.lines, self.acks, self.anomalies)

    def feed(self, data: bytes) -> None:
        self._residual.extend(data)
        while True:
            idx = self._residual.find(LINE_TERMINATOR)
            if idx < 0:
                break
            line = bytes(self._residual[:idx]).rstrip(b"\r")
            del self._residual[: idx + 1]
            if line:
                self._handle(line)

    def _handle(self, line: bytes) -> None:
        elapsed_ms = self.ctx.elapsed_ms()
        self.lines += 1
        released = self.ctx.pool.release()
        if released:
            self.acks += 1
        else:
            # more responses than commands in flight
            self.anomalies += 1
        self.ctx.sink.ack_received(
            AckReceived(
                elapsed_ms=elapsed_ms,
                ack_index=self.lines,
                raw_line=line.decode("utf-8", errors="replace"),
                anomaly=not released,
            )
        )
