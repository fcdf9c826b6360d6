from __future__ import annotations

import queue
import random
import threading
import time
from dataclasses import dataclass

from .channel import ChannelError
from .constants import DEFAULT_DEVICE_BUFFER, DEFAULT_RESPONSE, LINE_TERMINATOR


@dataclass(frozen=True, slots=True)
class Latency:
    min_ms: float = 0.0
    max_ms: float = 0.0

    def sample(self) -> float:
        if self.max_ms <= self.min_ms:
            return self.min_ms
        return random.uniform(self.min_ms, self.max_ms)

    def sleep(self) -> None:
        delay_ms = self.sample()
        if delay_ms > 0:
            time.sleep(delay_ms / 1000.0)


class SimulatedReceiver:
    """In-process stand-in for a firmware that answers every line, in order.

    Lines are executed one at a time by a device thread, each taking a sampled
    latency, and answered with ``response``. ``max_pending`` records the most
    lines the device ever held unanswered and ``overflowed`` whether their
    bytes exceeded ``buffer_size``.
    """

    def __init__(
        self,
        latency: Latency | None = None,
        response: bytes = DEFAULT_RESPONSE,
        buffer_size: int = DEFAULT_DEVICE_BUFFER,
        extra_lines: int = 0,
        blank_lines: bool = False,
        fail_write_after: int | None = None,
        max_read: int = 64,
        read_timeout_s: float = 0.05,
    ):
        self.latency = latency or Latency()
        self.response = response
        self.buffer_size = buffer_size
        self.extra_lines = extra_lines
        self.blank_lines = blank_lines
        self.fail_write_after = fail_write_after
        self.max_read = max(1, max_read)
        self.read_timeout_s = read_timeout_s

        self.received: list[bytes] = []
        self.writes = 0
        self.acks_sent = 0
        self.pending = 0
        self.pending_bytes = 0
        self.max_pending = 0
        self.overflowed = False

        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._partial = bytearray()
        self._readbuf = bytearray()
        self._inbox: "queue.Queue[bytes | None]" = queue.Queue()
        self._outbox: "queue.Queue[bytes]" = queue.Queue()
        self._device = threading.Thread(target=self._run, name="simulated-receiver", daemon=True)
        self._device.start()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def write(self, data: bytes) -> None:
        if self._closed.is_set():
            raise ChannelError("simulated receiver is closed")
        self.writes += 1
        if self.fail_write_after is not None and self.writes > self.fail_write_after:
            raise ChannelError(f"simulated write failure on write {self.writes}")
        with self._lock:
            self._partial.extend(data)
            while True:
                idx = self._partial.find(LINE_TERMINATOR)
                if idx < 0:
                    break
                line = bytes(self._partial[:idx])
                del self._partial[: idx + 1]
                self.received.append(line)
                self.pending += 1
                self.pending_bytes += len(line) + 1
                self.max_pending = max(self.max_pending, self.pending)
                if self.pending_bytes > self.buffer_size:
                    self.overflowed = True
                self._inbox.put(line)

    def read(self) -> bytes:
        if self._closed.is_set():
            raise ChannelError("simulated receiver is closed")
        if not self._readbuf:
            try:
                self._readbuf.extend(self._outbox.get(timeout=self.read_timeout_s))
            except queue.Empty:
                return b""
            while True:
                try:
                    self._readbuf.extend(self._outbox.get_nowait())
                except queue.Empty:
                    break
        data = bytes(self._readbuf[: self.max_read])
        del self._readbuf[: self.max_read]
        return data

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._inbox.put(None)
        self._device.join(timeout=1.0)

    def _run(self) -> None:
        while True:
            line = self._inbox.get()
            if line is None or self._closed.is_set():
                return
            self.latency.sleep()
            with self._lock:
                self.pending -= 1
                self.pending_bytes -= len(line) + 1
                self.acks_sent += 1
            if self.blank_lines:
                self._outbox.put(LINE_TERMINATOR)
            self._outbox.put(self.response)
            for _ in range(self.extra_lines):
                self._outbox.put(self.response)
