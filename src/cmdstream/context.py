from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from .channel import Channel
from .credit import CreditPool
from .events import EventSink


@dataclass(slots=True)
class SessionContext:
    """State shared by the writer and reader loops of one session.

    Only the writer side sets ``shutdown``; the reader checks it after every
    read attempt to tell an expected close from a failure.
    """

    channel: Channel
    pool: CreditPool
    sink: EventSink = field(default_factory=EventSink)
    progress: bool = False
    total_bytes: int = 0
    shutdown: threading.Event = field(default_factory=threading.Event)
    start_ts: float = field(default_factory=time.monotonic)

    @property
    def shutdown_requested(self) -> bool:
        return self.shutdown.is_set()

    def request_shutdown(self) -> None:
        self.shutdown.set()

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.start_ts) * 1000)
