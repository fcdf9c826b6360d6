from __future__ import annotations

import io
import threading

import pytest

from cmdstream.channel import ChannelError
from cmdstream.context import SessionContext
from cmdstream.credit import CreditPool
from cmdstream.events import EventSink


class RecordingSink(EventSink):
    def __init__(self):
        self.lock = threading.Lock()
        self.commands = []
        self.acks = []
        self.snapshots = []

    def command_sent(self, event):
        with self.lock:
            self.commands.append(event)

    def ack_received(self, event):
        with self.lock:
            self.acks.append(event)

    def progress(self, snapshot):
        with self.lock:
            self.snapshots.append(snapshot)


class FailingStream(io.BytesIO):
    """Command file whose disk fails after the first line."""

    def readline(self, size=-1):
        if self.tell() >= 4:
            raise OSError("input/output error")
        return super().readline(size)


class ScriptedChannel:
    """Replays canned reads, then fails the next read."""

    def __init__(self, reads=(), on_exhausted=None):
        self.reads = list(reads)
        self.on_exhausted = on_exhausted
        self.written = []
        self.closed = False

    def write(self, data):
        self.written.append(data)

    def read(self):
        if self.reads:
            return self.reads.pop(0)
        if self.on_exhausted is not None:
            self.on_exhausted()
        raise ChannelError("port vanished")

    def close(self):
        self.closed = True


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def make_context(sink):
    def factory(channel, capacity=4, **kwargs):
        return SessionContext(channel=channel, pool=CreditPool(capacity), sink=sink, **kwargs)

    return factory
