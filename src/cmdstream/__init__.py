"""Windowed command streaming to small-buffer receivers.

Commands go out as soon as the receiver is believed to have room for them:
up to ``window`` lines may be unacknowledged at once, and every response line
that comes back frees one slot.
"""

from .credit import CreditPool
from .events import AckReceived, CommandSent, EventSink, LoggingSink, SessionReport
from .progress import ProgressSnapshot, estimate
from .session import Session
from .source import Command, CommandSource, sanitize

__all__ = [
    "AckReceived",
    "Command",
    "CommandSent",
    "CommandSource",
    "CreditPool",
    "EventSink",
    "LoggingSink",
    "ProgressSnapshot",
    "Session",
    "SessionReport",
    "estimate",
    "sanitize",
]
