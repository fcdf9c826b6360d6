from __future__ import annotations

import logging
import threading


class CreditPool:
    """Counts how many commands the receiver can still buffer.

    ``acquire`` waits without a timeout. If the receiver never answers the
    writer stays blocked; that is part of the protocol contract.
    ``release`` past ``capacity`` is a tolerated anomaly and leaves the pool
    unchanged.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"window capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._available = capacity
        self._cond = threading.Condition()
        self.acquired = 0
        self.released = 0
        self.anomalies = 0
        self.peak_in_flight = 0

    @property
    def available(self) -> int:
        with self._cond:
            return self._available

    @property
    def in_flight(self) -> int:
        with self._cond:
            return self.capacity - self._available

    def acquire(self) -> None:
        with self._cond:
            while self._available == 0:
                self._cond.wait()
            self._available -= 1
            self.acquired += 1
            in_flight = self.capacity - self._available
            if in_flight > self.peak_in_flight:
                self.peak_in_flight = in_flight

    def release(self) -> bool:
        with self._cond:
            if self._available >= self.capacity:
                self.anomalies += 1
                logging.debug("credit release with full pool ignored (capacity=%d)", self.capacity)
                return False
            self._available += 1
            self.released += 1
            self._cond.notify()
            return True
