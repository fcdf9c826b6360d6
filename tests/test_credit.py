from __future__ import annotations

import threading
import time

import pytest

from cmdstream.credit import CreditPool


def test_starts_full():
    pool = CreditPool(4)
    assert pool.available == 4
    assert pool.in_flight == 0


def test_rejects_zero_capacity():
    with pytest.raises(ValueError):
        CreditPool(0)


def test_acquire_release_bookkeeping():
    pool = CreditPool(3)
    pool.acquire()
    pool.acquire()
    assert pool.available == 1
    assert pool.in_flight == 2
    assert pool.release() is True
    assert pool.acquired - pool.released == pool.capacity - pool.available
    assert pool.peak_in_flight == 2


def test_release_beyond_capacity_is_noop():
    pool = CreditPool(2)
    assert pool.release() is False
    assert pool.release() is False
    assert pool.available == 2
    assert pool.anomalies == 2
    assert pool.released == 0


def test_acquire_blocks_until_release():
    pool = CreditPool(1)
    pool.acquire()
    acquired = threading.Event()

    def second():
        pool.acquire()
        acquired.set()

    t = threading.Thread(target=second, daemon=True)
    t.start()
    assert not acquired.wait(0.1)
    pool.release()
    assert acquired.wait(1.0)
    t.join(1.0)
    assert pool.available == 0


def test_in_flight_never_exceeds_capacity_under_contention():
    pool = CreditPool(2)
    stop = threading.Event()
    seen = []

    def releaser():
        while not stop.is_set():
            pool.release()
            time.sleep(0.0005)

    t = threading.Thread(target=releaser, daemon=True)
    t.start()
    for _ in range(200):
        pool.acquire()
        seen.append(pool.in_flight)
    stop.set()
    t.join(1.0)
    assert max(seen) <= 2
    assert pool.peak_in_flight <= 2
    assert pool.available <= pool.capacity
