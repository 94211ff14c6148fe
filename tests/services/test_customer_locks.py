"""Tests for CustomerLockRegistry."""

import threading
import time

import pytest

from fulfillment_kernel.services.customer_locks import CustomerLockRegistry

WAIT = 5


def _hold_in_thread(locks, customer_id, acquired, release):
    def run():
        with locks.hold(customer_id):
            acquired.set()
            release.wait(WAIT)

    thread = threading.Thread(target=run)
    thread.start()
    return thread


def _wait_for_holders(locks, customer_id, count):
    deadline = time.monotonic() + WAIT
    while locks._holders.get(customer_id) != count:
        assert time.monotonic() < deadline, "waiter never queued"
        time.sleep(0.01)


def test_same_customer_waits_for_holder():
    locks = CustomerLockRegistry()
    acquired, release = threading.Event(), threading.Event()

    with locks.hold("cust-1"):
        thread = _hold_in_thread(locks, "cust-1", acquired, release)
        assert not acquired.wait(0.2)

    assert acquired.wait(WAIT)
    release.set()
    thread.join(WAIT)


def test_different_customers_do_not_block():
    locks = CustomerLockRegistry()
    acquired, release = threading.Event(), threading.Event()

    with locks.hold("cust-1"):
        thread = _hold_in_thread(locks, "cust-2", acquired, release)
        assert acquired.wait(WAIT)
        assert len(locks) == 2
        release.set()
        thread.join(WAIT)


def test_idle_locks_are_evicted():
    locks = CustomerLockRegistry()

    with locks.hold("cust-1"):
        with locks.hold("cust-2"):
            assert len(locks) == 2
        assert len(locks) == 1

    assert len(locks) == 0


def test_entry_survives_while_a_waiter_is_queued():
    locks = CustomerLockRegistry()
    acquired, release = threading.Event(), threading.Event()

    with locks.hold("cust-1"):
        thread = _hold_in_thread(locks, "cust-1", acquired, release)
        _wait_for_holders(locks, "cust-1", 2)

    assert acquired.wait(WAIT)
    assert len(locks) == 1
    release.set()
    thread.join(WAIT)
    assert len(locks) == 0


def test_lock_released_when_body_raises():
    locks = CustomerLockRegistry()

    with pytest.raises(ValueError):
        with locks.hold("cust-1"):
            raise ValueError("payment gateway timeout")

    assert len(locks) == 0
    with locks.hold("cust-1"):
        assert len(locks) == 1
