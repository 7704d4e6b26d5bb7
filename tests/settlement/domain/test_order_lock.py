"""Tests for per-order serialisation of settlement calls."""

import threading
import time

from settlement.utils.locking import _order_locks, order_lock


class TestOrderLock:
    def test_lock_is_released_from_registry(self):
        with order_lock("R100"):
            assert list(_order_locks) == ["R100"]
        assert _order_locks == {}

    def test_lock_is_reentrant_within_a_thread(self):
        with order_lock("R100"):
            with order_lock("R100"):
                assert list(_order_locks) == ["R100"]
        assert _order_locks == {}

    def test_same_order_is_serialised(self):
        events = []

        def worker(name):
            with order_lock("R100"):
                events.append(f"{name}-start")
                time.sleep(0.05)
                events.append(f"{name}-end")

        threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert events[0].endswith("-start")
        assert events[1] == events[0].replace("start", "end")
        assert _order_locks == {}

    def test_different_orders_do_not_wait(self):
        inside = threading.Event()
        release = threading.Event()

        def hold():
            with order_lock("R100"):
                inside.set()
                release.wait(timeout=2)

        holder = threading.Thread(target=hold)
        holder.start()
        inside.wait(timeout=2)
        try:
            acquired = []
            with order_lock("R200"):
                acquired.append("R200")
            assert acquired == ["R200"]
        finally:
            release.set()
            holder.join()
