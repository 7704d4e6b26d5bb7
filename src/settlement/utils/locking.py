"""Per-order serialisation of settlement calls.

Both settlement phases read and then write shared order, shipment and
payment state, so two calls for the same order must not interleave.
Calls for different orders never wait on each other. Locks are
process-local and released from the registry once nobody holds or waits
on them.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class _OrderLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


_registry_guard = threading.Lock()
_order_locks: dict[str, _OrderLock] = {}


@contextmanager
def order_lock(order_number: str) -> Iterator[None]:
    """Hold the lock for ``order_number`` for the duration of the block."""
    with _registry_guard:
        entry = _order_locks.setdefault(order_number, _OrderLock())
        entry.users += 1

    entry.lock.acquire()
    try:
        yield
    finally:
        entry.lock.release()
        with _registry_guard:
            entry.users -= 1
            if entry.users == 0:
                _order_locks.pop(order_number, None)
