"""
Per-product locks for pessimistic order placement.

In-process only. Multi-worker deployments on a server database also get
row locks from ``SELECT ... FOR UPDATE`` (see Catalog.lock_products); these
locks serialize threads of one worker, which is all SQLite can offer.
"""
import threading
import time
import logging
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List

from crm.core.exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0  # threads holding or waiting for the lock


class ProductLockRegistry:
    """
    Hands out one lock per product id; acquires several in sorted order.

    An entry lives only while some thread holds or waits for it, so two
    threads never end up with different locks for the same product and
    the registry does not grow with the catalog.
    """

    def __init__(self):
        self._entries: Dict[str, _Entry] = {}
        self._guard = threading.Lock()

    def _pin(self, product_id: str) -> threading.Lock:
        with self._guard:
            entry = self._entries.get(product_id)
            if entry is None:
                entry = self._entries[product_id] = _Entry()
            entry.users += 1
            return entry.lock

    def _unpin(self, product_id: str) -> None:
        with self._guard:
            entry = self._entries[product_id]
            entry.users -= 1
            if entry.users == 0:
                del self._entries[product_id]

    def active_count(self) -> int:
        """Products some thread currently holds or waits for."""
        with self._guard:
            return len(self._entries)

    @contextmanager
    def acquire(self, product_ids: Iterable[str], timeout: float) -> Iterator[List[str]]:
        """
        Hold every product lock for the duration of the block.

        Locks are taken in sorted id order so two orders over overlapping
        products cannot deadlock. Gives up after ``timeout`` seconds in total
        and raises ConcurrencyConflictError with nothing held.
        """
        ordered = sorted(set(product_ids))
        deadline = time.monotonic() + timeout
        pinned: List[str] = []
        held: List[threading.Lock] = []
        try:
            for product_id in ordered:
                lock = self._pin(product_id)
                pinned.append(product_id)
                remaining = max(0.0, deadline - time.monotonic())
                if not lock.acquire(timeout=remaining):
                    logger.warning(f"Lock timeout on product {product_id} after {timeout}s")
                    raise ConcurrencyConflictError(
                        f"Product {product_id} is busy with another order; please retry"
                    )
                held.append(lock)
            yield ordered
        finally:
            for lock in reversed(held):
                lock.release()
            for product_id in pinned:
                self._unpin(product_id)


# Global lock registry instance
product_locks = ProductLockRegistry()
