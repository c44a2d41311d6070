# endpoints/auction/auctionLocks.py
"""
Process-local serializers for bids and admin control actions.

These only order requests inside one process. The compare-and-swap on
"AuctionState".version (see auctionStore.update_state) is what keeps several
service instances consistent; these locks just keep the common single-instance
case from burning retries.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from endpoints.auction.auctionErrors import Busy

logger = logging.getLogger(__name__)


class AuctionSerializer:
    def __init__(self, name: str, timeout_ms: int, max_waiters: Optional[int] = None):
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self.name = name
        self.timeout_ms = timeout_ms
        self.max_waiters = max_waiters
        self._lock = threading.Lock()
        self._waiting = 0
        self._waiting_guard = threading.Lock()

    @property
    def waiting(self) -> int:
        return self._waiting

    def _enter_queue(self) -> bool:
        with self._waiting_guard:
            if self.max_waiters is not None and self._waiting >= self.max_waiters:
                return False
            self._waiting += 1
            return True

    def _leave_queue(self) -> None:
        with self._waiting_guard:
            self._waiting -= 1

    @contextmanager
    def hold(self, reason: str = "") -> Iterator[None]:
        """
        Runs the block while holding the lock.
        Raises Busy when the wait queue is full or the lock is not acquired
        within timeout_ms.
        """
        if not self._enter_queue():
            logger.warning("%s queue full (%s waiting): %s", self.name, self._waiting, reason)
            raise Busy(f"{self.name} queue full, retry")

        try:
            acquired = self._lock.acquire(timeout=self.timeout_ms / 1000.0)
        finally:
            self._leave_queue()

        if not acquired:
            logger.warning("%s not acquired within %sms: %s", self.name, self.timeout_ms, reason)
            raise Busy(f"{self.name} busy, retry")

        try:
            yield
        finally:
            self._lock.release()


def bid_serializer(settings) -> AuctionSerializer:
    return AuctionSerializer(
        "bid lock",
        timeout_ms=settings.bid_lock_timeout_ms,
        max_waiters=settings.bid_lock_max_waiters,
    )


def control_serializer(settings) -> AuctionSerializer:
    return AuctionSerializer("control lock", timeout_ms=settings.control_lock_timeout_ms)
