"""Per-key locks and conflict retries."""

import threading
from collections.abc import Callable, Hashable, Iterable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from .errors import ConcurrencyConflictError
from .log_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class KeyedLocks:
    """One lock per key, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *keys: Hashable) -> Iterator[None]:
        """Acquire the locks for several keys at once."""
        with self.hold_all(keys):
            yield

    @contextmanager
    def hold_all(self, keys: Iterable[Hashable]) -> Iterator[None]:
        """Acquire locks for all keys in sorted order, release in reverse."""
        ordered = sorted(set(keys), key=str)
        acquired: list[threading.Lock] = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def retry_on_conflict(operation: Callable[[], T], max_attempts: int = 3) -> T:
    """Run an operation, re-running it after a concurrency conflict.

    The operation must re-read whatever it writes. After ``max_attempts``
    failed attempts the last conflict is raised.
    """
    attempt = 1
    while True:
        try:
            return operation()
        except ConcurrencyConflictError as e:
            if attempt >= max_attempts:
                raise
            logger.warning("%s; retrying (attempt %d of %d)", e, attempt + 1, max_attempts)
            attempt += 1
