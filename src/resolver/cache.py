"""Generic get-or-compute cache of futures.

One ``FutureCache`` instance backs each memoized computation (base URLs,
descriptors, per-request dependency closures). The first request for a key
registers a future under the map lock; the computation then runs exactly
once, either on the worker pool or inline in the first thread that waits for
it, whichever claims it first. A waiter never blocks on a computation that has
not started, so nested waits cannot starve a bounded pool.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from typing import Callable, Dict, Generic, Hashable, Iterator, Optional, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class CycleError(RuntimeError):
    """A computation waited on its own result."""


class _Slot(Generic[V]):
    """A future plus the thread that claimed the computation."""

    __slots__ = ("future", "owner")

    def __init__(self, future: Optional[Future] = None):
        self.future: Future = future if future is not None else Future()
        self.owner: Optional[int] = None


def completed(value: V) -> Future:
    """Wrap ``value`` in an already-resolved future."""
    future: Future = Future()
    future.set_result(value)
    return future


class FutureCache(Generic[K, V]):
    """Map of key -> future with at-most-once computation per key.

    Args:
        compute: function producing the value for a key.
        executor: pool used to start computations eagerly; when None, work
            runs in the first thread calling ``result``.
        name: label used in log messages.
    """

    def __init__(self, compute: Callable[[K], V], executor: Optional[Executor] = None, name: str = "cache"):
        self._compute = compute
        self._executor = executor
        self._name = name
        self._lock = threading.Lock()
        self._slots: Dict[K, _Slot] = {}

    def _slot(self, key: K) -> _Slot:
        """Get or insert the slot for ``key``, scheduling new work on the executor."""
        with self._lock:
            slot = self._slots.get(key)
            if slot is not None:
                return slot
            slot = _Slot()
            self._slots[key] = slot
        logger.debug("%s miss for %s", self._name, key)
        if self._executor is not None:
            try:
                self._executor.submit(self._run, key, slot)
            except RuntimeError:
                # Pool already shut down; the first waiter computes inline
                logger.debug("%s executor unavailable for %s", self._name, key)
        return slot

    def _claim(self, slot: _Slot) -> bool:
        with self._lock:
            if slot.owner is not None or slot.future.done():
                return False
            slot.owner = threading.get_ident()
            return True

    def _run(self, key: K, slot: _Slot) -> None:
        if not self._claim(slot):
            return
        try:
            value = self._compute(key)
        except BaseException as exc:  # pylint: disable=broad-exception-caught
            # Delivered to every waiter through the future
            slot.future.set_exception(exc)
        else:
            slot.future.set_result(value)

    def get(self, key: K) -> Future:
        """Return the future for ``key``, starting the computation if needed."""
        return self._slot(key).future

    def result(self, key: K, timeout: Optional[float] = None) -> V:
        """Return the value for ``key``, computing it inline if nobody has started.

        Raises:
            CycleError: if the calling thread is already computing ``key``.
            Exception: whatever the computation raised.
        """
        slot = self._slot(key)
        self._run(key, slot)
        if not slot.future.done() and slot.owner == threading.get_ident():
            raise CycleError(f"{self._name}: {key} depends on itself")
        return slot.future.result(timeout)

    def peek(self, key: K) -> Optional[Future]:
        """Return the existing future for ``key`` without creating one."""
        with self._lock:
            slot = self._slots.get(key)
        return slot.future if slot is not None else None

    def put(self, key: K, value: V) -> bool:
        """Store an already-known value unless a computation exists or has claimed the key.

        Returns:
            True if ``value`` became the cached value.
        """
        with self._lock:
            slot = self._slots.get(key)
            if slot is None:
                self._slots[key] = _Slot(completed(value))
                return True
            if slot.owner is not None or slot.future.done():
                return False
            slot.owner = threading.get_ident()
        slot.future.set_result(value)
        return True

    def invalidate(self, key: K) -> bool:
        """Forget a finished computation. In-flight computations are kept."""
        with self._lock:
            slot = self._slots.get(key)
            if slot is None or not slot.future.done():
                return False
            del self._slots[key]
            return True

    def clear(self) -> None:
        """Forget all finished computations."""
        with self._lock:
            for key in [k for k, s in self._slots.items() if s.future.done()]:
                del self._slots[key]

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._slots

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def __iter__(self) -> Iterator[K]:
        with self._lock:
            return iter(list(self._slots))
