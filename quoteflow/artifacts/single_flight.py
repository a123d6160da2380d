"""Per-key request coalescing.

While a call for a key is running, further calls for the same key wait for
it and receive its result (or its exception) instead of running again.
"""

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Dict, Generic, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Coalesces concurrent calls that share a key."""

    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight: Dict[str, Future] = {}

    def do(self, key: str, fn: Callable[[], T]) -> Tuple[T, bool]:
        """Run ``fn`` for ``key`` unless a call for ``key`` is already running.

        Args:
            key: Coalescing key
            fn: Work to run when this caller leads

        Returns:
            Tuple of (result, shared) where shared is True for callers that
            joined another caller's flight
        """
        with self._lock:
            future = self._in_flight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._in_flight[key] = future

        if not leader:
            logger.debug(f"Joining in-flight call for {key}")
            return future.result(), True

        try:
            result = fn()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result, False
        finally:
            with self._lock:
                self._in_flight.pop(key, None)

    def in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight
