"""
One-shot completion signal used to await engine callbacks.
"""

import logging
import threading
from typing import Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OneShotCompletion(Generic[T]):
    """
    A value delivered at most once from any thread and awaited on another.

    The first ``complete()`` wins; later calls are logged and ignored.
    """

    def __init__(self, name: str = "operation"):
        self.name = name
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._value: Optional[T] = None

    def complete(self, value: T) -> bool:
        with self._lock:
            if self._event.is_set():
                logger.warning(f"Ignoring repeated completion of {self.name}")
                return False
            self._value = value
            self._event.set()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until completed or ``timeout`` elapsed. Returns is_done()."""
        return self._event.wait(timeout)

    def is_done(self) -> bool:
        return self._event.is_set()

    @property
    def value(self) -> T:
        if not self._event.is_set():
            raise RuntimeError(f"{self.name} has not completed")
        return self._value
