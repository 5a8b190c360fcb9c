"""
Low-memory watchdog.

A daemon thread samples memory on a fixed interval. When memory is low the
soft callback fires (log and garbage-collect); if memory is still low after
that pass the hard callback fires, which by default terminates the process
with the low-memory exit code without returning.

Notifications only stop through the WatchdogHandle returned by install().
"""

import gc
import logging
import os
import threading
from typing import Callable, Optional

from ..models.config import WatchdogConfig
from ..models.invocation import ExitCode
from ..models.reporting import MessageStatus
from .memory import MemorySnapshot, is_low_memory, take_snapshot

logger = logging.getLogger(__name__)

MemoryCallback = Callable[[MemorySnapshot], None]


class WatchdogHandle:
    """
    Subscription handle of an installed watchdog.

    ``release()`` is idempotent; once it returns no callback will start.
    A hard callback that is already running is not interrupted.
    """

    def __init__(self, watchdog: "MemoryWatchdog"):
        self._watchdog = watchdog
        self._released = False
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return not self._released

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        self._watchdog.stop()
        logger.debug("Memory watchdog released")

    def __enter__(self) -> "WatchdogHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


class MemoryWatchdog:
    """
    Samples memory and escalates from the soft to the hard callback.

    Args:
        on_soft: Called when memory is low. Must not block.
        on_hard: Called when memory is still low after on_soft ran.
        check_interval: Seconds between samples.
        min_available_percent: Low-memory threshold on system availability.
        max_process_rss_mb: Optional RSS ceiling for this process, 0 disables.
        sampler: Replaceable snapshot function, mainly for tests.
    """

    def __init__(
        self,
        on_soft: MemoryCallback,
        on_hard: MemoryCallback,
        check_interval: float = 1.0,
        min_available_percent: float = 5.0,
        max_process_rss_mb: int = 0,
        sampler: Optional[Callable[[], MemorySnapshot]] = None,
    ):
        self.on_soft = on_soft
        self.on_hard = on_hard
        self.check_interval = check_interval
        self.min_available_percent = min_available_percent
        self.max_process_rss_mb = max_process_rss_mb
        self.sampler = sampler or take_snapshot
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def install(self) -> WatchdogHandle:
        if self._thread is not None:
            raise RuntimeError("Memory watchdog is already installed")
        self._thread = threading.Thread(
            target=self._run, name="MemoryWatchdog", daemon=True
        )
        self._thread.start()
        logger.info(
            f"Memory watchdog installed (interval={self.check_interval}s, "
            f"min_available={self.min_available_percent}%, "
            f"max_rss_mb={self.max_process_rss_mb or 'unlimited'})"
        )
        return WatchdogHandle(self)

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _is_low(self, snapshot: MemorySnapshot) -> bool:
        return is_low_memory(snapshot, self.min_available_percent, self.max_process_rss_mb)

    def check_once(self) -> bool:
        """
        Run one sampling round.

        Returns:
            True if the hard callback fired.
        """
        try:
            snapshot = self.sampler()
        except Exception as e:
            logger.warning(f"Failed to sample memory: {e}")
            return False

        if not self._is_low(snapshot) or self._stop_event.is_set():
            return False

        try:
            self.on_soft(snapshot)
        except Exception as e:
            logger.error(f"Low memory handler failed: {e}", exc_info=True)

        try:
            after_gc = self.sampler()
        except Exception as e:
            logger.warning(f"Failed to sample memory after GC: {e}")
            return False

        if not self._is_low(after_gc):
            return False

        # From here on termination wins over a concurrent release().
        self.on_hard(after_gc)
        return True

    def _run(self) -> None:
        while not self._stop_event.wait(self.check_interval):
            if self.check_once():
                break


def log_and_collect(reporter) -> MemoryCallback:
    """Default soft handler: warn with current usage and request a GC pass."""

    def on_soft(snapshot: MemorySnapshot) -> None:
        reporter.message(f"Low memory, invoking GC. {snapshot.describe()}", MessageStatus.WARNING)
        gc.collect()

    return on_soft


def log_and_terminate(reporter, terminate: Callable[[int], None] = os._exit) -> MemoryCallback:
    """Default hard handler: log an error and end the process immediately."""

    def on_hard(snapshot: MemorySnapshot) -> None:
        try:
            reporter.message(f"Low memory after GC. {snapshot.describe()}", MessageStatus.ERROR)
        finally:
            terminate(int(ExitCode.LOW_MEMORY))

    return on_hard


def install_memory_watchdog(
    on_soft: MemoryCallback,
    on_hard: MemoryCallback,
    config: Optional[WatchdogConfig] = None,
    sampler: Optional[Callable[[], MemorySnapshot]] = None,
) -> WatchdogHandle:
    """Create and start a watchdog from configuration, returning its handle."""
    config = config or WatchdogConfig()
    watchdog = MemoryWatchdog(
        on_soft=on_soft,
        on_hard=on_hard,
        check_interval=config.check_interval_seconds,
        min_available_percent=config.min_available_percent,
        max_process_rss_mb=config.max_process_rss_mb,
        sampler=sampler,
    )
    return watchdog.install()
