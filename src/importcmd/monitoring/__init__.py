"""
Process health monitoring: memory watchdog, sampling and leak checks.
"""

from .leak_checker import MemoryLeakChecker
from .memory import MemorySnapshot, is_low_memory, report_memory_statistics, take_snapshot
from .watchdog import (
    MemoryWatchdog,
    WatchdogHandle,
    install_memory_watchdog,
    log_and_collect,
    log_and_terminate,
)

__all__ = [
    "MemoryLeakChecker",
    "MemorySnapshot",
    "MemoryWatchdog",
    "WatchdogHandle",
    "install_memory_watchdog",
    "is_low_memory",
    "log_and_collect",
    "log_and_terminate",
    "report_memory_statistics",
    "take_snapshot",
]
