"""
Memory sampling helpers built on psutil.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import psutil

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass(frozen=True)
class MemorySnapshot:
    """
    Memory state at one instant.

    Attributes:
        used: Resident set size of this process in bytes.
        total: Total physical memory of the machine in bytes.
        available: Memory available to new allocations in bytes.
        available_percent: ``available`` as a percentage of ``total``.
    """

    used: int
    total: int
    available: int
    available_percent: float

    def describe(self) -> str:
        return (
            f"Total memory={self.total}, used={self.used}, "
            f"available={self.available} ({self.available_percent:.1f}%)"
        )


def take_snapshot(process: Optional[psutil.Process] = None) -> MemorySnapshot:
    """Sample process and system memory."""
    proc = process or psutil.Process()
    rss = proc.memory_info().rss
    vm = psutil.virtual_memory()
    available_percent = (vm.available / vm.total * 100.0) if vm.total else 0.0
    return MemorySnapshot(
        used=rss,
        total=vm.total,
        available=vm.available,
        available_percent=available_percent,
    )


def is_low_memory(
    snapshot: MemorySnapshot, min_available_percent: float, max_process_rss_mb: int = 0
) -> bool:
    """
    Decide whether a snapshot counts as low memory.

    Memory is low when the system's available share drops below
    ``min_available_percent``, or when a positive ``max_process_rss_mb`` is
    exceeded by this process.
    """
    if snapshot.available_percent < min_available_percent:
        return True
    if max_process_rss_mb > 0 and snapshot.used > max_process_rss_mb * MB:
        return True
    return False


def report_memory_statistics(statistics, suffix: str, snapshot: Optional[MemorySnapshot] = None) -> MemorySnapshot:
    """Record ``used_memory_<suffix>`` and ``total_memory_<suffix>``."""
    snapshot = snapshot or take_snapshot()
    statistics.report(f"used_memory_{suffix}", snapshot.used)
    statistics.report(f"total_memory_{suffix}", snapshot.total)
    return snapshot
