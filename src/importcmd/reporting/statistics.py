"""
Append-only statistics sink.
"""

import logging
import threading
from typing import List, Optional, Tuple

from ..models.reporting import Statistic
from .service_messages import ServiceMessageWriter

logger = logging.getLogger(__name__)


class StatisticsSink:
    """
    Records key/value statistics and emits each one as it arrives.

    Statistics are kept in insertion order and never mutated or removed.
    """

    def __init__(self, writer: Optional[ServiceMessageWriter] = None):
        self.writer = writer or ServiceMessageWriter()
        self._statistics: List[Statistic] = []
        self._lock = threading.Lock()

    def report(self, name: str, value: object) -> Statistic:
        statistic = Statistic(name=name, value=str(value))
        with self._lock:
            self._statistics.append(statistic)
        logger.debug(f"Statistic {name}={statistic.value}")
        self.writer.write("buildStatisticValue", key=name, value=statistic.value)
        return statistic

    @property
    def statistics(self) -> Tuple[Statistic, ...]:
        with self._lock:
            return tuple(self._statistics)

    def values(self, name: str) -> List[str]:
        """All values recorded under ``name``, oldest first."""
        return [s.value for s in self.statistics if s.name == name]

    def last_value(self, name: str) -> Optional[str]:
        found = self.values(name)
        return found[-1] if found else None
