"""
Reporting data models.

Statistics and operation spans are the two structured records emitted on the
machine-readable output channel.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class MessageStatus(Enum):
    """Severity of a reported message line."""

    NORMAL = "NORMAL"
    WARNING = "WARNING"
    ERROR = "ERROR"


class OperationType(Enum):
    """Kind of a bracketed operation."""

    TEST = "test"
    COMPILATION = "compilation"


class OperationOutcome(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class Statistic:
    """A single key/value statistic. Never mutated once recorded."""

    name: str
    value: str
    timestamp: float = field(default_factory=time.monotonic)


@dataclass
class OperationSpan:
    """
    A started operation, finished exactly once by the thread that started it.

    Attributes:
        type: Whether this is a test-like check or a compilation.
        label: Human readable name, unique among open spans of the same type.
        started_at: Monotonic start time in seconds.
        ended_at: Monotonic end time, set by finish().
        outcome: PENDING until finished.
        failure_message: Set when the span finished with a failure.
        duration_ms: Explicit duration if supplied, otherwise measured.
    """

    type: OperationType
    label: str
    started_at: float = field(default_factory=time.monotonic)
    ended_at: Optional[float] = None
    outcome: OperationOutcome = OperationOutcome.PENDING
    failure_message: Optional[str] = None
    duration_ms: Optional[int] = None

    @property
    def key(self):
        return (self.type, self.label)

    @property
    def is_open(self) -> bool:
        return self.outcome is OperationOutcome.PENDING

    def finish(
        self, failure_message: Optional[str] = None, duration_ms: Optional[int] = None
    ) -> None:
        """Close the span. Raises RuntimeError if it is already closed."""
        if not self.is_open:
            raise RuntimeError(f"Operation '{self.label}' is already finished")
        self.ended_at = time.monotonic()
        if duration_ms is None:
            duration_ms = int((self.ended_at - self.started_at) * 1000)
        self.duration_ms = duration_ms
        self.failure_message = failure_message
        self.outcome = (
            OperationOutcome.FAILURE if failure_message else OperationOutcome.SUCCESS
        )
