"""
Result data models for the import and build phases.

Each result is produced once per run and is immutable afterwards. The exit
code of a run is derived from these values by the orchestrator.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple


class MessageCategory(Enum):
    """Diagnostic categories reported by a build engine, in report order."""

    ERROR = "ERROR"
    WARNING = "WARNING"
    INFORMATION = "INFORMATION"
    STATISTICS = "STATISTICS"


@dataclass(frozen=True)
class BuildMessage:
    """A single diagnostic produced by the build."""

    category: MessageCategory
    text: str
    # File path, optionally suffixed with ':<line>'. None if not file-bound.
    location: Optional[str] = None

    def format(self) -> str:
        return f"{self.category.value} - {self.location or '-'}: {self.text}"


@dataclass(frozen=True)
class ImportResult:
    """
    Outcome of the import phase.

    ``project`` is only set when ``ok`` is true; ``failure_message`` only when
    it is false. The caller must not build a failed import.
    """

    ok: bool
    project: Optional[Any] = None
    failure_message: Optional[str] = None

    @classmethod
    def success(cls, project: Any) -> "ImportResult":
        return cls(ok=True, project=project)

    @classmethod
    def failure(cls, message: str) -> "ImportResult":
        return cls(ok=False, failure_message=message)


@dataclass(frozen=True)
class BuildResult:
    """Terminal state of one full rebuild."""

    aborted: bool
    error_count: int
    warning_count: int
    messages: Tuple[BuildMessage, ...] = ()

    @property
    def failed(self) -> bool:
        return self.aborted or self.error_count > 0


@dataclass(frozen=True)
class LeakReport:
    """Objects that survived import although they should have been released."""

    leaked_object_count: int
    details: Tuple[str, ...] = ()

    @property
    def clean(self) -> bool:
        return self.leaked_object_count == 0
