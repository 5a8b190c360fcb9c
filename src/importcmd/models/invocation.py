"""
Invocation data models.

This module defines the parsed command line of a single run and the closed
set of process exit codes that a run can finish with.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from pathlib import Path


class ExitCode(IntEnum):
    """Process exit codes. Exactly one is chosen per run."""

    SUCCESS = 0
    INVALID_ARGS = 2
    LOW_MEMORY = 3
    INTERNAL_ERROR = 4
    COMPILATION_FAILED = 5


class ImportMode(Enum):
    """Sub-command selecting whether a build follows the import."""

    IMPORT_ONLY = "importAndSave"
    IMPORT_AND_BUILD = "importAndBuild"

    @classmethod
    def choices(cls):
        return [mode.value for mode in cls]


@dataclass(frozen=True)
class InvocationArgs:
    """
    Validated command-line arguments for one run.

    Parsed once by the CLI and read-only afterwards.
    """

    mode: ImportMode
    # Directory holding the external project description.
    source_path: Path
    # Home directory of the toolchain registered before import.
    toolchain_path: Path

    @property
    def build_requested(self) -> bool:
        return self.mode is ImportMode.IMPORT_AND_BUILD
