"""
Interfaces of the external collaborators driven by the orchestrator.

The import and build engines are asynchronous: they return immediately and
report their outcome exactly once through a callback, usually from their own
worker thread. The toolchain registry and the project store are synchronous.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..models.project import DataNode, LinkedProjectSettings, ProjectModel, Toolchain
from ..models.results import BuildMessage, MessageCategory

# (aborted, error_count, warning_count, messages_by_category)
BuildCallback = Callable[[bool, int, int, Dict[MessageCategory, List[BuildMessage]]], None]


class ImportCallback(ABC):
    """One-shot completion contract of an import engine."""

    @abstractmethod
    def on_success(self, external_project: Optional[DataNode]) -> None:
        """Called when resolution finished. A None graph counts as a failure."""

    @abstractmethod
    def on_failure(self, error_message: str, error_details: Optional[str] = None) -> None:
        """Called when resolution failed."""


class AbstractImportEngine(ABC):
    """Resolves an external project description into a DataNode graph."""

    @abstractmethod
    def find_project_description(self, project_path: Path) -> Optional[Path]:
        """Return the description file under ``project_path`` or None."""

    @abstractmethod
    def refresh_project(
        self,
        project: ProjectModel,
        settings: LinkedProjectSettings,
        callback: ImportCallback,
    ) -> None:
        """Start resolving; invoke ``callback`` exactly once when done."""

    @abstractmethod
    def import_data(self, external_project: DataNode, project: ProjectModel) -> None:
        """Populate ``project`` from a resolved graph without retaining it."""


class AbstractBuildSession(ABC):
    """A running build started by a build engine."""

    @abstractmethod
    def is_running(self) -> bool:
        """Whether the build still reports itself as making progress."""

    @abstractmethod
    def messages(self, category: MessageCategory) -> List[BuildMessage]:
        """Diagnostics of ``category`` observed so far."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop the build. Must be safe to call after it finished."""


class AbstractBuildEngine(ABC):
    """Runs a full rebuild of a project."""

    @abstractmethod
    def rebuild(self, project: ProjectModel, callback: BuildCallback) -> AbstractBuildSession:
        """Start a rebuild; invoke ``callback`` exactly once when it ends."""


class AbstractToolchainRegistry(ABC):
    @abstractmethod
    def register(self, kind: str, name: str, home: Path) -> Toolchain:
        """Register a toolchain, raising ToolchainError if it is unusable."""


class AbstractProjectStore(ABC):
    """Persistence of project models."""

    @abstractmethod
    def open_project(self, project_path: Path) -> Optional[ProjectModel]:
        ...

    @abstractmethod
    def save(self, project: ProjectModel) -> None:
        ...

    @abstractmethod
    def reopen(self, project: ProjectModel) -> ProjectModel:
        """Load the saved state of ``project`` as a fresh model."""

    @abstractmethod
    def close(self, project: Optional[ProjectModel]) -> None:
        """Dispose a project. Safe on None and on already disposed projects."""
