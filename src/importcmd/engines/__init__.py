"""
External collaborators: interfaces and default implementations.

- base: abstract contracts consumed by the orchestration layer
- gradle_import: import engine for Gradle-style settings scripts
- subprocess_build: build engine running a shell command
- toolchain: toolchain registry
- project_store: TOML persistence of the project model
"""

from .base import (
    AbstractBuildEngine,
    AbstractBuildSession,
    AbstractImportEngine,
    AbstractProjectStore,
    AbstractToolchainRegistry,
    BuildCallback,
    ImportCallback,
)
from .gradle_import import GradleImportEngine
from .project_store import ProjectStore
from .subprocess_build import SubprocessBuildEngine, SubprocessBuildSession, parse_diagnostic
from .toolchain import ToolchainRegistry

__all__ = [
    "AbstractBuildEngine",
    "AbstractBuildSession",
    "AbstractImportEngine",
    "AbstractProjectStore",
    "AbstractToolchainRegistry",
    "BuildCallback",
    "GradleImportEngine",
    "ImportCallback",
    "ProjectStore",
    "SubprocessBuildEngine",
    "SubprocessBuildSession",
    "ToolchainRegistry",
    "parse_diagnostic",
]
