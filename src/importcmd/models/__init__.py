"""
Data models and structures for the import command.

Configuration Models:
- Application-wide configuration settings, one dataclass per TOML section

Invocation Models:
- Parsed command-line arguments and process exit codes

Project Models:
- The long-lived project handle, its modules, settings and toolchain
- The import-scoped DataNode transfer graph

Reporting and Result Models:
- Statistics and operation spans written to the output channel
- Import, build and leak-check results
"""

# Configuration models
from .config import AppConfig, BuildConfig, ImportConfig, ReportingConfig, WatchdogConfig

# Invocation models
from .invocation import ExitCode, ImportMode, InvocationArgs

# Project models
from .project import (
    DataNode,
    DependencyData,
    LinkedProjectSettings,
    Module,
    ModuleData,
    ProjectData,
    ProjectModel,
    ProjectSettings,
    Toolchain,
)

# Reporting models
from .reporting import (
    MessageStatus,
    OperationOutcome,
    OperationSpan,
    OperationType,
    Statistic,
)

# Result models
from .results import (
    BuildMessage,
    BuildResult,
    ImportResult,
    LeakReport,
    MessageCategory,
)

__all__ = [
    # Configuration
    "AppConfig",
    "BuildConfig",
    "ImportConfig",
    "ReportingConfig",
    "WatchdogConfig",
    # Invocation
    "ExitCode",
    "ImportMode",
    "InvocationArgs",
    # Project
    "DataNode",
    "DependencyData",
    "LinkedProjectSettings",
    "Module",
    "ModuleData",
    "ProjectData",
    "ProjectModel",
    "ProjectSettings",
    "Toolchain",
    # Reporting
    "MessageStatus",
    "OperationOutcome",
    "OperationSpan",
    "OperationType",
    "Statistic",
    # Results
    "BuildMessage",
    "BuildResult",
    "ImportResult",
    "LeakReport",
    "MessageCategory",
]
