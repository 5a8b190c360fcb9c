"""
Error taxonomy for the import command.

Every error that can end a run carries the exit code it maps to, so the
orchestrator can derive the final exit code from the exception alone.
"""

from .models.invocation import ExitCode


class ImportCmdError(Exception):
    """Base class for errors that decide the process exit code."""

    exit_code = ExitCode.INTERNAL_ERROR


class ConfigurationError(ImportCmdError):
    """Bad command line or configuration file."""

    exit_code = ExitCode.INVALID_ARGS


class LowMemoryError(ImportCmdError):
    """Memory stayed low after a garbage collection pass."""

    exit_code = ExitCode.LOW_MEMORY


class ImportFailure(ImportCmdError):
    """The import engine failed or produced no project."""


class ToolchainError(ImportFailure):
    """A toolchain could not be registered."""


class ProjectNotLoadedError(ImportCmdError):
    """A build was requested without a project handle."""


class BuildEngineError(ImportCmdError):
    """The build engine refused to start or crashed."""


class BuildStallError(ImportCmdError):
    """The build stopped running before reporting completion."""


class BuildTimeoutError(ImportCmdError):
    """The build exceeded the configured ceiling."""


class BuildFailure(ImportCmdError):
    """The build finished with errors or was aborted."""

    exit_code = ExitCode.COMPILATION_FAILED


class OperationPairingError(ImportCmdError):
    """An operation was started twice or finished without being started."""
