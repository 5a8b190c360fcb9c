"""
importcmd: headless import-and-build command with process health monitoring.

The command imports an external project description into a project model,
optionally builds it, reports progress and statistics as service messages,
and maps every outcome to a deterministic exit code.

The package is organized into specialized modules:
- config: Configuration management and validation
- models: Data structures and type definitions
- validation: Input validation and error handling
- reporting: Service messages, statistics and operation brackets
- monitoring: Memory watchdog, memory sampling and leak checks
- engines: Import engine, build engine, toolchain registry, project store
- orchestration: Import coordination and the build driver
- cli: Command-line interface and wiring

Usage:
    From command line:
        importAndProcess importAndBuild /path/to/project /path/to/jdk

    Programmatically:
        from importcmd import create_runner, get_config
        runner = create_runner(get_config())
        exit_code = runner.process_command(args)
"""

# Main interfaces
from .config import get_config, clear_config_cache, set_config_path
from .cli.orchestrator import ImportAndProcessRunner, create_runner, derive_exit_code
from .cli import main_cli

# Model classes for external use
from .models import (
    AppConfig,
    BuildResult,
    ExitCode,
    ImportMode,
    ImportResult,
    InvocationArgs,
)

# Errors
from .exceptions import ImportCmdError
from .validation import ValidationError

__version__ = "1.0.0"

__all__ = [
    # Main interfaces
    "get_config",
    "clear_config_cache",
    "set_config_path",
    "ImportAndProcessRunner",
    "create_runner",
    "derive_exit_code",
    "main_cli",
    # Models
    "AppConfig",
    "BuildResult",
    "ExitCode",
    "ImportMode",
    "ImportResult",
    "InvocationArgs",
    # Errors
    "ImportCmdError",
    "ValidationError",
]
