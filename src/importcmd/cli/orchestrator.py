"""
Run orchestration for the CLI.

This module wires the reporting sinks, engines, coordinators and the memory
watchdog together and runs one command. Every failure is mapped to exactly
one exit code, and the watchdog is released on every path that returns.
"""

import logging
import os
from typing import Callable, IO, Optional

from ..engines import GradleImportEngine, ProjectStore, SubprocessBuildEngine, ToolchainRegistry
from ..exceptions import BuildFailure, ImportCmdError
from ..models.config import AppConfig
from ..models.invocation import ExitCode, InvocationArgs
from ..models.results import BuildResult, ImportResult
from ..monitoring import WatchdogHandle, install_memory_watchdog, log_and_collect, log_and_terminate
from ..orchestration import BuildDriver, ImportCoordinator
from ..reporting import MessageReporter, ServiceMessageWriter, StatisticsSink
from ..validation import ErrorSeverity, handle_error

logger = logging.getLogger(__name__)

WatchdogInstaller = Callable[[], WatchdogHandle]


def derive_exit_code(import_result: ImportResult, build_result: Optional[BuildResult] = None) -> ExitCode:
    """
    Map the phase results of a run to its exit code.

    A failed import is an internal error, a failed or aborted build is a
    compilation failure, and anything else is success.
    """
    if not import_result.ok:
        return ExitCode.INTERNAL_ERROR
    if build_result is not None and build_result.failed:
        return ExitCode.COMPILATION_FAILED
    return ExitCode.SUCCESS


class ImportAndProcessRunner:
    """
    Runs the import phase and, when requested, the build phase.

    Collaborators are injected; use ``create_runner()`` for the default
    wiring from an AppConfig.
    """

    def __init__(
        self,
        reporter: MessageReporter,
        statistics: StatisticsSink,
        import_coordinator: ImportCoordinator,
        build_driver: BuildDriver,
        watchdog_installer: WatchdogInstaller,
    ):
        self.reporter = reporter
        self.statistics = statistics
        self.import_coordinator = import_coordinator
        self.build_driver = build_driver
        self.watchdog_installer = watchdog_installer

    def process_command(self, args: InvocationArgs) -> ExitCode:
        """
        Run one command and return its exit code.

        The low-memory hard path never returns here: it ends the process
        from the watchdog thread.
        """
        self.reporter.progress(
            f"Processing command {args.mode.value} for {args.source_path} "
            f"with toolchain {args.toolchain_path} in working directory {os.getcwd()}"
        )

        handle = self.watchdog_installer()
        try:
            return self._run_phases(args)
        except ImportCmdError as e:
            handle_error(e, "import command", severity=ErrorSeverity.ERROR, reraise=False, logger=logger)
            return e.exit_code
        except Exception as e:
            handle_error(
                e, "import command", severity=ErrorSeverity.CRITICAL, reraise=False, logger=logger
            )
            self.reporter.error(f"Unexpected error: {type(e).__name__}: {e}")
            return ExitCode.INTERNAL_ERROR
        finally:
            handle.release()
            self.reporter.progress("Exit application")

    def _run_phases(self, args: InvocationArgs) -> ExitCode:
        import_result = self.import_coordinator.run(args)
        if not import_result.ok:
            logger.error(f"Import failed, skipping build: {import_result.failure_message}")
            return derive_exit_code(import_result)

        if not args.build_requested:
            return derive_exit_code(import_result)

        build_result = self.build_driver.build(import_result.project)
        if build_result.failed:
            raise BuildFailure(
                f"Compilation failed: aborted={build_result.aborted}, "
                f"errors={build_result.error_count}, warnings={build_result.warning_count}"
            )
        return derive_exit_code(import_result, build_result)


def create_runner(config: AppConfig, stream: Optional[IO[str]] = None) -> ImportAndProcessRunner:
    """
    Build a runner with the default collaborators.

    Args:
        config: Loaded application configuration.
        stream: Destination of service messages, stdout when None.
    """
    writer = ServiceMessageWriter(stream)
    statistics = StatisticsSink(writer)
    reporter = MessageReporter(writer, strict=config.reporting.strict_operations)

    import_coordinator = ImportCoordinator(
        import_engine=GradleImportEngine(),
        toolchain_registry=ToolchainRegistry(),
        project_store=ProjectStore(),
        reporter=reporter,
        statistics=statistics,
        config=config.import_settings,
    )
    build_driver = BuildDriver(
        build_engine=SubprocessBuildEngine(config.build.command, heap_size_mb=config.build.heap_size_mb),
        reporter=reporter,
        statistics=statistics,
        poll_interval=config.build.poll_interval_seconds,
        timeout=config.build.timeout_seconds,
    )

    def install_watchdog() -> WatchdogHandle:
        return install_memory_watchdog(
            on_soft=log_and_collect(reporter),
            on_hard=log_and_terminate(reporter),
            config=config.watchdog,
        )

    return ImportAndProcessRunner(
        reporter=reporter,
        statistics=statistics,
        import_coordinator=import_coordinator,
        build_driver=build_driver,
        watchdog_installer=install_watchdog,
    )
