"""
Import phase coordination.

The ImportCoordinator turns the callback-driven import engine into a single
synchronous call: it prepares the project (toolchain, linked external build
settings), starts the engine once, blocks on a one-shot completion, then
materializes, trims, leak-checks and persists the imported model.

Every failure funnels through ``run()``, which tears down the partially
constructed project and returns a failed ImportResult.
"""

import gc
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..engines.base import (
    AbstractImportEngine,
    AbstractProjectStore,
    AbstractToolchainRegistry,
    ImportCallback,
)
from ..exceptions import ImportFailure, ToolchainError
from ..models.config import ImportConfig
from ..models.invocation import InvocationArgs
from ..models.project import DataNode, LinkedProjectSettings, ProjectModel, Toolchain
from ..models.reporting import OperationType
from ..models.results import ImportResult
from ..monitoring.leak_checker import MemoryLeakChecker
from ..monitoring.memory import MemorySnapshot, report_memory_statistics, take_snapshot
from ..reporting import MessageReporter, StatisticsSink
from .completion import OneShotCompletion
from .module_policy import ModulePredicate, modules_to_unload, name_matches

logger = logging.getLogger(__name__)

IMPORT_OPERATION = "Import project"
LEAK_CHECK_OPERATION = "Check for memory leaks"


@dataclass(frozen=True)
class ImportOutcome:
    """What the import engine delivered through its callback."""

    external_project: Optional[DataNode] = None
    error_message: Optional[str] = None
    error_details: Optional[str] = None


class CompletionImportCallback(ImportCallback):
    """Adapts the engine callback contract to a one-shot completion."""

    def __init__(self, completion: OneShotCompletion):
        self.completion = completion

    def on_success(self, external_project: Optional[DataNode]) -> None:
        self.completion.complete(ImportOutcome(external_project=external_project))

    def on_failure(self, error_message: str, error_details: Optional[str] = None) -> None:
        self.completion.complete(
            ImportOutcome(error_message=error_message, error_details=error_details)
        )


class ImportCoordinator:
    """
    Drives one import. Instances are single-use.

    Args:
        import_engine: Resolves the external project description.
        toolchain_registry: Registers the toolchain given on the command line.
        project_store: Opens, saves, re-opens and disposes the project.
        reporter: Progress, messages and operation brackets.
        statistics: Statistics sink.
        config: Toolchain naming and meta-build module pattern.
        unload_predicate: Overrides the meta-build pattern from config.
        leak_checker: Overrides the default DataNode leak checker.
        memory_sampler: Source of memory statistics.
        collect_garbage: Called once after import, before the post-GC sample.
    """

    def __init__(
        self,
        import_engine: AbstractImportEngine,
        toolchain_registry: AbstractToolchainRegistry,
        project_store: AbstractProjectStore,
        reporter: MessageReporter,
        statistics: StatisticsSink,
        config: Optional[ImportConfig] = None,
        unload_predicate: Optional[ModulePredicate] = None,
        leak_checker: Optional[MemoryLeakChecker] = None,
        memory_sampler: Callable[[], MemorySnapshot] = take_snapshot,
        collect_garbage: Callable[[], object] = gc.collect,
    ):
        self.import_engine = import_engine
        self.toolchain_registry = toolchain_registry
        self.project_store = project_store
        self.reporter = reporter
        self.statistics = statistics
        self.config = config or ImportConfig()
        self.unload_predicate = unload_predicate or name_matches(self.config.meta_build_module_pattern)
        self.leak_checker = leak_checker or MemoryLeakChecker(error_callback=reporter.error)
        self.memory_sampler = memory_sampler
        self.collect_garbage = collect_garbage
        self._project: Optional[ProjectModel] = None
        self._used = False

    def run(self, args: InvocationArgs) -> ImportResult:
        """Import the project described by ``args``. Blocks until done."""
        if self._used:
            raise RuntimeError("ImportCoordinator instances are single-use")
        self._used = True

        try:
            project = self._import(args)
        except ImportFailure as e:
            return self._fail(str(e))
        except Exception as e:
            logger.error(f"Unexpected error during import: {e}", exc_info=True)
            return self._fail(f"Unexpected error during import: {e}")
        return ImportResult.success(project)

    def _fail(self, failure_message: str) -> ImportResult:
        self.reporter.error(f"Import failed: {failure_message}")
        self.statistics.report("import_failed", 1)
        self._graceful_teardown()
        return ImportResult.failure(failure_message)

    def _import(self, args: InvocationArgs) -> ProjectModel:
        project_path = Path(args.source_path).expanduser().resolve()
        project_path_str = project_path.as_posix()

        self.reporter.progress("Opening project")
        if self.import_engine.find_project_description(project_path) is None:
            raise ImportFailure(f"Cannot find project description in {project_path_str}")

        project = self.project_store.open_project(project_path)
        if project is None:
            raise ImportFailure("Unable to open project")
        self._project = project

        # The build driver must be the only build executor.
        project.settings.delegated_build = False
        self.reporter.progress("Project loaded, refreshing from external build")

        project.toolchain = self._register_toolchain(args.toolchain_path)
        linked = self._link_external_project(project, project_path_str)

        external_project = self._refresh(project, linked)
        self.import_engine.import_data(external_project, project)
        del external_project

        self._unload_meta_build_modules(project)

        # Must see the materialized model; the reopened one is rebuilt from disk.
        self._check_for_leaks(project)

        self.reporter.progress("Save project")
        project = self._save_and_reopen(project)
        self.reporter.progress("Import done")
        return project

    def _register_toolchain(self, toolchain_path: Path) -> Toolchain:
        kind = self.config.toolchain_kind
        name = self.config.toolchain_name
        try:
            return self.toolchain_registry.register(kind, name, Path(toolchain_path))
        except ToolchainError:
            raise
        except Exception as e:
            raise ToolchainError(f"Failed to register {kind} '{name}' at {toolchain_path}: {e}") from e

    @staticmethod
    def _link_external_project(project: ProjectModel, project_path: str) -> LinkedProjectSettings:
        settings = project.settings
        for linked in list(settings.linked_projects):
            settings.unlink_project(linked.external_project_path)

        linked = LinkedProjectSettings(
            external_project_path=project_path,
            delegated_build=False,
            distribution_type="DEFAULT_WRAPPED",
            store_project_files_externally=False,
            use_qualified_module_names=True,
        )
        settings.link_project(linked)
        return linked

    def _refresh(self, project: ProjectModel, linked: LinkedProjectSettings) -> DataNode:
        completion: OneShotCompletion[ImportOutcome] = OneShotCompletion("project import")

        # monotonic: immune to wall clock adjustments
        started = time.monotonic()
        self.reporter.start_operation(OperationType.TEST, IMPORT_OPERATION)
        report_memory_statistics(self.statistics, "before_import", self.memory_sampler())

        try:
            self.import_engine.refresh_project(project, linked, CompletionImportCallback(completion))
        except Exception as e:
            failure = f"Failed to import project: {e}"
            self.reporter.finish_operation(OperationType.TEST, IMPORT_OPERATION, failure_message=failure)
            raise ImportFailure(failure) from e

        # No deadline: the memory watchdog stays armed while we wait.
        completion.wait()
        duration_ms = int((time.monotonic() - started) * 1000)
        self.statistics.report("import_duration", duration_ms)
        outcome = completion.value

        report_memory_statistics(self.statistics, "after_import", self.memory_sampler())
        self.collect_garbage()
        report_memory_statistics(self.statistics, "after_import_gc", self.memory_sampler())

        if outcome.error_message is not None:
            failure = f"Failed to import project: {outcome.error_message}. Details: {outcome.error_details}"
        elif outcome.external_project is None:
            failure = "Failed to import project: no project data was produced"
        else:
            self.reporter.finish_operation(OperationType.TEST, IMPORT_OPERATION, duration_ms=duration_ms)
            return outcome.external_project

        self.reporter.finish_operation(OperationType.TEST, IMPORT_OPERATION, failure_message=failure)
        raise ImportFailure(failure)

    def _unload_meta_build_modules(self, project: ProjectModel) -> None:
        self.reporter.progress("Unloading meta-build modules")
        names = modules_to_unload(project.modules, self.unload_predicate)
        if names:
            project.set_unloaded_modules(names)
            logger.info(f"Unloaded modules: {', '.join(names)}")

    def _save_and_reopen(self, project: ProjectModel) -> ProjectModel:
        try:
            self.project_store.save(project)
            reopened = self.project_store.reopen(project)
        except Exception as e:
            raise ImportFailure(f"Failed to save project: {e}") from e
        if reopened is None:
            raise ImportFailure("Unable to re-open saved project")
        self._project = reopened
        return reopened

    def _check_for_leaks(self, project: ProjectModel) -> None:
        started = time.monotonic()
        self.reporter.start_operation(OperationType.TEST, LEAK_CHECK_OPERATION)
        try:
            report = self.leak_checker.check(project)
        except Exception as e:
            logger.error(f"Leak check crashed: {e}", exc_info=True)
            self.reporter.finish_operation(
                OperationType.TEST, LEAK_CHECK_OPERATION, failure_message=f"Leak check crashed: {e}"
            )
            return

        duration_ms = int((time.monotonic() - started) * 1000)
        self.statistics.report("memory_number_of_leaked_objects", report.leaked_object_count)
        if report.clean:
            self.reporter.finish_operation(OperationType.TEST, LEAK_CHECK_OPERATION, duration_ms=duration_ms)
        else:
            self.reporter.finish_operation(
                OperationType.TEST,
                LEAK_CHECK_OPERATION,
                failure_message=f"Check for memory leaks finished with {report.leaked_object_count} errors.",
                duration_ms=duration_ms,
            )

    def _graceful_teardown(self) -> None:
        project, self._project = self._project, None
        if project is None:
            return
        try:
            self.project_store.close(project)
        except Exception as e:
            logger.warning(f"Failed to close partially imported project: {e}")
