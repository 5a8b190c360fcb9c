"""
Build phase driver.

Starts one full rebuild and polls for its completion. Each poll interval
ends in one of three states: finished (the completion callback fired),
still working (the session reports itself running, so keep waiting), or
dead but not finished (the session stopped without reporting completion,
which is a stalled build).
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from ..engines.base import AbstractBuildEngine, AbstractBuildSession
from ..exceptions import (
    BuildEngineError,
    BuildStallError,
    BuildTimeoutError,
    ImportCmdError,
    ProjectNotLoadedError,
)
from ..models.project import ProjectModel
from ..models.reporting import MessageStatus, OperationType
from ..models.results import BuildMessage, BuildResult, MessageCategory
from ..reporting import MessageReporter, StatisticsSink
from .completion import OneShotCompletion

logger = logging.getLogger(__name__)

COMPILE_OPERATION = "Compile project"

_MESSAGE_STATUS = {
    MessageCategory.ERROR: MessageStatus.ERROR,
    MessageCategory.WARNING: MessageStatus.WARNING,
}


def flatten_messages(messages_by_category: Dict[MessageCategory, List[BuildMessage]]) -> List[BuildMessage]:
    """Concatenate diagnostics in category order."""
    flattened: List[BuildMessage] = []
    for category in MessageCategory:
        flattened.extend(messages_by_category.get(category, ()))
    return flattened


class BuildDriver:
    """
    Runs a rebuild and waits for it with liveness checks.

    Args:
        build_engine: Engine used for the rebuild.
        reporter: Messages, progress and the compilation bracket.
        statistics: Statistics sink.
        poll_interval: Seconds to wait for completion between liveness checks.
        timeout: Overall ceiling in seconds. 0 waits for as long as the
            session reports itself running.
        clock: Monotonic clock, replaceable in tests.
    """

    def __init__(
        self,
        build_engine: AbstractBuildEngine,
        reporter: MessageReporter,
        statistics: StatisticsSink,
        poll_interval: float = 60.0,
        timeout: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.build_engine = build_engine
        self.reporter = reporter
        self.statistics = statistics
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.clock = clock

    def build(self, project: Optional[ProjectModel]) -> BuildResult:
        """
        Rebuild ``project`` and return the terminal result.

        Raises:
            ProjectNotLoadedError: If ``project`` is None.
            BuildEngineError: If the engine could not start the build.
            BuildStallError: If the build stopped without completing.
            BuildTimeoutError: If the configured ceiling elapsed.
        """
        if project is None:
            self.reporter.error("Project is null")
            raise ProjectNotLoadedError("Project is null")

        completion: OneShotCompletion[BuildResult] = OneShotCompletion("compilation")
        started = self.clock()
        self.reporter.start_operation(OperationType.COMPILATION, COMPILE_OPERATION)

        def on_compilation_finished(aborted, error_count, warning_count, messages_by_category):
            result = BuildResult(
                aborted=bool(aborted),
                error_count=int(error_count),
                warning_count=int(warning_count),
                messages=tuple(flatten_messages(messages_by_category)),
            )
            try:
                self._report_completion(result, started)
            except Exception as e:
                logger.error(f"Failed to report compilation results: {e}", exc_info=True)
            finally:
                completion.complete(result)

        try:
            session = self.build_engine.rebuild(project, on_compilation_finished)
        except Exception as e:
            self.reporter.finish_operation(
                OperationType.COMPILATION, COMPILE_OPERATION, failure_message=f"Failed to start compilation: {e}"
            )
            if isinstance(e, ImportCmdError):
                raise
            raise BuildEngineError(f"Failed to start compilation: {e}") from e

        try:
            self._await_completion(completion, session, started)
        except (BuildStallError, BuildTimeoutError) as e:
            self.reporter.finish_operation(OperationType.COMPILATION, COMPILE_OPERATION, failure_message=str(e))
            raise

        result = completion.value
        if result.failed:
            self.reporter.finish_operation(
                OperationType.COMPILATION,
                COMPILE_OPERATION,
                failure_message=f"Compilation failed with {result.error_count} errors",
            )
        else:
            self.reporter.finish_operation(OperationType.COMPILATION, COMPILE_OPERATION)
        return result

    def _await_completion(
        self, completion: OneShotCompletion, session: AbstractBuildSession, started: float
    ) -> None:
        while not completion.wait(self.poll_interval):
            if not session.is_running():
                # The callback may have landed right after the wait timed out.
                if completion.is_done():
                    return
                self.reporter.error("Build session says that compilation is not running.")
                self._cancel_quietly(session)
                raise BuildStallError("Compilation stopped without reporting completion")

            if self.timeout > 0 and self.clock() - started >= self.timeout:
                self.reporter.error(f"Compilation did not finish within {self.timeout} seconds")
                self._cancel_quietly(session)
                raise BuildTimeoutError(f"Compilation exceeded {self.timeout} seconds")

            errors = len(session.messages(MessageCategory.ERROR))
            warnings = len(session.messages(MessageCategory.WARNING))
            self.reporter.progress(f"Compilation status: Errors: {errors}. Warnings: {warnings}.")

    def _report_completion(self, result: BuildResult, started: float) -> None:
        self.reporter.message(
            f"Compilation done. Aborted={result.aborted}, Errors={result.error_count}, "
            f"Warnings={result.warning_count}",
            MessageStatus.WARNING,
        )
        self.statistics.report("compilation_errors", result.error_count)
        self.statistics.report("compilation_warnings", result.warning_count)
        self.statistics.report("compilation_duration", int((self.clock() - started) * 1000))

        for message in result.messages:
            self.reporter.message(
                message.format(), _MESSAGE_STATUS.get(message.category, MessageStatus.NORMAL)
            )

    @staticmethod
    def _cancel_quietly(session: AbstractBuildSession) -> None:
        try:
            session.cancel()
        except Exception as e:
            logger.warning(f"Failed to cancel build session: {e}")
