"""
Build engine that compiles a project by running an external command.

The command runs in the project root with ``JAVA_HOME`` pointing at the
project toolchain. Its merged output is parsed line by line into categorized
diagnostics on a reader thread, which also delivers the completion callback
once the process exits.
"""

import logging
import os
import re
import subprocess
import threading
from typing import Dict, List, Optional

import psutil

from ..exceptions import BuildEngineError
from ..models.project import ProjectModel
from ..models.results import BuildMessage, MessageCategory
from .base import AbstractBuildEngine, AbstractBuildSession, BuildCallback

logger = logging.getLogger(__name__)

TERMINATION_GRACEFUL_TIMEOUT = 3.0
TERMINATION_FORCE_TIMEOUT = 2.0

_LEVELS = {
    "error": MessageCategory.ERROR,
    "e": MessageCategory.ERROR,
    "warning": MessageCategory.WARNING,
    "w": MessageCategory.WARNING,
    "note": MessageCategory.INFORMATION,
}

# javac / gcc style: path:line[:col]: error: text
_LOCATED = re.compile(
    r"^(?P<path>[^\s:][^:]*(?::\\[^:]*)?):(?P<line>\d+):(?:\d+:)?\s*(?P<level>error|warning|note):\s*(?P<text>.*)$",
    re.IGNORECASE,
)
# kotlinc style: e: file:///path/File.kt:10:5 text
_KOTLIN = re.compile(
    r"^(?P<level>e|w):\s*(?:file://)?(?P<path>[^\s:][^:]*):(?P<line>\d+):\d+\s+(?P<text>.*)$"
)
# Unlocated: "error: text", "warning: text", "Note: text"
_PLAIN = re.compile(r"^(?P<level>error|warning|note|e|w):\s*(?P<text>.+)$", re.IGNORECASE)


def parse_diagnostic(line: str) -> Optional[BuildMessage]:
    """Classify one output line, returning None for ordinary output."""
    line = line.rstrip("\r\n")
    for pattern in (_LOCATED, _KOTLIN):
        match = pattern.match(line)
        if match:
            return BuildMessage(
                category=_LEVELS[match.group("level").lower()],
                text=match.group("text").strip(),
                location=f"{match.group('path')}:{match.group('line')}",
            )
    match = _PLAIN.match(line)
    if match:
        return BuildMessage(
            category=_LEVELS[match.group("level").lower()],
            text=match.group("text").strip(),
        )
    return None


def _is_process_alive(process: psutil.Process) -> bool:
    """Safely check if a process is still alive and not a zombie."""
    try:
        if not process.is_running():
            return False
        return process.status() not in (psutil.STATUS_ZOMBIE, psutil.STATUS_DEAD)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False


def terminate_process_tree(pid: int, name: str) -> None:
    """
    Terminate a process and all its children, escalating from SIGTERM to
    SIGKILL for whatever survives the graceful timeout.
    """
    if pid <= 0:
        logger.warning(f"Invalid PID {pid} for {name}, skipping termination")
        return

    try:
        parent = psutil.Process(pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        logger.info(f"Process {name} (PID: {pid}) already terminated")
        return
    except psutil.AccessDenied:
        logger.warning(f"Access denied to process {name} (PID: {pid})")
        return

    processes = [p for p in [parent] + children if _is_process_alive(p)]
    logger.info(f"Terminating {name} (PID: {pid}) and {len(processes) - 1} children")

    for phase, timeout in (("terminate", TERMINATION_GRACEFUL_TIMEOUT), ("kill", TERMINATION_FORCE_TIMEOUT)):
        for process in processes:
            try:
                getattr(process, phase)()
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied:
                logger.warning(f"Access denied sending {phase} to PID {process.pid}")
        _, still_alive = psutil.wait_procs(processes, timeout=timeout)
        processes = [p for p in still_alive if _is_process_alive(p)]
        if not processes:
            logger.info(f"All processes of {name} terminated ({phase})")
            return

    for process in processes:
        logger.error(f"Failed to terminate PID {process.pid} of {name}")


class SubprocessBuildSession(AbstractBuildSession):
    """A running build command and the diagnostics parsed from its output."""

    def __init__(self, process: subprocess.Popen, callback: BuildCallback):
        self.process = process
        self.callback = callback
        self._messages: Dict[MessageCategory, List[BuildMessage]] = {c: [] for c in MessageCategory}
        self._lock = threading.Lock()
        self._cancelled = False
        self._worker = threading.Thread(target=self._pump, name="BuildOutputReader", daemon=True)

    def start(self) -> "SubprocessBuildSession":
        self._worker.start()
        return self

    def is_running(self) -> bool:
        return self._worker.is_alive()

    def messages(self, category: MessageCategory) -> List[BuildMessage]:
        with self._lock:
            return list(self._messages[category])

    def cancel(self) -> None:
        self._cancelled = True
        if self.process.poll() is None:
            terminate_process_tree(self.process.pid, "build process")

    def _add(self, message: BuildMessage) -> None:
        with self._lock:
            self._messages[message.category].append(message)

    def _pump(self) -> None:
        try:
            for line in self.process.stdout:
                logger.debug(f"build> {line.rstrip()}")
                message = parse_diagnostic(line)
                if message is not None:
                    self._add(message)
            return_code = self.process.wait()
        except Exception as e:
            # No callback: the driver sees a dead session without completion.
            logger.error(f"Lost build process output: {e}", exc_info=True)
            return

        aborted = self._cancelled or return_code < 0
        errors = len(self.messages(MessageCategory.ERROR))
        if return_code != 0 and errors == 0 and not aborted:
            self._add(BuildMessage(MessageCategory.ERROR, f"Build command exited with code {return_code}"))
        logger.info(f"Build process exited with code {return_code}")

        with self._lock:
            snapshot = {c: list(msgs) for c, msgs in self._messages.items()}
        try:
            self.callback(
                aborted,
                len(snapshot[MessageCategory.ERROR]),
                len(snapshot[MessageCategory.WARNING]),
                snapshot,
            )
        except Exception as e:
            logger.error(f"Build completion callback raised: {e}", exc_info=True)


class SubprocessBuildEngine(AbstractBuildEngine):
    """
    Runs ``command`` through the shell to rebuild a project.

    Args:
        command: Shell command executed in the project root.
        heap_size_mb: Appended to ``JAVA_OPTS`` as ``-Xmx<n>m``.
    """

    def __init__(self, command: str, heap_size_mb: int = 3500):
        self.command = command
        self.heap_size_mb = heap_size_mb

    def build_environment(self, project: ProjectModel) -> Dict[str, str]:
        env = os.environ.copy()
        if project.toolchain is not None:
            home = str(project.toolchain.home)
            env["JAVA_HOME"] = home
            env["PATH"] = os.pathsep.join([os.path.join(home, "bin"), env.get("PATH", "")])
        java_opts = env.get("JAVA_OPTS", "").strip()
        env["JAVA_OPTS"] = f"{java_opts} -Xmx{self.heap_size_mb}m".strip()
        return env

    def rebuild(self, project: ProjectModel, callback: BuildCallback) -> SubprocessBuildSession:
        if project.settings.delegated_build or any(
            s.delegated_build for s in project.settings.linked_projects
        ):
            raise BuildEngineError(
                "Delegated build is enabled; refusing to run a second build engine"
            )

        logger.info(f"Starting build '{self.command}' in {project.root}")
        try:
            process = subprocess.Popen(
                self.command,
                cwd=project.root,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                shell=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=self.build_environment(project),
                start_new_session=(os.name != "nt"),
            )
        except OSError as e:
            raise BuildEngineError(f"Failed to start build command '{self.command}': {e}") from e

        logger.info(f"Build process started with PID: {process.pid}")
        return SubprocessBuildSession(process, callback).start()
