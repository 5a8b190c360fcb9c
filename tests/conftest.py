"""
Pytest configuration and shared fixtures for the importcmd test suite.

This module provides common fixtures, fake engines and test utilities
for all test modules in the importcmd project.
"""

import io
import shutil
import sys
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from importcmd.engines.base import (  # noqa: E402
    AbstractBuildEngine,
    AbstractBuildSession,
    AbstractImportEngine,
)
from importcmd.engines.gradle_import import GradleImportEngine  # noqa: E402
from importcmd.models.project import DataNode, ModuleData, ProjectData  # noqa: E402
from importcmd.models.results import BuildMessage, MessageCategory  # noqa: E402
from importcmd.monitoring.memory import MB, MemorySnapshot  # noqa: E402
from importcmd.reporting import MessageReporter, ServiceMessageWriter, StatisticsSink  # noqa: E402


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def sample_config_data():
    """Sample configuration data for testing."""
    return {
        "import": {
            "toolchain_kind": "JDK",
            "toolchain_name": "JDK_17",
            "meta_build_module_pattern": "buildSrc",
        },
        "build": {
            "command": "gradle --offline classes",
            "poll_interval_seconds": 0.05,
            "timeout_seconds": 0.0,
            "heap_size_mb": 2048,
        },
        "watchdog": {
            "check_interval_seconds": 0.5,
            "min_available_percent": 3.0,
            "max_process_rss_mb": 0,
        },
        "reporting": {
            "strict_operations": False,
            "log_level": "debug",
        },
    }


@pytest.fixture
def config_files(temp_dir, sample_config_data):
    """Create a temporary configuration file for testing."""
    import toml

    config_file = temp_dir / "config.toml"
    with open(config_file, "w") as f:
        toml.dump(sample_config_data, f)

    return {"config": config_file, "dir": temp_dir}


@pytest.fixture
def gradle_project(temp_dir):
    """
    A small multi-module Gradle project:

        demo/            settings.gradle, build.gradle
        demo/app/        depends on :lib
        demo/lib/
        demo/buildSrc/
    """
    root = temp_dir / "demo"
    (root / "app" / "src" / "main" / "java").mkdir(parents=True)
    (root / "lib" / "src" / "main" / "kotlin").mkdir(parents=True)
    (root / "buildSrc").mkdir()

    (root / "settings.gradle").write_text(
        "// multi-module sample\n"
        "rootProject.name = 'demo'\n"
        "include ':app', 'lib'\n"
        "/* include ':ignored' */\n"
    )
    (root / "build.gradle").write_text("plugins { id 'java' }\n")
    (root / "app" / "build.gradle").write_text(
        "dependencies {\n"
        "    implementation project(':lib')\n"
        "}\n"
    )
    (root / "lib" / "build.gradle.kts").write_text("plugins { kotlin(\"jvm\") }\n")
    return root


@pytest.fixture
def jdk_home(temp_dir):
    """A directory that looks like a JDK home."""
    home = temp_dir / "jdk"
    (home / "bin").mkdir(parents=True)
    (home / "bin" / "java").write_text("#!/bin/sh\n")
    (home / "bin" / "javac").write_text("#!/bin/sh\n")
    return home


# ============================================================================
# Reporting Fixtures
# ============================================================================


@pytest.fixture
def service_stream():
    """In-memory destination for service messages."""
    return io.StringIO()


@pytest.fixture
def writer(service_stream):
    return ServiceMessageWriter(service_stream)


@pytest.fixture
def reporter(writer):
    return MessageReporter(writer)


@pytest.fixture
def statistics(writer):
    return StatisticsSink(writer)


# ============================================================================
# Memory Fixtures
# ============================================================================


@pytest.fixture
def healthy_snapshot():
    return MemorySnapshot(used=200 * MB, total=8000 * MB, available=4000 * MB, available_percent=50.0)


@pytest.fixture
def low_snapshot():
    return MemorySnapshot(used=7900 * MB, total=8000 * MB, available=80 * MB, available_percent=1.0)


# ============================================================================
# Fake Engines
# ============================================================================


def make_project_graph(root: Path, name: str = "demo", modules=("app", "lib", "buildSrc")) -> DataNode:
    """Build a DataNode graph like the Gradle engine would produce."""
    project_node = DataNode(DataNode.PROJECT, ProjectData(name=name, root=root))
    project_node.create_child(DataNode.MODULE, ModuleData(name=name, path=root, gradle_path=":"))
    for module in modules:
        project_node.create_child(
            DataNode.MODULE,
            ModuleData(name=f"{name}.{module}", path=root / module, gradle_path=f":{module}"),
        )
    return project_node


class FakeImportEngine(AbstractImportEngine):
    """
    Import engine that delivers a scripted outcome from a worker thread.

    Args:
        outcome: "success", "failure" or "none" (success with no graph).
        graph: Graph delivered on success, built from the project root if None.
        refresh_error: Raised synchronously from refresh_project when set.
        has_description: Whether find_project_description finds anything.
    """

    def __init__(
        self,
        outcome: str = "success",
        graph: Optional[DataNode] = None,
        refresh_error: Optional[Exception] = None,
        has_description: bool = True,
    ):
        self.outcome = outcome
        self.graph = graph
        self.refresh_error = refresh_error
        self.has_description = has_description
        self.refresh_calls: List[Tuple] = []
        self.imported: List[DataNode] = []

    def find_project_description(self, project_path: Path) -> Optional[Path]:
        return Path(project_path) / "settings.gradle" if self.has_description else None

    def refresh_project(self, project, settings, callback) -> None:
        self.refresh_calls.append((project, settings))
        if self.refresh_error is not None:
            raise self.refresh_error

        def deliver():
            if self.outcome == "failure":
                callback.on_failure("Could not resolve settings", "stack trace")
            elif self.outcome == "none":
                callback.on_success(None)
            else:
                callback.on_success(self.graph or make_project_graph(project.root))

        threading.Thread(target=deliver, name="FakeImport", daemon=True).start()

    def import_data(self, external_project: DataNode, project) -> None:
        self.imported.append(external_project)
        GradleImportEngine().import_data(external_project, project)


class FakeBuildSession(AbstractBuildSession):
    def __init__(self, running: bool = True, messages: Optional[Dict] = None):
        self.running = running
        self._messages = messages or {}
        self.cancelled = False

    def is_running(self) -> bool:
        return self.running

    def messages(self, category: MessageCategory) -> List[BuildMessage]:
        return list(self._messages.get(category, []))

    def cancel(self) -> None:
        self.cancelled = True
        self.running = False


def make_build_messages(error_count: int, warning_count: int) -> Dict[MessageCategory, List[BuildMessage]]:
    return {
        MessageCategory.ERROR: [
            BuildMessage(MessageCategory.ERROR, f"cannot find symbol {i}", f"src/Main.java:{i + 1}")
            for i in range(error_count)
        ],
        MessageCategory.WARNING: [
            BuildMessage(MessageCategory.WARNING, f"unchecked call {i}", f"src/Util.java:{i + 1}")
            for i in range(warning_count)
        ],
        MessageCategory.INFORMATION: [],
        MessageCategory.STATISTICS: [],
    }


class FakeBuildEngine(AbstractBuildEngine):
    """
    Build engine with a scripted terminal state.

    Args:
        result: ``(aborted, error_count, warning_count)`` or None to never
            deliver the completion callback.
        running: Liveness reported by the session while not completed.
        delay: Seconds before the callback fires, on a timer thread.
        rebuild_error: Raised from rebuild when set.
    """

    def __init__(
        self,
        result: Optional[Tuple[bool, int, int]] = (False, 0, 0),
        running: bool = True,
        delay: float = 0.0,
        rebuild_error: Optional[Exception] = None,
    ):
        self.result = result
        self.running = running
        self.delay = delay
        self.rebuild_error = rebuild_error
        self.rebuilt: List = []
        self.session: Optional[FakeBuildSession] = None

    def rebuild(self, project, callback) -> FakeBuildSession:
        self.rebuilt.append(project)
        if self.rebuild_error is not None:
            raise self.rebuild_error

        self.session = FakeBuildSession(running=self.running)
        if self.result is None:
            return self.session

        aborted, errors, warnings = self.result
        messages = make_build_messages(errors, warnings)
        session = self.session

        def deliver():
            callback(aborted, errors, warnings, messages)
            session.running = False

        if self.delay > 0:
            threading.Timer(self.delay, deliver).start()
        else:
            deliver()
        return session


@pytest.fixture
def fake_import_engine():
    return FakeImportEngine()


@pytest.fixture
def fake_build_engine():
    return FakeBuildEngine()


# ============================================================================
# Test Utilities
# ============================================================================


class TestUtils:
    """Utility functions for testing."""

    @staticmethod
    def service_lines(stream: io.StringIO) -> List[str]:
        return [line for line in stream.getvalue().splitlines() if line]

    @staticmethod
    def lines_starting(stream: io.StringIO, prefix: str) -> List[str]:
        return [line for line in TestUtils.service_lines(stream) if line.startswith(prefix)]


@pytest.fixture
def test_utils():
    """Provide test utility functions."""
    return TestUtils


@pytest.fixture(autouse=True)
def clear_config_after_test():
    """Automatically clear configuration cache after each test."""
    yield  # Run the test

    from importcmd.config import clear_config_cache, set_config_path

    clear_config_cache()
    # Back to environment/default lookup
    set_config_path(None)
