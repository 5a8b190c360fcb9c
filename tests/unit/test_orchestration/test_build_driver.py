"""
Unit tests for the build driver polling loop.
"""

from pathlib import Path

import pytest

from conftest import FakeBuildEngine
from importcmd.exceptions import (
    BuildEngineError,
    BuildStallError,
    BuildTimeoutError,
    ProjectNotLoadedError,
)
from importcmd.models.project import ProjectModel
from importcmd.models.results import BuildMessage, MessageCategory
from importcmd.orchestration.build_driver import BuildDriver, flatten_messages


@pytest.fixture
def project():
    return ProjectModel(name="demo", root=Path("/tmp/demo"))


@pytest.fixture
def make_driver(reporter, statistics):
    def factory(engine, **kwargs):
        kwargs.setdefault("poll_interval", 0.01)
        return BuildDriver(engine, reporter, statistics, **kwargs)

    return factory


@pytest.mark.unit
class TestCompletedBuilds:
    """Test cases for builds that deliver their completion callback."""

    def test_clean_build(self, make_driver, project, service_stream, test_utils):
        result = make_driver(FakeBuildEngine((False, 0, 0))).build(project)

        assert not result.failed
        assert result.messages == ()
        lines = test_utils.service_lines(service_stream)
        assert lines[0] == "##teamcity[compilationStarted compiler='Compile project']"
        assert lines[-1] == "##teamcity[compilationFinished compiler='Compile project']"
        assert not test_utils.lines_starting(service_stream, "##teamcity[buildProblem")

    def test_warnings_only_build(self, make_driver, project, statistics, service_stream, test_utils):
        result = make_driver(FakeBuildEngine((False, 0, 2))).build(project)

        assert not result.failed
        assert result.warning_count == 2
        warnings = [
            line for line in test_utils.lines_starting(service_stream, "##teamcity[message ")
            if "status='WARNING'" in line and "WARNING - " in line
        ]
        assert len(warnings) == 2
        assert len(statistics.values("compilation_duration")) == 1
        assert statistics.last_value("compilation_warnings") == "2"
        assert statistics.last_value("compilation_errors") == "0"

    def test_build_with_errors(self, make_driver, project, service_stream):
        result = make_driver(FakeBuildEngine((False, 3, 1))).build(project)

        assert result.failed
        assert result.error_count == 3
        output = service_stream.getvalue()
        assert "text='ERROR - src/Main.java:1: cannot find symbol 0' status='ERROR'" in output
        assert "##teamcity[buildProblem description='Compilation failed with 3 errors']" in output

    def test_aborted_build_without_errors_fails(self, make_driver, project, service_stream):
        result = make_driver(FakeBuildEngine((True, 0, 0))).build(project)

        assert result.failed
        assert result.aborted
        assert "Compilation done. Aborted=True, Errors=0, Warnings=0" in service_stream.getvalue()

    def test_messages_are_flattened_in_category_order(self, make_driver, project):
        result = make_driver(FakeBuildEngine((False, 1, 2))).build(project)

        assert [m.category for m in result.messages] == [
            MessageCategory.ERROR,
            MessageCategory.WARNING,
            MessageCategory.WARNING,
        ]

    def test_delayed_completion_reports_progress(self, make_driver, project, service_stream, test_utils):
        engine = FakeBuildEngine((False, 0, 0), delay=0.2)

        result = make_driver(engine).build(project)

        assert not result.failed
        progress = test_utils.lines_starting(service_stream, "##teamcity[progressMessage 'Compilation status:")
        assert progress
        assert progress[0] == "##teamcity[progressMessage 'Compilation status: Errors: 0. Warnings: 0.']"


@pytest.mark.unit
class TestStalledBuilds:
    """Test cases for liveness detection and the optional ceiling."""

    def test_dead_session_without_completion_is_a_stall(self, make_driver, project, service_stream):
        engine = FakeBuildEngine(result=None, running=False)

        with pytest.raises(BuildStallError):
            make_driver(engine).build(project)

        assert engine.session.cancelled
        output = service_stream.getvalue()
        assert "Build session says that compilation is not running." in output
        assert "##teamcity[compilationFinished compiler='Compile project']" in output

    def test_timeout_ceiling(self, make_driver, project, service_stream):
        engine = FakeBuildEngine(result=None, running=True)

        with pytest.raises(BuildTimeoutError):
            make_driver(engine, timeout=0.05).build(project)

        assert engine.session.cancelled
        assert "did not finish within" in service_stream.getvalue()

    def test_zero_timeout_waits_while_running(self, make_driver, project):
        engine = FakeBuildEngine((False, 0, 0), delay=0.1)
        ticks = iter(range(0, 10_000, 100))

        result = make_driver(engine, timeout=0.0, clock=lambda: next(ticks)).build(project)

        assert not result.failed


@pytest.mark.unit
class TestBuildPreconditions:
    """Test cases for builds that never start."""

    def test_null_project(self, make_driver, service_stream):
        engine = FakeBuildEngine()

        with pytest.raises(ProjectNotLoadedError):
            make_driver(engine).build(None)

        assert engine.rebuilt == []
        assert "Project is null" in service_stream.getvalue()

    def test_engine_refusal_is_propagated(self, make_driver, project, reporter):
        engine = FakeBuildEngine(rebuild_error=BuildEngineError("Delegated build is enabled"))

        with pytest.raises(BuildEngineError, match="Delegated build"):
            make_driver(engine).build(project)

        assert reporter.finished_operations[-1].failure_message.startswith("Failed to start compilation")

    def test_unexpected_engine_error_is_wrapped(self, make_driver, project):
        engine = FakeBuildEngine(rebuild_error=OSError("no shell"))

        with pytest.raises(BuildEngineError) as exc_info:
            make_driver(engine).build(project)

        assert isinstance(exc_info.value.__cause__, OSError)


@pytest.mark.unit
def test_flatten_messages_skips_missing_categories():
    message = BuildMessage(MessageCategory.INFORMATION, "note")

    assert flatten_messages({MessageCategory.INFORMATION: [message]}) == [message]
