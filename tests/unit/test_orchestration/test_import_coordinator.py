"""
Unit tests for the import coordinator.

The import engine is a fake that delivers its outcome from a worker thread;
the toolchain registry and project store are the real implementations
working on temporary directories.
"""

from unittest.mock import Mock

import pytest

from conftest import FakeImportEngine
from importcmd.engines import ProjectStore, ToolchainRegistry
from importcmd.engines.project_store import state_file
from importcmd.models.config import ImportConfig
from importcmd.models.invocation import ImportMode, InvocationArgs
from importcmd.models.project import DataNode
from importcmd.models.results import LeakReport
from importcmd.orchestration.import_coordinator import ImportCoordinator
from importcmd.orchestration.module_policy import never


class LeakyImportEngine(FakeImportEngine):
    """Materializes the model but keeps one transfer node inside it."""

    def import_data(self, external_project, project):
        super().import_data(external_project, project)
        project.modules[0].source_roots.append(DataNode(DataNode.MODULE, "stale"))


@pytest.fixture
def invocation(gradle_project, jdk_home):
    return InvocationArgs(ImportMode.IMPORT_ONLY, gradle_project, jdk_home)


@pytest.fixture
def make_coordinator(reporter, statistics, healthy_snapshot):
    def factory(engine=None, **kwargs):
        kwargs.setdefault("toolchain_registry", ToolchainRegistry())
        kwargs.setdefault("project_store", ProjectStore())
        kwargs.setdefault("memory_sampler", lambda: healthy_snapshot)
        kwargs.setdefault("collect_garbage", Mock())
        return ImportCoordinator(
            import_engine=engine or FakeImportEngine(),
            reporter=reporter,
            statistics=statistics,
            **kwargs,
        )

    return factory


@pytest.mark.unit
class TestSuccessfulImport:
    """Test cases for the import happy path."""

    def test_import_succeeds(self, make_coordinator, invocation):
        result = make_coordinator().run(invocation)

        assert result.ok
        assert result.failure_message is None
        assert result.project.name == "demo"

    def test_meta_build_modules_are_unloaded(self, make_coordinator, invocation):
        project = make_coordinator().run(invocation).project

        assert [m.name for m in project.modules] == ["demo", "demo.app", "demo.lib"]
        assert project.unloaded_modules == ["demo.buildSrc"]

    def test_unload_predicate_can_be_replaced(self, make_coordinator, invocation):
        project = make_coordinator(unload_predicate=never).run(invocation).project

        assert "demo.buildSrc" in [m.name for m in project.modules]
        assert project.unloaded_modules == []

    def test_project_is_prepared_for_external_build(self, make_coordinator, invocation, jdk_home):
        project = make_coordinator(config=ImportConfig(toolchain_name="JDK_17")).run(invocation).project

        assert project.settings.delegated_build is False
        assert len(project.settings.linked_projects) == 1
        linked = project.settings.linked_projects[0]
        assert linked.external_project_path == invocation.source_path.resolve().as_posix()
        assert linked.delegated_build is False
        assert linked.use_qualified_module_names is True
        assert project.toolchain.name == "JDK_17"
        assert project.toolchain.home == jdk_home.resolve()

    def test_project_is_saved_and_reopened(self, make_coordinator, invocation):
        engine = FakeImportEngine()
        result = make_coordinator(engine).run(invocation)

        original = engine.refresh_calls[0][0]
        assert state_file(invocation.source_path.resolve()).is_file()
        assert original.disposed is True
        assert result.project is not original
        assert result.project.disposed is False

    def test_statistics_are_recorded(self, make_coordinator, invocation, statistics, healthy_snapshot):
        collect_garbage = Mock()
        make_coordinator(collect_garbage=collect_garbage).run(invocation)

        collect_garbage.assert_called_once()
        assert statistics.last_value("import_duration") is not None
        for suffix in ("before_import", "after_import", "after_import_gc"):
            assert statistics.last_value(f"used_memory_{suffix}") == str(healthy_snapshot.used)
            assert statistics.last_value(f"total_memory_{suffix}") == str(healthy_snapshot.total)
        assert statistics.last_value("memory_number_of_leaked_objects") == "0"
        assert statistics.last_value("import_failed") is None

    def test_operations_are_bracketed(self, make_coordinator, invocation, service_stream, test_utils):
        make_coordinator().run(invocation)

        lines = test_utils.service_lines(service_stream)
        assert "##teamcity[testStarted name='Import project']" in lines
        assert any(line.startswith("##teamcity[testFinished name='Import project'") for line in lines)
        assert "##teamcity[testStarted name='Check for memory leaks']" in lines
        assert not test_utils.lines_starting(service_stream, "##teamcity[testFailed")
        assert "##teamcity[progressMessage 'Import done']" in lines

    def test_coordinator_is_single_use(self, make_coordinator, invocation):
        coordinator = make_coordinator()
        coordinator.run(invocation)

        with pytest.raises(RuntimeError):
            coordinator.run(invocation)


@pytest.mark.unit
class TestFailedImport:
    """Test cases for import failures."""

    def test_engine_failure(self, make_coordinator, invocation, statistics, service_stream):
        engine = FakeImportEngine(outcome="failure")

        result = make_coordinator(engine).run(invocation)

        assert not result.ok
        assert result.project is None
        assert "Could not resolve settings" in result.failure_message
        assert "Details: stack trace" in result.failure_message
        assert statistics.last_value("import_failed") == "1"
        assert "##teamcity[testFailed name='Import project'" in service_stream.getvalue()

    def test_partial_project_is_torn_down(self, make_coordinator, invocation):
        engine = FakeImportEngine(outcome="failure")

        make_coordinator(engine).run(invocation)

        assert engine.refresh_calls[0][0].disposed is True

    def test_success_without_graph_is_a_failure(self, make_coordinator, invocation):
        result = make_coordinator(FakeImportEngine(outcome="none")).run(invocation)

        assert not result.ok
        assert "no project data was produced" in result.failure_message

    def test_missing_description(self, make_coordinator, invocation, service_stream):
        engine = FakeImportEngine(has_description=False)

        result = make_coordinator(engine).run(invocation)

        assert not result.ok
        assert result.failure_message.startswith("Cannot find project description in")
        assert engine.refresh_calls == []
        assert "testStarted" not in service_stream.getvalue()

    def test_invalid_toolchain(self, make_coordinator, gradle_project, temp_dir):
        engine = FakeImportEngine()
        args = InvocationArgs(ImportMode.IMPORT_ONLY, gradle_project, temp_dir / "missing-jdk")

        result = make_coordinator(engine).run(args)

        assert not result.ok
        assert "is not a directory" in result.failure_message
        assert engine.refresh_calls == []

    def test_refresh_raising_synchronously(self, make_coordinator, invocation, reporter):
        engine = FakeImportEngine(refresh_error=RuntimeError("daemon unavailable"))

        result = make_coordinator(engine).run(invocation)

        assert not result.ok
        assert "daemon unavailable" in result.failure_message
        assert reporter.finished_operations[-1].failure_message == result.failure_message

    def test_unopenable_project(self, make_coordinator, invocation):
        store = Mock()
        store.open_project.return_value = None

        result = make_coordinator(project_store=store).run(invocation)

        assert result.failure_message == "Unable to open project"
        store.close.assert_not_called()

    def test_save_failure(self, make_coordinator, invocation):
        store = ProjectStore()
        store.save = Mock(side_effect=PermissionError("read-only"))

        result = make_coordinator(project_store=store).run(invocation)

        assert not result.ok
        assert "Failed to save project: read-only" == result.failure_message


@pytest.mark.unit
class TestLeakCheck:
    """Test cases for the post-import leak check."""

    def test_leaks_are_reported_but_not_fatal(self, make_coordinator, invocation, statistics, service_stream):
        checker = Mock()
        checker.check.return_value = LeakReport(2, ("a: leaked DataNode", "b: leaked DataNode"))

        result = make_coordinator(leak_checker=checker).run(invocation)

        assert result.ok
        assert statistics.last_value("memory_number_of_leaked_objects") == "2"
        assert (
            "##teamcity[testFailed name='Check for memory leaks' "
            "message='Check for memory leaks finished with 2 errors.']"
        ) in service_stream.getvalue()

    def test_crashing_leak_check_is_not_fatal(self, make_coordinator, invocation, reporter):
        checker = Mock()
        checker.check.side_effect = RecursionError("too deep")

        result = make_coordinator(leak_checker=checker).run(invocation)

        assert result.ok
        assert reporter.finished_operations[-1].failure_message == "Leak check crashed: too deep"

    def test_imported_graph_is_not_retained(self, make_coordinator, invocation, statistics):
        engine = FakeImportEngine()

        make_coordinator(engine).run(invocation)

        assert len(engine.imported) == 1
        assert statistics.last_value("memory_number_of_leaked_objects") == "0"

    def test_node_left_in_model_is_found_before_save(self, make_coordinator, invocation, statistics, service_stream):
        engine = LeakyImportEngine()

        result = make_coordinator(engine).run(invocation)

        assert result.ok
        assert statistics.last_value("memory_number_of_leaked_objects") == "1"
        assert "ProjectModel.modules|[0|].source_roots|[" in service_stream.getvalue()
        assert "leaked DataNode" in service_stream.getvalue()


@pytest.mark.unit
class TestUnexpectedErrors:
    """Test cases for errors raised outside the engine callback contract."""

    def test_crash_while_materializing_tears_down(self, make_coordinator, invocation, statistics):
        engine = FakeImportEngine()
        engine.import_data = Mock(side_effect=RuntimeError("bad graph"))
        store = ProjectStore()
        store.close = Mock(wraps=store.close)

        result = make_coordinator(engine, project_store=store).run(invocation)

        assert not result.ok
        assert result.failure_message == "Unexpected error during import: bad graph"
        assert statistics.last_value("import_failed") == "1"
        store.close.assert_called_once()
        assert engine.refresh_calls[0][0].disposed is True

    def test_crash_while_unloading_modules(self, make_coordinator, invocation, statistics):
        def broken_predicate(module):
            raise ValueError("bad pattern")

        result = make_coordinator(unload_predicate=broken_predicate).run(invocation)

        assert not result.ok
        assert "bad pattern" in result.failure_message
        assert statistics.last_value("import_failed") == "1"
