"""
Unit tests for the DataNode leak checker.
"""

from pathlib import Path
from unittest.mock import Mock

import pytest

from importcmd.models.project import DataNode, Module, ModuleData, ProjectData, ProjectModel, Toolchain
from importcmd.monitoring.leak_checker import MemoryLeakChecker


def make_project():
    return ProjectModel(
        name="demo",
        root=Path("/tmp/demo"),
        toolchain=Toolchain("JDK", "JDK_1.8", Path("/opt/jdk8")),
        modules=[
            Module("demo", Path("/tmp/demo")),
            Module("demo.app", Path("/tmp/demo/app"), dependencies=["demo.lib"]),
        ],
    )


def make_node():
    root = DataNode(DataNode.PROJECT, ProjectData("demo", Path("/tmp/demo")))
    root.create_child(DataNode.MODULE, ModuleData("demo.app", Path("/tmp/demo/app"), ":app"))
    return root


@pytest.mark.unit
class TestMemoryLeakChecker:
    """Test cases for MemoryLeakChecker."""

    def test_clean_project(self):
        report = MemoryLeakChecker().check(make_project())

        assert report.clean
        assert report.leaked_object_count == 0
        assert report.details == ()

    def test_retained_node_is_reported_with_path(self):
        project = make_project()
        project.modules[1].dependencies.append(make_node())

        report = MemoryLeakChecker().check(project)

        assert report.leaked_object_count == 1
        assert report.details[0].startswith("ProjectModel.modules[1].dependencies[1]: leaked DataNode")

    def test_cyclic_graph_is_counted_once(self):
        project = make_project()
        node = make_node()
        # The child references its parent, and the same node is held twice.
        project.modules[0].dependencies.extend([node, node])

        report = MemoryLeakChecker().check(project)

        assert report.leaked_object_count == 1

    def test_nodes_in_dict_keys_and_values(self):
        cache = {"a": make_node(), make_node(): "b"}

        report = MemoryLeakChecker().check({"holder": cache})

        assert report.leaked_object_count == 2

    def test_slots_are_walked(self):
        class Slotted:
            __slots__ = ("ref",)

            def __init__(self, ref):
                self.ref = ref

        report = MemoryLeakChecker().check([Slotted(make_node())])

        assert report.leaked_object_count == 1
        assert ".ref" in report.details[0]

    def test_error_callback_receives_each_finding(self):
        callback = Mock()
        project = make_project()
        project.modules[0].dependencies.append(make_node())
        project.modules[1].dependencies.append(make_node())

        report = MemoryLeakChecker(error_callback=callback).check(project)

        assert report.leaked_object_count == 2
        assert callback.call_count == 2

    def test_failing_callback_does_not_abort_check(self):
        project = make_project()
        project.modules[0].dependencies.append(make_node())

        report = MemoryLeakChecker(error_callback=Mock(side_effect=RuntimeError)).check(project)

        assert report.leaked_object_count == 1

    def test_custom_leaked_kinds(self):
        report = MemoryLeakChecker(leaked_kinds=(Toolchain,)).check(make_project())

        assert report.leaked_object_count == 1
        assert "ProjectModel.toolchain" in report.details[0]

    def test_check_does_not_mutate_graph(self):
        project = make_project()
        node = make_node()
        project.modules[0].dependencies.append(node)

        MemoryLeakChecker().check(project)

        assert project.modules[0].dependencies[-1] is node
        assert len(node.children) == 1
