"""
Project model data structures.

The project model is the long-lived in-memory representation of an imported
build. DataNode graphs are the import-scoped transfer objects produced by an
import engine; they are materialized into the model by ``import_data`` and
must not be retained by it afterwards.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, List, Optional


@dataclass(frozen=True)
class Toolchain:
    """A registered toolchain (e.g. a JDK) referenced by the project."""

    kind: str
    name: str
    home: Path


@dataclass
class LinkedProjectSettings:
    """Settings of one external build linked into the project."""

    external_project_path: str
    # When true the external build tool compiles instead of the build driver.
    delegated_build: bool = False
    distribution_type: str = "DEFAULT_WRAPPED"
    store_project_files_externally: bool = False
    use_qualified_module_names: bool = True


@dataclass
class ProjectSettings:
    """Project level build settings."""

    delegated_build: bool = True
    linked_projects: List[LinkedProjectSettings] = field(default_factory=list)

    def link_project(self, settings: LinkedProjectSettings) -> None:
        self.linked_projects.append(settings)

    def unlink_project(self, external_project_path: str) -> None:
        self.linked_projects = [
            s
            for s in self.linked_projects
            if s.external_project_path != external_project_path
        ]


@dataclass
class Module:
    """A loaded module of the project."""

    name: str
    path: Path
    source_roots: List[Path] = field(default_factory=list)
    # Names of modules this module depends on.
    dependencies: List[str] = field(default_factory=list)


@dataclass
class ProjectModel:
    """
    The in-memory project handle shared by import, leak checking and build.

    Owned by the control thread for the whole run.
    """

    name: str
    root: Path
    settings: ProjectSettings = field(default_factory=ProjectSettings)
    toolchain: Optional[Toolchain] = None
    modules: List[Module] = field(default_factory=list)
    unloaded_modules: List[str] = field(default_factory=list)
    disposed: bool = False

    def find_module(self, name: str) -> Optional[Module]:
        for module in self.modules:
            if module.name == name:
                return module
        return None

    def set_unloaded_modules(self, names: List[str]) -> None:
        """Move the named modules out of the loaded set."""
        wanted = set(names)
        self.modules = [m for m in self.modules if m.name not in wanted]
        self.unloaded_modules = sorted(set(self.unloaded_modules) | wanted)


# --- Import-scoped transfer graph ---


@dataclass
class ProjectData:
    name: str
    root: Path
    toolchain_name: Optional[str] = None


@dataclass
class ModuleData:
    name: str
    path: Path
    gradle_path: str
    source_roots: List[Path] = field(default_factory=list)


@dataclass
class DependencyData:
    target_module: str


class DataNode:
    """
    A node of the graph produced by an import engine.

    Nodes are keyed (``"project"``, ``"module"``, ``"dependency"``) and carry a
    payload. The whole graph is a temporary and is expected to be garbage once
    the project model has been populated from it.
    """

    PROJECT = "project"
    MODULE = "module"
    DEPENDENCY = "dependency"

    def __init__(self, key: str, data: Any, parent: Optional["DataNode"] = None):
        self.key = key
        self.data = data
        self.parent = parent
        self.children: List["DataNode"] = []

    def create_child(self, key: str, data: Any) -> "DataNode":
        child = DataNode(key, data, parent=self)
        self.children.append(child)
        return child

    def find_all(self, key: str) -> List["DataNode"]:
        return [child for child in self.children if child.key == key]

    def walk(self) -> Iterator["DataNode"]:
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def __repr__(self) -> str:
        return f"DataNode(key={self.key!r}, data={self.data!r})"
