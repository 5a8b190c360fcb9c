"""
Import engine for Gradle-style project descriptions.

The engine reads ``settings.gradle[.kts]`` (falling back to a single-module
``build.gradle[.kts]``), resolves included subprojects, conventional source
roots and ``project(':x')`` dependencies on a worker thread, and hands the
resulting DataNode graph to the import callback.

Only the static structure is read; no build script is executed.
"""

import logging
import re
import threading
import traceback
from pathlib import Path
from typing import Dict, List, Optional

from ..models.project import (
    DataNode,
    DependencyData,
    LinkedProjectSettings,
    Module,
    ModuleData,
    ProjectData,
    ProjectModel,
)
from .base import AbstractImportEngine, ImportCallback

logger = logging.getLogger(__name__)

SETTINGS_FILES = ("settings.gradle.kts", "settings.gradle")
BUILD_FILES = ("build.gradle.kts", "build.gradle")
META_BUILD_DIR = "buildSrc"
SOURCE_ROOT_CANDIDATES = (
    "src/main/java",
    "src/main/kotlin",
    "src/main/resources",
    "src/test/java",
    "src/test/kotlin",
)

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT = re.compile(r"(?m)^\s*//.*$")
_ROOT_NAME = re.compile(r"""rootProject\.name\s*=\s*["']([^"']+)["']""")
_INCLUDE = re.compile(r"""(?m)^\s*include\b\s*\(?(.+?)\)?\s*$""")
_QUOTED = re.compile(r"""["']([^"']+)["']""")
_PROJECT_DEPENDENCY = re.compile(r"""project\(\s*(?:path\s*[:=]\s*)?["'](:[^"']*)["']""")


def strip_comments(text: str) -> str:
    return _LINE_COMMENT.sub("", _BLOCK_COMMENT.sub("", text))


def parse_root_project_name(settings_text: str) -> Optional[str]:
    match = _ROOT_NAME.search(strip_comments(settings_text))
    return match.group(1) if match else None


def parse_includes(settings_text: str) -> List[str]:
    """
    Return the Gradle paths included by a settings script, normalized to
    start with ':' and in declaration order without duplicates.
    """
    paths: List[str] = []
    for match in _INCLUDE.finditer(strip_comments(settings_text)):
        for raw in _QUOTED.findall(match.group(1)):
            gradle_path = raw if raw.startswith(":") else f":{raw}"
            if gradle_path not in paths:
                paths.append(gradle_path)
    return paths


def parse_project_dependencies(build_text: str) -> List[str]:
    found: List[str] = []
    for gradle_path in _PROJECT_DEPENDENCY.findall(strip_comments(build_text)):
        if gradle_path not in found:
            found.append(gradle_path)
    return found


class GradleImportEngine(AbstractImportEngine):
    """Resolves Gradle settings into a DataNode graph on a worker thread."""

    def __init__(self):
        self._worker: Optional[threading.Thread] = None

    def find_project_description(self, project_path: Path) -> Optional[Path]:
        root = Path(project_path)
        if not root.is_dir():
            return None
        for name in SETTINGS_FILES + BUILD_FILES:
            candidate = root / name
            if candidate.is_file():
                return candidate
        return None

    def refresh_project(
        self,
        project: ProjectModel,
        settings: LinkedProjectSettings,
        callback: ImportCallback,
    ) -> None:
        toolchain_name = project.toolchain.name if project.toolchain else None
        self._worker = threading.Thread(
            target=self._resolve_and_notify,
            args=(Path(settings.external_project_path), settings, toolchain_name, callback),
            name="GradleImport",
            daemon=True,
        )
        self._worker.start()

    def _resolve_and_notify(
        self,
        root: Path,
        settings: LinkedProjectSettings,
        toolchain_name: Optional[str],
        callback: ImportCallback,
    ) -> None:
        try:
            node = self.resolve(root, settings, toolchain_name)
        except Exception as e:
            logger.error(f"Failed to resolve {root}: {e}")
            self._notify(callback.on_failure, str(e), traceback.format_exc())
            return
        self._notify(callback.on_success, node)

    @staticmethod
    def _notify(method, *args) -> None:
        try:
            method(*args)
        except Exception as e:
            logger.error(f"Import callback raised: {e}", exc_info=True)

    def resolve(
        self,
        root: Path,
        settings: LinkedProjectSettings,
        toolchain_name: Optional[str] = None,
    ) -> DataNode:
        """Build the DataNode graph for the project at ``root``."""
        description = self.find_project_description(root)
        if description is None:
            raise FileNotFoundError(f"No Gradle settings or build file found in {root}")

        includes: List[str] = []
        root_name = root.name
        if description.name in SETTINGS_FILES:
            text = description.read_text(encoding="utf-8", errors="replace")
            root_name = parse_root_project_name(text) or root.name
            includes = parse_includes(text)

        logger.info(f"Resolving '{root_name}' from {description} ({len(includes)} included projects)")
        project_node = DataNode(
            DataNode.PROJECT, ProjectData(name=root_name, root=root, toolchain_name=toolchain_name)
        )

        gradle_paths = [":"] + includes
        if (root / META_BUILD_DIR).is_dir():
            gradle_paths.append(f":{META_BUILD_DIR}")

        names: Dict[str, str] = {
            p: self._module_name(root_name, p, settings.use_qualified_module_names)
            for p in gradle_paths
        }

        for gradle_path in gradle_paths:
            module_dir = self._module_dir(root, gradle_path)
            if not module_dir.is_dir():
                logger.warning(f"Included project {gradle_path} has no directory {module_dir}")
            module_node = project_node.create_child(
                DataNode.MODULE,
                ModuleData(
                    name=names[gradle_path],
                    path=module_dir,
                    gradle_path=gradle_path,
                    source_roots=[
                        module_dir / c for c in SOURCE_ROOT_CANDIDATES if (module_dir / c).is_dir()
                    ],
                ),
            )
            for dependency in self._read_dependencies(module_dir):
                if dependency in names and dependency != gradle_path:
                    module_node.create_child(DataNode.DEPENDENCY, DependencyData(names[dependency]))
                else:
                    logger.debug(f"Skipping unresolved dependency {dependency} of {gradle_path}")

        return project_node

    def import_data(self, external_project: DataNode, project: ProjectModel) -> None:
        project_data: ProjectData = external_project.data
        project.name = project_data.name
        modules = []
        for module_node in external_project.find_all(DataNode.MODULE):
            data: ModuleData = module_node.data
            modules.append(
                Module(
                    name=data.name,
                    path=data.path,
                    source_roots=list(data.source_roots),
                    dependencies=[
                        dep.data.target_module
                        for dep in module_node.find_all(DataNode.DEPENDENCY)
                    ],
                )
            )
        project.modules = modules
        project.unloaded_modules = []
        logger.info(f"Imported {len(modules)} modules into '{project.name}'")

    @staticmethod
    def _module_dir(root: Path, gradle_path: str) -> Path:
        parts = [p for p in gradle_path.split(":") if p]
        return root.joinpath(*parts) if parts else root

    @staticmethod
    def _module_name(root_name: str, gradle_path: str, qualified: bool) -> str:
        parts = [p for p in gradle_path.split(":") if p]
        if not parts:
            return root_name
        if qualified:
            return ".".join([root_name] + parts)
        return parts[-1]

    @staticmethod
    def _read_dependencies(module_dir: Path) -> List[str]:
        for name in BUILD_FILES:
            build_file = module_dir / name
            if build_file.is_file():
                return parse_project_dependencies(
                    build_file.read_text(encoding="utf-8", errors="replace")
                )
        return []
