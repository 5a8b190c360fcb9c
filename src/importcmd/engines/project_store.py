"""
TOML persistence of the project model.

The saved state lives under ``<project root>/.importcmd/project.toml``.
Writing uses the ``toml`` package, reading uses ``tomllib``.
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from ..models.project import (
    LinkedProjectSettings,
    Module,
    ProjectModel,
    ProjectSettings,
    Toolchain,
)
from .base import AbstractProjectStore

logger = logging.getLogger(__name__)

STATE_DIR_NAME = ".importcmd"
STATE_FILE_NAME = "project.toml"


def state_file(project_root: Path) -> Path:
    return Path(project_root) / STATE_DIR_NAME / STATE_FILE_NAME


def project_to_dict(project: ProjectModel) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "project": {
            "name": project.name,
            "root": str(project.root),
            "unloaded_modules": list(project.unloaded_modules),
        },
        "settings": {
            "delegated_build": project.settings.delegated_build,
            "linked_projects": [
                {
                    "external_project_path": s.external_project_path,
                    "delegated_build": s.delegated_build,
                    "distribution_type": s.distribution_type,
                    "store_project_files_externally": s.store_project_files_externally,
                    "use_qualified_module_names": s.use_qualified_module_names,
                }
                for s in project.settings.linked_projects
            ],
        },
        "modules": [
            {
                "name": m.name,
                "path": str(m.path),
                "source_roots": [str(r) for r in m.source_roots],
                "dependencies": list(m.dependencies),
            }
            for m in project.modules
        ],
    }
    if project.toolchain is not None:
        data["toolchain"] = {
            "kind": project.toolchain.kind,
            "name": project.toolchain.name,
            "home": str(project.toolchain.home),
        }
    return data


def project_from_dict(data: Dict[str, Any]) -> ProjectModel:
    project_data = data.get("project", {})
    settings_data = data.get("settings", {})
    toolchain_data = data.get("toolchain")

    settings = ProjectSettings(
        delegated_build=settings_data.get("delegated_build", True),
        linked_projects=[
            LinkedProjectSettings(**linked)
            for linked in settings_data.get("linked_projects", [])
        ],
    )
    toolchain = None
    if toolchain_data:
        toolchain = Toolchain(
            kind=toolchain_data["kind"],
            name=toolchain_data["name"],
            home=Path(toolchain_data["home"]),
        )
    modules = [
        Module(
            name=m["name"],
            path=Path(m["path"]),
            source_roots=[Path(r) for r in m.get("source_roots", [])],
            dependencies=list(m.get("dependencies", [])),
        )
        for m in data.get("modules", [])
    ]
    return ProjectModel(
        name=project_data["name"],
        root=Path(project_data["root"]),
        settings=settings,
        toolchain=toolchain,
        modules=modules,
        unloaded_modules=list(project_data.get("unloaded_modules", [])),
    )


class ProjectStore(AbstractProjectStore):
    """Opens, saves and re-opens projects from their state file."""

    def open_project(self, project_path: Path) -> Optional[ProjectModel]:
        root = Path(project_path)
        if not root.is_dir():
            logger.error(f"Cannot open project: {root} is not a directory")
            return None

        path = state_file(root)
        if path.is_file():
            try:
                with open(path, "rb") as f:
                    project = project_from_dict(tomllib.load(f))
                logger.info(f"Opened saved project '{project.name}' from {path}")
                return project
            except (tomllib.TOMLDecodeError, KeyError, TypeError) as e:
                logger.warning(f"Ignoring unreadable project state {path}: {e}")

        logger.info(f"Creating new project for {root}")
        return ProjectModel(name=root.name, root=root)

    def save(self, project: ProjectModel) -> None:
        if project.disposed:
            raise ValueError(f"Cannot save disposed project '{project.name}'")
        path = state_file(project.root)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            toml.dump(project_to_dict(project), f)
        logger.info(f"Saved project '{project.name}' to {path}")

    def reopen(self, project: ProjectModel) -> ProjectModel:
        path = state_file(project.root)
        with open(path, "rb") as f:
            reopened = project_from_dict(tomllib.load(f))
        self.close(project)
        logger.info(f"Re-opened project '{reopened.name}' from saved state")
        return reopened

    def close(self, project: Optional[ProjectModel]) -> None:
        if project is None or project.disposed:
            return
        project.disposed = True
        logger.info(f"Closed project '{project.name}'")
