"""
Toolchain registration.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional

from ..exceptions import ToolchainError
from ..models.project import Toolchain
from .base import AbstractToolchainRegistry

logger = logging.getLogger(__name__)

# Executables that identify a usable home directory, per toolchain kind.
_KIND_MARKERS: Dict[str, List[str]] = {
    "JDK": ["bin/javac", "bin/java"],
}


class ToolchainRegistry(AbstractToolchainRegistry):
    """
    Name-keyed table of registered toolchains.

    Registering a name twice replaces the earlier entry.
    """

    def __init__(self):
        self._toolchains: Dict[str, Toolchain] = {}
        self._lock = threading.Lock()

    def register(self, kind: str, name: str, home: Path) -> Toolchain:
        home = Path(home).expanduser()
        if not home.is_dir():
            raise ToolchainError(f"Toolchain home {home} is not a directory")

        markers = _KIND_MARKERS.get(kind.upper())
        if markers is not None and not any(self._has_executable(home, m) for m in markers):
            raise ToolchainError(
                f"{home} does not look like a {kind} home: none of {markers} found"
            )

        toolchain = Toolchain(kind=kind, name=name, home=home.resolve())
        with self._lock:
            if name in self._toolchains:
                logger.warning(f"Replacing registered toolchain '{name}'")
            self._toolchains[name] = toolchain
        logger.info(f"Registered {kind} toolchain '{name}' at {toolchain.home}")
        return toolchain

    def get(self, name: str) -> Optional[Toolchain]:
        with self._lock:
            return self._toolchains.get(name)

    def all(self) -> List[Toolchain]:
        with self._lock:
            return list(self._toolchains.values())

    @staticmethod
    def _has_executable(home: Path, relative: str) -> bool:
        candidate = home / relative
        if os.name == "nt":
            return candidate.with_suffix(".exe").is_file() or candidate.is_file()
        return candidate.is_file()
