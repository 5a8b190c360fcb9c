"""
Detection of import-scoped objects retained by the project model.

After import the project model must not reference any of the temporary
transfer objects (DataNode graphs) the import engine produced. The checker
walks everything reachable from the project handle and reports each retained
temporary with the attribute path that leads to it.
"""

import dataclasses
import enum
import logging
from pathlib import PurePath
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple, Type

from ..models.project import DataNode
from ..models.results import LeakReport

logger = logging.getLogger(__name__)

# Leaf values that can never reference other objects of interest.
_ATOMIC_TYPES = (str, bytes, bytearray, int, float, complex, bool, type(None), PurePath, enum.Enum, type)


class MemoryLeakChecker:
    """
    Walks an object graph for instances of leaked kinds.

    The walk is iterative and deduplicated by identity, so cycles (a DataNode
    references its parent) are safe. The graph is only read.
    """

    def __init__(
        self,
        leaked_kinds: Tuple[Type, ...] = (DataNode,),
        error_callback: Optional[Callable[[str], None]] = None,
    ):
        self.leaked_kinds = leaked_kinds
        self.error_callback = error_callback

    def check(self, root: Any) -> LeakReport:
        """Return a report of every leaked object reachable from ``root``."""
        details: List[str] = []
        leaked = 0
        visited = set()
        stack: List[Tuple[Any, str]] = [(root, type(root).__name__)]

        while stack:
            obj, path = stack.pop()
            if id(obj) in visited or isinstance(obj, _ATOMIC_TYPES):
                continue
            visited.add(id(obj))

            if isinstance(obj, self.leaked_kinds):
                leaked += 1
                self._record(details, f"{path}: leaked {type(obj).__name__} {self._safe_repr(obj)}")
                # Anything below a leaked node is part of the same leak.
                continue

            try:
                children = list(self._references(obj, path))
            except Exception as e:
                self._record(details, f"{path}: could not inspect {type(obj).__name__}: {e}")
                continue
            # Reverse keeps the reported order equal to attribute order.
            stack.extend(reversed(children))

        if leaked:
            logger.warning(f"Found {leaked} leaked objects")
        else:
            logger.info("No leaked objects found")
        return LeakReport(leaked_object_count=leaked, details=tuple(details))

    def _record(self, details: List[str], detail: str) -> None:
        details.append(detail)
        if self.error_callback is not None:
            try:
                self.error_callback(detail)
            except Exception as e:
                logger.warning(f"Leak report callback failed: {e}")

    @staticmethod
    def _safe_repr(obj: Any) -> str:
        try:
            text = repr(obj)
        except Exception:
            text = f"<{type(obj).__name__} at {id(obj):#x}>"
        return text if len(text) <= 200 else text[:197] + "..."

    def _references(self, obj: Any, path: str) -> Iterator[Tuple[Any, str]]:
        if isinstance(obj, dict):
            for key, value in obj.items():
                yield key, f"{path}{{key {key!r}}}"
                yield value, f"{path}[{key!r}]"
            return
        if isinstance(obj, (list, tuple)):
            for index, item in enumerate(obj):
                yield item, f"{path}[{index}]"
            return
        if isinstance(obj, (set, frozenset)):
            for item in obj:
                yield item, f"{path}{{{type(item).__name__}}}"
            return

        yield from self._attributes(obj, path)

    @staticmethod
    def _attributes(obj: Any, path: str) -> Iterable[Tuple[Any, str]]:
        if dataclasses.is_dataclass(obj):
            names = [f.name for f in dataclasses.fields(obj)]
        else:
            names = list(getattr(obj, "__dict__", {}).keys())
            for klass in type(obj).__mro__:
                for slot in getattr(klass, "__slots__", ()):
                    if slot not in names and slot not in ("__dict__", "__weakref__"):
                        names.append(slot)
        for name in names:
            if hasattr(obj, name):
                yield getattr(obj, name), f"{path}.{name}"
