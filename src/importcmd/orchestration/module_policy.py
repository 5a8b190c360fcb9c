"""
Policy deciding which imported modules are unloaded after import.

Modules of the build tool's own bootstrap (Gradle's ``buildSrc``) are not
application code: they are excluded from compilation and leak checking.
"""

import re
from typing import Callable, Iterable, List

from ..models.project import Module

ModulePredicate = Callable[[Module], bool]


def name_contains(fragment: str) -> ModulePredicate:
    def predicate(module: Module) -> bool:
        return fragment in module.name

    return predicate


def name_matches(pattern: str) -> ModulePredicate:
    """Predicate searching ``pattern`` anywhere in the module name."""
    compiled = re.compile(pattern)

    def predicate(module: Module) -> bool:
        return compiled.search(module.name) is not None

    return predicate


def never(module: Module) -> bool:
    return False


def modules_to_unload(modules: Iterable[Module], predicate: ModulePredicate) -> List[str]:
    return [module.name for module in modules if predicate(module)]
