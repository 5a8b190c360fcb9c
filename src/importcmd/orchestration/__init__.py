"""
Orchestration of the import and build phases.

Components:
- ImportCoordinator: callback-driven import made synchronous
- BuildDriver: rebuild with polling, liveness detection and optional ceiling
- OneShotCompletion: the blocking signal both phases await
- module_policy: predicates for modules unloaded after import
"""

from .build_driver import COMPILE_OPERATION, BuildDriver, flatten_messages
from .completion import OneShotCompletion
from .import_coordinator import (
    IMPORT_OPERATION,
    LEAK_CHECK_OPERATION,
    CompletionImportCallback,
    ImportCoordinator,
    ImportOutcome,
)
from .module_policy import ModulePredicate, modules_to_unload, name_contains, name_matches, never

__all__ = [
    "BuildDriver",
    "COMPILE_OPERATION",
    "CompletionImportCallback",
    "IMPORT_OPERATION",
    "ImportCoordinator",
    "ImportOutcome",
    "LEAK_CHECK_OPERATION",
    "ModulePredicate",
    "OneShotCompletion",
    "flatten_messages",
    "modules_to_unload",
    "name_contains",
    "name_matches",
    "never",
]
