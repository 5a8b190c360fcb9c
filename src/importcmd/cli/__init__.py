"""
Command-line interface for the importcmd package.

This module provides the ``importAndProcess`` entry point.
"""

from .main import main_cli

__all__ = [
    "main_cli",
]
