"""
Configuration data models.

This module contains the configuration data structures loaded from
`config.toml`, one dataclass per TOML section.
"""

from dataclasses import dataclass, field


@dataclass
class ImportConfig:
    """Settings for the import phase, loaded from the `[import]` section."""

    # Kind passed to the toolchain registry (e.g. "JDK").
    toolchain_kind: str = "JDK"
    # Name under which the toolchain is registered.
    toolchain_name: str = "JDK_1.8"
    # Regex searched in module names; matches are unloaded after import.
    meta_build_module_pattern: str = "buildSrc"


@dataclass
class BuildConfig:
    """Settings for the build phase, loaded from the `[build]` section."""

    # Command executed in the project root by the default build engine.
    command: str = "gradle --offline classes"
    # How long to wait for completion before checking liveness again.
    poll_interval_seconds: float = 60.0
    # Overall ceiling for the build. 0 means no ceiling.
    timeout_seconds: float = 0.0
    # Maximum heap handed to the build process.
    heap_size_mb: int = 3500


@dataclass
class WatchdogConfig:
    """Settings for the memory watchdog, loaded from the `[watchdog]` section."""

    check_interval_seconds: float = 1.0
    # Memory is low when system available memory falls below this percentage.
    min_available_percent: float = 5.0
    # Memory is also low when this process exceeds this RSS. 0 disables it.
    max_process_rss_mb: int = 0


@dataclass
class ReportingConfig:
    """Settings for output, loaded from the `[reporting]` section."""

    # Raise on mismatched start/finish operation pairs instead of logging.
    strict_operations: bool = False
    log_level: str = "INFO"


@dataclass
class AppConfig:
    """
    The root configuration object that aggregates all loaded settings.
    """

    import_settings: ImportConfig = field(default_factory=ImportConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    watchdog: WatchdogConfig = field(default_factory=WatchdogConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
