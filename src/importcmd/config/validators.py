"""
Configuration validation utilities.

This module provides one validation function per configuration section,
turning raw TOML tables into validated dataclasses.
"""

import logging
from typing import Any, Dict

from ..models.config import (
    AppConfig,
    BuildConfig,
    ImportConfig,
    ReportingConfig,
    WatchdogConfig,
)
from ..validation import (
    ValidationError,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
    validate_regex_pattern,
)

logger = logging.getLogger(__name__)

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ValidationError(f"[{name}] must be a table", field_name=name, value=section)
    return section


def validate_import_config(import_data: Dict[str, Any]) -> ImportConfig:
    """
    Validate and create an ImportConfig from the `[import]` table.

    Raises:
        ValidationError: If validation fails
    """
    defaults = ImportConfig()
    return ImportConfig(
        toolchain_kind=validate_non_empty_string(
            import_data.get("toolchain_kind", defaults.toolchain_kind),
            field_name="import.toolchain_kind",
        ),
        toolchain_name=validate_non_empty_string(
            import_data.get("toolchain_name", defaults.toolchain_name),
            field_name="import.toolchain_name",
        ),
        meta_build_module_pattern=validate_regex_pattern(
            import_data.get("meta_build_module_pattern", defaults.meta_build_module_pattern),
            field_name="import.meta_build_module_pattern",
        ),
    )


def validate_build_config(build_data: Dict[str, Any]) -> BuildConfig:
    """
    Validate and create a BuildConfig from the `[build]` table.

    Raises:
        ValidationError: If validation fails
    """
    defaults = BuildConfig()

    command = validate_non_empty_string(
        build_data.get("command", defaults.command),
        field_name="build.command",
    )

    poll_interval_seconds = validate_positive_float(
        build_data.get("poll_interval_seconds", defaults.poll_interval_seconds),
        min_value=0.01,
        max_value=3600.0,
        field_name="build.poll_interval_seconds",
    )

    timeout_seconds = validate_positive_float(
        build_data.get("timeout_seconds", defaults.timeout_seconds),
        min_value=0.0,
        field_name="build.timeout_seconds",
    )

    heap_size_mb = validate_positive_integer(
        build_data.get("heap_size_mb", defaults.heap_size_mb),
        min_value=64,
        max_value=1024 * 1024,
        field_name="build.heap_size_mb",
    )

    return BuildConfig(
        command=command,
        poll_interval_seconds=poll_interval_seconds,
        timeout_seconds=timeout_seconds,
        heap_size_mb=heap_size_mb,
    )


def validate_watchdog_config(watchdog_data: Dict[str, Any]) -> WatchdogConfig:
    """
    Validate and create a WatchdogConfig from the `[watchdog]` table.

    Raises:
        ValidationError: If validation fails
    """
    defaults = WatchdogConfig()
    return WatchdogConfig(
        check_interval_seconds=validate_positive_float(
            watchdog_data.get("check_interval_seconds", defaults.check_interval_seconds),
            min_value=0.001,  # 1ms minimum
            max_value=60.0,
            field_name="watchdog.check_interval_seconds",
        ),
        min_available_percent=validate_positive_float(
            watchdog_data.get("min_available_percent", defaults.min_available_percent),
            min_value=0.0,
            max_value=100.0,
            field_name="watchdog.min_available_percent",
        ),
        max_process_rss_mb=validate_positive_integer(
            watchdog_data.get("max_process_rss_mb", defaults.max_process_rss_mb),
            min_value=0,
            field_name="watchdog.max_process_rss_mb",
        ),
    )


def validate_reporting_config(reporting_data: Dict[str, Any]) -> ReportingConfig:
    """
    Validate and create a ReportingConfig from the `[reporting]` table.

    Raises:
        ValidationError: If validation fails
    """
    defaults = ReportingConfig()

    strict_operations = reporting_data.get("strict_operations", defaults.strict_operations)
    if not isinstance(strict_operations, bool):
        raise ValidationError(
            "reporting.strict_operations must be a boolean",
            field_name="reporting.strict_operations",
            value=strict_operations,
        )

    log_level = validate_enum_choice(
        reporting_data.get("log_level", defaults.log_level),
        valid_choices=_LOG_LEVELS,
        field_name="reporting.log_level",
        case_sensitive=False,
    )

    return ReportingConfig(strict_operations=strict_operations, log_level=log_level)


def validate_app_config(config_data: Dict[str, Any]) -> AppConfig:
    """
    Validate a whole parsed config.toml. Missing sections fall back to defaults.

    Raises:
        ValidationError: If any section fails validation
    """
    return AppConfig(
        import_settings=validate_import_config(_section(config_data, "import")),
        build=validate_build_config(_section(config_data, "build")),
        watchdog=validate_watchdog_config(_section(config_data, "watchdog")),
        reporting=validate_reporting_config(_section(config_data, "reporting")),
    )
