"""Configuration module for benchguard."""

from .settings import (
    DEFAULT_PRIMARY_BRANCH,
    DEFAULT_WORKLOAD_PATH,
    BenchConfig,
    RunConfiguration,
    reload_logging_settings,
)

__all__ = [
    "DEFAULT_PRIMARY_BRANCH",
    "DEFAULT_WORKLOAD_PATH",
    "BenchConfig",
    "RunConfiguration",
    "reload_logging_settings",
]
