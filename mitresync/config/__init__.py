"""Configuration management.

Handles YAML configuration loading, environment overrides
and logging setup.
"""

from mitresync.config.loader import (
    BundleConfig,
    GraphDefaults,
    LoggingConfig,
    MitreSyncConfig,
    NebulaConfig,
    load_config,
    setup_logging,
)

__all__ = [
    "BundleConfig",
    "GraphDefaults",
    "LoggingConfig",
    "MitreSyncConfig",
    "NebulaConfig",
    "load_config",
    "setup_logging",
]
