"""Configuration loader for mitresync."""

import os
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.mitresync/config.yaml"

ENTERPRISE_BUNDLE_URL = (
    "https://raw.githubusercontent.com/mitre/cti/master/enterprise-attack/enterprise-attack.json"
)


class NebulaConfig(BaseModel):
    """Nebula Graph connection settings."""
    host: str = "127.0.0.1"
    port: int = 9669
    user: str = "root"
    password: str = "nebula"
    space: str = "ESP01"


class BundleConfig(BaseModel):
    """Where the ATT&CK bundle comes from and where it is cached."""
    url: str = ENTERPRISE_BUNDLE_URL
    cache_dir: str = ".mitre-cache"
    timeout_seconds: float = 60.0


class GraphDefaults(BaseModel):
    """Fixed attributes written on every inserted technique vertex and mitigates edge."""
    attack_version: str = "18.0"
    rcelpe: bool = False
    priority: int = 4
    execution_min: Union[int, float] = 0.1667
    execution_max: int = 120
    matrix: str = "Enterprise"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class MitreSyncConfig(BaseModel):
    """Main mitresync configuration."""

    nebula: NebulaConfig = Field(default_factory=NebulaConfig)
    bundle: BundleConfig = Field(default_factory=BundleConfig)
    graph: GraphDefaults = Field(default_factory=GraphDefaults)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[Union[str, Path]] = None) -> MitreSyncConfig:
    """Load mitresync configuration from file and environment variables.

    Args:
        config_path: Path to a YAML configuration file. A missing file is not
            an error; defaults and environment overrides are used instead.

    Returns:
        MitreSyncConfig instance with loaded configuration

    Raises:
        ConfigurationError: If the file cannot be read or the result is invalid
    """
    config_path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()

    config_data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to load config file {config_path}: {e}", config_path=str(config_path)
            ) from e
        if not isinstance(config_data, dict):
            raise ConfigurationError(
                f"Config file {config_path} must contain a mapping", config_path=str(config_path)
            )
        logger.info(f"Loaded configuration from {config_path}")
    else:
        logger.debug(f"Config file {config_path} not found, using defaults")

    config_data = _apply_environment_overrides(config_data)

    try:
        return MitreSyncConfig.model_validate(config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}", config_path=str(config_path)) from e


def _apply_environment_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration.

    Args:
        config_data: Base configuration data from file

    Returns:
        Configuration data with environment overrides applied
    """
    nebula_env = {
        'NEBULA_HOST': 'host',
        'NEBULA_PORT': 'port',
        'NEBULA_USER': 'user',
        'NEBULA_PASS': 'password',
        'NEBULA_SPACE': 'space',
    }
    for env_name, key in nebula_env.items():
        if os.getenv(env_name):
            config_data.setdefault('nebula', {})[key] = os.getenv(env_name)

    if os.getenv('MITRESYNC_CACHE_DIR'):
        config_data.setdefault('bundle', {})['cache_dir'] = os.getenv('MITRESYNC_CACHE_DIR')

    if os.getenv('MITRESYNC_BUNDLE_URL'):
        config_data.setdefault('bundle', {})['url'] = os.getenv('MITRESYNC_BUNDLE_URL')

    # Logging level override
    if os.getenv('LOG_LEVEL'):
        config_data.setdefault('logging', {})['level'] = os.getenv('LOG_LEVEL')

    return config_data


def setup_logging(config: MitreSyncConfig, debug: bool = False, verbose: bool = False) -> None:
    """Set up logging based on configuration.

    Diagnostics go to stderr so they never mix with rendered output on stdout.

    Args:
        config: mitresync configuration instance
        debug: Force DEBUG level regardless of configuration
        verbose: Raise the level to at least INFO
    """
    level = getattr(logging, config.logging.level.upper(), logging.WARNING)
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = min(level, logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(config.logging.format))

    root_logger = logging.getLogger()
    root_logger.handlers = [console_handler]
    root_logger.setLevel(level)

    logger.debug("Logging configured successfully")
