"""Unit tests for configuration loading and logging setup."""

import logging

import pytest

from mitresync.config import MitreSyncConfig, load_config, setup_logging
from mitresync.exceptions import ConfigurationError

ENV_VARS = [
    "NEBULA_HOST", "NEBULA_PORT", "NEBULA_USER", "NEBULA_PASS", "NEBULA_SPACE",
    "MITRESYNC_CACHE_DIR", "MITRESYNC_BUNDLE_URL", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestLoadConfig:
    """Test cases for load_config."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")

        assert config.nebula.host == "127.0.0.1"
        assert config.nebula.port == 9669
        assert config.nebula.space == "ESP01"
        assert config.bundle.cache_dir == ".mitre-cache"
        assert config.graph.attack_version == "18.0"
        assert config.graph.execution_max == 120
        assert config.logging.level == "WARNING"

    def test_yaml_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "nebula:\n"
            "  host: graph.internal\n"
            "  space: ESP02\n"
            "graph:\n"
            "  priority: 2\n"
        )

        config = load_config(path)

        assert config.nebula.host == "graph.internal"
        assert config.nebula.space == "ESP02"
        assert config.nebula.user == "root"
        assert config.graph.priority == 2

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == MitreSyncConfig()

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("nebula:\n  host: from-file\n")
        monkeypatch.setenv("NEBULA_HOST", "from-env")
        monkeypatch.setenv("NEBULA_PORT", "9700")
        monkeypatch.setenv("NEBULA_PASS", "secret")
        monkeypatch.setenv("MITRESYNC_CACHE_DIR", str(tmp_path / "cache"))
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        config = load_config(path)

        assert config.nebula.host == "from-env"
        assert config.nebula.port == 9700
        assert config.nebula.password == "secret"
        assert config.bundle.cache_dir == str(tmp_path / "cache")
        assert config.logging.level == "DEBUG"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("nebula: [unclosed\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)
        assert exc_info.value.config_path == str(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_invalid_value(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NEBULA_PORT", "not-a-port")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(tmp_path / "absent.yaml")
        assert exc_info.value.error_code == "CONFIG_ERROR"


class TestSetupLogging:
    """Test cases for setup_logging."""

    def test_configured_level(self, restore_root_logger):
        setup_logging(MitreSyncConfig())
        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1

    def test_verbose_raises_to_info(self, restore_root_logger):
        setup_logging(MitreSyncConfig(), verbose=True)
        assert restore_root_logger.level == logging.INFO

    def test_debug_wins(self, restore_root_logger):
        setup_logging(MitreSyncConfig(), debug=True, verbose=True)
        assert restore_root_logger.level == logging.DEBUG

    def test_unknown_level_falls_back(self, restore_root_logger):
        config = MitreSyncConfig.model_validate({"logging": {"level": "chatty"}})
        setup_logging(config)
        assert restore_root_logger.level == logging.WARNING
