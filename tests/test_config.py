"""
Tests for the config module.

Tests configuration loading, validation, typed settings and default config
generation.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from listsync.config.generator import generate_default_config, save_config_file
from listsync.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from listsync.config.settings import Settings
from listsync.utils.paths import DEFAULT_CONFIG_DIR


class TestConfigLoaderInitialization:
    """Tests for ConfigLoader initialization."""

    def test_default_config_dir(self):
        """Test that default config dir is used when no argument provided."""
        with patch.dict(os.environ, {}, clear=True):
            loader = ConfigLoader()
            assert loader.config_dir == DEFAULT_CONFIG_DIR

    def test_custom_config_dir_via_argument(self, tmp_path):
        """Test that custom config dir can be passed as argument."""
        loader = ConfigLoader(config_dir=tmp_path / "custom")
        assert loader.config_dir == tmp_path / "custom"

    def test_config_dir_from_environment_variable(self, tmp_path):
        """Test that config dir can be set via environment variable."""
        env_dir = str(tmp_path / "env_config")
        with patch.dict(os.environ, {"LISTSYNC_CONFIG_DIR": env_dir}):
            loader = ConfigLoader()
            assert loader.config_dir == Path(env_dir)


class TestConfigLoading:
    """Tests for configuration file loading."""

    @pytest.fixture
    def loader(self, tmp_path):
        """Create a ConfigLoader instance with temp config dir."""
        return ConfigLoader(config_dir=tmp_path)

    def test_load_nonexistent_file_returns_empty_dict(self, loader):
        """Test loading non-existent config file returns empty dict."""
        assert loader.load() == {}

    def test_load_valid_yaml_file(self, loader, tmp_path):
        """Test loading a valid YAML configuration file."""
        config_data = {"batch_size": 50, "sync_interval": "30m"}
        (tmp_path / DEFAULT_CONFIG_FILE).write_text(
            yaml.dump(config_data), encoding="utf-8"
        )
        assert loader.load() == config_data

    def test_load_yaml_with_only_comments_returns_empty_dict(self, loader, tmp_path):
        """Test loading YAML file with only comments returns empty dict."""
        (tmp_path / DEFAULT_CONFIG_FILE).write_text(
            "# Just comments\n# No actual config", encoding="utf-8"
        )
        assert loader.load() == {}

    def test_load_invalid_yaml_raises_config_error(self, loader, tmp_path):
        """Test loading invalid YAML raises ConfigError."""
        (tmp_path / DEFAULT_CONFIG_FILE).write_text(
            "invalid: yaml: {{{", encoding="utf-8"
        )
        with pytest.raises(ConfigError, match="Failed to parse YAML"):
            loader.load()

    def test_load_non_dict_yaml_raises_config_error(self, loader, tmp_path):
        """Test loading YAML that is not a dict raises ConfigError."""
        (tmp_path / DEFAULT_CONFIG_FILE).write_text("- list\n- items\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="must contain a YAML dictionary"):
            loader.load()

    @patch("builtins.open", side_effect=OSError("Permission denied"))
    def test_load_permission_error_raises_config_error(
        self, mock_open, loader, tmp_path
    ):
        """Test loading file with permission error raises ConfigError."""
        (tmp_path / DEFAULT_CONFIG_FILE).write_text("batch_size: 5", encoding="utf-8")
        with pytest.raises(ConfigError, match="Failed to read configuration file"):
            loader.load()


class TestConfigValidation:
    """Tests for configuration validation."""

    @pytest.fixture
    def loader(self, tmp_path):
        return ConfigLoader(config_dir=tmp_path)

    def test_valid_config_passes(self, loader):
        """A config using every documented key validates."""
        loader.validate(
            {
                "db_path": "sync.db",
                "batch_size": 100,
                "http_timeout": 12.5,
                "sync_interval": "1h",
                "run_immediately": False,
                "job_max_attempts": 3,
                "job_backoff_delay": 5,
                "completed_job_retention_days": 7,
                "failed_job_retention_days": 30,
                "sync_lock_enabled": True,
                "sync_lock_ttl": 3600,
                "worker_concurrency": 4,
                "worker_poll_interval": 0.5,
                "verbose": True,
                "log_dir": "/tmp/logs",
                "log_retention_count": 0,
                "daemon_pid_file": "/tmp/listsync.pid",
            }
        )

    def test_unknown_keys_are_ignored(self, loader):
        """Unknown keys do not fail validation."""
        loader.validate({"something_else": [1, 2, 3]})

    def test_wrong_type_raises(self, loader):
        """A string where an int is expected is rejected."""
        with pytest.raises(ConfigError, match="Invalid type for 'batch_size'"):
            loader.validate({"batch_size": "100"})

    def test_bool_rejected_for_numeric_option(self, loader):
        """true is not accepted as a number."""
        with pytest.raises(ConfigError, match="job_max_attempts"):
            loader.validate({"job_max_attempts": True})

    @pytest.mark.parametrize(
        "key", ["batch_size", "job_max_attempts", "worker_concurrency"]
    )
    def test_positive_ints(self, loader, key):
        """Counts must be at least 1."""
        with pytest.raises(ConfigError, match=f"{key} must be >= 1"):
            loader.validate({key: 0})

    def test_http_timeout_must_be_positive(self, loader):
        with pytest.raises(ConfigError, match="http_timeout must be > 0"):
            loader.validate({"http_timeout": 0})

    def test_negative_backoff_rejected(self, loader):
        with pytest.raises(ConfigError, match="job_backoff_delay must be >= 0"):
            loader.validate({"job_backoff_delay": -1})

    def test_non_dict_rejected(self, loader):
        with pytest.raises(ConfigError, match="must be a dictionary"):
            loader.validate(["not", "a", "dict"])  # type: ignore[arg-type]

    def test_load_and_validate(self, loader, tmp_path):
        """load_and_validate rejects an invalid file."""
        (tmp_path / DEFAULT_CONFIG_FILE).write_text(
            "worker_concurrency: 0\n", encoding="utf-8"
        )
        with pytest.raises(ConfigError):
            loader.load_and_validate()


class TestSettings:
    """Tests for typed settings."""

    def test_defaults(self, tmp_path):
        """An empty config gives the documented defaults."""
        settings = Settings.from_dict({}, tmp_path)
        assert settings.db_path == str(tmp_path / "listsync.db")
        assert settings.batch_size == 100
        assert settings.sync_interval == 3600
        assert settings.run_immediately is True
        assert settings.job_max_attempts == 3
        assert settings.job_backoff_delay == 5.0
        assert settings.completed_job_retention_days == 7
        assert settings.failed_job_retention_days == 30
        assert settings.sync_lock_enabled is True
        assert settings.sync_lock_ttl == 3600
        assert settings.log_dir is None
        assert settings.daemon_pid_file is None

    def test_values_from_config(self, tmp_path):
        """Configured values override defaults."""
        settings = Settings.from_dict(
            {
                "db_path": ":memory:",
                "batch_size": 25,
                "sync_interval": "15m",
                "job_backoff_delay": 2,
                "sync_lock_ttl": "2h",
                "worker_concurrency": 8,
                "log_dir": "~/listsync-logs",
            },
            tmp_path,
        )
        assert settings.db_path == ":memory:"
        assert settings.batch_size == 25
        assert settings.sync_interval == 900
        assert settings.job_backoff_delay == 2.0
        assert isinstance(settings.job_backoff_delay, float)
        assert settings.sync_lock_ttl == 7200
        assert settings.worker_concurrency == 8
        assert settings.log_dir == Path.home() / "listsync-logs"

    def test_invalid_interval_raises_config_error(self, tmp_path):
        """A malformed interval is a configuration error."""
        with pytest.raises(ConfigError, match="Invalid interval format"):
            Settings.from_dict({"sync_interval": "hourly"}, tmp_path)


class TestConfigGenerator:
    """Tests for configuration file generation."""

    def test_generate_default_config_is_valid_yaml(self):
        """Generated config parses; every option is commented out."""
        assert yaml.safe_load(generate_default_config()) is None

    def test_generate_default_config_documents_all_options(self):
        """Every option the validator knows about is documented."""
        config_yaml = generate_default_config()
        for option in [
            "db_path",
            "batch_size",
            "http_timeout",
            "sync_interval",
            "run_immediately",
            "job_max_attempts",
            "job_backoff_delay",
            "completed_job_retention_days",
            "failed_job_retention_days",
            "sync_lock_enabled",
            "sync_lock_ttl",
            "worker_concurrency",
            "worker_poll_interval",
            "verbose",
            "log_dir",
            "log_retention_count",
            "daemon_pid_file",
        ]:
            assert f"# {option}:" in config_yaml

    def test_uncommented_defaults_are_valid(self, tmp_path):
        """Uncommenting every option yields a config that validates."""
        lines = []
        for line in generate_default_config().splitlines():
            stripped = line[2:] if line.startswith("# ") else ""
            key = stripped.split(":", 1)[0]
            if ":" in stripped and key.isidentifier() and key.islower():
                lines.append(stripped)
        config = yaml.safe_load("\n".join(lines))
        ConfigLoader(config_dir=tmp_path).validate(config)
        Settings.from_dict(config, tmp_path)


class TestSaveConfigFile:
    """Tests for saving configuration files."""

    def test_save_config_file_creates_file(self, tmp_path):
        """Test that save_config_file creates the config file."""
        config_path = tmp_path / "nested" / "config.yaml"
        success, error = save_config_file(config_path)

        assert success is True
        assert error is None
        assert config_path.exists()

    def test_save_config_file_sets_secure_permissions(self, tmp_path):
        """Test that config file has secure permissions (0o600)."""
        config_path = tmp_path / "config.yaml"
        save_config_file(config_path)
        assert config_path.stat().st_mode & 0o777 == 0o600

    def test_save_config_file_existing_file_without_overwrite(self, tmp_path):
        """Test that existing file is not overwritten without --force."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("existing content", encoding="utf-8")

        success, error = save_config_file(config_path, overwrite=False)

        assert success is False
        assert error is not None
        assert "already exists" in error
        assert config_path.read_text() == "existing content"

    def test_save_config_file_existing_file_with_overwrite(self, tmp_path):
        """Test that existing file is overwritten with overwrite=True."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("existing content", encoding="utf-8")

        success, error = save_config_file(config_path, overwrite=True)

        assert success is True
        assert "listsync Configuration" in config_path.read_text()

    @patch("pathlib.Path.write_text", side_effect=OSError("Permission denied"))
    def test_save_config_file_permission_error(self, mock_write, tmp_path):
        """Test that save_config_file handles permission errors."""
        success, error = save_config_file(tmp_path / "config.yaml")

        assert success is False
        assert error is not None
        assert "Failed to create configuration file" in error
