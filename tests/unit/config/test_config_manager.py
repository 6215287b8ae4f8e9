"""Tests for unitorrent.config.config."""

from __future__ import annotations

from pathlib import Path

import pytest
import toml

from unitorrent.config import config as config_module
from unitorrent.config.config import ConfigManager, get_config, init_config
from unitorrent.exceptions import ConfigurationError
from unitorrent.models import LogLevel

pytestmark = [pytest.mark.unit, pytest.mark.config]


class TestConfigManager:
    """Tests for ConfigManager loading and validation."""

    def test_defaults_without_file(self):
        """Test that defaults apply when no config file exists."""
        manager = ConfigManager(configure_logging=False)

        assert manager.config_file is None
        assert manager.config.backend.url == "http://127.0.0.1:9091/transmission/rpc"
        assert manager.config.backend.tag_chunk_size == 100
        assert manager.config.observability.log_level is LogLevel.INFO

    def test_explicit_file(self, tmp_path):
        """Test loading a TOML file passed explicitly."""
        config_file = tmp_path / "custom.toml"
        config_file.write_text(
            '[backend]\nurl = "http://nas:9091/transmission/rpc"\n'
            "timeout = 30\n\n"
            '[observability]\nlog_level = "DEBUG"\n'
        )

        manager = ConfigManager(config_file, configure_logging=False)

        assert manager.config_file == config_file
        assert manager.config.backend.url == "http://nas:9091/transmission/rpc"
        assert manager.config.backend.timeout == 30.0
        assert manager.config.observability.log_level is LogLevel.DEBUG

    def test_file_in_working_directory_is_found(self, tmp_path):
        """Test discovery of unitorrent.toml in the current directory."""
        (tmp_path / "unitorrent.toml").write_text('[backend]\nusername = "admin"\n')

        manager = ConfigManager(configure_logging=False)

        assert manager.config_file == Path.cwd() / "unitorrent.toml"
        assert manager.config.backend.username == "admin"

    def test_file_in_home_config_dir_is_found(self, tmp_path):
        """Test discovery under ~/.config/unitorrent."""
        config_dir = tmp_path / "home" / ".config" / "unitorrent"
        config_dir.mkdir(parents=True)
        (config_dir / "unitorrent.toml").write_text("[backend]\nsettings_ttl = 2.5\n")

        manager = ConfigManager(configure_logging=False)

        assert manager.config.backend.settings_ttl == 2.5

    def test_missing_explicit_file(self, tmp_path):
        """Test that a missing explicit file is an error."""
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigManager(tmp_path / "nope.toml", configure_logging=False)

    def test_malformed_toml(self, tmp_path):
        """Test that unparsable TOML is reported as a configuration error."""
        config_file = tmp_path / "bad.toml"
        config_file.write_text("[backend\nurl = ")

        with pytest.raises(ConfigurationError, match="Failed to load"):
            ConfigManager(config_file, configure_logging=False)

    def test_invalid_values(self, tmp_path):
        """Test that validation errors become configuration errors."""
        config_file = tmp_path / "invalid.toml"
        config_file.write_text('[backend]\nbackend_type = "deluge"\n')

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            ConfigManager(config_file, configure_logging=False)


class TestEnvironmentOverrides:
    """Tests for UNITORRENT_* environment variables."""

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        """Test that environment variables win over the config file."""
        config_file = tmp_path / "unitorrent.toml"
        config_file.write_text('[backend]\nurl = "http://file/rpc"\ntimeout = 5\n')
        monkeypatch.setenv("UNITORRENT_URL", "http://env/rpc")
        monkeypatch.setenv("UNITORRENT_TIMEOUT", "12.5")

        manager = ConfigManager(config_file, configure_logging=False)

        assert manager.config.backend.url == "http://env/rpc"
        assert manager.config.backend.timeout == 12.5

    def test_env_value_parsing(self, monkeypatch):
        """Test type coercion of environment values."""
        monkeypatch.setenv("UNITORRENT_TAG_CHUNK_SIZE", "25")
        monkeypatch.setenv("UNITORRENT_STRUCTURED_LOGGING", "yes")
        monkeypatch.setenv("UNITORRENT_LOG_LEVEL", "warning")
        monkeypatch.setenv("UNITORRENT_PASSWORD", "1234")
        monkeypatch.setenv("UNITORRENT_RPC_SEMVER", "5.3")

        config = ConfigManager(configure_logging=False).config

        assert config.backend.tag_chunk_size == 25
        assert config.observability.structured_logging is True
        assert config.observability.log_level is LogLevel.WARNING
        assert config.backend.password == "1234"
        assert config.backend.rpc_semver == "5.3"

    def test_invalid_env_value(self, monkeypatch):
        """Test that a bad environment value is a configuration error."""
        monkeypatch.setenv("UNITORRENT_TIMEOUT", "0")
        with pytest.raises(ConfigurationError):
            ConfigManager(configure_logging=False)


class TestOverridesAndExport:
    """Tests for CLI overrides and TOML export."""

    def test_apply_overrides(self):
        """Test dotted-path overrides; None values are ignored."""
        manager = ConfigManager(configure_logging=False)

        config = manager.apply_overrides(
            {"backend.url": "http://cli/rpc", "backend.username": None}
        )

        assert config.backend.url == "http://cli/rpc"
        assert config.backend.username is None
        assert manager.config is config

    def test_apply_invalid_override(self):
        """Test that invalid overrides leave the previous config in place."""
        manager = ConfigManager(configure_logging=False)
        before = manager.config

        with pytest.raises(ConfigurationError):
            manager.apply_overrides({"backend.tag_chunk_size": 0})
        assert manager.config is before

    def test_export_omits_password(self, monkeypatch):
        """Test that exported TOML never contains the password."""
        monkeypatch.setenv("UNITORRENT_USERNAME", "admin")
        monkeypatch.setenv("UNITORRENT_PASSWORD", "secret")
        manager = ConfigManager(configure_logging=False)

        exported = manager.export()
        data = toml.loads(exported)

        assert "secret" not in exported
        assert data["backend"]["username"] == "admin"
        assert "password" not in data["backend"]
        assert data["observability"]["log_level"] == "INFO"


class TestGlobalConfig:
    """Tests for the module-level configuration helpers."""

    def test_init_and_get(self, tmp_path, monkeypatch):
        """Test that init_config replaces the global manager."""
        monkeypatch.setattr(config_module, "_config_manager", None)
        config_file = tmp_path / "global.toml"
        config_file.write_text("[backend]\ntag_chunk_size = 9\n")

        manager = init_config(config_file, configure_logging=False)

        assert get_config() is manager.config
        assert get_config().backend.tag_chunk_size == 9

    def test_get_config_lazily_creates_manager(self, monkeypatch):
        """Test that get_config builds a manager on first use."""
        monkeypatch.setattr(config_module, "_config_manager", None)
        assert get_config().backend.settings_ttl == 5.0
