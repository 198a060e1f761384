"""
Tests for the config module.

Tests configuration loading, validation, generation and host system values.
"""

import os
import stat
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from pointsync.config.generator import generate_default_config, save_config_file
from pointsync.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from pointsync.config.system import SystemConfig
from pointsync.utils.paths import DEFAULT_CONFIG_DIR


class TestConfigLoaderInitialization:
    """Tests for ConfigLoader initialization."""

    def test_default_config_dir(self):
        with patch.dict(os.environ, {}, clear=True):
            loader = ConfigLoader()
            assert loader.config_dir == DEFAULT_CONFIG_DIR
            assert loader.config_file == DEFAULT_CONFIG_FILE

    def test_config_dir_from_environment_variable(self, tmp_path):
        env_dir = str(tmp_path / "env_config")
        with patch.dict(os.environ, {"POINTSYNC_CONFIG_DIR": env_dir}):
            assert ConfigLoader().config_dir == Path(env_dir)

    def test_argument_takes_precedence_over_environment(self, tmp_path):
        arg_dir = tmp_path / "arg_config"
        with patch.dict(os.environ, {"POINTSYNC_CONFIG_DIR": str(tmp_path / "env")}):
            assert ConfigLoader(config_dir=arg_dir).config_dir == arg_dir


class TestConfigLoading:
    """Tests for loading configuration files."""

    def test_missing_file_returns_empty_dict(self, tmp_path):
        assert ConfigLoader(config_dir=tmp_path).load() == {}

    def test_empty_file_returns_empty_dict(self, tmp_path):
        (tmp_path / "config.yaml").write_text("")
        assert ConfigLoader(config_dir=tmp_path).load() == {}

    def test_load_values(self, tmp_path):
        (tmp_path / "config.yaml").write_text(
            "chunk_size: 1024\n"
            "remote_instances:\n"
            "  backup2:\n"
            "    url: https://backup2.example.com\n"
        )
        config = ConfigLoader(config_dir=tmp_path).load()
        assert config["chunk_size"] == 1024
        assert config["remote_instances"]["backup2"]["url"] == "https://backup2.example.com"

    def test_invalid_yaml_raises(self, tmp_path):
        (tmp_path / "config.yaml").write_text("key: [unclosed")
        with pytest.raises(ConfigError, match="Failed to parse"):
            ConfigLoader(config_dir=tmp_path).load()

    def test_non_dict_yaml_raises(self, tmp_path):
        (tmp_path / "config.yaml").write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="YAML dictionary"):
            ConfigLoader(config_dir=tmp_path).load()


class TestConfigValidation:
    """Tests for configuration validation."""

    @pytest.fixture
    def loader(self, tmp_path):
        return ConfigLoader(config_dir=tmp_path)

    def test_valid_config(self, loader):
        loader.validate(
            {
                "chunk_size": 10,
                "remote_timeout": 2.5,
                "instance_timeout": 60,
                "verbose": True,
                "remote_instances": {"b2": {"url": "http://b2.local", "token": "t"}},
                "default_instance": "b2",
                "system": {"version": "25.0.2"},
            }
        )

    def test_unknown_keys_are_ignored(self, loader):
        loader.validate({"something_else": object()})

    def test_wrong_type(self, loader):
        with pytest.raises(ConfigError, match="chunk_size"):
            loader.validate({"chunk_size": "big"})

    def test_bool_is_not_an_int(self, loader):
        with pytest.raises(ConfigError, match="max_parallel_uploads"):
            loader.validate({"max_parallel_uploads": True})

    def test_positive_int(self, loader):
        with pytest.raises(ConfigError, match=">= 1"):
            loader.validate({"max_parallel_instances": 0})

    def test_negative_retention(self, loader):
        with pytest.raises(ConfigError, match="log_retention_count"):
            loader.validate({"log_retention_count": -1})

    def test_timeout_must_be_positive(self, loader):
        with pytest.raises(ConfigError, match="remote_timeout"):
            loader.validate({"remote_timeout": 0})

    def test_instance_without_url(self, loader):
        with pytest.raises(ConfigError, match="must define a url"):
            loader.validate({"remote_instances": {"b2": {"token": "t"}}})

    def test_instance_with_bad_scheme(self, loader):
        with pytest.raises(ConfigError, match="url scheme"):
            loader.validate({"remote_instances": {"b2": {"url": "ftp://b2"}}})

    def test_unknown_default_instance(self, loader):
        with pytest.raises(ConfigError, match="default_instance"):
            loader.validate({"default_instance": "b3"})

    def test_load_and_validate(self, tmp_path):
        (tmp_path / "config.yaml").write_text("chunk_size: -5\n")
        with pytest.raises(ConfigError):
            ConfigLoader(config_dir=tmp_path).load_and_validate()


class TestConfigGenerator:
    """Tests for the default configuration file."""

    def test_default_config_is_valid_yaml(self):
        assert yaml.safe_load(generate_default_config()) is None

    def test_default_config_mentions_options(self):
        content = generate_default_config()
        for key in ("storage_root", "chunk_size", "remote_instances", "instance_timeout"):
            assert key in content

    def test_save_config_file(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"
        success, error = save_config_file(path)

        assert success is True
        assert error is None
        assert path.read_text() == generate_default_config()
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_save_refuses_to_overwrite(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("verbose: true\n")

        success, error = save_config_file(path)

        assert success is False
        assert "already exists" in error
        assert path.read_text() == "verbose: true\n"

    def test_save_overwrite(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("verbose: true\n")

        success, _ = save_config_file(path, overwrite=True)

        assert success is True
        assert path.read_text() == generate_default_config()


class TestSystemConfig:
    """Tests for host system values."""

    def test_from_config(self):
        system = SystemConfig.from_config({"system": {"serverroot": "/srv"}})
        assert system.get_system_value("serverroot") == "/srv"
        assert system.get_system_value("missing", "fallback") == "fallback"

    def test_from_config_without_section(self):
        assert SystemConfig.from_config({}).values == {}

    def test_version_from_string(self):
        assert SystemConfig({"version": "25.0.2.3"}).get_version() == [25, 0, 2, 3]

    def test_version_from_list(self):
        assert SystemConfig({"version": [24, 0, 1]}).get_version() == [24, 0, 1]

    def test_version_missing(self):
        assert SystemConfig().get_version() == []

    def test_db_params(self):
        system = SystemConfig({"dbname": "nc", "dbuser": "u", "other": 1})
        assert system.get_db_params() == {
            "dbname": "nc",
            "dbhost": None,
            "dbport": None,
            "dbuser": "u",
            "dbpassword": None,
        }

    def test_custom_app_paths(self):
        system = SystemConfig(
            {"apps_paths": [{"path": "/srv/custom_apps"}, {"url": "/x"}, "junk", {"path": "/srv/more"}]}
        )
        assert system.get_custom_app_paths() == ["/srv/custom_apps", "/srv/more"]
