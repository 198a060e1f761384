"""Tests for path utilities."""

from pathlib import Path

from pointsync.utils.paths import (
    CONFIG_DIR_ENV_VAR,
    DEFAULT_CONFIG_DIR,
    resolve_config_dir,
    resolve_database_path,
    resolve_storage_root,
)


class TestDefaultConfigDir:
    """Test DEFAULT_CONFIG_DIR constant."""

    def test_default_config_dir_is_in_home(self):
        """Default config dir should be in user's home directory."""
        assert Path.home() / ".pointsync" == DEFAULT_CONFIG_DIR


class TestResolveConfigDir:
    """Test resolve_config_dir function."""

    def test_explicit_path_string(self, tmp_path):
        result = resolve_config_dir(str(tmp_path))
        assert result == tmp_path.resolve()

    def test_explicit_path_with_tilde(self):
        result = resolve_config_dir("~/custom-config")
        assert result == Path.home() / "custom-config"

    def test_env_var_override(self, tmp_path, monkeypatch):
        """Environment variable should override default when no explicit path."""
        monkeypatch.setenv(CONFIG_DIR_ENV_VAR, str(tmp_path))
        assert resolve_config_dir(None) == tmp_path.resolve()

    def test_default_when_no_explicit_and_no_env(self, monkeypatch):
        monkeypatch.delenv(CONFIG_DIR_ENV_VAR, raising=False)
        assert resolve_config_dir(None) == DEFAULT_CONFIG_DIR.expanduser().resolve()

    def test_explicit_overrides_env_var(self, tmp_path, monkeypatch):
        env_path = tmp_path / "env"
        explicit_path = tmp_path / "explicit"
        monkeypatch.setenv(CONFIG_DIR_ENV_VAR, str(env_path))

        assert resolve_config_dir(str(explicit_path)) == explicit_path.resolve()


class TestDerivedPaths:
    """Test storage root and database path resolution."""

    def test_storage_root_default(self, tmp_path):
        assert resolve_storage_root({}, tmp_path) == tmp_path / "storage"

    def test_storage_root_from_config(self, tmp_path):
        config = {"storage_root": str(tmp_path / "elsewhere")}
        assert resolve_storage_root(config, tmp_path) == tmp_path / "elsewhere"

    def test_database_default(self, tmp_path):
        assert resolve_database_path({}, tmp_path) == tmp_path / "points.db"

    def test_database_from_config_expands_user(self, tmp_path):
        result = resolve_database_path({"database": "~/points.db"}, tmp_path)
        assert result == Path.home() / "points.db"
