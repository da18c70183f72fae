"""Tests for loading the migration configuration."""

import pytest

from glidemigrate.core.config import CONFIG_ENV_VAR, MigrationConfig, get_config, load_config
from glidemigrate.core.errors import ConfigurationError

MINIMAL_CONFIG = """\
target:
  package: "@valkey/valkey-glide"
  client_class: GlideClient
  cluster_client_class: GlideClusterClient
source_packages:
  ioredis: [ioredis]
complexity:
  advanced: [cluster]
  intermediate: [sub]
patterns:
  - tag: cluster
    keywords: [cluster]
"""


@pytest.fixture
def fresh_config_cache():
    get_config.cache_clear()
    yield
    get_config.cache_clear()


class TestLoadConfig:
    def test_packaged_config(self):
        config = load_config()
        assert isinstance(config, MigrationConfig)
        assert config.target.package == "@valkey/valkey-glide"
        assert config.packages_for("node-redis") == ("redis", "@redis/client")
        assert config.ioredis.connection_options["db"] == "databaseId"
        assert "blpop" in config.blocking.array_key_commands

    def test_config_is_frozen(self):
        config = load_config()
        with pytest.raises(Exception):
            config.target.package = "other"

    def test_minimal_file_uses_defaults(self, tmp_path):
        path = tmp_path / "migration.yaml"
        path.write_text(MINIMAL_CONFIG)
        config = load_config(path)
        assert config.target.default_port == 6379
        assert config.retry.factor == 2
        assert config.packages_for("node-redis") == ()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("target: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Failed to read"):
            load_config(path)

    def test_invalid_schema(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("target: 5\n")
        with pytest.raises(ConfigurationError, match="Invalid migration config"):
            load_config(path)


class TestGetConfig:
    def test_cached(self, fresh_config_cache):
        assert get_config() is get_config()

    def test_env_override(self, tmp_path, monkeypatch, fresh_config_cache):
        path = tmp_path / "override.yaml"
        path.write_text(MINIMAL_CONFIG)
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        config = get_config()
        assert config.complexity.intermediate == ("sub",)
