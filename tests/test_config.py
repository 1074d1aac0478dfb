"""Tests for the configuration module."""

from pathlib import Path

import pytest

from fixmyphone.config import (
    DEFAULT_CRITICAL_RESOURCES,
    CacheConfig,
    ConfigError,
    NotificationConfig,
    ProxyConfig,
    SyncConfig,
    load_config,
)


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for config files."""
    return tmp_path


@pytest.fixture
def valid_config_content() -> str:
    """Return a valid configuration YAML content."""
    return """cache:
  version: "2.1.0"
  critical_resources:
    - /
    - /offline.html
    - /manifest.json
  fetch_timeout: 5

proxy:
  origin: https://fixmyphone.example/
  port: 9000

database:
  path: ./data/offline.db

sync:
  endpoint: /api/v2/repair-requests

notifications:
  title: Repair Update
  vibrate: [200, 100]
  webhooks:
    - https://hooks.example/notify
"""


class TestCacheConfig:
    """Tests for CacheConfig dataclass."""

    def test_cache_name_is_prefix_and_version(self) -> None:
        """The cache store name combines the prefix and version."""
        assert CacheConfig(version="1.0.0").cache_name == "fixmyphone-v1.0.0"
        assert CacheConfig(name_prefix="repair", version="7").cache_name == "repair-v7"

    def test_defaults(self) -> None:
        """Defaults cover the app shell, API prefix and backend host."""
        config = CacheConfig()
        assert config.critical_resources == DEFAULT_CRITICAL_RESOURCES
        assert config.offline_url == "/offline.html"
        assert config.api_prefix == "/api/"
        assert config.backend_host == "supabase"
        assert config.fetch_timeout == 10.0

    def test_rejects_empty_version(self) -> None:
        """Empty version is rejected."""
        with pytest.raises(ConfigError, match="version cannot be empty"):
            CacheConfig(version="")

    def test_rejects_empty_critical_resources(self) -> None:
        """At least one resource must be precached."""
        with pytest.raises(ConfigError, match="At least one critical resource"):
            CacheConfig(critical_resources=())

    def test_rejects_relative_resource(self) -> None:
        """Critical resources must be absolute paths."""
        with pytest.raises(ConfigError, match="absolute path"):
            CacheConfig(critical_resources=("/", "offline.html"))

    def test_offline_url_must_be_precached(self) -> None:
        """The offline page has to be one of the critical resources."""
        with pytest.raises(ConfigError, match="must be listed in critical_resources"):
            CacheConfig(critical_resources=("/",))

    def test_rejects_non_positive_timeout(self) -> None:
        """Fetch timeout must be positive."""
        with pytest.raises(ConfigError, match="Fetch timeout must be positive"):
            CacheConfig(fetch_timeout=0)


class TestProxyConfig:
    """Tests for ProxyConfig dataclass."""

    def test_origin_url_strips_trailing_slash(self) -> None:
        """origin_url never ends with a slash."""
        assert ProxyConfig(origin="https://fixmyphone.example/").origin_url == "https://fixmyphone.example"

    def test_rejects_origin_without_protocol(self) -> None:
        """Origin must be an http(s) URL."""
        with pytest.raises(ConfigError, match="must start with http"):
            ProxyConfig(origin="fixmyphone.example")

    def test_rejects_port_out_of_range(self) -> None:
        """Port must be a valid TCP port."""
        with pytest.raises(ConfigError, match="between 1 and 65535"):
            ProxyConfig(port=0)
        with pytest.raises(ConfigError, match="between 1 and 65535"):
            ProxyConfig(port=65536)


class TestSyncAndNotificationConfig:
    """Tests for SyncConfig and NotificationConfig dataclasses."""

    def test_sync_defaults(self) -> None:
        """Sync uses the repair-submission tag and endpoint."""
        config = SyncConfig()
        assert config.tag == "background-repair-submission"
        assert config.endpoint == "/api/repair-requests"

    def test_sync_rejects_bad_endpoint(self) -> None:
        """Endpoint must be a path or http(s) URL."""
        with pytest.raises(ConfigError, match="Sync endpoint"):
            SyncConfig(endpoint="ftp://example.com")

    def test_notification_defaults(self) -> None:
        """Notifications default to the update title and app icons."""
        config = NotificationConfig()
        assert config.title == "FixMyPhone Update"
        assert config.default_body == "Your repair status has been updated"
        assert config.vibrate == (100, 50, 100)
        assert config.auto_close_seconds == 5.0

    def test_notification_rejects_bad_webhook(self) -> None:
        """Webhooks must be http(s) URLs."""
        with pytest.raises(ConfigError, match="webhook must start with http"):
            NotificationConfig(webhooks=("hooks.example",))


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_valid_config_from_file(self, config_dir: Path, valid_config_content: str) -> None:
        """Valid configuration file is loaded successfully."""
        config_file = config_dir / "config.yaml"
        config_file.write_text(valid_config_content)

        config = load_config(str(config_file))

        assert config.cache.cache_name == "fixmyphone-v2.1.0"
        assert config.cache.critical_resources == ("/", "/offline.html", "/manifest.json")
        assert config.cache.fetch_timeout == 5.0
        assert config.proxy.origin_url == "https://fixmyphone.example"
        assert config.proxy.port == 9000
        assert config.database.path == "./data/offline.db"
        assert config.sync.endpoint == "/api/v2/repair-requests"
        assert config.notifications.title == "Repair Update"
        assert config.notifications.vibrate == (200, 100)
        assert config.notifications.webhooks == ("https://hooks.example/notify",)

    def test_empty_file_uses_defaults(self, config_dir: Path) -> None:
        """An empty file yields the default configuration."""
        config_file = config_dir / "empty.yaml"
        config_file.write_text("")

        config = load_config(str(config_file))

        assert config.cache.cache_name == "fixmyphone-v1.0.0"
        assert config.proxy.port == 8080

    def test_raises_error_for_missing_file(self, config_dir: Path) -> None:
        """ConfigError is raised when file doesn't exist."""
        with pytest.raises(ConfigError, match="Configuration file not found"):
            load_config(str(config_dir / "nonexistent.yaml"))

    def test_raises_error_for_invalid_yaml(self, config_dir: Path) -> None:
        """ConfigError is raised for invalid YAML syntax."""
        config_file = config_dir / "invalid.yaml"
        config_file.write_text("invalid: yaml: syntax: ][")

        with pytest.raises(ConfigError, match="Failed to parse YAML configuration"):
            load_config(str(config_file))

    def test_raises_error_when_config_is_not_dict(self, config_dir: Path) -> None:
        """ConfigError is raised when configuration is not a dictionary."""
        config_file = config_dir / "notdict.yaml"
        config_file.write_text("- item1\n- item2")

        with pytest.raises(ConfigError, match="Configuration must be a YAML dictionary"):
            load_config(str(config_file))

    def test_raises_error_when_section_is_not_dict(self, config_dir: Path) -> None:
        """ConfigError is raised when a section is a scalar."""
        config_file = config_dir / "bad_section.yaml"
        config_file.write_text("cache: 3")

        with pytest.raises(ConfigError, match="'cache' section must be a dictionary"):
            load_config(str(config_file))

    def test_raises_error_when_resources_not_list(self, config_dir: Path) -> None:
        """critical_resources must be a list."""
        config_file = config_dir / "bad_resources.yaml"
        config_file.write_text("cache:\n  critical_resources: /offline.html")

        with pytest.raises(ConfigError, match="'cache.critical_resources' must be a list"):
            load_config(str(config_file))

    def test_raises_error_for_invalid_timeout(self, config_dir: Path) -> None:
        """A non-numeric fetch timeout is rejected."""
        config_file = config_dir / "bad_timeout.yaml"
        config_file.write_text("cache:\n  fetch_timeout: soon")

        with pytest.raises(ConfigError, match="Invalid cache.fetch_timeout"):
            load_config(str(config_file))


class TestEnvironmentVariableOverrides:
    """Tests for environment variable override functionality."""

    def test_overrides_cache_version(self, config_dir: Path, monkeypatch) -> None:
        """FIXMYPHONE_CACHE_VERSION replaces the configured version."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("cache:\n  version: '1.0.0'")
        monkeypatch.setenv("FIXMYPHONE_CACHE_VERSION", "1.0.1")

        config = load_config(str(config_file))

        assert config.cache.cache_name == "fixmyphone-v1.0.1"

    def test_overrides_origin_and_port(self, config_dir: Path, monkeypatch) -> None:
        """Proxy overrides create the section when it is missing."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("")
        monkeypatch.setenv("FIXMYPHONE_ORIGIN", "https://staging.fixmyphone.example")
        monkeypatch.setenv("FIXMYPHONE_PROXY_PORT", "9090")

        config = load_config(str(config_file))

        assert config.proxy.origin == "https://staging.fixmyphone.example"
        assert config.proxy.port == 9090

    def test_overrides_db_path(self, config_dir: Path, monkeypatch) -> None:
        """FIXMYPHONE_DB_PATH replaces the database path."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("database:\n  path: ./a.db")
        monkeypatch.setenv("FIXMYPHONE_DB_PATH", "/tmp/b.db")

        assert load_config(str(config_file)).database.path == "/tmp/b.db"

    def test_db_path_expands_home(self, config_dir: Path, monkeypatch) -> None:
        """A leading ~ in the database path is expanded."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("database:\n  path: ~/fixmyphone/offline.db")
        monkeypatch.setenv("HOME", str(config_dir))

        assert load_config(str(config_file)).database.path == str(config_dir / "fixmyphone" / "offline.db")

    def test_invalid_port_override(self, config_dir: Path, monkeypatch) -> None:
        """A non-numeric port override raises ConfigError."""
        config_file = config_dir / "config.yaml"
        config_file.write_text("")
        monkeypatch.setenv("FIXMYPHONE_PROXY_PORT", "eighty")

        with pytest.raises(ConfigError, match="Invalid environment override"):
            load_config(str(config_file))
