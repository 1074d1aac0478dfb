"""Configuration loader with type-safe dataclasses."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


DEFAULT_CRITICAL_RESOURCES = (
    "/",
    "/offline.html",
    "/manifest.json",
    "/icons/icon-192x192.png",
    "/icons/icon-512x512.png",
)

# Cross-origin hosts (fonts and CDNs) whose GET requests are still cached.
DEFAULT_ALLOWED_HOSTS = (
    "fonts.googleapis.com",
    "fonts.gstatic.com",
    "cdn.jsdelivr.net",
    "unpkg.com",
)


@dataclass(frozen=True)
class CacheConfig:
    """Configuration for the offline cache controller.

    The current cache store is named "<name_prefix>-v<version>". Every other
    store found at activation is stale and gets purged.

    Routing:
    - allowed_hosts: cross-origin hostnames that are still intercepted.
    - api_prefix: paths starting with this prefix are API calls.
    - backend_host: hostnames containing this fragment are API calls.
    """

    name_prefix: str = "fixmyphone"
    version: str = "1.0.0"
    critical_resources: tuple[str, ...] = DEFAULT_CRITICAL_RESOURCES
    offline_url: str = "/offline.html"
    allowed_hosts: tuple[str, ...] = DEFAULT_ALLOWED_HOSTS
    api_prefix: str = "/api/"
    backend_host: str = "supabase"
    fetch_timeout: float = 10.0  # seconds before a network fetch counts as failed

    def __post_init__(self) -> None:
        if not self.name_prefix:
            raise ConfigError("Cache name_prefix cannot be empty")
        if not self.version:
            raise ConfigError("Cache version cannot be empty")
        if not self.critical_resources:
            raise ConfigError("At least one critical resource must be configured")
        for resource in self.critical_resources:
            if not resource.startswith("/"):
                raise ConfigError(f"Critical resource must be an absolute path, got '{resource}'")
        if not self.offline_url.startswith("/"):
            raise ConfigError(f"Offline URL must be an absolute path, got '{self.offline_url}'")
        if self.offline_url not in self.critical_resources:
            raise ConfigError(f"Offline URL '{self.offline_url}' must be listed in critical_resources")
        if not self.api_prefix.startswith("/"):
            raise ConfigError(f"API prefix must start with '/', got '{self.api_prefix}'")
        if self.fetch_timeout <= 0:
            raise ConfigError(f"Fetch timeout must be positive (got {self.fetch_timeout})")

    @property
    def cache_name(self) -> str:
        """Name of the cache store owned by this version."""
        return f"{self.name_prefix}-v{self.version}"


@dataclass(frozen=True)
class ProxyConfig:
    """Configuration for the offline proxy in front of the web app."""

    origin: str = ""
    enabled: bool = True
    host: str = ""
    port: int = 8080

    def __post_init__(self) -> None:
        if self.origin and not self.origin.startswith(("http://", "https://")):
            raise ConfigError(f"Proxy origin must start with http:// or https://, got '{self.origin}'")
        if self.port < 1 or self.port > 65535:
            raise ConfigError(f"Proxy port must be between 1 and 65535, got {self.port}")

    @property
    def origin_url(self) -> str:
        """Origin without a trailing slash."""
        return self.origin.rstrip("/")


def _get_default_db_path() -> str:
    """Get the default database path using XDG-compliant directory.

    Returns ~/.local/share/fixmyphone/offline.db which is the standard
    location for user-specific data files on Linux/macOS.
    """
    home = Path.home()
    return str(home / ".local" / "share" / "fixmyphone" / "offline.db")


DEFAULT_DB_PATH = _get_default_db_path()


@dataclass(frozen=True)
class DatabaseConfig:
    """Configuration for the SQLite cache and offline queue database."""

    path: str = DEFAULT_DB_PATH

    def __post_init__(self) -> None:
        if not self.path:
            raise ConfigError("Database path cannot be empty")


@dataclass(frozen=True)
class SyncConfig:
    """Configuration for background sync of offline repair submissions."""

    tag: str = "background-repair-submission"
    endpoint: str = "/api/repair-requests"
    timeout: int = 10

    def __post_init__(self) -> None:
        if not self.tag:
            raise ConfigError("Sync tag cannot be empty")
        if not self.endpoint.startswith(("/", "http://", "https://")):
            raise ConfigError(f"Sync endpoint must be a path or an http(s) URL, got '{self.endpoint}'")
        if self.timeout < 1:
            raise ConfigError(f"Sync timeout must be at least 1 second, got {self.timeout}")


@dataclass(frozen=True)
class NotificationConfig:
    """Configuration for push notifications.

    Webhooks receive every displayed notification as JSON. Without webhooks
    notifications are only logged.
    """

    title: str = "FixMyPhone Update"
    default_body: str = "Your repair status has been updated"
    icon: str = "/icons/icon-192x192.png"
    badge: str = "/icons/badge-72x72.png"
    vibrate: tuple[int, ...] = (100, 50, 100)
    dashboard_route: str = "/dashboard"
    auto_close_seconds: float = 5.0
    webhooks: tuple[str, ...] = ()
    max_retries: int = 3
    retry_delay: int = 2

    def __post_init__(self) -> None:
        if not self.title:
            raise ConfigError("Notification title cannot be empty")
        if not self.dashboard_route.startswith("/"):
            raise ConfigError(f"Dashboard route must start with '/', got '{self.dashboard_route}'")
        if self.auto_close_seconds <= 0:
            raise ConfigError(f"Notification auto_close_seconds must be positive, got {self.auto_close_seconds}")
        for url in self.webhooks:
            if not url.startswith(("http://", "https://")):
                raise ConfigError(f"Notification webhook must start with http:// or https://, got '{url}'")
        if self.max_retries < 0:
            raise ConfigError(f"Notification max_retries must be non-negative, got {self.max_retries}")
        if self.retry_delay < 0:
            raise ConfigError(f"Notification retry_delay must be non-negative, got {self.retry_delay}")


@dataclass(frozen=True)
class ShareConfig:
    """Default content used when sharing the app."""

    title: str = "Mobile Repairwala - Mobile Repair Service"
    text: str = "Professional mobile repair services in Pune with same-day fixes and 6-month warranty."
    url: str = ""  # empty means "the proxy origin"


@dataclass(frozen=True)
class Config:
    """Main configuration container."""

    cache: CacheConfig = field(default_factory=CacheConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    share: ShareConfig = field(default_factory=ShareConfig)


def _as_str_tuple(value: object, key: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' must be a list")
    return tuple(str(item) for item in value)


def _parse_cache_config(data: dict | None) -> CacheConfig:
    """Parse cache configuration section."""
    if data is None:
        return CacheConfig()
    if not isinstance(data, dict):
        raise ConfigError("'cache' section must be a dictionary")

    critical = data.get("critical_resources")
    allowed = data.get("allowed_hosts")

    try:
        fetch_timeout = float(data.get("fetch_timeout", 10.0))
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid cache.fetch_timeout: {data.get('fetch_timeout')}")

    return CacheConfig(
        name_prefix=str(data.get("name_prefix", "fixmyphone")),
        version=str(data.get("version", "1.0.0")),
        critical_resources=(
            _as_str_tuple(critical, "cache.critical_resources") if critical is not None else DEFAULT_CRITICAL_RESOURCES
        ),
        offline_url=str(data.get("offline_url", "/offline.html")),
        allowed_hosts=_as_str_tuple(allowed, "cache.allowed_hosts") if allowed is not None else DEFAULT_ALLOWED_HOSTS,
        api_prefix=str(data.get("api_prefix", "/api/")),
        backend_host=str(data.get("backend_host", "supabase")),
        fetch_timeout=fetch_timeout,
    )


def _parse_proxy_config(data: dict | None) -> ProxyConfig:
    """Parse proxy configuration section."""
    if data is None:
        return ProxyConfig()
    if not isinstance(data, dict):
        raise ConfigError("'proxy' section must be a dictionary")

    return ProxyConfig(
        origin=str(data.get("origin", "")),
        enabled=bool(data.get("enabled", True)),
        host=str(data.get("host", "")),
        port=int(data.get("port", 8080)),
    )


def _parse_database_config(data: dict | None) -> DatabaseConfig:
    """Parse database configuration section."""
    if data is None:
        return DatabaseConfig()
    if not isinstance(data, dict):
        raise ConfigError("'database' section must be a dictionary")

    return DatabaseConfig(path=os.path.expanduser(str(data.get("path", DEFAULT_DB_PATH))))


def _parse_sync_config(data: dict | None) -> SyncConfig:
    """Parse sync configuration section."""
    if data is None:
        return SyncConfig()
    if not isinstance(data, dict):
        raise ConfigError("'sync' section must be a dictionary")

    return SyncConfig(
        tag=str(data.get("tag", "background-repair-submission")),
        endpoint=str(data.get("endpoint", "/api/repair-requests")),
        timeout=int(data.get("timeout", 10)),
    )


def _parse_notification_config(data: dict | None) -> NotificationConfig:
    """Parse notifications configuration section."""
    if data is None:
        return NotificationConfig()
    if not isinstance(data, dict):
        raise ConfigError("'notifications' section must be a dictionary")

    vibrate = data.get("vibrate", [100, 50, 100])
    if not isinstance(vibrate, list):
        raise ConfigError("'notifications.vibrate' must be a list")
    webhooks = data.get("webhooks", [])

    return NotificationConfig(
        title=str(data.get("title", "FixMyPhone Update")),
        default_body=str(data.get("default_body", "Your repair status has been updated")),
        icon=str(data.get("icon", "/icons/icon-192x192.png")),
        badge=str(data.get("badge", "/icons/badge-72x72.png")),
        vibrate=tuple(int(v) for v in vibrate),
        dashboard_route=str(data.get("dashboard_route", "/dashboard")),
        auto_close_seconds=float(data.get("auto_close_seconds", 5.0)),
        webhooks=_as_str_tuple(webhooks, "notifications.webhooks"),
        max_retries=int(data.get("max_retries", 3)),
        retry_delay=int(data.get("retry_delay", 2)),
    )


def _parse_share_config(data: dict | None) -> ShareConfig:
    """Parse share configuration section."""
    if data is None:
        return ShareConfig()
    if not isinstance(data, dict):
        raise ConfigError("'share' section must be a dictionary")

    defaults = ShareConfig()
    return ShareConfig(
        title=str(data.get("title", defaults.title)),
        text=str(data.get("text", defaults.text)),
        url=str(data.get("url", defaults.url)),
    )


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration.

    Supported overrides:
    - FIXMYPHONE_CACHE_VERSION: Override cache.version
    - FIXMYPHONE_FETCH_TIMEOUT: Override cache.fetch_timeout
    - FIXMYPHONE_ORIGIN: Override proxy.origin
    - FIXMYPHONE_PROXY_PORT: Override proxy.port
    - FIXMYPHONE_DB_PATH: Override database.path
    """
    overrides = [
        ("FIXMYPHONE_CACHE_VERSION", "cache", "version", str),
        ("FIXMYPHONE_FETCH_TIMEOUT", "cache", "fetch_timeout", float),
        ("FIXMYPHONE_ORIGIN", "proxy", "origin", str),
        ("FIXMYPHONE_PROXY_PORT", "proxy", "port", int),
        ("FIXMYPHONE_DB_PATH", "database", "path", str),
    ]

    for env_name, section, key, convert in overrides:
        value = os.environ.get(env_name)
        if value is None:
            continue
        if config_data.get(section) is None:
            config_data[section] = {}
        if not isinstance(config_data[section], dict):
            raise ConfigError(f"'{section}' section must be a dictionary")
        config_data[section][key] = convert(value)

    return config_data


def load_config(config_path: str) -> Config:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML configuration: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file: {e}")

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a YAML dictionary")

    try:
        data = _apply_env_overrides(data)
    except ValueError as e:
        raise ConfigError(f"Invalid environment override: {e}")

    return Config(
        cache=_parse_cache_config(data.get("cache")),
        proxy=_parse_proxy_config(data.get("proxy")),
        database=_parse_database_config(data.get("database")),
        sync=_parse_sync_config(data.get("sync")),
        notifications=_parse_notification_config(data.get("notifications")),
        share=_parse_share_config(data.get("share")),
    )
