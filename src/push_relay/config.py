"""Configuration system for push-relay."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from push_relay import __version__

VALID_URGENCIES = {"low", "normal", "critical"}


@dataclass
class RelayConfig:
    """Streaming session and reconnect configuration."""

    websocket_url: str = "wss://client.pushover.net/push"
    read_timeout: float = 95.0  # Seconds to wait for a frame before reconnecting
    # Backoff between failed attempts
    backoff_floor: float = 10.0
    backoff_ceiling: float = 60.0
    backoff_step: float = 10.0
    # Pause after an error frame; never grows the backoff. 0 reconnects at once.
    recover_delay: float = 1.0


@dataclass
class ApiConfig:
    """HTTP API configuration."""

    base_url: str = "https://api.pushover.net"
    timeout: float = 30.0  # Request timeout (seconds)
    user_agent: str = f"push-relay/{__version__}"


@dataclass
class NotificationsConfig:
    """Desktop notification configuration."""

    enabled: bool = True
    app_name: str = "push-relay"
    expire_ms: int = 0  # notify-send -t; 0 leaves it to the notification server
    high_priority_urgency: str = "critical"  # Urgency for priority >= 1


@dataclass
class SystemConfig:
    """Log file configuration."""

    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    relay: RelayConfig = field(default_factory=RelayConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    system: SystemConfig = field(default_factory=SystemConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "push-relay"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def cache_dir(self) -> Path:
        """Cache directory for expendable downloaded data."""
        return Path.home() / ".cache" / "push-relay"

    @property
    def icon_dir(self) -> Path:
        """Icon cache directory."""
        return self.cache_dir / "icons"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "push-relay"

    @property
    def log_path(self) -> Path:
        """Relay log path."""
        return self.state_dir / "relay.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ["relay", "api", "notifications", "system"]:
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() on a missing file are identical.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        sys_data = data.get("system", {})
        sys_defaults = defaults.system

        return cls(
            relay=_load_relay_config(data.get("relay", {})),
            api=_load_api_config(data.get("api", {})),
            notifications=_load_notifications_config(data.get("notifications", {})),
            system=SystemConfig(
                log_max_bytes=sys_data.get("log_max_bytes", sys_defaults.log_max_bytes),
                log_backup_count=sys_data.get("log_backup_count", sys_defaults.log_backup_count),
            ),
        )


def _load_relay_config(data: dict) -> RelayConfig:
    """Load relay config from TOML data, validating timing values."""
    d = RelayConfig()

    read_timeout = data.get("read_timeout", d.read_timeout)
    floor = data.get("backoff_floor", d.backoff_floor)
    ceiling = data.get("backoff_ceiling", d.backoff_ceiling)
    step = data.get("backoff_step", d.backoff_step)
    recover_delay = data.get("recover_delay", d.recover_delay)

    if read_timeout <= 0:
        raise ValueError(f"read_timeout must be > 0, got {read_timeout}")
    if floor <= 0:
        raise ValueError(f"backoff_floor must be > 0, got {floor}")
    if ceiling < floor:
        raise ValueError(f"backoff_ceiling ({ceiling}) must be >= backoff_floor ({floor})")
    if step <= 0:
        raise ValueError(f"backoff_step must be > 0, got {step}")
    if recover_delay < 0:
        raise ValueError(f"recover_delay must be >= 0, got {recover_delay}")

    return RelayConfig(
        websocket_url=data.get("websocket_url", d.websocket_url),
        read_timeout=read_timeout,
        backoff_floor=floor,
        backoff_ceiling=ceiling,
        backoff_step=step,
        recover_delay=recover_delay,
    )


def _load_api_config(data: dict) -> ApiConfig:
    """Load API config from TOML data."""
    d = ApiConfig()
    return ApiConfig(
        base_url=data.get("base_url", d.base_url),
        timeout=data.get("timeout", d.timeout),
        user_agent=data.get("user_agent", d.user_agent),
    )


def _load_notifications_config(data: dict) -> NotificationsConfig:
    """Load notifications config from TOML data."""
    d = NotificationsConfig()
    urgency = data.get("high_priority_urgency", d.high_priority_urgency)
    if urgency not in VALID_URGENCIES:
        raise ValueError(
            f"Invalid high_priority_urgency: {urgency!r}. Must be one of {VALID_URGENCIES}"
        )
    return NotificationsConfig(
        enabled=data.get("enabled", d.enabled),
        app_name=data.get("app_name", d.app_name),
        expire_ms=data.get("expire_ms", d.expire_ms),
        high_priority_urgency=urgency,
    )
