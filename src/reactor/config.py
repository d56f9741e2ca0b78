"""Configuration system for reactor."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

VALID_LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass
class InventoryConfig:
    """Process inventory configuration."""

    cache_timeout: float = 5.0  # Seconds a snapshot stays fresh
    scan_timeout: float = 5.0  # Bound on the ps table scan
    service_timeout: float = 1.0  # Bound on each launchctl query
    lsof_timeout: float = 2.0  # Bound on the lsof path fallback
    icon_preload_count: int = 20  # Top-N by CPU whose icons are warmed after a scan
    refresh_after_kill: float = 1.0  # Delay before the post-termination refresh
    enhanced_metadata: bool = False  # Attach start time, parent pid and user to records


@dataclass
class PreferencesConfig:
    """User preferences consumed by the inventory views."""

    refresh_interval: int = 1  # Seconds between live refreshes (minimum 1)
    show_system_processes: bool = True  # Include system daemons and kernel rows


@dataclass
class LoggingConfig:
    """Log output configuration."""

    level: str = "info"
    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


@dataclass
class TypeColors:
    """Rich color per process type."""

    user_application: str = "blue"
    system_application: str = "green"
    background_task: str = "dark_orange"
    user_daemon: str = "purple"
    system_daemon: str = "red"
    kernel: str = "grey50"
    unknown: str = "default"


@dataclass
class TUIConfig:
    """TUI-specific configuration."""

    colors: TypeColors = field(default_factory=TypeColors)
    category_limit: int = 5  # Rows shown per category before "... and N more"
    command_truncate_length: int = 32  # Max chars for the process column


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

    inventory: InventoryConfig = field(default_factory=InventoryConfig)
    preferences: PreferencesConfig = field(default_factory=PreferencesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    tui: TUIConfig = field(default_factory=TUIConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "reactor"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs and other expendable persistent state."""
        return Path.home() / ".local" / "state" / "reactor"

    @property
    def log_path(self) -> Path:
        """Log file path.

        Logs are expendable persistent state, so they go in XDG_STATE_HOME.
        """
        return self.state_dir / "reactor.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("inventory", "preferences", "logging", "tui"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() on an empty file agree.

        Raises:
            ValueError: If the file cannot be parsed or holds invalid values.
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

        return cls(
            inventory=_load_inventory_config(data.get("inventory", {})),
            preferences=_load_preferences_config(data.get("preferences", {})),
            logging=_load_logging_config(data.get("logging", {})),
            tui=_load_tui_config(data.get("tui", {})),
        )


def _number(data: dict, key: str, default: float, kind: type = float):
    """Read a numeric setting, raising ValueError when it is not a number."""
    value = data.get(key, default)
    if isinstance(value, bool):
        raise ValueError(f"{key} must be a number, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a number, got {value!r}") from None


def _load_inventory_config(data: dict) -> InventoryConfig:
    """Load inventory config from TOML data, using dataclass defaults for missing fields."""
    d = InventoryConfig()
    config = InventoryConfig(
        cache_timeout=_number(data, "cache_timeout", d.cache_timeout),
        scan_timeout=_number(data, "scan_timeout", d.scan_timeout),
        service_timeout=_number(data, "service_timeout", d.service_timeout),
        lsof_timeout=_number(data, "lsof_timeout", d.lsof_timeout),
        icon_preload_count=_number(data, "icon_preload_count", d.icon_preload_count, int),
        refresh_after_kill=_number(data, "refresh_after_kill", d.refresh_after_kill),
        enhanced_metadata=data.get("enhanced_metadata", d.enhanced_metadata),
    )

    for name in ("cache_timeout", "scan_timeout", "service_timeout", "lsof_timeout"):
        value = getattr(config, name)
        if value <= 0:
            raise ValueError(f"{name} must be > 0, got {value}")
    if config.icon_preload_count < 0:
        raise ValueError(f"icon_preload_count must be >= 0, got {config.icon_preload_count}")
    if config.refresh_after_kill < 0:
        raise ValueError(f"refresh_after_kill must be >= 0, got {config.refresh_after_kill}")
    return config


def _load_preferences_config(data: dict) -> PreferencesConfig:
    """Load preferences from TOML data.

    refresh_interval is clamped to at least one second rather than rejected.
    """
    d = PreferencesConfig()
    return PreferencesConfig(
        refresh_interval=max(1, _number(data, "refresh_interval", d.refresh_interval, int)),
        show_system_processes=data.get("show_system_processes", d.show_system_processes),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    d = LoggingConfig()
    level = str(data.get("level", d.level)).lower()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level!r}. Must be one of {VALID_LOG_LEVELS}")
    return LoggingConfig(
        level=level,
        log_max_bytes=_number(data, "log_max_bytes", d.log_max_bytes, int),
        log_backup_count=_number(data, "log_backup_count", d.log_backup_count, int),
    )


def _load_tui_config(data: dict) -> TUIConfig:
    """Load TUI config from TOML data, including the nested [tui.colors] table."""
    tui_defaults = TUIConfig()
    colors_data = data.get("colors", {})
    c = TypeColors()

    category_limit = _number(data, "category_limit", tui_defaults.category_limit, int)
    if category_limit < 1:
        raise ValueError(f"category_limit must be >= 1, got {category_limit}")

    return TUIConfig(
        colors=TypeColors(
            user_application=colors_data.get("user_application", c.user_application),
            system_application=colors_data.get("system_application", c.system_application),
            background_task=colors_data.get("background_task", c.background_task),
            user_daemon=colors_data.get("user_daemon", c.user_daemon),
            system_daemon=colors_data.get("system_daemon", c.system_daemon),
            kernel=colors_data.get("kernel", c.kernel),
            unknown=colors_data.get("unknown", c.unknown),
        ),
        category_limit=category_limit,
        command_truncate_length=_number(
            data, "command_truncate_length", tui_defaults.command_truncate_length, int
        ),
    )
