"""
Configuration management using Pydantic Settings.

Configuration is loaded from (highest priority first):
1. Environment variables (FULLFOCUS_*, nested with "__")
2. ~/.fullfocus/config.yaml

User preferences edited at runtime (lead time, enabled calendars) live in
the SQLite preference store, not here.
"""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    InitSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


def get_config_dir() -> Path:
    """Get the configuration directory (~/.fullfocus/ or $FULLFOCUS_HOME)."""
    override = os.environ.get("FULLFOCUS_HOME")
    config_dir = Path(override).expanduser() if override else Path.home() / ".fullfocus"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def load_yaml_config() -> dict[str, Any]:
    """Load configuration from YAML file."""
    config_file = get_config_dir() / "config.yaml"
    if config_file.exists():
        try:
            # Read with UTF-8 encoding, handle BOM
            content = config_file.read_text(encoding="utf-8-sig")
            return yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            print(f"Error parsing config file {config_file}: {e}")
            raise
    return {}


class MonitorSettings(BaseModel):
    """Polling behaviour of the calendar monitor."""

    poll_interval_seconds: int = Field(default=10, ge=1, description="Seconds between polls")
    lookahead_hours: int = Field(default=8, ge=1, description="Look-ahead window in hours")
    change_check_seconds: int = Field(
        default=5,
        ge=1,
        description="How often providers that can't push changes are checked",
    )


class AlertSettings(BaseModel):
    """How alerts are shown."""

    backend: Literal["fullscreen", "desktop", "console"] = Field(
        default="fullscreen",
        description="Alert surface: full-screen windows, desktop notification or console panel",
    )
    display_seconds: int = Field(
        default=60,
        ge=1,
        description="Seconds a desktop or console alert stays up before dismissing itself",
    )
    default_lead_time_minutes: int = Field(
        default=1,
        ge=1,
        le=30,
        description="Lead time used until the user picks one",
    )


class ProviderSettings(BaseModel):
    """Which calendar source to read."""

    kind: Literal["macos", "file"] = Field(
        default="macos",
        description="Calendar source: macOS Calendar.app or a YAML file",
    )
    events_file: Path = Field(
        default_factory=lambda: get_config_dir() / "events.yaml",
        description="YAML events file used by the 'file' provider",
    )
    timeout: int = Field(default=20, description="osascript timeout in seconds")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="FULLFOCUS_",
        env_nested_delimiter="__",
    )

    # Sub-settings
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    alerts: AlertSettings = Field(default_factory=AlertSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)

    # Paths
    data_dir: Path = Field(
        default_factory=get_config_dir,
        description="Data directory (~/.fullfocus/)",
    )
    config_path: Path | None = Field(default=None, description="Path to config file")
    db_path: Path | None = Field(default=None, description="Path to SQLite database")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Path | None = Field(
        default=None,
        description="Log file path (defaults to <data_dir>/daemon.log)",
    )

    @model_validator(mode="after")
    def _derive_paths(self) -> "Settings":
        if self.config_path is None:
            self.config_path = self.data_dir / "config.yaml"
        if self.db_path is None:
            self.db_path = self.data_dir / "fullfocus.db"
        if self.log_file is None:
            self.log_file = self.data_dir / "daemon.log"
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        yaml_settings = InitSettingsSource(settings_cls, init_kwargs=load_yaml_config())
        return init_settings, env_settings, yaml_settings

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from YAML and environment."""
        return cls()


def load_settings() -> Settings:
    """Load settings from the config file and environment."""
    return Settings.load()


DEFAULT_CONFIG = """# FullFocus Configuration

monitor:
  poll_interval_seconds: 10   # how often the calendar is re-read
  lookahead_hours: 8          # how far ahead to look for the next event
  change_check_seconds: 5     # file provider change detection

alerts:
  backend: fullscreen         # or 'desktop' or 'console'
  display_seconds: 60
  default_lead_time_minutes: 1

provider:
  kind: macos                 # or 'file' to read events.yaml
  # events_file: ~/.fullfocus/events.yaml

log_level: INFO
"""


def create_default_config(overwrite: bool = False) -> Path | None:
    """Create a default configuration file. Returns its path when written."""
    config_file = get_config_dir() / "config.yaml"

    if config_file.exists() and not overwrite:
        return None

    config_file.write_text(DEFAULT_CONFIG, encoding="utf-8")
    return config_file
