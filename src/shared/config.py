"""Configuration management for the YouTube MCP Gateway.

Supports YAML configuration files and environment variable overrides.
Configuration is loaded once and cached; components receive the values
they need at construction time.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_OPEN_PATHS = [
    "/mcp",
    "/mcp/",
    "/mcp/manifest",
    "/mcp/manifest.json",
    "/manifest",
    "/manifest.json",
    "/health",
]


class ServerSettings(BaseSettings):
    """HTTP server and protocol configuration."""
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    name: str = Field(default="youtube-mcp-gateway")
    version: str = Field(default="1.0.0")
    protocol_version: str = Field(default="2024-11-05")

    # Security
    auth_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MCP_AUTH_TOKEN", "MCP_SERVER_AUTH_TOKEN"),
        description="Shared bearer secret for protected routes",
    )
    require_auth: bool = Field(default=True)
    open_paths: list[str] = Field(default_factory=lambda: list(DEFAULT_OPEN_PATHS))

    # Execution
    tool_timeout_seconds: float = Field(default=30.0, gt=0)
    enable_audit: bool = Field(default=True)
    audit_log_path: str = Field(default="logs/audit.log")

    model_config = SettingsConfigDict(
        env_prefix="MCP_SERVER_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )


class YouTubeSettings(BaseSettings):
    """YouTube Data API configuration."""
    api_key: Optional[str] = Field(default=None, description="YouTube Data API key")
    base_url: str = Field(default="https://www.googleapis.com/youtube/v3")
    timeout_seconds: float = Field(default=10.0, gt=0)
    default_limit: int = Field(default=10, gt=0)
    max_limit: int = Field(default=50, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="YOUTUBE_",
        env_file=".env",
        extra="ignore"
    )


class DatasetSettings(BaseSettings):
    """Tabular video dataset configuration."""
    csv_url: Optional[str] = Field(
        default=None,
        description="http(s) URL or local path of the CSV export"
    )
    timeout_seconds: float = Field(default=15.0, gt=0)
    cache_ttl_seconds: float = Field(default=0, ge=0, description="0 reloads on every call")
    search_limit: int = Field(default=10, gt=0)
    latest_limit: int = Field(default=10, gt=0)
    category_limit: int = Field(default=10, gt=0)
    max_limit: int = Field(default=50, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="DATASET_",
        env_file=".env",
        extra="ignore"
    )


class KeepaliveSettings(BaseSettings):
    """Periodic self-ping configuration. Disabled when no URL is set."""
    url: Optional[str] = Field(default=None)
    interval_seconds: float = Field(default=600.0, gt=0)
    timeout_seconds: float = Field(default=10.0, gt=0)
    attempts: int = Field(default=3, gt=0)
    backoff_seconds: float = Field(default=1.0, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="KEEPALIVE_",
        env_file=".env",
        extra="ignore"
    )


SECTIONS: dict[str, type[BaseSettings]] = {
    "server": ServerSettings,
    "youtube": YouTubeSettings,
    "dataset": DatasetSettings,
    "keepalive": KeepaliveSettings,
}


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Component settings
    server: ServerSettings = Field(default_factory=ServerSettings)
    youtube: YouTubeSettings = Field(default_factory=YouTubeSettings)
    dataset: DatasetSettings = Field(default_factory=DatasetSettings)
    keepalive: KeepaliveSettings = Field(default_factory=KeepaliveSettings)

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """
        Load settings from a YAML file, falling back to defaults.

        Each section is built as its own settings object so environment
        variables still fill the keys the file leaves out.
        """
        config = load_yaml_config(path)
        for key, section in SECTIONS.items():
            if isinstance(config.get(key), dict):
                config[key] = section(**config[key])
        return cls(**config)


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    config_path = os.environ.get("MCP_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(config_path)
