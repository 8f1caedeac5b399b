"""
LiveMark Configuration Module.

Centralizes all configuration settings using Pydantic Settings.
Requires Python 3.11+.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file into os.environ at module import time
# This ensures nested BaseSettings classes can read the values
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Try current working directory
    load_dotenv()


class ServerSettings(BaseSettings):
    """HTTP server and path confinement settings."""

    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3000, ge=1, le=65535)
    root: Path | None = Field(
        default=None,
        description="Only files under this directory may be viewed",
    )
    default_file: Path | None = Field(
        default=None,
        description="File served when a request carries no path",
    )

    @field_validator("root", "default_file", mode="before")
    @classmethod
    def parse_optional_path(cls, v: str | Path | None) -> Path | None:
        """Treat empty strings from the environment as unset."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return Path(v).expanduser()


class WatcherSettings(BaseSettings):
    """File watcher and push channel settings."""

    model_config = SettingsConfigDict(env_prefix="WATCHER_")

    debounce_delay_ms: int = Field(default=200, ge=10, le=5000)
    keepalive_interval_s: float = Field(default=30.0, ge=1.0)
    channel_queue_size: int = Field(default=64, ge=1, le=10_000)
    stop_timeout_s: float = Field(default=5.0, ge=0.1)


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="json")  # "json" or "console"


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="LiveMark")
    app_version: str = Field(default="0.1.0")
    environment: str = Field(default="development")

    # Sub-settings
    server: ServerSettings = Field(default_factory=ServerSettings)
    watcher: WatcherSettings = Field(default_factory=WatcherSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment.lower() in ("production", "prod")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns singleton instance of Settings for performance.
    Use dependency injection in FastAPI routes.
    """
    return Settings()


# Type alias for dependency injection
SettingsDep = Annotated[Settings, Field(default_factory=get_settings)]
