"""
Site Publisher - Configuration Settings

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables and .env files.

Environment variables can be set directly or via a .env file in the project root.
All settings have sensible defaults for development, but production deployments
should explicitly set the hosting site and credentials.

Usage:
    from config.settings import get_settings

    settings = get_settings()
    print(settings.hosting_site_id)
"""

import re
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Determine Project Root
# =============================================================================

def get_project_root() -> Path:
    """Get the project root directory."""
    # Start from this file's directory and go up to find the project root
    current = Path(__file__).resolve().parent
    while current != current.parent:
        if (current / "pyproject.toml").exists():
            return current
        current = current.parent
    # Fallback to the config directory's parent
    return Path(__file__).resolve().parent.parent


PROJECT_ROOT = get_project_root()

CHANNEL_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{0,62}$")


# =============================================================================
# Settings Classes
# =============================================================================

class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden by environment variables.
    Prefix is not used to keep variable names simple.

    Required settings (must be set before deploying):
        - HOSTING_SITE_ID
        - HOSTING_ACCESS_TOKEN

    Optional settings have sensible defaults.
    """

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # -------------------------------------------------------------------------
    # Environment
    # -------------------------------------------------------------------------
    environment: str = Field(
        default="development",
        description="Application environment (development, test, staging, production)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode (never enable in production)",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_file: Optional[str] = Field(
        default="logs/app.log",
        description="Log file path (relative to project root or absolute)",
    )
    log_format: str = Field(
        default="json",
        description="Log format (json or text)",
    )
    log_max_bytes: int = Field(
        default=10_485_760,  # 10 MB
        description="Maximum log file size before rotation",
    )
    log_backup_count: int = Field(
        default=5,
        description="Number of backup log files to keep",
    )

    # -------------------------------------------------------------------------
    # Hosting Provider
    # -------------------------------------------------------------------------
    hosting_site_id: Optional[str] = Field(
        default=None,
        description="Site identifier on the hosting provider",
    )
    hosting_api_base_url: str = Field(
        default="https://firebasehosting.googleapis.com/v1beta1",
        description="Base URL of the hosting provider REST API",
    )
    hosting_access_token: Optional[str] = Field(
        default=None,
        description="Bearer token for the hosting API (refreshed externally)",
    )
    hosting_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for each hosting API call",
    )
    hosting_upload_concurrency: int = Field(
        default=8,
        description="Maximum number of file uploads in flight at once",
    )
    hosting_compression_level: int = Field(
        default=9,
        description="gzip compression level used when packaging files (1-9)",
    )

    # -------------------------------------------------------------------------
    # Channels
    # -------------------------------------------------------------------------
    preview_channel_id: str = Field(
        default="preview",
        description="Channel used for preview deployments",
    )
    preview_channel_ttl_seconds: int = Field(
        default=604_800,  # 7 days
        description="Time-to-live applied when the preview channel is created",
    )
    html_cache_control: str = Field(
        default="no-cache",
        description="Cache-Control header served for HTML files",
    )
    asset_cache_control: str = Field(
        default="public, max-age=3600",
        description="Cache-Control header served for CSS and JS files",
    )
    release_message_live: str = Field(
        default="Deploy from Site Publisher",
        description="Release message attached to live releases",
    )
    release_message_preview: str = Field(
        default="Preview from Site Publisher",
        description="Release message attached to preview releases",
    )
    channel_url_template: str = Field(
        default="https://{site_id}--{channel_id}.web.app/",
        description="Fallback URL for a preview channel when the provider omits one",
    )
    live_url_template: str = Field(
        default="https://{site_id}.web.app/",
        description="Fallback URL for the live channel when the provider omits one",
    )

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------
    output_directory: str = Field(
        default="public_html",
        description="Directory holding the generated static site",
    )

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is valid."""
        valid_envs = {"development", "test", "staging", "production"}
        v_lower = v.lower()
        if v_lower not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of {valid_envs}")
        return v_lower

    @field_validator("hosting_compression_level")
    @classmethod
    def validate_compression_level(cls, v: int) -> int:
        """gzip only accepts levels 1 through 9."""
        if not 1 <= v <= 9:
            raise ValueError(f"Invalid compression level: {v}. Must be between 1 and 9")
        return v

    @field_validator("hosting_upload_concurrency")
    @classmethod
    def validate_upload_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("hosting_upload_concurrency must be at least 1")
        return v

    @field_validator("preview_channel_id")
    @classmethod
    def validate_preview_channel_id(cls, v: str) -> str:
        """Channel ids are lowercase letters, digits and dashes."""
        v_lower = v.lower()
        if v_lower == "live":
            raise ValueError("preview_channel_id cannot be 'live'")
        if not CHANNEL_ID_PATTERN.match(v_lower):
            raise ValueError(f"Invalid channel id: {v}")
        return v_lower

    @field_validator("hosting_api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def is_hosting_configured(self) -> bool:
        """Check if hosting deployment is fully configured."""
        return all([self.hosting_site_id, self.hosting_access_token])

    @property
    def project_root(self) -> Path:
        """Get the project root directory."""
        return PROJECT_ROOT

    def get_log_file_path(self) -> Optional[Path]:
        """Get the absolute path to the log file."""
        if not self.log_file:
            return None
        log_path = Path(self.log_file)
        if log_path.is_absolute():
            return log_path
        return PROJECT_ROOT / log_path

    def get_output_path(self) -> Path:
        """Get the absolute path to the generated site directory."""
        output_path = Path(self.output_directory)
        if not output_path.is_absolute():
            output_path = PROJECT_ROOT / output_path
        return output_path


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Settings are cached after first load. To reload settings (e.g., in tests),
    call get_settings.cache_clear() first.

    Returns:
        Settings instance with all configuration loaded
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache, forcing reload on next access."""
    get_settings.cache_clear()


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "PROJECT_ROOT",
]
