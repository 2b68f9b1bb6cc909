"""
Centralized configuration management for Social Publish.

This module provides a Pydantic Settings-based configuration system that:
- Validates environment variables at startup
- Groups server, storage and per-platform credentials
- Exposes which integrations are configured
- Supports .env file loading

Usage:
    from socialpublish.config import get_settings

    settings = get_settings()
    if settings.bluesky.is_configured:
        ...
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Server Settings
# =============================================================================


class ServerSettings(BaseSettings):
    """Public URL, port and on-disk locations."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(
        default="http://localhost:3000",
        description="Public URL of this server, used in file links, RSS and OAuth callbacks",
    )
    http_port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Port to listen on",
    )
    db_path: str = Field(
        default="./data/socialpublish.db",
        description="Path of the SQLite database file",
    )
    uploaded_files_path: str = Field(
        default="./data/uploads",
        description="Directory where uploaded images are stored",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


# =============================================================================
# Security Settings
# =============================================================================


class SecuritySettings(BaseSettings):
    """Environment and CORS configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    dev_mode: bool = Field(
        default=False,
        description="Enable development mode",
    )
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def origins_list(self) -> List[str]:
        """Get parsed list of allowed origins."""
        return [
            origin.strip()
            for origin in self.allowed_origins.split(",")
            if origin.strip()
        ]


# =============================================================================
# Platform Settings
# =============================================================================


class BlueskySettings(BaseSettings):
    """Credentials for the Bluesky (AT Protocol) integration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    bsky_service: str = Field(
        default="https://bsky.social",
        description="AT Protocol service (PDS) URL",
    )
    bsky_username: Optional[str] = Field(
        default=None,
        description="Bluesky handle or email",
    )
    bsky_password: Optional[SecretStr] = Field(
        default=None,
        description="Bluesky app password",
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.bsky_username and self.bsky_password)


class MastodonSettings(BaseSettings):
    """Credentials for the Mastodon integration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    mastodon_host: Optional[str] = Field(
        default=None,
        description="Mastodon instance URL, e.g. https://mastodon.social",
    )
    mastodon_access_token: Optional[SecretStr] = Field(
        default=None,
        description="Mastodon application access token",
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.mastodon_host and self.mastodon_access_token)


class TwitterSettings(BaseSettings):
    """OAuth1 consumer credentials and endpoints for Twitter/X."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    twitter_oauth1_consumer_key: Optional[str] = Field(
        default=None,
        description="Twitter OAuth1 consumer key",
    )
    twitter_oauth1_consumer_secret: Optional[SecretStr] = Field(
        default=None,
        description="Twitter OAuth1 consumer secret",
    )

    # Endpoints can be overridden to point at a mock server
    twitter_api_base: str = Field(default="https://api.twitter.com")
    twitter_upload_base: str = Field(default="https://upload.twitter.com")
    twitter_oauth_request_token_url: str = Field(
        default="https://api.twitter.com/oauth/request_token?x_auth_access_type=write",
    )
    twitter_oauth_access_token_url: str = Field(
        default="https://api.twitter.com/oauth/access_token",
    )
    twitter_oauth_authorize_url: str = Field(
        default="https://api.twitter.com/oauth/authorize",
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.twitter_oauth1_consumer_key and self.twitter_oauth1_consumer_secret)


class LinkedInSettings(BaseSettings):
    """OAuth2 client credentials and endpoints for LinkedIn."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    linkedin_client_id: Optional[str] = Field(
        default=None,
        description="LinkedIn OAuth2 client ID",
    )
    linkedin_client_secret: Optional[SecretStr] = Field(
        default=None,
        description="LinkedIn OAuth2 client secret",
    )
    linkedin_authorization_url: str = Field(
        default="https://www.linkedin.com/oauth/v2/authorization",
    )
    linkedin_access_token_url: str = Field(
        default="https://www.linkedin.com/oauth/v2/accessToken",
    )
    linkedin_api_base: str = Field(default="https://api.linkedin.com/v2")

    @property
    def is_configured(self) -> bool:
        return bool(self.linkedin_client_id and self.linkedin_client_secret)


class ThreadsSettings(BaseSettings):
    """Long-lived token and user id for Meta Threads."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    threads_access_token: Optional[SecretStr] = Field(
        default=None,
        description="Threads long-lived access token",
    )
    threads_user_id: Optional[str] = Field(
        default=None,
        description="Threads user id",
    )
    threads_api_base: str = Field(default="https://graph.threads.net")

    @property
    def is_configured(self) -> bool:
        return bool(self.threads_access_token and self.threads_user_id)


# =============================================================================
# Image Processing Settings
# =============================================================================


class ImageSettings(BaseSettings):
    """Bounds applied when optimizing uploaded images."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    image_max_width: int = Field(default=1600, ge=1)
    image_max_height: int = Field(default=1600, ge=1)
    image_max_size_bytes: int = Field(
        default=1_000_000,
        ge=1024,
        description="Largest file size accepted by every platform",
    )
    image_jpeg_quality: int = Field(default=95, ge=40, le=100)


class HttpSettings(BaseSettings):
    """Outbound HTTP client configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    http_client_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for requests to social platforms",
    )


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingSettings(BaseSettings):
    """Configuration for logging."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format_json: bool = Field(
        default=False,
        description="Force JSON log format in development",
    )
    request_logging_enabled: bool = Field(
        default=True,
        description="Enable request logging middleware",
    )


# =============================================================================
# Monitoring Settings (Sentry)
# =============================================================================


class SentrySettings(BaseSettings):
    """Configuration for Sentry error tracking."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking",
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment name",
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry transaction sample rate (0.0 to 1.0)",
    )
    sentry_release: Optional[str] = Field(
        default="socialpublish@1.0.0",
        description="Sentry release version",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Sentry is configured."""
        return bool(self.sentry_dsn)


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """Aggregates all configuration groups."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    server: ServerSettings = Field(default_factory=ServerSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    bluesky: BlueskySettings = Field(default_factory=BlueskySettings)
    mastodon: MastodonSettings = Field(default_factory=MastodonSettings)
    twitter: TwitterSettings = Field(default_factory=TwitterSettings)
    linkedin: LinkedInSettings = Field(default_factory=LinkedInSettings)
    threads: ThreadsSettings = Field(default_factory=ThreadsSettings)
    images: ImageSettings = Field(default_factory=ImageSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    @property
    def is_sentry_configured(self) -> bool:
        return self.sentry.is_configured

    @property
    def is_production(self) -> bool:
        return self.security.is_production

    @property
    def is_dev_mode(self) -> bool:
        return self.security.dev_mode

    @property
    def configured_platforms(self) -> List[str]:
        """Names of the platform integrations that have credentials."""
        platforms = ["rss"]
        for name in ("bluesky", "mastodon", "twitter", "linkedin", "threads"):
            if getattr(self, name).is_configured:
                platforms.append(name)
        return platforms

    def get_config_summary(self) -> dict:
        """
        Get a summary of configuration status for logging.

        Returns configuration status WITHOUT exposing any secrets.
        """
        return {
            "environment": self.security.environment,
            "dev_mode": self.is_dev_mode,
            "base_url": self.server.base_url,
            "platforms_configured": self.configured_platforms,
            "sentry_configured": self.is_sentry_configured,
            "allowed_origins": self.security.origins_list,
            "log_level": self.logging.log_level,
        }


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()


def reload_settings() -> Settings:
    """Clear the cache and return freshly loaded settings."""
    get_settings.cache_clear()
    return get_settings()
