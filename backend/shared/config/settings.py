"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    # Remote store. Empty means "unconfigured": the gateway starts offline.
    database_url: str = ""
    database_connect_timeout: int = 10

    # Realtime change feed. Empty disables subscriptions.
    redis_url: str = ""
    redis_socket_timeout: int = 5
    realtime_channel: str = "pos:db-changes"

    # Local fallback store (one JSON file per key)
    offline_store_dir: str = ".pos_offline"
    offline_key_prefix: str = "offline_"

    # Transport circuit breaker
    # A single connection failure is enough to switch to offline mode
    transport_failure_threshold: int = 1
    transport_recovery_timeout: float = 30.0

    # Reconciliation
    reconcile_policy: Literal["snapshot", "versioned"] = "snapshot"
    reconcile_interval_seconds: float = 0.0  # 0 = only on start and on notifications

    # Operational defaults
    default_site_id: str = "sede-principal"

    # Emergency support credential. Disabled unless both values are set.
    # master_password_hash must be a bcrypt hash, never a plain password.
    master_username: str = ""
    master_password_hash: str = ""

    # HTTP surface
    api_port: int = 8000
    allowed_origins: str = ""

    # Environment
    environment: str = "development"
    debug: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def remote_configured(self) -> bool:
        """True when a remote store URL is configured."""
        return bool(self.database_url.strip())

    @property
    def realtime_configured(self) -> bool:
        """True when a Redis URL is configured for change notifications."""
        return bool(self.redis_url.strip())

    @property
    def master_credential_enabled(self) -> bool:
        return bool(self.master_username and self.master_password_hash)

    def cors_origins(self) -> list[str]:
        """Parse ALLOWED_ORIGINS, falling back to local development origins."""
        if self.allowed_origins:
            return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]

    def validate_production_secrets(self) -> list[str]:
        """
        Validate configuration for production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.environment == "production":
            if self.debug:
                errors.append("DEBUG must be False in production")

            if self.master_credential_enabled:
                errors.append(
                    "MASTER_USERNAME/MASTER_PASSWORD_HASH must not be set in production"
                )

            if self.master_password_hash and not self.master_password_hash.startswith(
                ("$2a$", "$2b$", "$2y$")
            ):
                errors.append("MASTER_PASSWORD_HASH must be a bcrypt hash")

            if not self.remote_configured:
                errors.append(
                    "DATABASE_URL must be set in production (offline mode is for tills only)"
                )

            if not self.allowed_origins:
                errors.append(
                    "ALLOWED_ORIGINS must be set in production (comma-separated list of allowed domains)"
                )

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()
