"""Configuration settings for the OAuth2 authorization server using Pydantic Settings.

This module provides type-safe configuration management with automatic validation,
environment variable loading, and documentation generation.
"""

import logging
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = "change-me-in-production"


class Settings(BaseSettings):
    """Central configuration management with Pydantic validation.

    All settings are loaded from environment variables with automatic type conversion
    and validation. Default values are provided for non-critical settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
        validate_default=True,
        populate_by_name=True,
    )

    # ========================================
    # Debug Settings
    # ========================================
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging",
    )

    environment: str = Field(
        default="development",
        pattern="^(development|production|test)$",
        description="Deployment environment (development, production or test)",
    )

    # ========================================
    # Server Settings
    # ========================================
    host: str = Field(
        default="0.0.0.0",
        description="Server host address",
    )

    port: int = Field(
        default=8000,
        ge=1024,
        le=65535,
        description="Server port number",
    )

    # ========================================
    # OAuth2 Settings
    # ========================================
    oauth2_issuer: str | None = Field(
        default=None,
        description="OAuth2 issuer URL (reported as 'iss' on introspection)",
    )

    oauth2_scopes: str = Field(
        default="read,write,profile,admin",
        description="Comma-separated list of valid OAuth2 scopes",
    )

    oauth2_access_token_lifetime: int = Field(
        default=3600,
        ge=60,
        description="Default access token lifetime in seconds",
    )

    oauth2_refresh_token_lifetime: int = Field(
        default=604800,
        ge=60,
        description="Default refresh token lifetime in seconds",
    )

    oauth2_authorization_code_lifetime: int = Field(
        default=600,
        ge=30,
        le=600,
        description="Authorization code lifetime in seconds",
    )

    oauth2_require_pkce_for_public_clients: bool = Field(
        default=True,
        description="Reject authorization requests from public clients without code_challenge",
    )

    oauth2_rotate_refresh_tokens: bool = Field(
        default=True,
        description="Revoke the presented refresh token and issue a new one on every refresh",
    )

    oauth2_allow_custom_scheme_redirects: bool = Field(
        default=False,
        description="Accept custom-scheme redirect URIs (myapp://callback) for native apps",
    )

    # ========================================
    # Storage Settings
    # ========================================
    oauth2_store_backend: str = Field(
        default="memory",
        pattern="^(memory|file)$",
        description="Token store backend (memory or file)",
    )

    oauth2_storage_dir: str = Field(
        default=".oauth_storage",
        description="Directory for the file-backed token store",
    )

    oauth2_cleanup_interval: int = Field(
        default=300,
        ge=0,
        le=86400,
        description="Seconds between expired code/token sweeps (0 disables the sweeper)",
    )

    # ========================================
    # Client Secret Hashing
    # ========================================
    oauth2_secret_hash_scheme: str = Field(
        default="argon2",
        description="passlib scheme used to hash client secrets",
    )

    argon2_time_cost: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Argon2 time cost (iterations)",
    )

    argon2_memory_cost: int = Field(
        default=65536,
        ge=32,
        description="Argon2 memory cost in KiB (8 KiB per lane, passlib uses 4 lanes)",
    )

    # ========================================
    # End-User Session Settings
    # ========================================
    jwt_secret_key: str = Field(
        default=DEFAULT_JWT_SECRET,
        description="Secret used to verify end-user session JWTs",
    )

    jwt_algorithm: str = Field(
        default="HS256",
        description="Algorithm of end-user session JWTs",
    )

    jwt_issuer: str | None = Field(
        default=None,
        description="Expected 'iss' claim of end-user session JWTs (not checked when unset)",
    )

    # ========================================
    # Validators
    # ========================================
    @field_validator("oauth2_issuer", mode="before")
    @classmethod
    def set_oauth2_issuer(cls, v: str | None, info: Any) -> str:
        """Set OAuth2 issuer default from host and port if not provided."""
        if v:
            return v.rstrip("/")
        # Access other field values during validation
        host = info.data.get("host", "0.0.0.0")
        port = info.data.get("port", 8000)
        return f"https://{host}:{port}"

    @field_validator("oauth2_secret_hash_scheme")
    @classmethod
    def check_hash_scheme(cls, v: str) -> str:
        """Only memory-hard schemes are accepted for client secrets."""
        if v not in ("argon2", "scrypt"):
            msg = f"Unsupported secret hash scheme: {v}"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def check_production_secrets(self) -> "Settings":
        """Refuse to start in production with the default JWT secret."""
        if self.environment == "production" and self.jwt_secret_key == DEFAULT_JWT_SECRET:
            msg = "JWT_SECRET_KEY must be set in production"
            raise ValueError(msg)
        return self

    # ========================================
    # Helper Methods
    # ========================================
    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def get_oauth2_scopes_list(self) -> list[str]:
        """Get OAuth2 scopes as a list."""
        return [s.strip() for s in self.oauth2_scopes.split(",") if s.strip()]

    def get_secret_hash_options(self) -> dict[str, Any]:
        """Get passlib CryptContext keyword options for the configured scheme."""
        if self.oauth2_secret_hash_scheme == "argon2":
            return {
                "argon2__time_cost": self.argon2_time_cost,
                "argon2__memory_cost": self.argon2_memory_cost,
            }
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Export settings as a dictionary (safe version without secrets)."""
        return {
            "debug": self.debug,
            "environment": self.environment,
            "host": self.host,
            "port": self.port,
            "oauth2_issuer": self.oauth2_issuer,
            "oauth2_scopes": self.get_oauth2_scopes_list(),
            "oauth2_access_token_lifetime": self.oauth2_access_token_lifetime,
            "oauth2_refresh_token_lifetime": self.oauth2_refresh_token_lifetime,
            "oauth2_authorization_code_lifetime": self.oauth2_authorization_code_lifetime,
            "oauth2_require_pkce_for_public_clients": self.oauth2_require_pkce_for_public_clients,
            "oauth2_rotate_refresh_tokens": self.oauth2_rotate_refresh_tokens,
            "oauth2_store_backend": self.oauth2_store_backend,
            "oauth2_cleanup_interval": self.oauth2_cleanup_interval,
            "oauth2_secret_hash_scheme": self.oauth2_secret_hash_scheme,
            "jwt_algorithm": self.jwt_algorithm,
            "has_jwt_issuer": bool(self.jwt_issuer),
        }


# Singleton pattern with proper typing
_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
        logger.info("Settings initialized from environment")
        logger.debug("Token store backend: %s", _settings_instance.oauth2_store_backend)
        if _settings_instance.jwt_secret_key == DEFAULT_JWT_SECRET:
            logger.warning(
                "JWT_SECRET_KEY is not set. End-user sessions use the development secret.",
            )
    return _settings_instance


def reset_settings() -> None:
    """Reset settings instance (useful for testing)."""
    global _settings_instance
    _settings_instance = None
