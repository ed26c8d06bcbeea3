"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Database - defaults to relative path for Docker, override via env for local dev
    database_url: str = "sqlite:///./data/garment_erp.db"

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True

    # ==========================================================================
    # Reconciliation
    # ==========================================================================
    # How out-of-range pick/dispatch quantities are handled:
    #   clamp  - clamp into the valid range and log a warning
    #   reject - raise QuantityOutOfRangeError
    quantity_policy: Literal["clamp", "reject"] = "clamp"

    # Challan numbers look like DC-20240131-0001
    challan_prefix: str = "DC"

    @field_validator("challan_prefix")
    @classmethod
    def validate_challan_prefix(cls, v: str) -> str:
        v = v.strip().upper()
        if not v or len(v) > 10:
            raise ValueError("challan_prefix must be 1-10 characters")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Warn about development-only settings in production mode."""
        import warnings

        if not self.debug:
            localhost_patterns = ["localhost", "127.0.0.1", "0.0.0.0"]
            origins = [o.strip() for o in self.cors_origins.split(",")]
            localhost_origins = [o for o in origins if any(p in o for p in localhost_patterns)]
            if localhost_origins:
                warnings.warn(
                    f"CORS origins contain localhost URLs in production mode: {localhost_origins}. "
                    "Remove localhost origins for production by setting CORS_ORIGINS environment variable.",
                    UserWarning,
                    stacklevel=2,
                )

        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list, filtering localhost in production."""
        if self.cors_origins == "*":
            return ["*"]

        origins = [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

        if not self.debug:
            localhost_patterns = ["localhost", "127.0.0.1", "0.0.0.0"]
            origins = [o for o in origins if not any(p in o for p in localhost_patterns)]

        return origins


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
