"""
Search Service Configuration Module

Centralized configuration management with Pydantic validation.
All environment variables are validated at startup to catch misconfigurations early.
"""

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from src.common.config import Config as PipelineConfig

logger = logging.getLogger(__name__)


class SearchServiceSettings(BaseSettings):
    """
    Search service configuration with validation.

    All settings can be overridden via environment variables
    (API_SECRET -> api_secret, case-insensitive).
    """

    # === Security ===
    api_secret: Optional[str] = Field(
        default=None,
        min_length=16,
        description="API bearer secret (min 16 chars)"
    )
    cron_secret: Optional[str] = Field(
        default=None,
        description="Bearer secret for the cron prefetch endpoint"
    )
    environment: str = Field(
        default="development",
        description="Environment: development, staging, production"
    )

    # === CORS ===
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins"
    )

    # === MongoDB ===
    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    mongo_db_name: str = Field(
        default="jobs",
        description="MongoDB database name"
    )

    # === Redis (Optional) ===
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for the fast cache (in-memory cache when unset)"
    )

    # === Limits ===
    search_rate_limit_per_minute: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Search requests allowed per caller per minute"
    )
    prefetch_max_profiles: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Resumes warmed per cron prefetch run"
    )

    # === Logging ===
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR")
    log_format: str = Field(default="simple", description="simple or json")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        allowed = {"development", "staging", "production"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of: {', '.join(sorted(allowed))}")
        return v_lower

    @field_validator("api_secret")
    @classmethod
    def validate_secret_strength(cls, v: Optional[str]) -> Optional[str]:
        """Reject well-known weak secrets."""
        if v is None:
            return None
        weak_secrets = {"secret", "password", "12345678901234567", "changeme"}
        if v.lower() in weak_secrets or len(set(v)) < 4:
            raise ValueError("API secret is too weak - use a secure random string")
        return v

    @field_validator("mongodb_uri")
    @classmethod
    def validate_mongodb_uri(cls, v: str) -> str:
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError(f"Invalid MongoDB URI: {v}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in {"simple", "json"}:
            raise ValueError("log_format must be 'simple' or 'json'")
        return v.lower()

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def auth_required(self) -> bool:
        """Auth is required in production or whenever a secret is configured."""
        return self.is_production or self.api_secret is not None

    def validate_production_config(self) -> List[str]:
        """
        Validate configuration is suitable for production.

        Returns list of warning/error messages.
        """
        issues = []

        if self.is_production:
            if not self.api_secret:
                issues.append("CRITICAL: API_SECRET required in production")
            if not self.cron_secret:
                issues.append("WARNING: CRON_SECRET not configured, prefetch endpoint disabled")
            if not self.cors_origins:
                issues.append("WARNING: CORS_ORIGINS not configured")
            if "localhost" in self.mongodb_uri:
                issues.append("WARNING: Using localhost MongoDB in production")

        return issues

    class Config:
        env_prefix = ""
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> SearchServiceSettings:
    """
    Get cached settings instance.

    Settings are loaded once; tests call get_settings.cache_clear() after
    changing the environment.
    """
    return SearchServiceSettings()


def validate_config_on_startup() -> SearchServiceSettings:
    """
    Validate configuration at application startup.

    Raises ValueError with details if config is invalid.
    Logs warnings for non-critical issues.
    """
    try:
        settings = get_settings()
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")

    for issue in settings.validate_production_config():
        if issue.startswith("CRITICAL"):
            raise ValueError(issue)
        logger.warning(issue)

    try:
        PipelineConfig.validate()
    except ValueError as e:
        # Sources degrade (e.g. no LLM search) rather than blocking startup
        logger.warning(f"Pipeline configuration incomplete: {e}")
    logger.info(PipelineConfig.summary())

    logger.info(f"Configuration loaded: environment={settings.environment}")
    logger.info(f"  mongodb_uri={'*****' if 'localhost' not in settings.mongodb_uri else settings.mongodb_uri}")
    logger.info(f"  fast_cache={'redis' if settings.redis_url else 'memory'}")
    logger.info(f"  rate_limit={settings.search_rate_limit_per_minute}/min")
    logger.info(f"  auth_required={settings.auth_required}")
    return settings
