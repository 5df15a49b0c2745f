"""
Centralized configuration management for the Leadhub backend.
Loads and validates all environment variables.
"""
import os
from typing import Optional


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        # Database
        # Database URL with fallback for development
        self.DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./leadhub_dev.db")
        self.DEBUG_SQL = os.getenv("DEBUG_SQL", "false").lower() in ("true", "1", "yes")

        # Environment
        self.ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

        # CORS Configuration (admin dashboard origins)
        allowed_origins_str = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000")
        self.ALLOWED_ORIGINS = [origin.strip() for origin in allowed_origins_str.split(",") if origin.strip()]

        # Redis Configuration (distributed lead locks + event bus)
        self.REDIS_URL: Optional[str] = os.getenv("REDIS_URL") or os.getenv("UPSTASH_REDIS_URL")

        # Lead locking
        self.LEAD_LOCK_TIMEOUT_SECONDS = int(os.getenv("LEAD_LOCK_TIMEOUT_SECONDS", "30"))
        self.LEAD_LOCK_WAIT_SECONDS = float(os.getenv("LEAD_LOCK_WAIT_SECONDS", "10"))

        # Assignment rules
        self.BASIC_PARTNER_LEAD_LIMIT = int(os.getenv("BASIC_PARTNER_LEAD_LIMIT", "3"))

        # Observability Configuration
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        self.OBS_REDACT_PII = os.getenv("OBS_REDACT_PII", "true").lower() in ("true", "1", "yes")

        # Validate required settings
        self._validate_settings()

    def _validate_settings(self):
        """Validate required settings with environment-aware relaxations."""
        if self.is_production and self.DATABASE_URL.startswith("sqlite"):
            raise ValueError("DATABASE_URL must point to a real database in production, not sqlite")

        if self.BASIC_PARTNER_LEAD_LIMIT < 1:
            raise ValueError("BASIC_PARTNER_LEAD_LIMIT must be at least 1")

        if self.LEAD_LOCK_TIMEOUT_SECONDS < 1:
            raise ValueError("LEAD_LOCK_TIMEOUT_SECONDS must be at least 1")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"

    def is_redis_configured(self) -> bool:
        """Check if a Redis URL is available for locks and events."""
        return bool(self.REDIS_URL)


# Global settings instance
settings = Settings()
