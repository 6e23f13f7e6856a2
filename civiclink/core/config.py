"""
civiclink/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, provider tokens, etc.)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, validator
from pydantic_settings import BaseSettings
from typing import Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="civiclink",
        description="MongoDB database name"
    )

    # Geo-IP lookup (ipinfo.io compatible)
    GEOIP_BASE_URL: str = Field(
        default="https://ipinfo.io",
        description="Geo-IP service base URL"
    )
    GEOIP_TOKEN: Optional[str] = Field(
        default=None,
        description="Geo-IP service access token"
    )
    GEOIP_TIMEOUT: float = Field(
        default=10.0,
        description="Geo-IP request timeout in seconds"
    )
    SERVICED_COUNTRY: str = Field(
        default="IN",
        description="ISO country code the civic hierarchy covers"
    )

    # Firebase identity provider
    FIREBASE_CREDENTIALS_FILE: Optional[str] = Field(
        default=None,
        description="Path to a Firebase service account JSON file (application default credentials if unset)"
    )
    FIREBASE_PROJECT_ID: Optional[str] = Field(
        default=None,
        description="Firebase project ID"
    )

    # Admin API
    ADMIN_API_KEY: Optional[str] = Field(
        default=None,
        description="Shared key expected in the X-Admin-Key header"
    )

    # Pagination & analytics
    DEFAULT_PAGE_SIZE: int = Field(
        default=10,
        description="Default page size for user listings"
    )
    MAX_PAGE_SIZE: int = Field(
        default=100,
        description="Upper bound for requested page sizes"
    )
    ACCOUNT_COUNTS_TIMESPAN: str = Field(
        default="%Y-%m-%d",
        description="Default date bucket for account counts"
    )
    ONLINE_COUNTS_TIMESPAN: str = Field(
        default="%Y-%m",
        description="Default date bucket for session counts"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api/v1",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    @validator("GEOIP_TOKEN")
    def validate_geoip_token(cls, v, values):
        """Ensure the geo-IP token is set in production."""
        if values.get("ENVIRONMENT") == "production" and not v:
            raise ValueError("GEOIP_TOKEN is required in production environment")
        return v

    @validator("ADMIN_API_KEY")
    def validate_admin_key(cls, v, values):
        """Ensure the admin API is not left open in production."""
        if values.get("ENVIRONMENT") == "production" and not v:
            raise ValueError("ADMIN_API_KEY is required in production environment")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    if not settings.GEOIP_BASE_URL:
        errors.append("GEOIP_BASE_URL is required")

    if settings.DEFAULT_PAGE_SIZE > settings.MAX_PAGE_SIZE:
        errors.append("DEFAULT_PAGE_SIZE cannot exceed MAX_PAGE_SIZE")

    # Production-specific validations
    if settings.is_production:
        if not settings.FIREBASE_CREDENTIALS_FILE and not settings.FIREBASE_PROJECT_ID:
            errors.append("FIREBASE_CREDENTIALS_FILE or FIREBASE_PROJECT_ID is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
