from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    ENVIRONMENT: str = "development"
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:8080"]
    API_VERSION: str = "v1"
    API_TITLE: str = "STJT Application Server"
    API_DESCRIPTION: str = "Enrollment application intake for St Joseph's Technical Institute for the Deaf"

    # Features
    ENABLE_DOCS: bool = True
    EXPOSE_ERROR_DETAILS: bool = True  # Set false in hardened deployments

    # Storage
    STORAGE_BACKEND: str = "file"  # file | database | blob | memory
    APPLICATIONS_DIR: str = "applications"
    DATABASE_URL: str = "sqlite:///./applications.db"
    AZURE_STORAGE_CONNECTION_STRING: str = ""
    AZURE_STORAGE_CONTAINER_NAME: str = "applications"

    # Reference numbers
    REFERENCE_PREFIX: str = "STJT"
    MAX_REFERENCE_ATTEMPTS: int = 5

    # Applicant rules
    MINIMUM_APPLICANT_AGE: int = 16

    # Email
    EMAIL_ENABLED: bool = False
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    MAIL_FROM: str = "info@stjosephstechnical.ac.ke"
    INSTITUTION_NAME: str = "St Joseph's Technical Institute for the Deaf"
    INSTITUTION_LOCATION: str = "Nyang'oma"
    CONTACT_EMAIL: str = "info@stjosephstechnical.ac.ke"
    CONTACT_PHONE: str = "+254 (0) 123 456 789"

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_PER_HOUR: int = 1000

    # Logging
    LOG_LEVEL: str = "INFO"

    # Monitoring
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
