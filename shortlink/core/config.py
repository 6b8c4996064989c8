"""Application configuration module.

This module contains settings for the link shortening service,
loaded from environment variables with appropriate defaults.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Union

from pydantic import ValidationInfo, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent.parent

DEFAULT_SECRET_KEY = "change_this_to_a_secure_random_string_in_production"

# Letters and digits with the easily confused glyphs (0 O o 1 l I) removed
UNAMBIGUOUS_ALPHABET = "23456789abcdefghijkmnpqrstuvwxyzABCDEFGHJKLMNPQRSTUVWXYZ"


class EnvironmentType(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class Settings(BaseSettings):
    """Application settings loaded from environment variables with defaults.

    Settings are loaded from environment variables, with fallback to
    values in .env file if present, and finally to the default values
    specified here.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    ENVIRONMENT: EnvironmentType = EnvironmentType.DEVELOPMENT

    # App Information
    APP_NAME: str = "Shortlink"
    APP_VERSION: str = "0.1.0"
    APP_DESCRIPTION: str = "Link shortening and redirection service"

    # API Configuration
    API_PREFIX: str = "/api"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    SHORT_URL_SCHEME: str = "https"  # Scheme used when rendering short_url

    CORS_ORIGINS: Union[List[str], str] = ["*"]

    # Short link domains
    ALLOWED_DOMAINS: Union[List[str], str] = ["elga.io"]
    DEFAULT_DOMAIN: Optional[str] = None  # Falls back to the first allowed domain

    # Keyword generation
    KEYWORD_LENGTH: int = 7
    KEYWORD_ALPHABET: str = UNAMBIGUOUS_ALPHABET
    KEYWORD_MIN_LENGTH: int = 6  # Bounds for custom keywords
    KEYWORD_MAX_LENGTH: int = 15
    KEYWORD_GENERATION_MAX_ATTEMPTS: int = 5

    # Link validation
    URL_MAX_LENGTH: int = 2048
    TITLE_MAX_LENGTH: int = 255
    ALLOW_ANONYMOUS_LINKS: bool = True

    # Pagination
    PAGINATION_DEFAULT_LIMIT: int = 10
    PAGINATION_MAX_LIMIT: int = 100
    PAGINATION_DEFAULT_SORT: str = "created_at:desc"

    # Database
    DATABASE_URL: Optional[str] = None  # Overrides the POSTGRES_* settings when set
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "shortlink"
    DB_AUTO_CREATE_TABLES: bool = True

    POSTGRES_POOL_SIZE: int = 20
    POSTGRES_POOL_MAX_OVERFLOW: int = 10
    POSTGRES_POOL_TIMEOUT: int = 30
    POSTGRES_POOL_RECYCLE: int = 300
    DB_ECHO: bool = False

    # Redis
    REDIS_URL: Optional[str] = None  # Overrides the REDIS_* settings when set
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str = ""
    REDIS_DB: int = 0
    REDIS_MAX_CONNECTIONS: int = 20

    # Redirect cache
    CACHE_ENABLED: bool = True
    CACHE_KEY_PREFIX: str = "link"
    CACHE_TTL_SECONDS: int = 3600
    NEGATIVE_CACHE_TTL_SECONDS: int = 30
    CACHE_OPERATION_TIMEOUT: float = 0.05  # seconds; a slower cache is treated as a miss
    STORE_OPERATION_TIMEOUT: float = 2.0  # seconds; bounds the store read on redirect

    # Click accounting
    CLICK_RECORD_MAX_ATTEMPTS: int = 3
    CLICK_RECORD_RETRY_DELAY: float = 0.2  # seconds, multiplied by the attempt number

    # Authentication
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    TOKEN_ALGORITHM: str = "HS256"
    TOKEN_EXPIRE_MINUTES: int = 10080
    AUTH_COOKIE_NAME: str = "access_token"

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_API_PER_MINUTE: int = 60
    RATE_LIMIT_CREATE_PER_MINUTE: int = 20
    RATE_LIMIT_REDIRECT_PER_SECOND: int = 50
    RATE_LIMIT_ADMIN_IPS: Union[List[str], str] = []
    RATE_LIMIT_REDIS_CHECK_INTERVAL: int = 10  # Seconds between attempts to return to Redis
    RATE_LIMIT_REDIS_MAX_ERRORS: int = 3  # Redis errors before switching to memory backend

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILENAME: str = "shortlink.log"
    LOG_ROTATION: str = "10 MB"
    LOG_RETENTION: str = "7 days"
    LOG_FORMAT: str = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {name}:{line} | {message}"
    LOG_JSON: bool = True
    ACCESS_LOG_ENABLED: bool = True
    REQUEST_LOGGING_ENABLED: bool = True

    # Maintenance
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_JOBSTORE_URL: str = "sqlite:///jobs.sqlite"
    SCHEDULER_JOB_COALESCE: bool = True
    SCHEDULER_JOB_MAX_INSTANCES: int = 1
    SCHEDULER_MISFIRE_GRACE_TIME: int = 15 * 60
    CLEANUP_INTERVAL_HOURS: int = 24
    CLEANUP_START_ON_STARTUP: bool = False
    CLICK_EVENT_RETENTION_DAYS: Optional[int] = 90  # None keeps click events forever
    DELETED_LINK_RETENTION_DAYS: Optional[int] = None  # None keeps soft-deleted links forever

    # OpenTelemetry
    OTEL_ENABLED: bool = False
    OTEL_SERVICE_NAME: str = "shortlink"
    OTEL_RESOURCE_ATTRIBUTES: str = "service.namespace=shortlink,deployment.environment=development"
    OTEL_EXPORTER_OTLP_ENDPOINT: str = "http://localhost:4317"
    OTEL_EXPORTER_OTLP_METRICS_ENDPOINT: str = "http://localhost:4317"
    OTEL_EXPORTER_OTLP_PROTOCOL: str = "grpc"  # grpc or http/protobuf
    OTEL_TRACES_SAMPLER: str = "parentbased_traceidratio"
    OTEL_TRACES_SAMPLER_ARG: float = 1.0
    OTEL_PYTHON_LOG_CORRELATION: bool = True
    OTEL_METRICS_EXPORT_INTERVAL_MILLIS: int = 60000

    @field_validator(
        "CLICK_EVENT_RETENTION_DAYS", "DELETED_LINK_RETENTION_DAYS", "DEFAULT_DOMAIN",
        "DATABASE_URL", "REDIS_URL", mode="before"
    )
    def empty_string_to_none(cls, v: Any) -> Any:
        """Treat empty environment values as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("SECRET_KEY")
    def validate_secret_key(cls, v: str, info: ValidationInfo) -> str:
        env_value = info.data.get("ENVIRONMENT", EnvironmentType.DEVELOPMENT)
        if v == DEFAULT_SECRET_KEY and env_value == EnvironmentType.PRODUCTION:
            logger.warning("Using default SECRET_KEY in production environment! This is a security risk.")
        return v

    @field_validator("CORS_ORIGINS", "RATE_LIMIT_ADMIN_IPS", "ALLOWED_DOMAINS")
    def validate_list_or_string(cls, v: Union[List[str], str]) -> List[str]:
        """Convert comma-separated string to list if needed."""
        if isinstance(v, str):
            if not v.strip():
                return []
            if v == "*":
                return ["*"]
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("ALLOWED_DOMAINS")
    def normalize_domains(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("at least one short link domain must be configured")
        return [domain.lower() for domain in v]

    @field_validator("KEYWORD_ALPHABET")
    def validate_alphabet(cls, v: str) -> str:
        if len(set(v)) < 2:
            raise ValueError("keyword alphabet needs at least two distinct characters")
        return v

    @computed_field
    def PRIMARY_DOMAIN(self) -> str:
        """Domain used when a create request does not name one."""
        if self.DEFAULT_DOMAIN:
            return self.DEFAULT_DOMAIN.lower()
        return self.ALLOWED_DOMAINS[0]

    @computed_field
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Construct the SQLAlchemy database URI from settings or use override."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @computed_field
    def REDIS_URI(self) -> str:
        """Construct the Redis URI from settings or use override."""
        if self.REDIS_URL:
            return self.REDIS_URL
        password_part = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{password_part}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


# Create a singleton instance of the settings
settings = Settings()
