"""Configuration management for trainingsync.

This module loads configuration from environment variables with sensible defaults.
It uses dotenv to load from .env files and provides a centralized config object.
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_GRAPH_API_BASE_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_GRAPH_BETA_API_BASE_URL = "https://graph.microsoft.com/beta"


class AppConfig(BaseModel):
    """Application configuration loaded from environment variables."""

    # Azure AD application
    tenant_id: str = Field(description="Azure AD tenant id")
    client_id: str = Field(description="Azure AD application (client) id")
    client_secret: str = Field(description="Azure AD application secret")

    # Microsoft Graph
    graph_base_url: str = Field(
        DEFAULT_GRAPH_API_BASE_URL, description="Graph v1.0 endpoint"
    )
    graph_beta_base_url: str = Field(
        DEFAULT_GRAPH_BETA_API_BASE_URL, description="Graph beta endpoint"
    )

    # Exchange Web Services
    ews_service_url: str = Field(description="On-premises EWS endpoint")
    ews_service_email: Optional[str] = Field(
        None, description="Service account used for impersonation"
    )
    ews_service_password: Optional[str] = Field(
        None, description="Service account password"
    )

    # Secrets storage
    secrets_database_url: str = Field(description="Database URL for secrets storage")

    # Localization
    locale: str = Field("en-US", description="Locale for calendar body strings")

    # Logging Configuration
    log_level: str = Field("INFO", description="Logging level")

    @field_validator("tenant_id", "client_id", "client_secret")
    @classmethod
    def validate_required(cls, v: str) -> str:
        """Validate that Azure AD application settings are provided."""
        if not v:
            raise ValueError(
                "TENANT_ID, CLIENT_ID and CLIENT_SECRET environment variables are "
                "required. Please set them in your .env file or environment."
            )
        return v

    @field_validator("ews_service_url")
    @classmethod
    def validate_ews_service_url(cls, v: str) -> str:
        """Validate the EWS endpoint is an absolute http(s) URL."""
        if not v.startswith(("https://", "http://")):
            raise ValueError(
                "EWS_SERVICE_URL must be an absolute http(s) URL, "
                "e.g. https://mail.example.com/EWS/Exchange.asmx"
            )
        return v

    @field_validator("graph_base_url", "graph_beta_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level = v.upper()
        if level not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return level


def detect_environment() -> str:
    """Detect the current runtime environment.

    Returns:
        'ci': Running in CI/testing environment
        'user': Running in user/development environment
    """
    if os.getenv("CI") or os.getenv("PYTEST_CURRENT_TEST"):
        return "ci"
    return "user"


def get_secrets_database_url(environment: str) -> str:
    """Get the secrets database URL for ``environment``."""
    explicit = os.getenv("SECRETS_DATABASE_URL")
    if explicit:
        logger.info(f"Using explicit secrets database URL for {environment} environment")
        return explicit

    if environment == "ci":
        logger.info("Using in-memory secrets database for ci environment")
        return "sqlite:///:memory:"

    return "sqlite:///trainingsync_secrets.db"


def load_default_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    # Load environment variables from .env file
    load_dotenv()

    environment = detect_environment()

    return AppConfig(
        tenant_id=os.getenv("TENANT_ID", ""),
        client_id=os.getenv("CLIENT_ID", ""),
        client_secret=os.getenv("CLIENT_SECRET", ""),
        graph_base_url=os.getenv("GRAPH_API_BASE_URL", DEFAULT_GRAPH_API_BASE_URL),
        graph_beta_base_url=os.getenv(
            "GRAPH_BETA_API_BASE_URL", DEFAULT_GRAPH_BETA_API_BASE_URL
        ),
        ews_service_url=os.getenv("EWS_SERVICE_URL", ""),
        ews_service_email=os.getenv("EWS_SERVICE_EMAIL") or None,
        ews_service_password=os.getenv("EWS_SERVICE_PASSWORD") or None,
        secrets_database_url=get_secrets_database_url(environment),
        locale=os.getenv("LOCALE", "en-US"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


def configure_logging(config: AppConfig) -> None:
    """Apply the configured log level to the root logger."""
    logging.basicConfig(level=getattr(logging, config.log_level))
