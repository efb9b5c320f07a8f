"""Application configuration powered by environment variables."""
from __future__ import annotations

from functools import lru_cache
from typing import Annotated, List

from dotenv import load_dotenv
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Load variables from a local .env file if present. This keeps runtime flexible.
load_dotenv()


class Settings(BaseSettings):
    """Strongly typed configuration for the service.

    Built once at process start and handed to the app factory and every
    provider adapter. Instances are frozen.
    """

    app_name: str = "Bouncehook"
    environment: str = "development"
    api_version: str = "v1"
    database_url: str = "sqlite:///./bounces.db"
    allowed_origins: Annotated[List[str], NoDecode] = ["http://localhost", "http://localhost:3000"]

    # Amazon SES via SNS.
    bounce_ses_enabled: bool = False
    sns_verify_signatures: bool = True
    sns_timeout_seconds: int = 5
    sns_allowed_topic_arns: Annotated[List[str], NoDecode] = []

    # SendGrid event webhook.
    bounce_sendgrid_enabled: bool = False
    bounce_sendgrid_key: str = ""
    bounce_sendgrid_max_age_seconds: int = 600

    # Postmark bounce webhook (basic auth).
    bounce_postmark_enabled: bool = False
    bounce_postmark_username: str = ""
    bounce_postmark_password: str = ""

    # Forward Email bounce webhook.
    bounce_forwardemail_enabled: bool = False
    bounce_forwardemail_key: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def strip_wrapping_quotes(cls, value: str) -> str:
        """Allow quoted URLs in env files."""
        if isinstance(value, str):
            return value.strip().strip('"').strip("'")
        return value

    @field_validator("allowed_origins", "sns_allowed_topic_arns", mode="before")
    @classmethod
    def split_csv(cls, value: str | List[str]) -> List[str]:
        """Allow comma separated lists in env files."""
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("sns_timeout_seconds", "bounce_sendgrid_max_age_seconds")
    @classmethod
    def non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @model_validator(mode="after")
    def require_provider_secrets(self) -> "Settings":
        if self.bounce_sendgrid_enabled and not self.bounce_sendgrid_key:
            raise ValueError("bounce_sendgrid_key is required when SendGrid bounces are enabled")
        if self.bounce_forwardemail_enabled and not self.bounce_forwardemail_key:
            raise ValueError("bounce_forwardemail_key is required when Forward Email bounces are enabled")
        if self.bounce_postmark_enabled and not (self.bounce_postmark_username and self.bounce_postmark_password):
            raise ValueError("Postmark webhook credentials are required when Postmark bounces are enabled")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Return a cached Settings instance for reuse across the app."""

    return Settings()
