import json
from functools import lru_cache
from typing import Annotated

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings sourced from environment variables."""

    project_name: str = "Study Companion API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("COMPANION_LOG_LEVEL", "LOG_LEVEL"))
    mongo_uri: str = Field(
        default="mongodb://localhost:27017",
        validation_alias=AliasChoices("COMPANION_MONGO_URI", "MONGO_URI"),
    )
    mongo_db_name: str = Field(
        default="companion",
        validation_alias=AliasChoices("COMPANION_MONGO_DB_NAME", "MONGO_DB_NAME"),
    )
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default=["http://localhost:5173", "http://localhost:5174"],
        description="Comma-separated origins allowed for CORS (use '*' for all)",
        validation_alias=AliasChoices("COMPANION_CORS_ORIGINS", "CORS_ORIGINS"),
    )

    token_salt: str = Field(..., validation_alias=AliasChoices("COMPANION_TOKEN_SALT", "TOKEN_SALT"))
    token_ttl_hours: int = Field(default=24 * 7, validation_alias=AliasChoices("COMPANION_TOKEN_TTL_HOURS"))

    rate_limit_requests: int = Field(default=500, validation_alias=AliasChoices("COMPANION_RATE_LIMIT_REQUESTS"))
    rate_limit_window_seconds: int = Field(
        default=15 * 60, validation_alias=AliasChoices("COMPANION_RATE_LIMIT_WINDOW_SECONDS")
    )

    gemini_api_key: str | None = Field(default=None, validation_alias=AliasChoices("GEMINI_API_KEY"))
    gemini_analysis_model: str = "gemini-2.0-flash-exp"
    gemini_guide_model: str = "gemini-2.5-flash-lite"
    study_guide_terms: Annotated[list[str], NoDecode] = Field(default=["Sept 2024", "Jan 2025", "May 2025", "Sept 2025"])
    study_guide_question_count: int = 30

    email_user: str | None = Field(default=None, validation_alias=AliasChoices("EMAIL_USER"))
    email_password: str | None = Field(default=None, validation_alias=AliasChoices("EMAIL_PASS", "EMAIL_PASSWORD"))
    feedback_recipient: str | None = Field(default=None, validation_alias=AliasChoices("MY_EMAIL", "FEEDBACK_RECIPIENT"))
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    @field_validator("cors_origins", "study_guide_terms", mode="before")
    @classmethod
    def split_csv(cls, value):
        """Allow comma-separated or JSON array strings for list settings."""

        if isinstance(value, str):
            if value.strip() == "":
                return []
            # JSON array strings bypass the env decoder for NoDecode fields
            if value.strip().startswith("["):
                return json.loads(value)
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
