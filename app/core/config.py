"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the warehouse adapter and
the command-line tools share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class SnowflakeSettings(BaseSettings):
    """Connection parameters for the reporting warehouse."""

    account: str = Field(..., validation_alias="SNOWFLAKE_ACCOUNT")
    user: str = Field(..., validation_alias="SNOWFLAKE_USER")
    authenticator: str = Field(
        "externalbrowser",
        validation_alias="SNOWFLAKE_AUTHENTICATOR",
        description="Snowflake authenticator, e.g. externalbrowser or snowflake.",
    )
    password: Optional[str] = Field(None, validation_alias="SNOWFLAKE_PASSWORD")
    role: Optional[str] = Field(None, validation_alias="SNOWFLAKE_ROLE")
    warehouse: Optional[str] = Field(None, validation_alias="SNOWFLAKE_WAREHOUSE")
    database: str = Field("REPORTING", validation_alias="SNOWFLAKE_DATABASE")
    schema_name: str = Field("GENERAL", validation_alias="SNOWFLAKE_SCHEMA")
    login_timeout: int = Field(120, validation_alias="SNOWFLAKE_LOGIN_TIMEOUT")
    trial_analysis_table: str = Field(
        "REPORTING.GENERAL.FACT_TRIAL_ANALYSIS",
        validation_alias="TRIAL_ANALYSIS_TABLE",
        description="Fully qualified table holding conversion analysis records.",
    )

    @field_validator("authenticator")
    @classmethod
    def _normalize_authenticator(cls, value: str) -> str:
        return value.strip().lower()

    def connect_kwargs(self) -> dict[str, object]:
        """Keyword arguments accepted by ``snowflake.connector.connect``."""
        kwargs: dict[str, object] = {
            "account": self.account,
            "user": self.user,
            "authenticator": self.authenticator,
            "database": self.database,
            "schema": self.schema_name,
            "login_timeout": self.login_timeout,
        }
        if self.password:
            kwargs["password"] = self.password
        if self.role:
            kwargs["role"] = self.role
        if self.warehouse:
            kwargs["warehouse"] = self.warehouse
        if self.authenticator == "externalbrowser":
            # Reuse the SSO token between process restarts.
            kwargs["client_store_temporary_credential"] = True
        return kwargs


class GeminiSettings(BaseSettings):
    """Configuration for Gemini model access."""

    api_key: Optional[str] = Field(None, validation_alias="GEMINI_API_KEY")
    model_name: str = Field("gemini-1.5-pro", validation_alias="GEMINI_MODEL_NAME")
    max_output_tokens: int = Field(4096, validation_alias="GEMINI_MAX_OUTPUT_TOKENS")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    snowflake: SnowflakeSettings = Field(default_factory=SnowflakeSettings)
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GeminiSettings",
    "SnowflakeSettings",
    "get_settings",
]
