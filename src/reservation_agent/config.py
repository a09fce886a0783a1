"""Configuration objects and helpers for the reservation agent."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    api_key: SecretStr = Field(..., alias="API_KEY")
    model: str = Field("gemini-2.5-flash", alias="RESERVATION_AGENT_MODEL")
    timeout_seconds: float = Field(60.0, alias="RESERVATION_AGENT_TIMEOUT_SECONDS", gt=0)
    timezone: str = Field("UTC", alias="RESERVATION_AGENT_TIMEZONE")
    tool_latency_seconds: float = Field(0.0, alias="RESERVATION_AGENT_TOOL_LATENCY_SECONDS", ge=0)
    max_conversations: int = Field(1000, alias="RESERVATION_AGENT_MAX_CONVERSATIONS", gt=0)
    tool_call_policy: Literal["first", "all"] = Field("first", alias="RESERVATION_AGENT_TOOL_CALL_POLICY")
    environment: str = Field("production", alias="RESERVATION_AGENT_ENVIRONMENT")

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
        protected_namespaces=(),
    )

    @field_validator("api_key")
    @classmethod
    def reject_blank_key(cls, value: SecretStr) -> SecretStr:
        """An empty API_KEY counts as missing."""
        if not value.get_secret_value().strip():
            raise ValueError("API_KEY must not be empty")
        return value


def load_settings(**overrides: Any) -> Settings:
    """Build settings, turning validation failures into ``ConfigurationError``."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        missing = [".".join(str(item) for item in error["loc"]) for error in exc.errors()]
        raise ConfigurationError(f"Invalid configuration ({', '.join(missing)}): {exc}") from exc
