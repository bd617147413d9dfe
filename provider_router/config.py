"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (or a .env file in dev).
Provider availability is derived from which credentials are configured here;
nothing else in the router reads the environment directly.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEV = "dev"
    PROD = "prod"
    TEST = "test"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Application
    # ------------------------------------------------------------------ #
    environment: Environment = Environment.DEV
    debug: bool = False

    # ------------------------------------------------------------------ #
    # Provider credentials
    # ------------------------------------------------------------------ #
    google_generative_ai_api_key: SecretStr | None = Field(
        default=None,
        description="Google Gemini API key. Provider is unavailable when unset.",
    )
    openai_api_key: SecretStr | None = Field(
        default=None,
        description="OpenAI API key. Provider is unavailable when unset.",
    )
    anthropic_api_key: SecretStr | None = Field(
        default=None,
        description="Anthropic API key. Provider is unavailable when unset.",
    )
    hf_token: SecretStr | None = Field(
        default=None,
        description="Hugging Face token.",
    )
    huggingface_hub_token: SecretStr | None = Field(
        default=None,
        description="Alternative Hugging Face token name (either one enables the provider).",
    )

    # ------------------------------------------------------------------ #
    # Routing
    # ------------------------------------------------------------------ #
    enable_intelligent_routing: bool = Field(
        default=True,
        description="When False every request gets the default fallback decision",
    )
    fallback_enabled: bool = Field(
        default=True,
        description="Offer lower-ranked providers as fallbacks in routing decisions",
    )
    performance_tracking_enabled: bool = Field(
        default=True,
        description="Record request outcomes into the performance tracker and cost ledger",
    )
    cost_optimization_enabled: bool = Field(
        default=True,
        description="Honour the cost_sensitive user preference when scoring candidates",
    )
    metrics_window_hours: int = Field(
        default=24,
        ge=1,
        le=24 * 30,
        description="Look-back window used when scoring candidates",
    )
    tracker_capacity: int = Field(
        default=10_000,
        ge=1,
        description="Maximum number of performance metrics kept in memory",
    )

    # ------------------------------------------------------------------ #
    # Cost approval
    # ------------------------------------------------------------------ #
    auto_approve_threshold: float = Field(
        default=0.01,
        ge=0,
        description="Costs at or below this (USD) are approved automatically",
    )
    require_approval_above: float = Field(
        default=0.10,
        ge=0,
        description="Costs above this (USD) require explicit approval",
    )
    cost_retention_days: int = Field(
        default=30,
        ge=1,
        description="Cost records older than this are pruned by the cleanup job",
    )

    # ------------------------------------------------------------------ #
    # Optional durable storage
    # ------------------------------------------------------------------ #
    database_url: str | None = Field(
        default=None,
        description=(
            "Async SQLAlchemy database URL. When unset, metrics and costs live "
            "only in memory."
        ),
    )
    db_echo_sql: bool = False
    history_preload_limit: int = Field(
        default=1000,
        ge=0,
        description="Number of recent metrics loaded into the tracker at startup",
    )

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    cors_allowed_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins. In production, set to actual frontend URLs.",
    )

    # ------------------------------------------------------------------ #
    # Derived / Computed
    # ------------------------------------------------------------------ #
    @model_validator(mode="after")
    def _set_debug_from_env(self) -> Settings:
        if self.environment == Environment.DEV:
            self.debug = True
        return self

    @model_validator(mode="after")
    def _validate_approval_thresholds(self) -> Settings:
        if self.auto_approve_threshold > self.require_approval_above:
            raise ValueError(
                "auto_approve_threshold must not exceed require_approval_above"
            )
        return self

    @property
    def is_dev(self) -> bool:
        return self.environment in (Environment.DEV, Environment.TEST)

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PROD

    @property
    def persistence_enabled(self) -> bool:
        return bool(self.database_url)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings singleton.

    Call directly in non-request contexts (startup, scripts). Request handlers
    receive services built from these settings rather than reading them.
    """
    return Settings()
