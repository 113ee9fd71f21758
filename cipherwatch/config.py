"""
CipherWatch Configuration.

Pydantic Settings v2. Loads from .env and environment variables.
Scoring thresholds live in a separate table file (see ``thresholds_path``).
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ──────────────────────────────────────────────────────
    app_name: str = "CipherWatch"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # ── Logging ──────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: Literal["json", "console"] = Field(default="console", alias="LOG_FORMAT")

    # ── Scoring ──────────────────────────────────────────────────────────
    thresholds_path: Optional[str] = Field(default=None, alias="CIPHERWATCH_THRESHOLDS_PATH")
    default_baseline_enabled: bool = Field(default=True, alias="DEFAULT_BASELINE_ENABLED")
    assessed_by: str = Field(default="cipherwatch-engine", alias="ASSESSED_BY")

    # ── Baseline cache ───────────────────────────────────────────────────
    baseline_cache_enabled: bool = Field(default=True, alias="BASELINE_CACHE_ENABLED")
    baseline_cache_ttl_seconds: int = Field(default=300, alias="BASELINE_CACHE_TTL_SECONDS")

    # ── Narrative ────────────────────────────────────────────────────────
    narrative_provider: Literal["template", "anthropic"] = Field(
        default="template", alias="NARRATIVE_PROVIDER"
    )
    anthropic_api_key: str = Field(default="", alias="ANTHROPIC_API_KEY")
    narrative_model: str = Field(default="claude-haiku-4-5-20251001", alias="NARRATIVE_MODEL")
    narrative_max_tokens: int = Field(default=600, alias="NARRATIVE_MAX_TOKENS")
    narrative_timeout_seconds: float = Field(default=10.0, alias="NARRATIVE_TIMEOUT_SECONDS")

    # ── Insights ─────────────────────────────────────────────────────────
    insight_history_limit: int = Field(default=10, alias="INSIGHT_HISTORY_LIMIT")


settings = Settings()
