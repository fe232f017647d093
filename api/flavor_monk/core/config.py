"""Application settings parsed from environment variables and defaults."""

import json
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
DEFAULT_RANKING_WEIGHTS = {
    "health": 0.25,
    "preference": 0.20,
    "behavioral": 0.15,
    "complexity": 0.15,
    "historical": 0.15,
    "novelty": 0.10,
}


def _split_list(value: str | list[str] | None) -> list[str] | None:
    """Parse JSON or CSV list input; return None when nothing usable was provided."""
    if isinstance(value, list):
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return []
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return [str(item).strip() for item in parsed if str(item).strip()]
        return [item.strip() for item in stripped.split(",") if item.strip()]
    return None


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = "Flavor Monk API"
    environment: str = "development"
    api_prefix: str = "/api"

    database_url: str = "sqlite+aiosqlite:///./flavor_monk.db"
    test_database_url: Optional[str] = None

    access_token_expires_minutes: int = 60 * 24
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "flavor-monk"
    jwt_audience: str = "flavor-monk-api"

    log_level: str = "INFO"
    cors_origins: list[str] | str = Field(default_factory=lambda: DEFAULT_CORS_ORIGINS.copy())
    ops_admin_emails: list[str] | str = Field(default_factory=list)
    health_allowlist: list[str] | str = Field(default_factory=list)

    redis_url: str = "redis://redis:6379/0"
    worker_queue_names: list[str] | str = Field(default_factory=lambda: ["default", "feedback", "maintenance"])

    chroma_host: Optional[str] = None
    chroma_port: int = 8000
    chroma_path: str = "./chroma-db"
    chroma_collection: str = "recipes"
    embedding_endpoint: str = "http://localhost:11434"
    embedding_model: str = "nomic-embed-text"

    ollama_endpoint: str = "http://localhost:11434"
    ollama_model: str = "llama3.3:7b"
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-3-5-sonnet-latest"
    daily_cloud_budget: float = 5.0
    cloud_cost_per_1k_tokens: float = 0.015
    llm_timeout_seconds: float = 60.0
    llm_cache_size: int = 256

    store_timeout_seconds: float = 3.0
    relational_candidate_limit: int = 100
    ranking_cache_size: int = 512
    ranking_weights: dict[str, float] = Field(default_factory=lambda: DEFAULT_RANKING_WEIGHTS.copy())

    quality_min_rating: float = 3.5
    quality_min_feedback_count: int = 10
    quality_min_completion_rate: float = 0.5
    quality_review_min_started: int = 20
    quality_refresh_hours: int = 24
    quality_retention_days: int = 180

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_cors_origins(cls, value: str | list[str] | None) -> list[str]:
        """Normalize CORS origins from JSON, CSV, or list inputs."""
        return _split_list(value) or DEFAULT_CORS_ORIGINS.copy()

    @field_validator("worker_queue_names", mode="before")
    @classmethod
    def _split_worker_queue_names(cls, value: str | list[str] | None) -> list[str]:
        """Normalize worker queue names from JSON, CSV, or list inputs."""
        return _split_list(value) or ["default"]

    @field_validator("health_allowlist", mode="before")
    @classmethod
    def _split_health_allowlist(cls, value: str | list[str] | None) -> list[str]:
        """Normalize health allowlist entries from JSON, CSV, or list inputs."""
        return _split_list(value) or []

    @field_validator("ops_admin_emails", mode="before")
    @classmethod
    def _split_ops_admin_emails(cls, value: str | list[str] | None) -> list[str]:
        """Normalize ops admin emails from JSON, CSV, or list inputs."""
        return [email.lower() for email in _split_list(value) or []]

    @model_validator(mode="after")
    def _validate_ranking_weights(self) -> "Settings":
        """Fill in missing ranking weights and reject negative ones."""
        merged = {**DEFAULT_RANKING_WEIGHTS, **self.ranking_weights}
        unknown = set(merged) - set(DEFAULT_RANKING_WEIGHTS)
        if unknown:
            raise ValueError(f"Unknown ranking weights: {', '.join(sorted(unknown))}")
        if any(weight < 0 for weight in merged.values()):
            raise ValueError("Ranking weights must be non-negative")
        self.ranking_weights = merged
        return self

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Return cached settings to avoid re-parsing environment variables."""
    return Settings()


settings = get_settings()
