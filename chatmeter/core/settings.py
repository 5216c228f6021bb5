"""Application settings for the chatmeter gateway."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = (
    "Você é o IA Orçamentista. Responda com clareza, em R$ quando houver valores."
)


def _default_plans() -> dict[str, dict[str, Any]]:
    return {
        "free": {"monthlyMessages": 30, "price": "R$ 0,00"},
        "pro": {"monthlyMessages": 1000, "price": "R$ 29,90"},
    }


class Settings(BaseSettings):
    """Centralised configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CHATMETER_", case_sensitive=False, populate_by_name=True
    )

    app_name: str = "IA Orçamentista Backend"
    environment: Literal["development", "staging", "production"] = "development"

    # Admin surface; an empty secret disables it entirely
    admin_secret: str = ""

    # Registry persistence
    data_dir: Path = Field(default_factory=lambda: Path.cwd() / "instance")
    snapshot_path: Path | None = None
    default_plans: dict[str, dict[str, Any]] = Field(default_factory=_default_plans)
    default_users: dict[str, str] = Field(default_factory=dict)

    # Upstream completion service
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CHATMETER_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    fallback_reply: str = "Desculpe, não consegui gerar uma resposta."
    upstream_timeout_seconds: float = 60.0

    # CORS
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["https://nomade-22.github.io", "http://localhost:3000"]
    )

    # Rate limiting / monitoring
    rate_limit_requests: int = 60
    rate_limit_window_seconds: int = 60
    rate_limit_storage_url: str | None = None
    enable_prometheus: bool = True
    metrics_namespace: str = "chatmeter"
    sentry_dsn: str | None = None

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=3000, validation_alias=AliasChoices("CHATMETER_PORT", "PORT"))

    @property
    def resolved_snapshot_path(self) -> Path:
        """Return the registry snapshot location defaulting to the data directory."""
        if self.snapshot_path:
            return self.snapshot_path
        return self.data_dir / "registry.json"

    @property
    def resolved_rate_limit_storage(self) -> str:
        return self.rate_limit_storage_url or "memory://"

    @property
    def admin_enabled(self) -> bool:
        return bool(self.admin_secret)


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    settings = Settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings


__all__ = ["Settings", "get_settings", "DEFAULT_SYSTEM_PROMPT"]
