"""Application settings."""

from functools import lru_cache
import logging
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "maintenance-orchestrator"
    app_env: str = "dev"
    log_level: str = "INFO"
    database_url: str = ""
    llm_provider: str = "openai"
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str = "https://api.openai.com/v1"
    llm_timeout_s: float = Field(default=30.0, ge=0.5)
    llm_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    llm_max_tokens: int = Field(default=1000, ge=1)
    openai_api_key: str = ""
    max_conversation_iterations: int = Field(default=3, ge=1)
    pending_action_ttl_s: float = Field(default=600.0, gt=0)
    pending_action_max_entries: int = Field(default=100, ge=1)
    pending_action_evict_to: int = Field(default=50, ge=0)
    upcoming_task_range_days: int = Field(default=90, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="MAINTENANCE_ORCHESTRATOR_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("DATABASE_URL", "")

    def resolved_openai_api_key(self) -> str:
        return self.openai_api_key or os.getenv("OPENAI_API_KEY", "")

    def resolved_llm_base_url(self) -> str:
        base_url = self.llm_base_url.rstrip("/")
        if not base_url.endswith("/v1"):
            base_url = f"{base_url}/v1"
        return base_url

    def llm_configured(self) -> bool:
        # Local Ollama endpoints accept unauthenticated requests.
        return bool(self.resolved_openai_api_key()) or "ollama" in self.llm_base_url.lower()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
