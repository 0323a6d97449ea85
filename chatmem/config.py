"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Memory subsystem configuration. All values come from environment variables."""

    # Database
    database_path: Path = Field(default=Path("data/chatmem.db"))

    # Anthropic (cloud summarization)
    anthropic_api_key: str = Field(default="")
    summary_cloud_model: str = Field(default="haiku")

    # Local models (Ollama-compatible endpoint)
    local_model_base_url: str = Field(default="http://localhost:11434")
    local_models: str = Field(default="phi3,phi3:mini,llama3.2:3b")
    local_health_timeout_seconds: float = Field(default=2.0)

    # Auto-summarization
    summary_threshold: int = Field(default=8)
    summarize_all_pending: bool = Field(default=False)
    summary_timeout_seconds: float = Field(default=20.0)
    summary_temperature: float = Field(default=0.1)
    summary_local_max_tokens: int = Field(default=100)
    summary_cloud_max_tokens: int = Field(default=300)

    # Summary validation
    summary_max_chars: int = Field(default=500)
    summary_max_ratio: float = Field(default=0.5)
    summary_min_overlap: float = Field(default=0.05)
    validate_cloud_summaries: bool = Field(default=False)

    # Read cache
    cache_ttl_seconds: float = Field(default=30.0)

    # Context assembly
    recent_message_limit: int = Field(default=8)
    pin_fetch_limit: int = Field(default=5)
    summary_fetch_limit: int = Field(default=3)
    min_recent_messages: int = Field(default=3)
    default_token_budget: int = Field(default=3000)
    tokens_per_char: float = Field(default=0.75)

    # Semantic pins
    auto_pin_threshold: float = Field(default=0.9)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def get_local_models(self) -> list[str]:
        """Parse LOCAL_MODELS into a list of model IDs."""
        if not self.local_models.strip():
            return []
        return [name.strip() for name in self.local_models.split(",") if name.strip()]


settings = Settings()
