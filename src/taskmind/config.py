"""Application configuration.

Configuration is loaded from environment variables. For local development, you can provide a
`.env` file and set `TASKMIND_ENV_FILE` to point to it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """TaskMind settings.

    All fields are environment-configurable. Prefix is `TASKMIND_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="TASKMIND_",
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    log_level: str = Field(default="INFO")

    # LLM
    model_mode: Literal["external", "local"] = Field(default="external")
    openai_api_key: str | None = Field(default=None)
    openai_base_url: str | None = Field(default=None)
    openai_model: str = Field(default="gpt-4o-mini")
    openai_fallback_model: str | None = Field(default=None)
    enrichment_model: str | None = Field(default=None)
    openai_timeout_s: float = Field(default=120.0)
    llm_max_retries: int = Field(default=2, ge=0, le=10)
    llm_retry_backoff_s: float = Field(default=1.0, ge=0.0, le=30.0)
    llm_max_concurrent: int = Field(default=8, ge=1, le=64)

    # Ollama and other OpenAI-compatible local servers
    local_base_url: str = Field(default="http://localhost:11434/v1")
    local_model: str = Field(default="llama3.1")

    # Expansion
    expand_timeout_s: float = Field(default=90.0, ge=1.0, le=600.0)

    # Tree policies
    duplicate_child_policy: Literal["accumulate", "dedupe"] = Field(default="accumulate")
    id_collision_policy: Literal["suffix", "reject"] = Field(default="suffix")

    # Link search
    search_provider: Literal["duckduckgo", "tavily", "google"] = Field(default="duckduckgo")
    search_max_results: int = Field(default=10, ge=1, le=50)
    link_count: int = Field(default=3, ge=1, le=20)
    auto_link_search: bool = Field(default=True)
    search_query_generation: bool = Field(default=True)
    search_query_suffix: str = Field(default="")

    tavily_api_key: str | None = Field(default=None)
    tavily_api_base_url: str = Field(default="https://api.tavily.com")
    tavily_search_depth: Literal["basic", "advanced"] = Field(default="basic")
    tavily_max_retries: int = Field(default=3, ge=0, le=10)
    tavily_retry_backoff_s: float = Field(default=0.75, ge=0.0, le=30.0)
    tavily_retry_max_backoff_s: float = Field(default=8.0, ge=0.0, le=120.0)

    google_api_key: str | None = Field(default=None)
    google_cx: str | None = Field(default=None)
    google_api_base_url: str = Field(default="https://www.googleapis.com/customsearch/v1")

    # Networking
    http_timeout_s: float = Field(default=30.0)
    http_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        )
    )

    @property
    def effective_enrichment_model(self) -> str:
        """Model used for detail, role and search-query generation."""

        if self.model_mode == "local":
            return self.local_model
        return self.enrichment_model or self.openai_model


def load_settings() -> Settings:
    """Load settings from env.

    Returns:
        Settings: Parsed settings.
    """

    env_file_override = os.getenv("TASKMIND_ENV_FILE")
    if env_file_override:
        env_path = Path(env_file_override)
        return Settings(_env_file=env_path)

    default_env = Path.cwd() / ".env"
    if default_env.exists():
        return Settings(_env_file=default_env)

    return Settings()
