"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Credentials
    # JSON file shaped {"mistral": ["key", ...], "groq": [...]}
    key_pool_path: str = "key_pool.json"
    # Single-key fallback used when the pool has no keys for a provider
    mistral_api_key: str = ""
    groq_api_key: str = ""

    # Provider fallback order, comma-separated provider names
    provider_priority: str = "mistral,groq"

    # Retry / backoff
    max_retries: int = 3
    backoff_base_seconds: float = 2.0
    backoff_jitter_seconds: float = 1.0  # clamped to the base delay
    backoff_max_seconds: float = 30.0

    # Upstream HTTP
    request_timeout_seconds: float = 60.0
    connect_timeout_seconds: float = 10.0
    temperature: float = 0.7

    # Provider state
    rate_limit_cooldown_seconds: float = 60.0

    # Batch processing
    max_batch_size: int = 50

    # Logging
    log_level: str = "INFO"
    audit_log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def provider_priority_list(self) -> list[str]:
        """Parse the comma-separated priority list, lowercased."""
        return [p.strip().lower() for p in self.provider_priority.split(",") if p.strip()]

    def fallback_key_for(self, provider: str) -> str:
        """Single configured key for a provider, or empty string."""
        return getattr(self, f"{provider}_api_key", "") or ""


@lru_cache
def get_settings() -> Settings:
    return Settings()
