"""Application configuration managed via environment variables."""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_PROVIDER_KEYS = 6


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "LifeCoach Assistant"
    debug: bool = False
    log_level: str = "INFO"
    provider_api_key: str | None = None
    provider_api_key_1: str | None = None
    provider_api_key_2: str | None = None
    provider_api_key_3: str | None = None
    provider_api_key_4: str | None = None
    provider_api_key_5: str | None = None
    provider_api_key_6: str | None = None
    provider_base_url: str = "https://api.groq.com/openai/v1"
    provider_model: str = "llama-3.3-70b-versatile"
    provider_timeout_seconds: float = 30.0
    provider_temperature: float = 0.7
    daily_token_limit: int = 100_000
    weekly_budget: float = 500.0
    work_hours_start: int = 10
    work_hours_end: int = 18
    streak_alert_hour: int = 18
    timezone: str = "UTC"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "lifecoach"
    notifications_enabled: bool = False
    notifications_provider: str = "noop"

    def provider_keys(self) -> List[str]:
        """Return configured provider credentials, numbered keys first."""
        keys: List[str] = []
        for index in range(1, MAX_PROVIDER_KEYS + 1):
            value = getattr(self, f"provider_api_key_{index}")
            if value and value.strip():
                keys.append(value.strip())
        if not keys and self.provider_api_key and self.provider_api_key.strip():
            keys.append(self.provider_api_key.strip())
        return keys


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
