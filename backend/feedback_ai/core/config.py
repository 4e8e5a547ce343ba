from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ALLOWED_PROVIDERS = {"gemini", "mock"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_by_name=True,
        populate_by_name=True,
    )

    log_level: str = "INFO"
    docs_enabled: bool = Field(default=True)

    ai_provider: str = Field(
        default="gemini",
        validation_alias=AliasChoices("AI_PROVIDER", "ai_provider"),
    )
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GEMINI_API_KEY", "gemini_api_key"),
    )
    gemini_model: str = "gemini-2.0-flash"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta/models"

    ai_temperature: float = 0.3
    ai_timeout_seconds: float = 30.0
    ai_max_attempts: int = 3
    ai_base_delay_ms: int = 10_000
    ai_debug_store_raw: bool = False

    fetch_timeout_seconds: float = 15.0
    probe_timeout_seconds: float = 5.0
    page_text_max_chars: int = 8000
    page_text_min_chars: int = 20
    bulk_max_items: int = 200

    @field_validator("ai_provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value):
        return str(value or "").lower().strip()

    @field_validator("ai_max_attempts")
    @classmethod
    def _at_least_one_attempt(cls, value: int) -> int:
        return max(1, value)

    @field_validator("ai_base_delay_ms")
    @classmethod
    def _non_negative_delay(cls, value: int) -> int:
        return max(0, value)

    @property
    def ai_enabled(self) -> bool:
        if self.ai_provider not in _ALLOWED_PROVIDERS:
            return False
        if self.ai_provider == "mock":
            return True
        return bool(self.gemini_api_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()
