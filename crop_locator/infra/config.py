from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    llm_provider: str = Field(default="http", validation_alias="LLM_PROVIDER")
    llm_api_url: str = Field(
        default="https://api.openai.com/v1/chat/completions",
        validation_alias="LLM_API_URL",
    )
    llm_api_base: Optional[str] = Field(default=None, validation_alias="LLM_API_BASE")
    llm_model: str = Field(default="gpt-4o-mini", validation_alias="LLM_MODEL")
    llm_temperature: float = Field(default=0.4, validation_alias="LLM_TEMPERATURE")
    llm_max_tokens: int = Field(default=1500, validation_alias="LLM_MAX_TOKENS")
    llm_timeout_seconds: float = Field(
        default=60.0, validation_alias="LLM_TIMEOUT_SECONDS"
    )
    secret_provider: str = Field(default="env", validation_alias="SECRET_PROVIDER")
    llm_api_key_secret: str = Field(
        default="OPENAI_API_KEY", validation_alias="LLM_API_KEY_SECRET"
    )
    secrets_dir: str = Field(default="/run/secrets", validation_alias="SECRETS_DIR")
    crop_cache_store: str = Field(
        default="sqlite", validation_alias="CROP_CACHE_STORE"
    )
    crop_cache_path: Optional[str] = Field(
        default=None, validation_alias="CROP_CACHE_PATH"
    )
    crop_cache_collection: str = Field(
        default="ubicacionesCultivos", validation_alias="CROP_CACHE_COLLECTION"
    )
    log_path: Optional[str] = Field(default=None, validation_alias="LOG_PATH")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    fastapi_port: int = Field(default=8000, validation_alias="FASTAPI_PORT")

    @field_validator("llm_provider", "secret_provider", mode="after")
    @classmethod
    def normalize_provider(cls, value: str) -> str:
        return value.lower() if value else value

    @field_validator("crop_cache_store", mode="after")
    @classmethod
    def normalize_cache_store(cls, value: str) -> str:
        return value.lower() if value else value

    @field_validator("llm_max_tokens", mode="after")
    @classmethod
    def clamp_max_tokens(cls, value: int) -> int:
        return max(1, int(value))


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    return AppConfig()
