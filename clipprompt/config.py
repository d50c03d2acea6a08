from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    edit_service_base_url: str = Field("http://localhost:8080/api", alias="EDIT_SERVICE_BASE_URL")
    edit_service_api_key: Optional[str] = Field(default=None, alias="EDIT_SERVICE_API_KEY")
    edit_service_timeout_seconds: float = Field(30.0, alias="EDIT_SERVICE_TIMEOUT_SECONDS")
    edit_workflow_timeout_seconds: float = Field(120.0, alias="EDIT_WORKFLOW_TIMEOUT_SECONDS")

    allow_concurrent_edits: bool = Field(True, alias="ALLOW_CONCURRENT_EDITS")
    prompt_char_limit: int = Field(2400, alias="PROMPT_CHAR_LIMIT")
    session_ttl_seconds: int = Field(60 * 60 * 24 * 7, alias="SESSION_TTL_SECONDS")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    app_host: str = Field("127.0.0.1", alias="APP_HOST")
    app_port: int = Field(8000, alias="APP_PORT")

    @field_validator("edit_service_base_url", mode="before")
    @classmethod
    def normalize_base_url(cls, value: str) -> str:
        value = value or ""
        return value.rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return (value or "INFO").strip().upper()

    @field_validator("edit_service_api_key", mode="before")
    @classmethod
    def blank_key_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not str(value).strip():
            return None
        return value


@lru_cache()
def get_settings() -> Settings:
    try:
        return Settings()
    except Exception as exc:
        raise RuntimeError("Failed to load application settings. Ensure your .env file is configured.") from exc


settings = get_settings()
