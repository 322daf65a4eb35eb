import json
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = Field(default="local", alias="ENV")
    database_url: str = Field(alias="DATABASE_URL")

    cors_origins: str = Field(default="http://localhost:5173", alias="CORS_ORIGINS")

    api_prefix: str = Field(default="/api", alias="API_PREFIX")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # ─────────────────────────────────────────────
    # Study groups
    # ─────────────────────────────────────────────
    invite_code_length: int = Field(default=8, ge=4, le=32, alias="INVITE_CODE_LENGTH")
    invite_code_attempts: int = Field(default=5, ge=1, alias="INVITE_CODE_ATTEMPTS")
    default_page_limit: int = Field(default=100, ge=1, alias="DEFAULT_PAGE_LIMIT")
    max_page_limit: int = Field(default=100, ge=1, alias="MAX_PAGE_LIMIT")

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_database_url(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        cleaned = value.strip()
        if cleaned.startswith("postgres://"):
            cleaned = f"postgresql://{cleaned[len('postgres://'):]}"
        if cleaned.startswith("postgresql://") and not cleaned.startswith("postgresql+"):
            cleaned = cleaned.replace("postgresql://", "postgresql+asyncpg://", 1)
        if cleaned.startswith("sqlite://") and not cleaned.startswith("sqlite+"):
            cleaned = cleaned.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return cleaned

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        return value.strip().upper()

    @field_validator("api_prefix", mode="before")
    @classmethod
    def normalize_api_prefix(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        cleaned = value.strip().rstrip("/")
        if cleaned and not cleaned.startswith("/"):
            cleaned = f"/{cleaned}"
        return cleaned

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        if self.log_level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL must be a logging level name, got {self.log_level!r}")
        if self.default_page_limit > self.max_page_limit:
            raise ValueError("DEFAULT_PAGE_LIMIT cannot exceed MAX_PAGE_LIMIT")
        return self

    def cors_origin_list(self) -> list[str]:
        raw = (self.cors_origins or "").strip()
        if not raw:
            return []

        values: list[str]
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                values = [str(v) for v in parsed if isinstance(v, str)]
            else:
                values = [raw]
        else:
            values = raw.split(",")

        normalized: list[str] = []
        seen: set[str] = set()
        for value in values:
            cleaned = value.strip().strip("\"'")
            if not cleaned:
                continue
            # CORS origins are scheme + host (+ optional port) with no path slash.
            if cleaned != "*" and cleaned.endswith("/"):
                cleaned = cleaned.rstrip("/")
            if cleaned in seen:
                continue
            seen.add(cleaned)
            normalized.append(cleaned)

        return normalized

settings = Settings()
