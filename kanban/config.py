from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    JWT_SECRET: str
    JWT_ALGORITHM: str = Field(default="HS256")
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./kanban.db")
    REDIS_URL: str = Field(default="")
    LOCK_TIMEOUT_SECONDS: float = Field(default=10.0)
    LOCK_TTL_SECONDS: float = Field(default=60.0)
    LOG_LEVEL: str = Field(default="INFO")
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=3000)
    CORS_ORIGINS: str = Field(default="*")

    @property
    def cors_origins(self) -> list[str]:
        origins: list[str] = []
        for item in self.CORS_ORIGINS.split(","):
            item = item.strip()
            if not item:
                continue
            origins.append(item)
        return origins

    @property
    def uses_redis_locks(self) -> bool:
        return bool(self.REDIS_URL.strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
