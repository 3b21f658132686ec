from pydantic import AnyUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    SERVICE_PORT: int = 3000
    MAX_EVENT_SIZE: int = 65536
    LOG_JSON: bool = True
    CORS_ORIGINS: str = "*"  # Comma-separated list of origins
    # Time references, highest priority first: ntp://host[:port] or http(s)://url
    TIME_REFERENCES: str = "ntp://pool.ntp.org,ntp://time.google.com,ntp://time.cloudflare.com"
    TIME_REFERENCE_TIMEOUT_SECONDS: float = 2.0
    CLOCK_FRESHNESS_SECONDS: float = 30.0
    # Maximum accepted distance between a client's approximate server time and ours
    SKEW_TOLERANCE_MS: int = 600_000
    PUNCH_AUDIT_FIELDS: str = "confidence,skewMs,deviceUtcOffsetMinutes,networkState"
    UNKNOWN_USER: str = "unknown"
    DEFAULT_KIND: str = "entrada"
    # Record store selection: "memory", "file" or "redis"
    STORE_BACKEND: Literal["memory", "file", "redis"] = "memory"
    STORE_PATH: str = "db.json"
    REDIS_URL: AnyUrl | None = None

    @property
    def time_reference_urls(self) -> list[str]:
        return _split(self.TIME_REFERENCES)

    @property
    def audit_fields(self) -> list[str]:
        return _split(self.PUNCH_AUDIT_FIELDS)

    @property
    def cors_origins(self) -> list[str]:
        return _split(self.CORS_ORIGINS)


def _split(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
