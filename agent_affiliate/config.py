from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./agent_affiliate.db"

    # Database Connection Pool Settings (ignored for SQLite)
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # App Settings
    APP_NAME: str = "Agent Affiliate API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_PREFIX: str = "/api"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = ["*"]

    # Short links
    SHORT_URL_BASE: str = "http://localhost:8000/s"  # Public base for /s/{code}
    SHORT_CODE_LENGTH: int = 7  # 55^7 ~ 1.5 trillion codes
    SHORT_CODE_MAX_ATTEMPTS: int = 10  # Fresh draws before ShortCodeExhausted

    # Reward reconciliation
    REWARD_MERGE_MAX_RETRIES: int = 5  # Optimistic-lock retries per postback
    SETTLEMENT_TOKEN: str = "USDT"  # Only cashback rates in this token are linkable

    # Outbound HTTP (affiliate networks, catalog, payout)
    OUTBOUND_TIMEOUT_SECONDS: float = 10.0

    # Merchant catalog backend (merchant lookup + mediated tracking links)
    CATALOG_BASE_URL: str = "https://api.laguna.network"
    CATALOG_API_KEY: Optional[str] = None

    # Affiliate network credentials (for direct link generation)
    IMPACT_ACCOUNT_SID: Optional[str] = None
    IMPACT_AUTH_TOKEN: Optional[str] = None
    RAKUTEN_TOKEN: Optional[str] = None
    PARTNERIZE_SID: Optional[str] = None
    PARTNERIZE_TOKEN: Optional[str] = None

    # Payout service (fund movement on PAID rewards)
    PAYOUT_SERVICE_URL: Optional[str] = None  # e.g. "https://payouts.internal/v1/payouts"
    PAYOUT_API_KEY: Optional[str] = None

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @field_validator('SHORT_URL_BASE', 'CATALOG_BASE_URL', mode='after')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip('/')

    @property
    def cors_origins_list(self) -> list[str]:
        return self.CORS_ORIGINS

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
