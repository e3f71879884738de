"""
Laundry Service — Configuration
All settings are read from environment variables (or .env file).
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "laundry-service"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # ── JWT ──────────────────────────────────────────────────
    JWT_SECRET_KEY: str = "CHANGE_ME_IN_PRODUCTION"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # ── PostgreSQL ────────────────────────────────────────────
    POSTGRES_HOST: str = "laundry-db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "laundry_db"
    POSTGRES_USER: str = "laundry_user"
    POSTGRES_PASSWORD: str = "laundry_pass"
    DATABASE_URL: str = ""  # overrides the POSTGRES_* parts when set

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # ── Redis ─────────────────────────────────────────────────
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ── Rate Limiting / Idempotency ───────────────────────────
    RATE_LIMIT_MAX_ATTEMPTS: int = 5
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    IDEMPOTENCY_KEY_TTL_SECONDS: int = 86400

    # ── Optimistic Locking Retry ──────────────────────────────
    OPT_LOCK_MAX_RETRIES: int = 3
    OPT_LOCK_BASE_DELAY_MS: int = 20
    OPT_LOCK_MAX_DELAY_MS: int = 500
    OPT_LOCK_JITTER_MS: int = 20

    # ── Order Reminders ───────────────────────────────────────
    REMINDERS_ENABLED: bool = True
    REMINDER_INTERVAL_SECONDS: float = 120.0

    # ── Business ──────────────────────────────────────────────
    BUSINESS_NAME: str = "Nahati Anytime Laundry"
    BUSINESS_TAGLINE: str = "Your Anytime Laundry Service"
    BUSINESS_PHONE: str = "+256200981445"
    BUSINESS_EMAIL: str = "info@nahatilaundry.com"
    BUSINESS_ADDRESS: str = "Nahati Anytime Laundry, Kampala, Uganda"
    BUSINESS_LAT: float = 0.3385054639934989
    BUSINESS_LNG: float = 32.56840547410712
    DEFAULT_CURRENCY: str = "UGX"

    # ── Notifications (SSE) ───────────────────────────────────
    SSE_KEEPALIVE_INTERVAL_SECONDS: int = 15
    SSE_RETRY_MILLISECONDS: int = 3000

    # ── Observability ─────────────────────────────────────────
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
