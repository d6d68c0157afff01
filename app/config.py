import logging
from pathlib import Path
from functools import lru_cache
from typing import List, Optional, Union

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

log = logging.getLogger(__name__)

DEV_TOKEN_SECRET = "dev-quote-secret-change-me-very-long-32-chars-min"
_MIN_SECRET_LEN = 32


class Settings(BaseSettings):
    # App
    APP_ENV: str = "development"
    CORS_ORIGINS: Union[str, List[str]] = "http://localhost:3000,http://127.0.0.1:3000"

    # Security
    QUOTE_TOKEN_SECRET: str = ""
    ADMIN_TOKEN_SECRET: str = ""
    ADMIN_USERNAME: str = ""
    ADMIN_PASSWORD: str = ""
    ADMIN_PASSWORD_HASH: str = ""
    ADMIN_TOKEN_TTL_SECONDS: int = 24 * 60 * 60
    QUOTE_TOKEN_TTL_SECONDS: int = 10 * 60

    # Storage
    STORE_DRIVER: str = "memory"
    REDIS_URL: str = "redis://127.0.0.1:6379/0"

    # Notifier
    WA_WEBHOOK_URL: str = ""
    NOTIFIER_TIMEOUT_SECONDS: float = 10.0

    # Catalog
    CATALOG_PATH: str = ""
    CATALOG_CACHE_TTL_SECONDS: int = 30

    # OTP policy
    OTP_TTL_SECONDS: int = 5 * 60
    OTP_RESEND_COOLDOWN_SECONDS: int = 60
    OTP_MAX_ATTEMPTS: int = 5
    OTP_LOCKOUT_SECONDS: int = 15 * 60
    IP_RATE_LIMIT: int = 30
    IP_RATE_WINDOW_SECONDS: int = 60 * 60

    # Observability
    SENTRY_DSN: str = ""
    METRICS_ENABLED: bool = False

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def env(self) -> str:
        return (self.APP_ENV or "").strip().lower()

    @property
    def is_development(self) -> bool:
        return self.env in ("development", "dev", "test", "local")

    def quote_secret(self) -> str:
        """Signing key for quote tokens; the dev default only outside production."""
        secret = (self.QUOTE_TOKEN_SECRET or "").strip()
        if secret:
            return secret
        if not self.is_development:
            raise RuntimeError("QUOTE_TOKEN_SECRET is not set")
        log.warning("QUOTE_TOKEN_SECRET not set; using development secret")
        return DEV_TOKEN_SECRET

    def admin_secret(self) -> str:
        secret = (self.ADMIN_TOKEN_SECRET or "").strip()
        return secret or self.quote_secret()

    def check_secrets(self) -> None:
        """Refuse to run outside development with missing or weak signing keys."""
        if self.is_development:
            return
        for name in ("QUOTE_TOKEN_SECRET", "ADMIN_TOKEN_SECRET"):
            value = (getattr(self, name, "") or "").strip()
            if name == "ADMIN_TOKEN_SECRET" and not value:
                continue
            if not value or value == DEV_TOKEN_SECRET or len(value) < _MIN_SECRET_LEN:
                raise RuntimeError(f"Insecure {name}; set a real secret in production")
        if not self.WA_WEBHOOK_URL:
            raise RuntimeError("WA_WEBHOOK_URL must be set in production")


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings: Settings = get_settings()


def catalog_path(cfg: Optional[Settings] = None) -> str:
    cfg = cfg or settings
    if cfg.CATALOG_PATH:
        return cfg.CATALOG_PATH
    return str(Path(__file__).parent / "data" / "prices.json")
