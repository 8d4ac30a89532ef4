from typing import List, Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Known insecure default keys (must never be used in production) ──
_INSECURE_KEYS = {
    "change_this",
    "change_this_to_a_secure_random_string",
    "CHANGE_THIS_PRODUCTION_SECRET_MIN_32_CHARS",
    "secret",
}

# Always reserved regardless of RESERVED_DOMAINS
_BUILTIN_RESERVED = ("localhost", "example.com", "test.com")


class Settings(BaseSettings):
    APP_NAME: str = "Storefront Domains"
    APP_ENV: str = "development"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "change_this"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 1 day
    ALGORITHM: str = "HS256"
    LOG_LEVEL: Optional[str] = None  # defaults to INFO in production/staging, DEBUG elsewhere

    # CORS
    BACKEND_CORS_ORIGINS: str = ""

    # Database
    DATABASE_URL: Optional[str] = None
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "storefront"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    DB_ECHO: bool = False
    SLOW_QUERY_THRESHOLD_MS: int = 500

    # Redis / Celery
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # Platform identity
    PLATFORM_BASE_DOMAIN: str = "sellusgenie.com"
    VERIFICATION_PREFIX: str = "sellusgenie"
    RESERVED_DOMAINS: str = ""  # comma separated, added to the built-in list

    # External checks
    DNS_LOOKUP_TIMEOUT: float = 5.0       # seconds
    SSL_CHECK_TIMEOUT: float = 10.0       # seconds
    ENTITLEMENT_TIMEOUT: float = 3.0      # seconds
    ENTITLEMENT_SERVICE_URL: str = ""     # empty = use local plan matrix
    ENTITLEMENT_SERVICE_TOKEN: str = ""

    # Domain lifecycle
    DOMAIN_VERIFICATION_TIMEOUT_HOURS: int = 72
    DOMAIN_FAILED_PURGE_DAYS: int = 30
    DOMAIN_RECHECK_INTERVAL_MINUTES: int = 15
    SSL_CERT_VALIDITY_DAYS: int = 90
    SSL_RENEWAL_WINDOW_DAYS: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @model_validator(mode="after")
    def _validate_production_security(self) -> "Settings":
        """Block startup if critical secrets are insecure in production / staging."""
        if self.APP_ENV in ("production", "staging"):
            if self.SECRET_KEY in _INSECURE_KEYS or len(self.SECRET_KEY) < 32:
                raise ValueError(
                    f"SECRET_KEY is insecure ('{self.SECRET_KEY[:8]}…'). "
                    "Set a strong random key (≥ 32 chars) in .env or environment. "
                    f"Hint: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
                )
            if not self.DATABASE_URL and self.POSTGRES_PASSWORD in ("postgres", ""):
                raise ValueError(
                    "POSTGRES_PASSWORD is set to default 'postgres'. "
                    "Set a strong password in .env or environment."
                )
        return self

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"
        )

    @property
    def reserved_domains(self) -> List[str]:
        extra = [d.strip().lower() for d in self.RESERVED_DOMAINS.split(",") if d.strip()]
        reserved = [self.PLATFORM_BASE_DOMAIN.lower(), *_BUILTIN_RESERVED, *extra]
        # preserve order, drop duplicates
        return list(dict.fromkeys(reserved))

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_staging(self) -> bool:
        return self.APP_ENV == "staging"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

settings = Settings()
