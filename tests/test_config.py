"""Settings validation."""
import pytest
from pydantic import ValidationError

from app.config import Settings


def test_reserved_domains_always_include_platform_domain():
    s = Settings(PLATFORM_BASE_DOMAIN="shops.acme.io", RESERVED_DOMAINS="Internal.acme.io, localhost")
    assert s.reserved_domains == ["shops.acme.io", "localhost", "example.com", "test.com", "internal.acme.io"]


def test_database_url_prefers_explicit_url():
    assert Settings(DATABASE_URL="sqlite:///x.db").database_url == "sqlite:///x.db"
    s = Settings(DATABASE_URL=None, POSTGRES_USER="u", POSTGRES_PASSWORD="p", POSTGRES_SERVER="db", POSTGRES_DB="d")
    assert s.database_url == "postgresql://u:p@db/d"


def test_production_rejects_insecure_secret():
    with pytest.raises(ValidationError):
        Settings(APP_ENV="production", SECRET_KEY="change_this", DATABASE_URL="postgresql://x")


def test_production_accepts_strong_settings():
    s = Settings(APP_ENV="production", SECRET_KEY="x" * 48, DATABASE_URL="postgresql://u:p@db/d")
    assert s.is_production
