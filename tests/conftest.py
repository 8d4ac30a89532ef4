"""Pytest configuration and fixtures."""
import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "testing")

import pytest  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.errors import ExternalCheckFailed  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.crud import crud_tenant  # noqa: E402
from app.db.base_class import Base  # noqa: E402
from app.db.session import build_engine  # noqa: E402
from app.models.custom_domain import SslStatus  # noqa: E402
from app.services.challenge import txt_record_value  # noqa: E402
from app.services.domain_registry import DomainRegistry  # noqa: E402
from app.services.origin_resolver import invalidate_host_cache  # noqa: E402
import app.models  # noqa: F401, E402


# --- Collaborator fakes ---

class FakeChecker:
    """In-memory DNS / certificate state.

    ``publish_txt`` mimics the store owner adding the TXT record; ``outage``
    makes every lookup raise ExternalCheckFailed.
    """

    def __init__(self):
        self.txt = {}
        self.cname = {}
        self.ssl = {}
        self.outage = False
        self.calls = []

    def publish_txt(self, full_domain: str, token: str) -> None:
        self.txt[full_domain] = txt_record_value(token)

    def check_txt(self, full_domain, token):
        self.calls.append(("txt", full_domain))
        if self.outage:
            raise ExternalCheckFailed(f"DNS lookup for {full_domain} timed out")
        return self.txt.get(full_domain) == txt_record_value(token)

    def check_cname(self, full_domain, target):
        self.calls.append(("cname", full_domain))
        if self.outage:
            raise ExternalCheckFailed(f"DNS lookup for {full_domain} timed out")
        return self.cname.get(full_domain) == target

    def check_ssl(self, full_domain):
        self.calls.append(("ssl", full_domain))
        if self.outage:
            raise ExternalCheckFailed(f"TLS check for {full_domain} timed out")
        return self.ssl.get(full_domain, SslStatus.PENDING)


class FakeGate:
    def __init__(self, allowed=True, limit=None):
        self.allowed = allowed
        self.limit = limit

    def can_use_custom_domain(self, tenant_id):
        return self.allowed

    def max_custom_domains(self, tenant_id):
        return self.limit


# --- DB fixtures ---

def _build_test_engine():
    """In-memory SQLite unless TEST_DATABASE_URL points at a real database."""
    url = os.getenv("TEST_DATABASE_URL", "sqlite://")
    if url == "sqlite://":
        return build_engine(url, poolclass=StaticPool)
    return build_engine(url)


@pytest.fixture
def engine():
    """Fresh schema per test."""
    test_engine = _build_test_engine()
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _clear_host_cache():
    invalidate_host_cache()
    yield
    invalidate_host_cache()


@pytest.fixture
def checker():
    return FakeChecker()


@pytest.fixture
def gate():
    return FakeGate()


@pytest.fixture
def registry(db, gate, checker):
    return DomainRegistry(db, gate, checker, actor="test-user")


@pytest.fixture
def make_tenant(db):
    def _make(slug=None, plan="professional", status="active"):
        slug = slug or f"store-{uuid.uuid4().hex[:8]}"
        return crud_tenant.create(db, slug=slug, name=slug.title(), plan=plan, status=status)
    return _make


@pytest.fixture
def tenant(make_tenant):
    return make_tenant(slug="acme")


# --- API fixtures ---

@pytest.fixture
async def client(session_factory, checker, monkeypatch):
    """
    Async HTTP client against the app with:
      - get_db bound to the per-test database
      - the DNS / TLS checker replaced by FakeChecker
    The entitlement gate stays the real plan-based one.
    """
    from app.main import app as fastapi_app
    from app.api import deps

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[deps.get_db] = _override_get_db
    monkeypatch.setattr(deps, "get_verification_checker", lambda: checker)

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


# --- Helpers ---

def auth_headers(tenant_id, role="owner", user_id="user-1", is_superuser=False) -> dict:
    token = create_access_token(subject=user_id, tenant_id=tenant_id, role=role, is_superuser=is_superuser)
    return {"Authorization": f"Bearer {token}"}
