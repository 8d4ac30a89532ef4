"""Certificate tracking, domain health and the pending/failed housekeeping jobs."""
from datetime import timedelta

import pytest

from app.config import settings
from app.core.errors import DomainUnverified
from app.models.common import as_utc, utcnow
from app.models.custom_domain import CustomDomain, SslStatus
from app.services.domain_registry import DomainRegistry


def _verified(registry, checker, tenant, domain_name):
    record = registry.add_domain(tenant.id, domain_name)
    checker.publish_txt(record.full_domain, record.verification_token)
    return registry.verify_domain(record.id)


def _registry_at(db, gate, checker, when):
    return DomainRegistry(db, gate, checker, clock=lambda: when)


# ─── SSL ───

def test_ssl_refresh_requires_verified_domain(registry, tenant):
    record = registry.add_domain(tenant.id, "mystore.com")
    with pytest.raises(DomainUnverified):
        registry.refresh_ssl_status(record.id)
    assert registry.get_domain(record.id).ssl_status == "pending"


def test_ssl_becomes_active(registry, checker, tenant):
    record = _verified(registry, checker, tenant, "mystore.com")
    checker.ssl["mystore.com"] = SslStatus.ACTIVE

    record = registry.refresh_ssl_status(record.id)

    assert record.ssl_status == "active"
    assert record.ssl_issued_at is not None
    issued = as_utc(record.ssl_issued_at)
    expires = as_utc(record.ssl_expires_at)
    assert expires - issued == timedelta(days=settings.SSL_CERT_VALIDITY_DAYS)
    assert record.error_message is None


def test_ssl_active_again_keeps_issue_date(registry, checker, tenant):
    record = _verified(registry, checker, tenant, "mystore.com")
    checker.ssl["mystore.com"] = SslStatus.ACTIVE
    record = registry.refresh_ssl_status(record.id)
    issued = record.ssl_issued_at

    record = registry.refresh_ssl_status(record.id)
    assert record.ssl_issued_at == issued


def test_ssl_still_pending(registry, checker, tenant):
    record = _verified(registry, checker, tenant, "mystore.com")
    record = registry.refresh_ssl_status(record.id)
    assert record.ssl_status == "pending"
    assert record.ssl_issued_at is None


@pytest.mark.parametrize("status, message", [
    (SslStatus.FAILED, "SSL certificate provisioning failed"),
    (SslStatus.EXPIRED, "SSL certificate has expired"),
])
def test_ssl_failure_states(registry, checker, tenant, status, message):
    record = _verified(registry, checker, tenant, "mystore.com")
    checker.ssl["mystore.com"] = status
    record = registry.refresh_ssl_status(record.id)
    assert record.ssl_status == status.value
    assert record.error_message == message
    # Domain ownership is unaffected
    assert record.verification_status == "verified"


def test_ssl_checker_outage_keeps_status(registry, checker, tenant):
    record = _verified(registry, checker, tenant, "mystore.com")
    checker.ssl["mystore.com"] = SslStatus.ACTIVE
    registry.refresh_ssl_status(record.id)

    checker.outage = True
    record = registry.refresh_ssl_status(record.id)

    assert record.ssl_status == "active"
    assert record.error_message.startswith("Still checking")


def test_expired_primary_certificate_downgrades_origin(registry, checker, tenant, db):
    from app.services.origin_resolver import PrimaryDomainResolver

    record = _verified(registry, checker, tenant, "mystore.com")
    registry.set_primary_domain(record.id)
    checker.ssl["mystore.com"] = SslStatus.ACTIVE
    registry.refresh_ssl_status(record.id)
    assert PrimaryDomainResolver(db).resolve_origin(tenant.id).ssl_enabled is True

    checker.ssl["mystore.com"] = SslStatus.EXPIRED
    registry.refresh_ssl_status(record.id)

    origin = PrimaryDomainResolver(db).resolve_origin(tenant.id)
    assert origin.host == "mystore.com"
    assert origin.ssl_enabled is False


# ─── Health ───

def test_domain_health(db, gate, checker, tenant, registry):
    record = _verified(registry, checker, tenant, "mystore.com")
    checker.ssl["mystore.com"] = SslStatus.ACTIVE
    registry.refresh_ssl_status(record.id)
    checker.cname["mystore.com"] = record.dns_target

    later = as_utc(record.ssl_issued_at) + timedelta(days=settings.SSL_CERT_VALIDITY_DAYS - 10)
    health = _registry_at(db, gate, checker, later).domain_health(record.id)

    assert health.full_domain == "mystore.com"
    assert health.cname_configured is True
    assert health.days_until_ssl_expiry == 10
    assert health.ssl_renewal_due is True


def test_domain_health_fresh_certificate(registry, checker, tenant):
    record = _verified(registry, checker, tenant, "mystore.com")
    checker.ssl["mystore.com"] = SslStatus.ACTIVE
    registry.refresh_ssl_status(record.id)

    health = registry.domain_health(record.id)
    assert health.ssl_renewal_due is False
    assert health.cname_configured is False


def test_domain_health_during_outage(registry, checker, tenant):
    record = registry.add_domain(tenant.id, "mystore.com")
    checker.outage = True

    health = registry.domain_health(record.id)

    assert health.cname_configured is None
    assert health.days_until_ssl_expiry is None
    assert health.ssl_renewal_due is False


# ─── Housekeeping ───

def test_expire_stale_pending_domains(db, gate, checker, tenant, registry):
    stale = registry.add_domain(tenant.id, "stale.com")
    done = _verified(registry, checker, tenant, "done.com")

    later = utcnow() + timedelta(hours=settings.DOMAIN_VERIFICATION_TIMEOUT_HOURS + 1)
    assert _registry_at(db, gate, checker, later).expire_stale_domains() == 1

    db.expire_all()
    stale = db.get(CustomDomain, stale.id)
    assert stale.verification_status == "failed"
    assert "72 hours" in stale.error_message
    assert db.get(CustomDomain, done.id).verification_status == "verified"


def test_recent_pending_domains_not_expired(registry, tenant):
    registry.add_domain(tenant.id, "fresh.com")
    assert registry.expire_stale_domains() == 0


def test_failed_domain_can_still_verify(db, gate, checker, tenant, registry):
    record = registry.add_domain(tenant.id, "late.com")
    later = utcnow() + timedelta(hours=settings.DOMAIN_VERIFICATION_TIMEOUT_HOURS + 1)
    _registry_at(db, gate, checker, later).expire_stale_domains()

    checker.publish_txt("late.com", record.verification_token)
    record = registry.verify_domain(record.id)
    assert record.verification_status == "verified"


def test_purge_failed_domains_releases_name(db, gate, checker, make_tenant, registry):
    a = make_tenant(slug="alpha")
    b = make_tenant(slug="beta")
    record = registry.add_domain(a.id, "abandoned.com")

    expire_at = utcnow() + timedelta(hours=settings.DOMAIN_VERIFICATION_TIMEOUT_HOURS + 1)
    _registry_at(db, gate, checker, expire_at).expire_stale_domains()

    # Not old enough yet
    assert _registry_at(db, gate, checker, expire_at).purge_failed_domains() == 0

    purge_at = utcnow() + timedelta(days=settings.DOMAIN_FAILED_PURGE_DAYS + 1)
    assert _registry_at(db, gate, checker, purge_at).purge_failed_domains() == 1

    assert db.get(CustomDomain, record.id) is None
    assert registry.add_domain(b.id, "abandoned.com").tenant_id == b.id
