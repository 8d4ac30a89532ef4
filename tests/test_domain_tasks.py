"""Celery tasks, called in-process with the worker's session and checker patched."""
import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest

from app.celery_app import celery_app
from app.models.common import utcnow
from app.models.custom_domain import CustomDomain, SslStatus
from app.tasks import domain_tasks
from tests.conftest import FakeGate


@pytest.fixture
def worker(session_factory, checker, monkeypatch):
    monkeypatch.setattr(domain_tasks, "SessionLocal", session_factory)
    monkeypatch.setattr(domain_tasks, "get_verification_checker", lambda: checker)
    return checker


@pytest.fixture
def entitled(monkeypatch):
    """Worker tasks use the plan gate; tenants here are on a paid plan."""
    monkeypatch.setattr(domain_tasks, "get_entitlement_gate", lambda db: FakeGate())


def test_beat_schedule_registered():
    schedule = celery_app.conf.beat_schedule
    assert {entry["task"] for entry in schedule.values()} == {
        "app.tasks.domain_tasks.recheck_pending_domains",
        "app.tasks.domain_tasks.refresh_ssl_statuses",
        "app.tasks.domain_tasks.expire_stale_domains",
        "app.tasks.domain_tasks.purge_failed_domains",
    }


def test_verify_task_pending_then_verified(worker, entitled, registry, tenant, db):
    record = registry.add_domain(tenant.id, "mystore.com")

    result = domain_tasks.verify_domain_task(str(record.id))
    assert result["status"] == "pending"
    assert result["error"]

    worker.publish_txt("mystore.com", record.verification_token)
    result = domain_tasks.verify_domain_task(str(record.id))
    assert result["status"] == "verified"

    db.expire_all()
    assert db.get(CustomDomain, record.id).verification_status == "verified"


def test_verify_task_dns_outage_is_not_a_failure(worker, entitled, registry, tenant):
    record = registry.add_domain(tenant.id, "mystore.com")
    worker.outage = True
    result = domain_tasks.verify_domain_task(str(record.id))
    assert result["status"] == "pending"
    assert result["error"].startswith("Still checking")


def test_verify_task_removed_domain(worker, entitled):
    domain_id = str(uuid.uuid4())
    assert domain_tasks.verify_domain_task(domain_id) == {"status": "not_found", "domain_id": domain_id}


def test_ssl_task(worker, entitled, registry, tenant):
    record = registry.add_domain(tenant.id, "mystore.com")
    assert domain_tasks.refresh_ssl_task(str(record.id))["status"] == "unverified"

    worker.publish_txt("mystore.com", record.verification_token)
    registry.verify_domain(record.id)
    worker.ssl["mystore.com"] = SslStatus.ACTIVE
    assert domain_tasks.refresh_ssl_task(str(record.id)) == {"status": "active", "domain_id": str(record.id)}


def test_recheck_fans_out_pending_only(worker, entitled, registry, tenant):
    pending = registry.add_domain(tenant.id, "pending.com")
    done = registry.add_domain(tenant.id, "done.com")
    worker.publish_txt("done.com", done.verification_token)
    registry.verify_domain(done.id)

    with patch.object(domain_tasks.verify_domain_task, "delay") as delay:
        assert domain_tasks.recheck_pending_domains() == {"queued": 1}
    delay.assert_called_once_with(str(pending.id))

    with patch.object(domain_tasks.refresh_ssl_task, "delay") as delay:
        assert domain_tasks.refresh_ssl_statuses() == {"queued": 1}
    delay.assert_called_once_with(str(done.id))


def test_housekeeping_tasks(worker, entitled, registry, tenant, db):
    record = registry.add_domain(tenant.id, "stale.com")
    assert domain_tasks.expire_stale_domains() == {"expired": 0}

    db.query(CustomDomain).filter(CustomDomain.id == record.id).update(
        {CustomDomain.created_at: utcnow() - timedelta(days=4)}
    )
    db.commit()
    assert domain_tasks.expire_stale_domains() == {"expired": 1}
    assert domain_tasks.purge_failed_domains() == {"purged": 0}

    db.query(CustomDomain).filter(CustomDomain.id == record.id).update(
        {CustomDomain.updated_at: utcnow() - timedelta(days=31)}
    )
    db.commit()
    assert domain_tasks.purge_failed_domains() == {"purged": 1}
