"""Entitlement gate: plan matrix, remote billing service, fail-closed wrapper."""
import uuid

import httpx
import pytest

from app.config import settings
from app.services.entitlement import (
    FailClosedEntitlementGate,
    HttpEntitlementGate,
    PlanEntitlementGate,
    get_entitlement_gate,
)
from app.services.subscription import get_plan, get_plan_limit


@pytest.mark.parametrize("plan, allowed, limit", [
    ("trial", False, 0),
    ("starter", False, 0),
    ("professional", True, 3),
    ("enterprise", True, None),
])
def test_plan_gate(db, make_tenant, plan, allowed, limit):
    tenant = make_tenant(plan=plan)
    gate = PlanEntitlementGate(db)
    assert gate.can_use_custom_domain(tenant.id) is allowed
    assert gate.max_custom_domains(tenant.id) == limit


def test_plan_gate_suspended_tenant_is_denied(db, make_tenant):
    tenant = make_tenant(plan="enterprise", status="suspended")
    gate = PlanEntitlementGate(db)
    assert gate.can_use_custom_domain(tenant.id) is False
    assert gate.max_custom_domains(tenant.id) == 0


def test_plan_gate_unknown_tenant_is_denied(db):
    assert PlanEntitlementGate(db).can_use_custom_domain(uuid.uuid4()) is False


def test_unknown_plan_falls_back_to_trial():
    assert get_plan("legacy-gold") == get_plan("trial")
    assert get_plan_limit("legacy-gold", "max_custom_domains") == 0


def _transport(handler):
    return httpx.MockTransport(handler)


def test_http_gate_reads_entitlements():
    tenant_id = uuid.uuid4()
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={"custom_domain": True, "max_custom_domains": 5})

    gate = HttpEntitlementGate("https://billing.internal/", service_token="svc", transport=_transport(handler))
    assert gate.can_use_custom_domain(tenant_id) is True
    assert gate.max_custom_domains(tenant_id) == 5
    assert seen["path"] == f"/tenants/{tenant_id}/entitlements"
    assert seen["auth"] == "Bearer svc"


def test_http_gate_negative_limit_means_unlimited():
    gate = HttpEntitlementGate(
        "https://billing.internal",
        transport=_transport(lambda r: httpx.Response(200, json={"custom_domain": True, "max_custom_domains": -1})),
    )
    assert gate.max_custom_domains(uuid.uuid4()) is None


def test_http_gate_retries_transport_errors_once():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"custom_domain": True})

    gate = HttpEntitlementGate("https://billing.internal", transport=_transport(handler))
    assert gate.can_use_custom_domain(uuid.uuid4()) is True
    assert len(calls) == 2


@pytest.mark.parametrize("handler", [
    lambda r: httpx.Response(500, json={"detail": "boom"}),
    lambda r: httpx.Response(200, text="not json"),
])
def test_fail_closed_on_bad_responses(handler):
    gate = FailClosedEntitlementGate(HttpEntitlementGate("https://billing.internal", transport=_transport(handler)))
    assert gate.can_use_custom_domain(uuid.uuid4()) is False
    assert gate.max_custom_domains(uuid.uuid4()) == 0


def test_fail_closed_on_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    gate = FailClosedEntitlementGate(HttpEntitlementGate("https://billing.internal", transport=_transport(handler)))
    assert gate.can_use_custom_domain(uuid.uuid4()) is False


def test_fail_closed_passes_through_answers():
    class Inner:
        def can_use_custom_domain(self, tenant_id):
            return True

        def max_custom_domains(self, tenant_id):
            return None

    gate = FailClosedEntitlementGate(Inner())
    assert gate.can_use_custom_domain(uuid.uuid4()) is True
    assert gate.max_custom_domains(uuid.uuid4()) is None


def test_factory_picks_remote_gate_when_configured(db, monkeypatch):
    monkeypatch.setattr(settings, "ENTITLEMENT_SERVICE_URL", "https://billing.internal")
    gate = get_entitlement_gate(db)
    assert isinstance(gate, FailClosedEntitlementGate)
    assert isinstance(gate.inner, HttpEntitlementGate)

    monkeypatch.setattr(settings, "ENTITLEMENT_SERVICE_URL", "")
    assert isinstance(get_entitlement_gate(db).inner, PlanEntitlementGate)


def test_http_gate_one_round_trip_per_operation():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"custom_domain": True, "max_custom_domains": 3})

    tenant_id = uuid.uuid4()
    gate = HttpEntitlementGate("https://billing.internal", transport=_transport(handler))
    assert gate.can_use_custom_domain(tenant_id) is True
    assert gate.max_custom_domains(tenant_id) == 3
    assert len(calls) == 1

    gate.max_custom_domains(uuid.uuid4())
    assert len(calls) == 2


def test_http_gate_refetches_after_ttl():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"custom_domain": True})

    tenant_id = uuid.uuid4()
    gate = HttpEntitlementGate("https://billing.internal", transport=_transport(handler), cache_ttl=0)
    gate.can_use_custom_domain(tenant_id)
    gate.can_use_custom_domain(tenant_id)
    assert len(calls) == 2


def test_http_gate_does_not_cache_errors():
    responses = [httpx.Response(503), httpx.Response(200, json={"custom_domain": True})]

    def handler(request):
        return responses.pop(0)

    tenant_id = uuid.uuid4()
    gate = FailClosedEntitlementGate(HttpEntitlementGate("https://billing.internal", transport=_transport(handler)))
    assert gate.can_use_custom_domain(tenant_id) is False
    assert gate.can_use_custom_domain(tenant_id) is True
