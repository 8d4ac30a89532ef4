"""
Custom domain registry: the domain lifecycle state machine.

    add_domain ──► pending/pending ──verify_domain──► verified
                        │                                │
                        │ (timeout)                set_primary_domain
                        ▼                                ▼
                     failed ──(purge)──► removed     primary + active

Invariants kept after every operation:
  - full_domain is unique across all tenants (unique index, checked on insert)
  - at most one active primary per tenant (per-tenant lock + partial unique index)
  - a primary record is always verified
  - the verification token never changes for the life of a record
  - ssl_status only reaches "active" on a verified record

Every failing operation rolls back, so persisted state is untouched.
"""
import logging
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterator, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.core.errors import (
    DomainConflict,
    DomainNotFound,
    DomainUnverified,
    DomainValidationError,
    EntitlementDenied,
    ExternalCheckFailed,
    TenantNotFound,
)
from app.crud import crud_audit, crud_custom_domain, crud_tenant
from app.middleware.metrics import ENTITLEMENT_DENIALS, SSL_CHECKS, VERIFICATION_CHECKS
from app.models.common import as_utc, utcnow
from app.models.custom_domain import (
    CustomDomain,
    SslStatus,
    VerificationMethod,
    VerificationStatus,
)
from app.services.challenge import build_full_domain, issue_challenge, txt_record_value
from app.services.domain_validator import DomainViolation, normalize_domain, validate_domain
from app.services.entitlement import EntitlementGate
from app.services.origin_resolver import invalidate_host_cache, refresh_origin_pointer
from app.services.verification import VerificationChecker

logger = logging.getLogger("storefront.domains")

# ── Per-tenant serialization within one process ──
# Entries live only while some thread holds or waits on the lock.
_TENANT_LOCKS: "weakref.WeakValueDictionary[UUID, threading.RLock]" = weakref.WeakValueDictionary()
_TENANT_LOCKS_GUARD = threading.Lock()


@contextmanager
def tenant_lock(tenant_id: UUID) -> Iterator[None]:
    with _TENANT_LOCKS_GUARD:
        lock = _TENANT_LOCKS.get(tenant_id)
        if lock is None:
            lock = threading.RLock()
            _TENANT_LOCKS[tenant_id] = lock
    with lock:
        yield


@dataclass(frozen=True)
class DomainAvailability:
    full_domain: str
    available: bool
    violations: List[DomainViolation]


@dataclass(frozen=True)
class DomainHealth:
    domain_id: UUID
    full_domain: str
    verification_status: str
    ssl_status: str
    is_active: bool
    is_primary: bool
    dns_configured: bool
    cname_configured: Optional[bool]  # None = could not be checked right now
    last_checked_at: Optional[datetime]
    ssl_expires_at: Optional[datetime]
    days_until_ssl_expiry: Optional[int]
    ssl_renewal_due: bool
    error_message: Optional[str]


class DomainRegistry:
    def __init__(
        self,
        db: Session,
        entitlement_gate: EntitlementGate,
        checker: VerificationChecker,
        *,
        actor: str = "system",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.gate = entitlement_gate
        self.checker = checker
        self.actor = actor
        self.clock = clock

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_domain(self, domain_id: UUID, *, tenant_id: Optional[UUID] = None) -> CustomDomain:
        record = crud_custom_domain.get(self.db, domain_id)
        if record is None or (tenant_id is not None and record.tenant_id != tenant_id):
            raise DomainNotFound()
        return record

    def list_domains(self, tenant_id: UUID) -> List[CustomDomain]:
        return crud_custom_domain.get_multi_by_tenant(self.db, tenant_id)

    def check_availability(self, domain_name: str, subdomain_label: Optional[str] = None) -> DomainAvailability:
        """Advisory only; add_domain still decides on insert."""
        full_domain = build_full_domain(domain_name, subdomain_label)
        violations = validate_domain(full_domain)
        taken = not violations and crud_custom_domain.get_by_full_domain(self.db, full_domain) is not None
        return DomainAvailability(
            full_domain=full_domain,
            available=not violations and not taken,
            violations=violations,
        )

    # ------------------------------------------------------------------
    # AddDomain
    # ------------------------------------------------------------------

    def add_domain(
        self,
        tenant_id: UUID,
        domain_name: str,
        subdomain_label: Optional[str] = None,
    ) -> CustomDomain:
        if crud_tenant.get(self.db, tenant_id) is None:
            raise TenantNotFound()
        self._require_entitlement(tenant_id, "add_domain")

        challenge = issue_challenge(tenant_id, domain_name, subdomain_label)
        violations = validate_domain(challenge.full_domain)
        if violations:
            logger.info(
                "Rejected domain %r for tenant %s: %s",
                challenge.full_domain, tenant_id, ", ".join(v.code for v in violations),
            )
            raise DomainValidationError(violations)

        limit = self.gate.max_custom_domains(tenant_id)
        with tenant_lock(tenant_id):
            # The tenant row lock serializes count-then-insert across processes
            if crud_tenant.get_for_update(self.db, tenant_id) is None:
                self.db.rollback()
                raise TenantNotFound()
            if limit is not None and crud_custom_domain.count_by_tenant(self.db, tenant_id) >= limit:
                self.db.rollback()
                ENTITLEMENT_DENIALS.labels(operation="domain_limit").inc()
                raise EntitlementDenied(
                    f"Your plan allows up to {limit} custom domain(s). "
                    "Remove a domain or upgrade your plan."
                )

            record = CustomDomain(
                tenant_id=tenant_id,
                domain_name=normalize_domain(domain_name),
                subdomain_label=normalize_domain(subdomain_label) or None,
                full_domain=challenge.full_domain,
                verification_status=VerificationStatus.PENDING.value,
                verification_token=challenge.verification_token,
                verification_method=VerificationMethod.DNS_TXT.value,
                ssl_status=SslStatus.PENDING.value,
                dns_configured=False,
                dns_target=challenge.dns_target,
                dns_instructions=challenge.dns_instructions,
                is_active=False,
                is_primary=False,
                metadata_={},
            )
            try:
                crud_custom_domain.insert(self.db, db_obj=record)
                self._audit(record, "domain.added")
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.info("Domain %s already registered, tenant %s refused", challenge.full_domain, tenant_id)
                raise DomainConflict()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(record)
        logger.info("Custom domain added: %s for tenant %s", record.full_domain, tenant_id)
        return record

    # ------------------------------------------------------------------
    # VerifyDomain
    # ------------------------------------------------------------------

    def verify_domain(self, domain_id: UUID, *, tenant_id: Optional[UUID] = None) -> CustomDomain:
        """Check the TXT challenge once.

        A miss or a checker outage is a normal "still pending" outcome: the
        record keeps its status, with ``last_checked_at`` and ``error_message``
        updated so the caller can retry later.
        """
        record = self.get_domain(domain_id, tenant_id=tenant_id)
        if record.is_verified:
            return record

        now = self.clock()
        error: Optional[str] = None
        try:
            matched = self.checker.check_txt(record.full_domain, record.verification_token)
        except ExternalCheckFailed as e:
            matched = False
            error = f"{ExternalCheckFailed.message} ({e.message})"
        except Exception as e:
            logger.warning("TXT check for %s raised: %s", record.full_domain, e, exc_info=True)
            matched = False
            error = f"{ExternalCheckFailed.message} (verification service error)"

        record.last_checked_at = now
        if matched:
            record.verification_status = VerificationStatus.VERIFIED.value
            record.verified_at = now
            record.dns_configured = True
            record.error_message = None
            VERIFICATION_CHECKS.labels(outcome="verified").inc()
            self._audit(record, "domain.verified")
            logger.info("Domain verified: %s", record.full_domain)
        else:
            if error is None:
                error = (
                    f"TXT record {txt_record_value(record.verification_token)} was not found "
                    f"at {record.full_domain}. DNS changes can take up to 24 hours to propagate."
                )
                VERIFICATION_CHECKS.labels(outcome="pending").inc()
            else:
                VERIFICATION_CHECKS.labels(outcome="error").inc()
            record.error_message = error
            logger.info("Domain %s still pending: %s", record.full_domain, error)

        self._commit_domain_change(record)
        return record

    def bulk_verify_pending(self, tenant_id: UUID) -> List[CustomDomain]:
        ids = crud_custom_domain.list_ids_by_status(
            self.db, VerificationStatus.PENDING, tenant_id=tenant_id
        )
        return [self.verify_domain(domain_id) for domain_id in ids]

    # ------------------------------------------------------------------
    # SetPrimaryDomain
    # ------------------------------------------------------------------

    def set_primary_domain(self, domain_id: UUID, *, tenant_id: Optional[UUID] = None) -> CustomDomain:
        record = self.get_domain(domain_id, tenant_id=tenant_id)
        if not record.is_verified:
            raise DomainUnverified()
        self._require_entitlement(record.tenant_id, "set_primary")

        owner_id = record.tenant_id
        with tenant_lock(owner_id):
            try:
                tenant = crud_tenant.get_for_update(self.db, owner_id)
                # Re-read under the lock: it may have been removed meanwhile
                record = crud_custom_domain.get_fresh(self.db, domain_id)
                if record is None:
                    raise DomainNotFound()
                if not record.is_verified:
                    raise DomainUnverified()

                crud_custom_domain.clear_primary(self.db, owner_id, keep_id=record.id)
                record.is_primary = True
                record.is_active = True
                self.db.flush()
                refresh_origin_pointer(self.db, tenant)
                self._audit(record, "domain.primary_set")
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise DomainConflict("Another primary domain change is in progress. Try again.")
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(record)
        logger.info("Primary domain for tenant %s set to %s", owner_id, record.full_domain)
        return record

    # ------------------------------------------------------------------
    # RemoveDomain
    # ------------------------------------------------------------------

    def remove_domain(
        self,
        domain_id: UUID,
        *,
        tenant_id: Optional[UUID] = None,
        only_if_status: Optional[VerificationStatus] = None,
    ) -> bool:
        """Delete the record and rebuild the tenant pointer.

        With ``only_if_status`` the record is kept (and False returned) when
        its status has changed since the caller looked at it.
        """
        record = self.get_domain(domain_id, tenant_id=tenant_id)
        owner_id = record.tenant_id
        full_domain = record.full_domain

        with tenant_lock(owner_id):
            try:
                tenant = crud_tenant.get_for_update(self.db, owner_id)
                record = crud_custom_domain.get_fresh(self.db, domain_id)
                if record is None:
                    raise DomainNotFound()
                if only_if_status is not None and record.verification_status != only_if_status.value:
                    self.db.rollback()
                    logger.info("Domain %s is now %s, not removed", full_domain, record.verification_status)
                    return False
                was_primary = record.is_primary
                self._audit(record, "domain.removed", {"was_primary": was_primary})
                self.db.delete(record)
                self.db.flush()
                # No primary left -> pointer cleared -> default subdomain
                refresh_origin_pointer(self.db, tenant)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        invalidate_host_cache(full_domain)
        logger.info("Custom domain removed: %s (tenant %s)", full_domain, owner_id)
        return True

    # ------------------------------------------------------------------
    # SSL
    # ------------------------------------------------------------------

    def refresh_ssl_status(self, domain_id: UUID, *, tenant_id: Optional[UUID] = None) -> CustomDomain:
        record = self.get_domain(domain_id, tenant_id=tenant_id)
        if not record.is_verified:
            raise DomainUnverified("Certificates are only issued after the domain is verified.")

        now = self.clock()
        record.last_checked_at = now
        try:
            status = SslStatus(self.checker.check_ssl(record.full_domain))
        except ExternalCheckFailed as e:
            SSL_CHECKS.labels(status="error").inc()
            record.error_message = f"{ExternalCheckFailed.message} ({e.message})"
            self._commit_domain_change(record)
            return record
        except Exception as e:
            logger.warning("SSL check for %s raised: %s", record.full_domain, e, exc_info=True)
            SSL_CHECKS.labels(status="error").inc()
            record.error_message = f"{ExternalCheckFailed.message} (certificate service error)"
            self._commit_domain_change(record)
            return record

        SSL_CHECKS.labels(status=status.value).inc()
        previous = record.ssl_status
        expires_at = as_utc(record.ssl_expires_at)
        record.ssl_status = status.value

        if status == SslStatus.ACTIVE:
            if previous != SslStatus.ACTIVE.value or expires_at is None or expires_at <= now:
                record.ssl_issued_at = now
                record.ssl_expires_at = now + timedelta(days=settings.SSL_CERT_VALIDITY_DAYS)
            record.error_message = None
        elif status == SslStatus.FAILED:
            record.error_message = "SSL certificate provisioning failed"
        elif status == SslStatus.EXPIRED:
            record.error_message = "SSL certificate has expired"

        if previous != record.ssl_status:
            self._audit(record, "domain.ssl_changed", {"from": previous, "to": record.ssl_status})
            logger.info("SSL for %s: %s -> %s", record.full_domain, previous, record.ssl_status)

        self._commit_domain_change(record)
        return record

    def domain_health(self, domain_id: UUID, *, tenant_id: Optional[UUID] = None) -> DomainHealth:
        record = self.get_domain(domain_id, tenant_id=tenant_id)
        now = self.clock()

        try:
            cname_ok: Optional[bool] = self.checker.check_cname(record.full_domain, record.dns_target)
        except ExternalCheckFailed as e:
            logger.info("CNAME check for %s unavailable: %s", record.full_domain, e.message)
            cname_ok = None

        expires_at = as_utc(record.ssl_expires_at)
        days_left = (expires_at - now).days if expires_at else None
        renewal_due = days_left is not None and days_left <= settings.SSL_RENEWAL_WINDOW_DAYS

        return DomainHealth(
            domain_id=record.id,
            full_domain=record.full_domain,
            verification_status=record.verification_status,
            ssl_status=record.ssl_status,
            is_active=record.is_active,
            is_primary=record.is_primary,
            dns_configured=record.dns_configured,
            cname_configured=cname_ok,
            last_checked_at=record.last_checked_at,
            ssl_expires_at=record.ssl_expires_at,
            days_until_ssl_expiry=days_left,
            ssl_renewal_due=renewal_due,
            error_message=record.error_message,
        )

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def expire_stale_domains(self) -> int:
        """pending longer than DOMAIN_VERIFICATION_TIMEOUT_HOURS -> failed.

        Each row moves only if it is still pending when updated, so a domain
        verified (or removed) after the listing is left alone.
        """
        cutoff = self.clock() - timedelta(hours=settings.DOMAIN_VERIFICATION_TIMEOUT_HOURS)
        message = (
            f"Domain was not verified within {settings.DOMAIN_VERIFICATION_TIMEOUT_HOURS} hours. "
            "Check the DNS records and verify again, or remove the domain."
        )
        ids = crud_custom_domain.list_ids_by_status(
            self.db, VerificationStatus.PENDING, created_before=cutoff
        )
        expired = 0
        for domain_id in ids:
            try:
                if not crud_custom_domain.fail_if_pending(self.db, domain_id, error_message=message):
                    self.db.rollback()
                    continue
                record = crud_custom_domain.get_fresh(self.db, domain_id)
                self._audit(record, "domain.verification_expired")
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            expired += 1
            logger.info("Domain %s verification expired", record.full_domain)
        return expired

    def purge_failed_domains(self) -> int:
        """Release names held by failed records untouched for DOMAIN_FAILED_PURGE_DAYS."""
        cutoff = self.clock() - timedelta(days=settings.DOMAIN_FAILED_PURGE_DAYS)
        ids = crud_custom_domain.list_ids_by_status(
            self.db, VerificationStatus.FAILED, updated_before=cutoff
        )
        purged = 0
        for domain_id in ids:
            try:
                if self.remove_domain(domain_id, only_if_status=VerificationStatus.FAILED):
                    purged += 1
            except DomainNotFound:
                continue
        return purged

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_entitlement(self, tenant_id: UUID, operation: str) -> None:
        if not self.gate.can_use_custom_domain(tenant_id):
            ENTITLEMENT_DENIALS.labels(operation=operation).inc()
            logger.info("Entitlement denied for tenant %s (%s)", tenant_id, operation)
            raise EntitlementDenied()

    def _commit_domain_change(self, record: CustomDomain) -> None:
        """Commit a status change and rebuild the tenant's origin pointer with it."""
        with tenant_lock(record.tenant_id):
            try:
                self.db.flush()
                if record.is_primary:
                    tenant = crud_tenant.get_for_update(self.db, record.tenant_id)
                    refresh_origin_pointer(self.db, tenant)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(record)

    def _audit(self, record: CustomDomain, action: str, details: Optional[dict] = None) -> None:
        crud_audit.add_audit_log(
            self.db,
            tenant_id=record.tenant_id,
            actor=self.actor,
            action=action,
            target_type="custom_domain",
            target_id=str(record.id),
            details={"full_domain": record.full_domain, **(details or {})},
        )
