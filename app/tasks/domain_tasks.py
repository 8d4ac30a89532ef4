import logging
from uuid import UUID

from app.celery_app import celery_app
from app.core.errors import DomainError, DomainNotFound
from app.crud import crud_custom_domain
from app.db.session import SessionLocal
from app.logging_config import log_context
from app.models.custom_domain import VerificationStatus
from app.services.domain_registry import DomainRegistry
from app.services.entitlement import get_entitlement_gate
from app.services.verification import get_verification_checker

logger = logging.getLogger(__name__)


def _registry(db) -> DomainRegistry:
    return DomainRegistry(db, get_entitlement_gate(db), get_verification_checker(), actor="worker")


@celery_app.task(bind=True, max_retries=3)
def verify_domain_task(self, domain_id: str):
    """
    Background task: one DNS TXT check for a domain.

    A DNS miss or outage is recorded on the record and is not a task failure;
    only unexpected errors (database down, ...) are retried.
    """
    db = SessionLocal()
    try:
        with log_context(domain=domain_id):
            record = _registry(db).verify_domain(UUID(domain_id))
        return {
            "status": record.verification_status,
            "domain_id": domain_id,
            "error": record.error_message,
        }
    except DomainNotFound:
        logger.info("Domain %s removed before verification ran", domain_id)
        return {"status": "not_found", "domain_id": domain_id}
    except Exception as e:
        logger.error("Verification task for %s failed: %s", domain_id, e, exc_info=True)
        if self.request.retries < self.max_retries:
            raise self.retry(exc=e, countdown=60)
        return {"status": "error", "domain_id": domain_id, "error": str(e)}
    finally:
        db.close()


@celery_app.task(bind=True, max_retries=3)
def refresh_ssl_task(self, domain_id: str):
    db = SessionLocal()
    try:
        with log_context(domain=domain_id):
            record = _registry(db).refresh_ssl_status(UUID(domain_id))
        return {"status": record.ssl_status, "domain_id": domain_id}
    except DomainError as e:
        # Removed or no longer verified; nothing to retry
        logger.info("SSL refresh for %s skipped: %s", domain_id, e.message)
        return {"status": e.code, "domain_id": domain_id}
    except Exception as e:
        logger.error("SSL refresh task for %s failed: %s", domain_id, e, exc_info=True)
        if self.request.retries < self.max_retries:
            raise self.retry(exc=e, countdown=120)
        return {"status": "error", "domain_id": domain_id, "error": str(e)}
    finally:
        db.close()


# ── Periodic jobs (see beat_schedule in app.celery_app) ──

@celery_app.task
def recheck_pending_domains():
    """Fan out one verification task per pending domain."""
    db = SessionLocal()
    try:
        ids = crud_custom_domain.list_ids_by_status(db, VerificationStatus.PENDING)
    finally:
        db.close()
    for domain_id in ids:
        verify_domain_task.delay(str(domain_id))
    logger.info("Queued re-check for %d pending domain(s)", len(ids))
    return {"queued": len(ids)}


@celery_app.task
def refresh_ssl_statuses():
    db = SessionLocal()
    try:
        ids = crud_custom_domain.list_ids_by_status(db, VerificationStatus.VERIFIED)
    finally:
        db.close()
    for domain_id in ids:
        refresh_ssl_task.delay(str(domain_id))
    logger.info("Queued SSL refresh for %d verified domain(s)", len(ids))
    return {"queued": len(ids)}


@celery_app.task
def expire_stale_domains():
    db = SessionLocal()
    try:
        expired = _registry(db).expire_stale_domains()
    finally:
        db.close()
    if expired:
        logger.info("Marked %d stale pending domain(s) as failed", expired)
    return {"expired": expired}


@celery_app.task
def purge_failed_domains():
    db = SessionLocal()
    try:
        purged = _registry(db).purge_failed_domains()
    finally:
        db.close()
    if purged:
        logger.info("Purged %d failed domain(s)", purged)
    return {"purged": purged}
