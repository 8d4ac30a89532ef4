import logging
import os

from app.db.session import SessionLocal
from app.crud import crud_tenant
from app.core.security import create_access_token
from app.services.origin_resolver import PrimaryDomainResolver

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_SLUG = os.getenv("DEMO_TENANT_SLUG", "demo")
DEMO_PLAN = os.getenv("DEMO_TENANT_PLAN", "professional")


def init_db() -> None:
    db = SessionLocal()
    try:
        tenant = crud_tenant.get_by_slug(db, DEMO_SLUG)
        if not tenant:
            logger.info("Creating demo store %r on plan %s", DEMO_SLUG, DEMO_PLAN)
            tenant = crud_tenant.create(db, slug=DEMO_SLUG, name="Demo Store", plan=DEMO_PLAN)

        origin = PrimaryDomainResolver(db).resolve_origin(tenant.id)
        token = create_access_token(subject="demo-owner", tenant_id=tenant.id, role="owner")
        logger.info("Demo store %s serves at %s", tenant.id, origin.url)
        logger.info("Owner token (Authorization: Bearer ...): %s", token)
    finally:
        db.close()


if __name__ == "__main__":
    logger.info("Creating initial data")
    init_db()
    logger.info("Initial data created")
