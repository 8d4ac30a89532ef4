from celery import Celery
from celery.schedules import crontab
from app.config import settings

# Broker and backend come from settings so the worker reads the same environment
celery_app = Celery(
    "storefront_domains",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.broker_connection_retry_on_startup = True

celery_app.conf.task_routes = {
    "app.tasks.*": {"queue": "celery"}
}

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)

celery_app.conf.beat_schedule = {
    "recheck-pending-domains": {
        "task": "app.tasks.domain_tasks.recheck_pending_domains",
        "schedule": settings.DOMAIN_RECHECK_INTERVAL_MINUTES * 60.0,
    },
    "refresh-ssl-statuses": {
        "task": "app.tasks.domain_tasks.refresh_ssl_statuses",
        "schedule": crontab(minute=5),
    },
    "expire-stale-domains": {
        "task": "app.tasks.domain_tasks.expire_stale_domains",
        "schedule": crontab(minute=35),
    },
    "purge-failed-domains": {
        "task": "app.tasks.domain_tasks.purge_failed_domains",
        "schedule": crontab(hour=3, minute=15),
    },
}

# Auto-discover tasks so that @celery_app.task decorators in app/tasks/ get registered
celery_app.autodiscover_tasks(['app.tasks'])

# Explicitly import tasks to ensure they are registered
import app.tasks.domain_tasks  # noqa: F401, E402
