"""Worker entry point: celery -A celery_worker worker -B --loglevel=info"""
from app.logging_config import setup_logging
from app.celery_app import celery_app

setup_logging()

app = celery_app
