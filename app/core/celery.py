"""
Celery configuration for background tasks
"""
from celery import Celery
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

# Create Celery instance
celery_app = Celery(
    "geo_recensement",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.modules.census.tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Europe/Paris",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=2 * 60 * 60,  # 2 hours, a full census file is ~35k rows
    task_soft_time_limit=110 * 60,
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=24 * 3600,

    # Imports are single-writer: keep them on a dedicated queue served by one worker
    task_routes={
        "app.modules.census.tasks.*": {"queue": "census"},
    },
)

if __name__ == "__main__":
    celery_app.start()
