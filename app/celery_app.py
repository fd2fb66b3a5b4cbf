from celery import Celery
from celery.schedules import crontab

from app.config import settings

# Create Celery app
celery_app = Celery(
    "streamshare",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.tasks"],  # Auto-discover tasks from this module
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,
    task_soft_time_limit=240,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=100,  # Restart worker after 100 tasks to prevent memory leaks
    task_always_eager=settings.celery_task_always_eager,
)

celery_app.conf.beat_schedule = {
    # Catch-up for the WhatsApp queue: retries due entries and reclaims stale claims
    "drain-whatsapp-queue": {
        "task": "app.tasks.drain_pending_messages",
        "schedule": crontab(),  # every minute
        "args": [],
    },
}
