"""
Celery Application — background adherence runs.

Beat schedule:
  daily-adherence-calculation — daily at ADHERENCE_DAILY_RUN_HOUR_UTC
  (default 22:00 UTC), computing yesterday in the configured timezone.
"""
import os
from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging

from adherence.config import daily_run_hour_utc
from adherence.services.logging_config import setup_logging

BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

celery_app = Celery(
    "adherence",
    broker=BROKER_URL,
    backend=RESULT_BACKEND,
    include=["adherence.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_soft_time_limit=3300,  # a full day's batch; soft limit lets the run log and stop
    task_time_limit=3600,
    result_expires=86400,
    # ── Beat schedule ────────────────────────────────────────────────────────
    beat_schedule={
        "daily-adherence-calculation": {
            "task": "tasks.batch_calculate_adherence",
            "schedule": crontab(hour=daily_run_hour_utc(), minute=0),
            "options": {"expires": 3600},
        },
    },
)


@celery_setup_logging.connect
def _configure_worker_logging(**kwargs):
    # Workers log in the same JSON shape as the API
    setup_logging(
        level=os.getenv("LOG_LEVEL", "INFO"),
        json_output=os.getenv("LOG_FORMAT", "json").lower() != "text",
    )
