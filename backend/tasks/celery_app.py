"""
celery_app.py — Celery configuration and app instance.
"""

import os
from celery import Celery
from dotenv import load_dotenv

load_dotenv()

REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

celery = Celery(
    "nch_onboarding",
    broker=REDIS_URL,
    backend=REDIS_URL,
    include=["tasks.notifications"],
)

celery.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="Africa/Algiers",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)
