"""
Celery application configuration for background tasks.
"""
import os
import logging
from celery import Celery

logger = logging.getLogger(__name__)

# Get broker and backend URLs from environment
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://:redis_pass@redis:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://:redis_pass@redis:6379/0")

# Create Celery app
celery_app = Celery(
    "scholarship_applications",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Emails are small; keep the limits tight
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,

    result_expires=3600,

    worker_prefetch_multiplier=4,
    worker_max_tasks_per_child=1000,

    broker_connection_retry_on_startup=True,
    task_always_eager=os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower() == "true",
)

# ==================== Initialize Firebase for Celery Workers ====================
# Workers run in separate processes and need their own Firebase app
import firebase_admin
from firebase_admin import credentials

if not firebase_admin._apps:
    cred_path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if cred_path and os.path.exists(cred_path):
        firebase_admin.initialize_app(credentials.Certificate(cred_path))
        logger.info(f"✅ Firebase initialized for Celery workers: {cred_path}")
    else:
        logger.warning(f"⚠️  Firebase credentials not found: {cred_path}")

# ==================== Auto-discover Tasks ====================
celery_app.autodiscover_tasks(['services'], force=True)
