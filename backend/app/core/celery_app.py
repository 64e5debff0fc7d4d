"""Celery application used to hand moderation events to the notification workers."""

from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "moderation_engine",
    broker=settings.CELERY_BROKER_URL or settings.REDIS_URL,
    backend=settings.CELERY_RESULT_BACKEND or settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_routes={
        settings.NOTIFICATION_TASK_NAME: {"queue": settings.NOTIFICATION_QUEUE},
    },
)
