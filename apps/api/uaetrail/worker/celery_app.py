from celery import Celery

from uaetrail.core.config import settings

celery_app = Celery(
    "uaetrail",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["uaetrail.worker.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_always_eager=settings.celery_task_always_eager,
    task_ignore_result=True,
)
