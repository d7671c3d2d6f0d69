from celery import Celery

from payportal.config import settings

celery = Celery(
    "payportal",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "payportal.services.tasks",
    ],
)

celery.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # No broker in tests; run tasks inline
    task_always_eager=settings.environment == "test",
)
