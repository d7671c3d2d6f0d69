import logging

from payportal.services.celery_app import celery

logger = logging.getLogger(__name__)


@celery.task(name="dispatch_alert")
def dispatch_alert(event_type: str, details: str):
    """Deliver a security alert. Routed to the worker log; mail/SMS hooks plug in here."""
    logger.warning("[AlertWorker] %s: %s", event_type, details)
    return {"event_type": event_type, "delivered": True}
