import logging
from collections import deque
from typing import Any, Deque, Dict, List

from payportal.utils import utcnow

logger = logging.getLogger(__name__)

MAX_ALERTS = 50

alerts: Deque[Dict[str, Any]] = deque(maxlen=MAX_ALERTS)


def trigger_alert(event_type: str, details: str) -> Dict[str, Any]:
    alert = {
        "event_type": event_type,
        "details": details,
        "timestamp": utcnow().isoformat(),
    }
    alerts.append(alert)
    logger.warning("[ALERT] %s: %s", event_type, details)
    try:
        from payportal.services.tasks import dispatch_alert
        dispatch_alert.delay(event_type, details)
    except Exception as e:
        # Broker unavailable; the alert is still in the local ring and the log
        logger.error("[ALERT] Celery dispatch failed: %s", e)
    return alert


def get_alerts() -> List[Dict[str, Any]]:
    return list(alerts)
