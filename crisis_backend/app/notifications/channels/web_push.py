"""
web_push.py — Topic push for stored notifications.

Every user has one topic, ``<prefix>/<user_id>``; connected clients
subscribe to it and render the payload. The broker is not part of this
service, so this module simulates the publish: it builds the frame, logs
it, and reports delivery.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from crisis_backend.app.notifications.models import (
    DeliveryAttempt,
    DeliveryStatus,
    Notification,
)

logger = logging.getLogger(__name__)


def topic_for(user_id: int, prefix: str) -> str:
    return f"{prefix.rstrip('/')}/{user_id}"


def build_frame(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "preference_type": notification.preference_type.value,
        "target_type": notification.target_type.value if notification.target_type else None,
        "target_id": notification.target_id,
        "description": notification.description,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


def send(
    notification: Notification,
    *,
    topic_prefix: str = "/topic/notifications",
) -> DeliveryAttempt:
    """
    Publish ``notification`` to its recipient's topic.

    Parameters
    ----------
    notification : Notification
        A flushed row (its id is part of the frame).
    topic_prefix : str
        Topic namespace, normally ``settings.NOTIFICATION_TOPIC_PREFIX``.

    Returns
    -------
    DeliveryAttempt
        ``DELIVERED`` or ``FAILED``; never raises.
    """
    topic = topic_for(notification.user_id, topic_prefix)
    attempt = DeliveryAttempt(
        notification_id=notification.id,
        user_id=notification.user_id,
        topic=topic,
    )

    try:
        frame = build_frame(notification)
        # Simulated publish; the broker is owned by the gateway
        logger.info(
            "[WEB_PUSH] Notification %s → %s (%d bytes)",
            notification.id, topic, len(str(frame)),
        )
        attempt.status = DeliveryStatus.DELIVERED
    except Exception as exc:
        logger.error("[WEB_PUSH] Failed for %s: %s", topic, exc)
        attempt.status = DeliveryStatus.FAILED
        attempt.error_message = str(exc)

    return attempt
