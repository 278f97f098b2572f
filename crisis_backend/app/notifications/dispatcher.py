"""
dispatcher.py — Persist and push crisis notifications.

Runs after the crisis transaction has committed. Each pending notification
is handled in its own short transaction:

    1. Insert the Notification row
    2. Push it to the recipient's topic
    3. Stamp ``sent_at`` only if the push was delivered

A failure for one recipient is logged and counted; the loop carries on with
the rest. Delivery is best-effort: nothing here retries, and a row whose
push failed keeps ``sent_at = NULL`` so it can be resent later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from crisis_backend.app.core.config import settings
from crisis_backend.app.crisis.pagination import Page, PageRequest
from crisis_backend.app.crisis.results import Found, NotFound, Outcome
from crisis_backend.app.notifications.channels import web_push
from crisis_backend.app.notifications.models import (
    DeliveryAttempt,
    Notification,
    PendingNotification,
    PreferenceType,
)

logger = logging.getLogger(__name__)

PushFn = Callable[..., DeliveryAttempt]


@dataclass
class DispatchReport:
    total: int = 0
    delivered: int = 0
    undelivered: int = 0
    failed: int = 0
    failed_user_ids: List[int] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        return self.delivered / self.total if self.total else 0.0


class NotificationDispatcher:
    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        push: PushFn = web_push.send,
        topic_prefix: Optional[str] = None,
    ):
        self.session_factory = session_factory
        self.push = push
        self.topic_prefix = topic_prefix or settings.NOTIFICATION_TOPIC_PREFIX

    def _store(self, session: Session, pending: PendingNotification) -> Notification:
        notification = Notification(
            user_id=pending.user_id,
            preference_type=pending.preference_type,
            target_type=pending.target_type,
            target_id=pending.target_id,
            description=pending.description,
        )
        session.add(notification)
        session.flush()
        return notification

    def dispatch(self, pending: PendingNotification) -> DeliveryAttempt:
        """Store and push one notification. Raises on storage errors."""
        with self.session_factory() as session:
            try:
                notification = self._store(session, pending)
                attempt = self.push(notification, topic_prefix=self.topic_prefix)
                if attempt.delivered:
                    notification.sent_at = datetime.now(timezone.utc)
                session.commit()
            except Exception:
                session.rollback()
                raise
        return attempt

    def dispatch_all(self, pending: Iterable[PendingNotification]) -> DispatchReport:
        """Dispatch every item; one recipient's failure never stops the others."""
        report = DispatchReport()
        for item in pending:
            report.total += 1
            try:
                attempt = self.dispatch(item)
            except Exception:
                report.failed += 1
                report.failed_user_ids.append(item.user_id)
                logger.exception(
                    "Notification for user %d (target %s) failed",
                    item.user_id, item.target_id,
                    extra={"user_id": item.user_id},
                )
                continue
            if attempt.delivered:
                report.delivered += 1
            else:
                report.undelivered += 1
                logger.warning(
                    "Notification for user %d stored but not pushed: %s",
                    item.user_id, attempt.error_message,
                )

        if report.total:
            logger.info(
                "Dispatched %d notifications: %d delivered, %d undelivered, %d failed",
                report.total, report.delivered, report.undelivered, report.failed,
                extra={"recipient_count": report.total},
            )
        return report

    def mark_as_read(self, notification_id: int, *, user_id: Optional[int] = None) -> Outcome:
        """Stamp ``read_at`` once; later calls leave the first timestamp."""
        with self.session_factory() as session:
            notification = session.get(Notification, notification_id)
            if notification is None or (user_id is not None and notification.user_id != user_id):
                return NotFound("Notification", notification_id)
            if not notification.is_read:
                notification.read_at = datetime.now(timezone.utc)
                session.commit()
            return Found(notification)

    def list_for_user(
        self,
        user_id: int,
        request: PageRequest,
        *,
        preference_type: Optional[PreferenceType] = None,
    ) -> Page[Notification]:
        """Newest first, optionally only one preference type."""
        where = [Notification.user_id == user_id]
        if preference_type is not None:
            where.append(Notification.preference_type == preference_type)
        with self.session_factory() as session:
            total = session.scalar(
                select(func.count()).select_from(Notification).where(*where)
            ) or 0
            items = session.scalars(
                select(Notification)
                .where(*where)
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .offset(request.offset)
                .limit(request.size)
            ).all()
        return Page(items=list(items), total=total, page=request.page, size=request.size)
