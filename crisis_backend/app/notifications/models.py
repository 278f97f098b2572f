"""
models.py — Notification rows and the data passed to the dispatcher.

Defines:
    • PreferenceType      — what kind of notification this is
    • TargetType          — what the notification points at
    • Notification        — persisted row (created → sent → read)
    • PendingNotification — outbox item queued during a transaction
    • DeliveryStatus      — push outcome
    • DeliveryAttempt     — one push attempt for one notification

Both tag enums are closed. Request bodies validate them through pydantic;
free-text query filters go through ``parse``, which rejects unknown tags
with a ValueError (422 at the API).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from crisis_backend.app.core.database import Base


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class _ClosedEnum(str, Enum):
    @classmethod
    def parse(cls, raw: str):
        try:
            return cls(raw.strip().lower())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown {cls.__name__} {raw!r}; expected one of: {allowed}") from None


class PreferenceType(_ClosedEnum):
    EXPIRATION_REMINDER = "expiration_reminder"
    CRISIS_ALERT = "crisis_alert"
    LOCATION_REQUEST = "location_request"
    SYSTEM = "system"


class TargetType(_ClosedEnum):
    INVENTORY = "inventory"
    EVENT = "event"
    LOCATION_REQUEST = "location_request"


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    FAILED = "failed"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _tag(enum_cls, name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda e: [m.value for m in e],
    )


# ═══════════════════════════════════════════════════════════════════════════
# Table
# ═══════════════════════════════════════════════════════════════════════════

class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    preference_type: Mapped[PreferenceType] = mapped_column(_tag(PreferenceType, "preference_type"))
    target_type: Mapped[Optional[TargetType]] = mapped_column(
        _tag(TargetType, "target_type"), nullable=True
    )
    target_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(Text)
    notify_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


# ═══════════════════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PendingNotification:
    """A rendered notification waiting for the transaction to commit."""
    user_id: int
    description: str
    target_id: Optional[int] = None
    preference_type: PreferenceType = PreferenceType.CRISIS_ALERT
    target_type: Optional[TargetType] = TargetType.EVENT


@dataclass
class DeliveryAttempt:
    """Record of a single push attempt for one stored notification."""
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    notification_id: Optional[int] = None
    user_id: Optional[int] = None
    topic: str = ""
    status: DeliveryStatus = DeliveryStatus.FAILED
    attempted_at: datetime = field(default_factory=_now)
    error_message: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "notification_id": self.notification_id,
            "user_id": self.user_id,
            "topic": self.topic,
            "status": self.status.value,
            "attempted_at": self.attempted_at.isoformat(),
            "error_message": self.error_message,
        }
