"""
models.py — Crisis events, their audit trail and scenario themes.

Defines:
    • Severity          — green < yellow < red, weights 1/2/3
    • ChangeType        — coarse tag on every audit row
    • ScenarioTheme     — optional preparedness theme attached to an event
    • CrisisEvent       — epicenter + radius + severity, soft-deactivated
    • CrisisEventChange — append-only audit row, one per field change

═══════════════════════════════════════════════════════════════════════════
EVENT LIFECYCLE
═══════════════════════════════════════════════════════════════════════════

    created ──► updated (0..n) ──► deactivated
       │            │                   │
       └ creation   └ description_update / level_change / epicenter_moved
                                        └ level_change (active: true → false)

``start_time`` is written once at creation. Rows are never hard-deleted;
a deactivated event keeps its full change history.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crisis_backend.app.core.database import Base
from crisis_backend.app.users.models import User

# Decimal places stored for epicenter coordinates (degrees) and radius (km)
COORDINATE_SCALE = 7
RADIUS_SCALE = 2


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class Severity(str, Enum):
    """Three-level ordinal classification driving sort order and wording."""
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"

    @property
    def weight(self) -> int:
        return _SEVERITY_WEIGHT[self]


_SEVERITY_WEIGHT = {Severity.GREEN: 1, Severity.YELLOW: 2, Severity.RED: 3}


class ChangeType(str, Enum):
    CREATION = "creation"
    DESCRIPTION_UPDATE = "description_update"
    LEVEL_CHANGE = "level_change"
    EPICENTER_MOVED = "epicenter_moved"


class ThemeStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


def _str_enum(enum_cls, name: str) -> SAEnum:
    """Store enum values (lowercase strings) rather than member names."""
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda e: [m.value for m in e],
    )


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════
# Tables
# ═══════════════════════════════════════════════════════════════════════════

class ScenarioTheme(Base):
    __tablename__ = "scenario_themes"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[ThemeStatus] = mapped_column(
        _str_enum(ThemeStatus, "theme_status"), default=ThemeStatus.ACTIVE
    )


class CrisisEvent(Base):
    __tablename__ = "crisis_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    severity: Mapped[Severity] = mapped_column(
        _str_enum(Severity, "crisis_severity"), default=Severity.GREEN
    )
    epicenter_latitude: Mapped[Decimal] = mapped_column(Numeric(10, COORDINATE_SCALE))
    epicenter_longitude: Mapped[Decimal] = mapped_column(Numeric(10, COORDINATE_SCALE))
    radius: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, RADIUS_SCALE), nullable=True)  # km
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    scenario_theme_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("scenario_themes.id"), nullable=True
    )

    created_by_user: Mapped[User] = relationship()
    scenario_theme: Mapped[Optional[ScenarioTheme]] = relationship()
    changes: Mapped[List["CrisisEventChange"]] = relationship(
        back_populates="crisis_event",
        order_by="CrisisEventChange.id",
    )

    def __repr__(self) -> str:
        return (
            f"<CrisisEvent id={self.id} name={self.name!r} "
            f"severity={self.severity.value if self.severity else None} active={self.active}>"
        )


class CrisisEventChange(Base):
    """Append-only: rows are inserted once and never updated or deleted."""

    __tablename__ = "crisis_event_changes"

    id: Mapped[int] = mapped_column(primary_key=True)
    crisis_event_id: Mapped[int] = mapped_column(
        ForeignKey("crisis_events.id"), index=True
    )
    change_type: Mapped[ChangeType] = mapped_column(
        _str_enum(ChangeType, "crisis_change_type")
    )
    old_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    crisis_event: Mapped[CrisisEvent] = relationship(back_populates="changes")
    created_by_user: Mapped[User] = relationship()
