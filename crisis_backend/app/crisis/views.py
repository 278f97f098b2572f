"""
Read projections of crisis events and their change history.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from crisis_backend.app.crisis.models import ChangeType, CrisisEvent, CrisisEventChange, Severity


@dataclass(frozen=True)
class CrisisEventPreview:
    id: int
    name: str
    severity: Severity
    start_time: datetime


@dataclass(frozen=True)
class CrisisEventDetails:
    id: int
    name: str
    description: Optional[str]
    severity: Severity
    epicenter_latitude: Decimal
    epicenter_longitude: Decimal
    radius: Optional[Decimal]
    start_time: datetime
    updated_at: datetime
    active: bool
    scenario_theme_id: Optional[int]


@dataclass(frozen=True)
class ChangeRecord:
    id: int
    crisis_event_id: int
    change_type: ChangeType
    old_value: Optional[str]
    new_value: Optional[str]
    created_by_user_id: int
    created_by_user_name: Optional[str]
    created_at: datetime


def to_preview(event: CrisisEvent) -> CrisisEventPreview:
    return CrisisEventPreview(event.id, event.name, event.severity, event.start_time)


def to_details(event: CrisisEvent) -> CrisisEventDetails:
    return CrisisEventDetails(
        id=event.id,
        name=event.name,
        description=event.description,
        severity=event.severity,
        epicenter_latitude=event.epicenter_latitude,
        epicenter_longitude=event.epicenter_longitude,
        radius=event.radius,
        start_time=event.start_time,
        updated_at=event.updated_at,
        active=event.active,
        scenario_theme_id=event.scenario_theme_id,
    )


def to_change_record(change: CrisisEventChange) -> ChangeRecord:
    author = change.created_by_user
    return ChangeRecord(
        id=change.id,
        crisis_event_id=change.crisis_event_id,
        change_type=change.change_type,
        old_value=change.old_value,
        new_value=change.new_value,
        created_by_user_id=change.created_by_user_id,
        created_by_user_name=author.display_name if author else None,
        created_at=change.created_at,
    )
