"""
auditor.py — Field-level diff between two states of a crisis event.

Each watched field that differs produces one ``FieldChange``; there is no
composite record. Latitude and longitude are one logical field (the
epicenter) and are audited together.

    field         change type          text
    ───────────   ──────────────────   ─────────────────────────
    name          description_update   name: <v>
    description   description_update   description: <v|null>
    severity      level_change         severity: <v>
    epicenter     epicenter_moved      location: [<lat>, <lon>]
    radius        epicenter_moved      radius: <v|null>

Coordinates are compared with an absolute tolerance of 0.00001 degrees so
values that round-tripped through the database are not reported as moved.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Optional

from crisis_backend.app.crisis.models import ChangeType, CrisisEvent, Severity

COORDINATE_TOLERANCE = Decimal("0.00001")


@dataclass(frozen=True)
class EventSnapshot:
    """Mutable fields of an event, frozen at one point in time."""
    name: str
    description: Optional[str]
    severity: Severity
    latitude: Optional[Decimal]
    longitude: Optional[Decimal]
    radius: Optional[Decimal]
    active: bool = True

    @classmethod
    def of(cls, event: CrisisEvent) -> "EventSnapshot":
        return cls(
            name=event.name,
            description=event.description,
            severity=event.severity,
            latitude=as_decimal(event.epicenter_latitude),
            longitude=as_decimal(event.epicenter_longitude),
            radius=as_decimal(event.radius),
            active=event.active,
        )


@dataclass(frozen=True)
class FieldChange:
    field: str
    change_type: ChangeType
    old_value: Optional[str]
    new_value: Optional[str]


def as_decimal(value: Any, places: Optional[int] = None) -> Optional[Decimal]:
    """
    Coerce to ``Decimal``; with ``places``, round half-up to that many
    decimals so the value equals what the column will store.
    """
    if value is None:
        return None
    result = value if isinstance(value, Decimal) else Decimal(str(value))
    if places is not None:
        result = result.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    return result


def coordinates_differ(a: Any, b: Any) -> bool:
    """``None`` against a value is a change; two values differ beyond the tolerance."""
    if a is None and b is None:
        return False
    if a is None or b is None:
        return True
    return abs(as_decimal(a) - as_decimal(b)) > COORDINATE_TOLERANCE


def _text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Severity):
        return value.value
    return str(value)


def _location(snapshot: EventSnapshot) -> str:
    return f"location: [{_text(snapshot.latitude)}, {_text(snapshot.longitude)}]"


def diff_snapshots(
    old: EventSnapshot,
    new: EventSnapshot,
    *,
    record_all: bool = False,
) -> List[FieldChange]:
    """
    Compare two snapshots field by field.

    With ``record_all`` every watched field is emitted whether or not it
    changed; this is what a full-field update records.
    """
    changes: List[FieldChange] = []

    if record_all or old.name != new.name:
        changes.append(FieldChange(
            "name", ChangeType.DESCRIPTION_UPDATE,
            f"name: {_text(old.name)}", f"name: {_text(new.name)}",
        ))

    if record_all or old.description != new.description:
        changes.append(FieldChange(
            "description", ChangeType.DESCRIPTION_UPDATE,
            f"description: {_text(old.description)}",
            f"description: {_text(new.description)}",
        ))

    if record_all or old.severity != new.severity:
        changes.append(FieldChange(
            "severity", ChangeType.LEVEL_CHANGE,
            f"severity: {_text(old.severity)}", f"severity: {_text(new.severity)}",
        ))

    moved = (
        coordinates_differ(old.latitude, new.latitude)
        or coordinates_differ(old.longitude, new.longitude)
    )
    if record_all or moved:
        changes.append(FieldChange(
            "epicenter", ChangeType.EPICENTER_MOVED,
            _location(old), _location(new),
        ))

    if record_all or old.radius != new.radius:
        changes.append(FieldChange(
            "radius", ChangeType.EPICENTER_MOVED,
            f"radius: {_text(old.radius)}", f"radius: {_text(new.radius)}",
        ))

    return changes


def creation_change(event: CrisisEvent) -> FieldChange:
    return FieldChange(
        "event", ChangeType.CREATION, None, f"Created crisis event: {event.name}",
    )


def deactivation_change() -> FieldChange:
    return FieldChange(
        "active", ChangeType.LEVEL_CHANGE, "active: true", "active: false",
    )
