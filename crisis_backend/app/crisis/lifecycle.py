"""
lifecycle.py — Create, update, deactivate and query crisis events.

═══════════════════════════════════════════════════════════════════════════
MUTATION FLOW
═══════════════════════════════════════════════════════════════════════════

    request ──► mutate event ──► audit rows ──► resident scan ──► outbox
                                                     │
                        per recipient: template + reason text

Everything above runs inside the caller's ``UnitOfWork``. Nothing is
committed or sent here: the caller commits and then passes
``uow.collect_outbox()`` to the ``NotificationDispatcher``.

═══════════════════════════════════════════════════════════════════════════
UPDATE MODES
═══════════════════════════════════════════════════════════════════════════

    full     name, description, severity, latitude, longitude and radius
             all supplied → every field is overwritten and all five audit
             rows are written, even for values that did not change
    partial  anything less → each supplied field is applied only if it
             differs, and only real changes are audited

A scenario theme id that does not resolve aborts the update before any
field is touched. ``start_time`` is never updatable.

═══════════════════════════════════════════════════════════════════════════
ORDERING
═══════════════════════════════════════════════════════════════════════════

Preview, "affecting user" and search queries load the matching events,
sort them by severity (red → yellow → green) and slice the requested page
in memory. Events of equal severity keep ascending id order. Change history
is paged in SQL, newest first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from crisis_backend.app.core.config import settings
from crisis_backend.app.crisis.auditor import (
    EventSnapshot,
    FieldChange,
    as_decimal,
    coordinates_differ,
    creation_change,
    deactivation_change,
    diff_snapshots,
)
from crisis_backend.app.crisis.models import (
    COORDINATE_SCALE,
    RADIUS_SCALE,
    CrisisEvent,
    CrisisEventChange,
    Severity,
)
from crisis_backend.app.crisis.pagination import Page, PageRequest, paginate_in_memory
from crisis_backend.app.crisis.resolver import AffectedUserResolver, affects
from crisis_backend.app.crisis.results import Found, NotFound, Outcome
from crisis_backend.app.crisis.unit_of_work import UnitOfWork
from crisis_backend.app.crisis.views import (
    ChangeRecord,
    CrisisEventDetails,
    CrisisEventPreview,
    to_change_record,
    to_details,
    to_preview,
)
from crisis_backend.app.notifications.messages import CrisisMessageBuilder, personalize
from crisis_backend.app.notifications.models import PendingNotification

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Inputs
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class CreateCrisisEventInput:
    name: str
    latitude: Decimal
    longitude: Decimal
    radius: Decimal
    start_time: datetime
    description: Optional[str] = None
    severity: Severity = Severity.GREEN
    scenario_theme_id: Optional[int] = None


@dataclass
class UpdateCrisisEventInput:
    """Fields left as ``None`` are not updated. There is no start time."""
    name: Optional[str] = None
    description: Optional[str] = None
    severity: Optional[Severity] = None
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    radius: Optional[Decimal] = None
    scenario_theme_id: Optional[int] = None

    @property
    def is_full_update(self) -> bool:
        return all(v is not None for v in (
            self.name, self.description, self.severity,
            self.latitude, self.longitude, self.radius,
        ))


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _severity_key(event: CrisisEvent) -> int:
    return Severity(event.severity).weight


# ═══════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════

class CrisisEventLifecycle:
    def __init__(
        self,
        uow: UnitOfWork,
        *,
        messages: Optional[CrisisMessageBuilder] = None,
        workers: Optional[int] = None,
    ):
        self.uow = uow
        self.messages = messages or CrisisMessageBuilder()
        self.resolver = AffectedUserResolver(
            uow.users,
            workers=workers or settings.RESOLVER_WORKERS,
            chunk_size=settings.RESOLVER_CHUNK_SIZE,
        )

    # ── Internals ──

    def _record(self, event: CrisisEvent, change: FieldChange, acting_user_id: int) -> None:
        self.uow.changes.add(CrisisEventChange(
            crisis_event_id=event.id,
            change_type=change.change_type,
            old_value=change.old_value,
            new_value=change.new_value,
            created_by_user_id=acting_user_id,
        ))

    def _fan_out(self, event: CrisisEvent, template: str) -> int:
        """Queue one personalised notification per affected resident."""
        affected = self.resolver.resolve(
            event.epicenter_latitude, event.epicenter_longitude, event.radius,
        )
        queued = 0
        for user in affected:
            try:
                text = personalize(template, self.messages.reason(user.reason))
                self.uow.outbox.append(PendingNotification(
                    user_id=user.user_id,
                    description=text,
                    target_id=event.id,
                ))
                queued += 1
            except Exception:
                logger.exception(
                    "Could not render notification for user %d (event %d)",
                    user.user_id, event.id,
                )
        return queued

    # ── Mutations ──

    def create(self, data: CreateCrisisEventInput, acting_user_id: int) -> CrisisEvent:
        """Persist a new active event, audit it and queue new-event notifications."""
        event = CrisisEvent(
            name=data.name,
            description=data.description,
            severity=data.severity or Severity.GREEN,
            epicenter_latitude=as_decimal(data.latitude, COORDINATE_SCALE),
            epicenter_longitude=as_decimal(data.longitude, COORDINATE_SCALE),
            radius=as_decimal(data.radius, RADIUS_SCALE),
            start_time=data.start_time,
            updated_at=_now(),
            active=True,
            created_by_user_id=acting_user_id,
        )
        if data.scenario_theme_id is not None:
            theme = self.uow.themes.get(data.scenario_theme_id)
            if theme is None:
                logger.info(
                    "Scenario theme %d not found, creating event without it",
                    data.scenario_theme_id,
                )
            else:
                event.scenario_theme_id = theme.id

        self.uow.events.add(event)
        self._record(event, creation_change(event), acting_user_id)

        queued = self._fan_out(event, self.messages.new_event(event))
        logger.info(
            "Created crisis event %d %r [%s], %d notifications queued",
            event.id, event.name, Severity(event.severity).value, queued,
            extra={"event_id": event.id, "user_id": acting_user_id, "recipient_count": queued},
        )
        return event

    def update(
        self,
        event_id: int,
        data: UpdateCrisisEventInput,
        *,
        acting_user_id: Optional[int] = None,
    ) -> Outcome:
        event = self.uow.events.get(event_id)
        if event is None:
            return NotFound("CrisisEvent", event_id)

        theme_changed = False
        if data.scenario_theme_id is not None:
            theme = self.uow.themes.get(data.scenario_theme_id)
            if theme is None:
                logger.warning(
                    "Update of event %d aborted: scenario theme %d not found",
                    event_id, data.scenario_theme_id,
                )
                return NotFound("ScenarioTheme", data.scenario_theme_id)
            theme_changed = event.scenario_theme_id != theme.id
            event.scenario_theme_id = theme.id

        previous = EventSnapshot.of(event)
        full = data.is_full_update

        if full:
            event.name = data.name
            event.description = data.description
            event.severity = data.severity
            event.epicenter_latitude = as_decimal(data.latitude, COORDINATE_SCALE)
            event.epicenter_longitude = as_decimal(data.longitude, COORDINATE_SCALE)
            event.radius = as_decimal(data.radius, RADIUS_SCALE)
        else:
            self._apply_partial(event, data)

        changes = diff_snapshots(previous, EventSnapshot.of(event), record_all=full)
        if not changes and not theme_changed:
            logger.info("Update of event %d changed nothing", event_id, extra={"event_id": event_id})
            return Found(event)

        event.updated_at = _now()
        self.uow.events.save(event)

        author = acting_user_id if acting_user_id is not None else event.created_by_user_id
        for change in changes:
            self._record(event, change, author)

        queued = 0
        template = self.messages.update(EventSnapshot.of(event), previous)
        if template is not None:
            queued = self._fan_out(event, template)

        logger.info(
            "Updated crisis event %d (%s mode): %d change records, %d notifications queued",
            event.id, "full" if full else "partial", len(changes), queued,
            extra={"event_id": event.id, "change_count": len(changes), "recipient_count": queued},
        )
        return Found(event)

    @staticmethod
    def _apply_partial(event: CrisisEvent, data: UpdateCrisisEventInput) -> None:
        if data.name is not None and data.name != event.name:
            event.name = data.name
        if data.description is not None and data.description != event.description:
            event.description = data.description
        if data.severity is not None and data.severity != event.severity:
            event.severity = data.severity
        # Compared at storage scale
        latitude = as_decimal(data.latitude, COORDINATE_SCALE)
        if latitude is not None and coordinates_differ(latitude, event.epicenter_latitude):
            event.epicenter_latitude = latitude
        longitude = as_decimal(data.longitude, COORDINATE_SCALE)
        if longitude is not None and coordinates_differ(longitude, event.epicenter_longitude):
            event.epicenter_longitude = longitude
        radius = as_decimal(data.radius, RADIUS_SCALE)
        if radius is not None and radius != event.radius:
            event.radius = radius

    def deactivate(self, event_id: int, *, acting_user_id: Optional[int] = None) -> Outcome:
        """Mark the event inactive and tell everyone currently inside its zone."""
        event = self.uow.events.get(event_id)
        if event is None:
            return NotFound("CrisisEvent", event_id)
        if not event.active:
            logger.info("Crisis event %d is already inactive", event_id, extra={"event_id": event_id})
            return Found(event)

        author = acting_user_id if acting_user_id is not None else event.created_by_user_id
        self._record(event, deactivation_change(), author)

        template = self.messages.deactivation(event)
        queued = self._fan_out(event, template)

        event.active = False
        event.updated_at = _now()
        self.uow.events.save(event)

        logger.info(
            "Deactivated crisis event %d, %d notifications queued",
            event.id, queued,
            extra={"event_id": event.id, "recipient_count": queued},
        )
        return Found(event)

    # ── Queries ──

    def get(self, event_id: int) -> Outcome:
        event = self.uow.events.get(event_id)
        return Found(event) if event is not None else NotFound("CrisisEvent", event_id)

    def get_details(self, event_id: int) -> Outcome:
        outcome = self.get(event_id)
        if isinstance(outcome, NotFound):
            return outcome
        return Found(to_details(outcome.value))

    def list_all(self, request: PageRequest) -> Page[CrisisEventDetails]:
        return self.uow.events.page(request).map(to_details)

    def list_active_previews(self, request: PageRequest) -> Page[CrisisEventPreview]:
        return self._by_severity(self.uow.events.find_by_active(True), request).map(to_preview)

    def list_inactive_previews(self, request: PageRequest) -> Page[CrisisEventPreview]:
        return self._by_severity(self.uow.events.find_by_active(False), request).map(to_preview)

    def list_affecting_user(self, user_id: int, request: PageRequest) -> Outcome:
        """Active events whose zone contains the user's home or household."""
        resident = self.uow.users.resident(user_id)
        if resident is None:
            return NotFound("User", user_id)
        nearby = [
            e for e in self.uow.events.find_by_active(True)
            if affects(resident, e.epicenter_latitude, e.epicenter_longitude, e.radius)
        ]
        return Found(self._by_severity(nearby, request).map(to_details))

    def list_previews_affecting_user(self, user_id: int, request: PageRequest) -> Outcome:
        outcome = self.list_affecting_user(user_id, request)
        if isinstance(outcome, NotFound):
            return outcome
        return Found(outcome.value.map(
            lambda d: CrisisEventPreview(d.id, d.name, d.severity, d.start_time)
        ))

    def list_changes(self, event_id: int, request: PageRequest) -> Outcome:
        if self.uow.events.get(event_id) is None:
            return NotFound("CrisisEvent", event_id)
        page: Page[ChangeRecord] = self.uow.changes.page_for_event(event_id, request).map(to_change_record)
        return Found(page)

    def search(self, term: Optional[str], active: bool, request: PageRequest) -> Page[CrisisEventPreview]:
        """Name substring search; a blank term matches nothing."""
        if term is None or not term.strip():
            return Page.empty(request)
        matches = self.uow.events.search_by_name(term.strip(), active)
        return self._by_severity(matches, request).map(to_preview)

    @staticmethod
    def _by_severity(events: List[CrisisEvent], request: PageRequest) -> Page[CrisisEvent]:
        return paginate_in_memory(events, request, sort_key=_severity_key, reverse=True)
