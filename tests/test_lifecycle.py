"""
test_lifecycle.py — Crisis event create / update / deactivate / queries
against an in-memory database.

Covers:
    • Creation audit row and new-event notification fan-out
    • Partial vs full-field update auditing
    • Scenario theme handling on create and update
    • Deactivation (audit row, fan-out, visibility in views)
    • Severity ordering and in-memory paging
    • Events affecting one user, search, change history
    • Per-recipient isolation of rendering failures

Run with:
    pytest tests/test_lifecycle.py -v
"""

from __future__ import annotations

from dataclasses import fields
from decimal import Decimal
from unittest.mock import patch

import pytest

from crisis_backend.app.crisis.lifecycle import (
    CreateCrisisEventInput,
    CrisisEventLifecycle,
    UpdateCrisisEventInput,
)
from crisis_backend.app.crisis.models import ChangeType, CrisisEventChange, Severity
from crisis_backend.app.crisis.pagination import PageRequest
from crisis_backend.app.crisis.results import Found, NotFound
from crisis_backend.app.crisis.unit_of_work import UnitOfWork
from crisis_backend.app.notifications.messages import CrisisMessageBuilder, personalize

from conftest import EPICENTER, FAR_AWAY, NEARBY, START


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

def _make_input(**overrides) -> CreateCrisisEventInput:
    fields_ = dict(
        name="Flood A",
        description="River over its banks",
        severity=Severity.RED,
        latitude=EPICENTER[0],
        longitude=EPICENTER[1],
        radius=Decimal("5"),
        start_time=START,
    )
    fields_.update(overrides)
    return CreateCrisisEventInput(**fields_)


def _create(session_factory, admin_id, **overrides):
    """Create and commit an event; return (event_id, queued notifications)."""
    with UnitOfWork(session_factory) as uow:
        event = _lifecycle(uow).create(_make_input(**overrides), admin_id)
        uow.commit()
        return event.id, uow.collect_outbox()


def _lifecycle(uow) -> CrisisEventLifecycle:
    return CrisisEventLifecycle(uow, messages=CrisisMessageBuilder("en"), workers=1)


def _changes(session_factory, event_id):
    with session_factory() as session:
        return (
            session.query(CrisisEventChange)
            .filter_by(crisis_event_id=event_id)
            .order_by(CrisisEventChange.id)
            .all()
        )


# ═══════════════════════════════════════════════════════════════════════════
# Create
# ═══════════════════════════════════════════════════════════════════════════

class TestCreate:

    def test_creation_record_and_notifications(self, session_factory, admin_id, make_user):
        near = make_user(home=NEARBY)
        make_user(home=FAR_AWAY)

        event_id, outbox = _create(session_factory, admin_id)

        changes = _changes(session_factory, event_id)
        assert len(changes) == 1
        assert changes[0].change_type == ChangeType.CREATION
        assert changes[0].new_value == "Created crisis event: Flood A"
        assert changes[0].created_by_user_id == admin_id

        assert [p.user_id for p in outbox] == [near]
        assert outbox[0].target_id == event_id
        assert "because your position is within the danger zone" in outbox[0].description
        assert "{reason}" not in outbox[0].description

    def test_new_event_defaults(self, session_factory, admin_id):
        with UnitOfWork(session_factory) as uow:
            event = _lifecycle(uow).create(
                CreateCrisisEventInput(
                    name="Storm", latitude=EPICENTER[0], longitude=EPICENTER[1],
                    radius=Decimal("3"), start_time=START,
                ),
                admin_id,
            )
            uow.commit()
        assert event.active is True
        assert event.severity == Severity.GREEN
        assert event.updated_at is not None

    def test_values_rounded_to_storage_scale(self, session_factory, admin_id, make_user):
        make_user(home=NEARBY)
        event_id, outbox = _create(
            session_factory, admin_id,
            radius=Decimal("2.005"), latitude=Decimal("63.430000049"),
        )
        with UnitOfWork(session_factory) as uow:
            event = uow.events.get(event_id)
            affecting = _lifecycle(uow).list_affecting_user(outbox[0].user_id, PageRequest())
        assert event.radius == Decimal("2.01")
        assert event.epicenter_latitude == Decimal("63.43")
        assert [e.id for e in affecting.value.items] == [event_id]

    def test_unknown_theme_is_ignored(self, session_factory, admin_id):
        event_id, _ = _create(session_factory, admin_id, scenario_theme_id=999)
        with UnitOfWork(session_factory) as uow:
            assert uow.events.get(event_id).scenario_theme_id is None

    def test_known_theme_is_attached(self, session_factory, admin_id, make_theme):
        theme_id = make_theme()
        event_id, _ = _create(session_factory, admin_id, scenario_theme_id=theme_id)
        with UnitOfWork(session_factory) as uow:
            assert uow.events.get(event_id).scenario_theme_id == theme_id

    def test_shared_home_and_household_get_single_location_reason(
        self, session_factory, admin_id, make_user,
    ):
        make_user(home=NEARBY, household=NEARBY)
        make_user(home=NEARBY, household=NEARBY)
        _, outbox = _create(session_factory, admin_id)
        assert len(outbox) == 2
        for pending in outbox:
            assert "your position/household position" in pending.description
            assert "both your position" not in pending.description

    def test_rollback_drops_outbox(self, session_factory, admin_id, make_user):
        make_user(home=NEARBY)
        with UnitOfWork(session_factory) as uow:
            _lifecycle(uow).create(_make_input(), admin_id)
            assert len(uow.outbox) == 1
        with UnitOfWork(session_factory) as uow:
            assert uow.events.page(PageRequest()).total == 0

    def test_collect_before_commit_is_an_error(self, session_factory, admin_id):
        with UnitOfWork(session_factory) as uow:
            _lifecycle(uow).create(_make_input(), admin_id)
            with pytest.raises(RuntimeError):
                uow.collect_outbox()

    def test_render_failure_for_one_user_does_not_stop_others(
        self, session_factory, admin_id, make_user,
    ):
        make_user(home=NEARBY)
        second = make_user(home=NEARBY)
        calls = {"n": 0}

        def flaky(template, reason):
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("template broken")
            return personalize(template, reason)

        with patch("crisis_backend.app.crisis.lifecycle.personalize", side_effect=flaky):
            _, outbox = _create(session_factory, admin_id)

        assert [p.user_id for p in outbox] == [second]


# ═══════════════════════════════════════════════════════════════════════════
# Update
# ═══════════════════════════════════════════════════════════════════════════

class TestUpdate:

    def test_start_time_is_not_an_update_field(self):
        assert "start_time" not in {f.name for f in fields(UpdateCrisisEventInput)}

    def test_partial_description_update(self, session_factory, admin_id, make_user):
        near = make_user(home=NEARBY)
        event_id, _ = _create(session_factory, admin_id)

        with UnitOfWork(session_factory) as uow:
            outcome = _lifecycle(uow).update(
                event_id, UpdateCrisisEventInput(description="Water still rising"),
            )
            uow.commit()
            outbox = uow.collect_outbox()

        assert isinstance(outcome, Found)
        assert outcome.value.description == "Water still rising"
        assert outcome.value.start_time.replace(tzinfo=None) == START.replace(tzinfo=None)

        updates = [c for c in _changes(session_factory, event_id) if c.change_type != ChangeType.CREATION]
        assert [c.change_type for c in updates] == [ChangeType.DESCRIPTION_UPDATE]
        assert [p.user_id for p in outbox] == [near]
        assert "Description updated." in outbox[0].description

    def test_partial_update_without_changes(self, session_factory, admin_id, make_user):
        make_user(home=NEARBY)
        event_id, _ = _create(session_factory, admin_id)

        with UnitOfWork(session_factory) as uow:
            outcome = _lifecycle(uow).update(
                event_id, UpdateCrisisEventInput(name="Flood A", severity=Severity.RED),
            )
            uow.commit()
            outbox = uow.collect_outbox()

        assert isinstance(outcome, Found)
        assert len(_changes(session_factory, event_id)) == 1
        assert outbox == []

    def test_full_update_with_same_values_records_five_rows(
        self, session_factory, admin_id, make_user,
    ):
        make_user(home=NEARBY)
        event_id, _ = _create(session_factory, admin_id)

        with UnitOfWork(session_factory) as uow:
            _lifecycle(uow).update(event_id, UpdateCrisisEventInput(
                name="Flood A",
                description="River over its banks",
                severity=Severity.RED,
                latitude=EPICENTER[0],
                longitude=EPICENTER[1],
                radius=Decimal("5"),
            ))
            uow.commit()
            outbox = uow.collect_outbox()

        updates = [c for c in _changes(session_factory, event_id) if c.change_type != ChangeType.CREATION]
        assert len(updates) == 5
        assert [c.change_type for c in updates].count(ChangeType.EPICENTER_MOVED) == 2
        assert outbox == []

    def test_update_moves_zone_and_notifies_new_residents(
        self, session_factory, admin_id, make_user,
    ):
        make_user(home=NEARBY)
        far = make_user(home=FAR_AWAY)
        event_id, _ = _create(session_factory, admin_id)

        with UnitOfWork(session_factory) as uow:
            _lifecycle(uow).update(event_id, UpdateCrisisEventInput(
                latitude=FAR_AWAY[0], longitude=FAR_AWAY[1],
            ), acting_user_id=admin_id)
            uow.commit()
            outbox = uow.collect_outbox()

        updates = [c for c in _changes(session_factory, event_id) if c.change_type != ChangeType.CREATION]
        assert [c.change_type for c in updates] == [ChangeType.EPICENTER_MOVED]
        assert [p.user_id for p in outbox] == [far]
        assert "Position updated." in outbox[0].description

    def test_repeated_radius_update_is_not_a_second_change(
        self, session_factory, admin_id, make_user,
    ):
        make_user(home=NEARBY)
        event_id, _ = _create(session_factory, admin_id)

        outboxes = []
        for _ in range(2):
            with UnitOfWork(session_factory) as uow:
                _lifecycle(uow).update(event_id, UpdateCrisisEventInput(radius=Decimal("7.125")))
                uow.commit()
                outboxes.append(uow.collect_outbox())

        changes = _changes(session_factory, event_id)
        assert len(changes) == 2
        assert changes[-1].new_value == "radius: 7.13"
        assert len(outboxes[0]) == 1
        assert "Radius changed to 7.13 km." in outboxes[0][0].description
        assert outboxes[1] == []
        with UnitOfWork(session_factory) as uow:
            assert uow.events.get(event_id).radius == Decimal("7.13")

    def test_repeated_coordinate_update_is_not_a_second_change(self, session_factory, admin_id):
        event_id, _ = _create(session_factory, admin_id)
        for _ in range(2):
            with UnitOfWork(session_factory) as uow:
                _lifecycle(uow).update(event_id, UpdateCrisisEventInput(
                    latitude=Decimal("63.500000049"), longitude=Decimal("10.500000051"),
                ))
                uow.commit()

        changes = _changes(session_factory, event_id)
        assert [c.change_type for c in changes] == [ChangeType.CREATION, ChangeType.EPICENTER_MOVED]
        assert changes[-1].new_value == "location: [63.5000000, 10.5000001]"

    def test_unknown_theme_aborts_update(self, session_factory, admin_id):
        event_id, _ = _create(session_factory, admin_id)

        with UnitOfWork(session_factory) as uow:
            outcome = _lifecycle(uow).update(
                event_id, UpdateCrisisEventInput(name="Renamed", scenario_theme_id=404),
            )
            uow.commit()

        assert outcome == NotFound("ScenarioTheme", 404)
        with UnitOfWork(session_factory) as uow:
            assert uow.events.get(event_id).name == "Flood A"
        assert len(_changes(session_factory, event_id)) == 1

    def test_missing_event(self, session_factory):
        with UnitOfWork(session_factory) as uow:
            outcome = _lifecycle(uow).update(1234, UpdateCrisisEventInput(name="x"))
        assert outcome == NotFound("CrisisEvent", 1234)

    def test_acting_user_defaults_to_creator(self, session_factory, admin_id, make_user):
        other_admin = make_user()
        event_id, _ = _create(session_factory, admin_id)

        with UnitOfWork(session_factory) as uow:
            _lifecycle(uow).update(event_id, UpdateCrisisEventInput(name="B"))
            _lifecycle(uow).update(event_id, UpdateCrisisEventInput(name="C"), acting_user_id=other_admin)
            uow.commit()

        authors = [c.created_by_user_id for c in _changes(session_factory, event_id)]
        assert authors == [admin_id, admin_id, other_admin]


# ═══════════════════════════════════════════════════════════════════════════
# Deactivate
# ═══════════════════════════════════════════════════════════════════════════

class TestDeactivate:

    def test_deactivate(self, session_factory, admin_id, make_user):
        near = make_user(household=NEARBY)
        make_user(household=FAR_AWAY)
        event_id, _ = _create(session_factory, admin_id)

        with UnitOfWork(session_factory) as uow:
            outcome = _lifecycle(uow).deactivate(event_id)
            uow.commit()
            outbox = uow.collect_outbox()

        assert outcome.value.active is False
        changes = _changes(session_factory, event_id)
        assert len(changes) == 2
        assert changes[-1].change_type == ChangeType.LEVEL_CHANGE
        assert (changes[-1].old_value, changes[-1].new_value) == ("active: true", "active: false")

        assert [p.user_id for p in outbox] == [near]
        assert "is no longer active" in outbox[0].description
        assert "your household's position" in outbox[0].description

        with UnitOfWork(session_factory) as uow:
            service = _lifecycle(uow)
            assert service.list_active_previews(PageRequest()).total == 0
            assert [e.id for e in service.list_all(PageRequest()).items] == [event_id]
            assert [p.id for p in service.list_inactive_previews(PageRequest()).items] == [event_id]
            history = service.list_changes(event_id, PageRequest()).value
            assert history.total == 2

    def test_deactivate_twice_is_a_no_op(self, session_factory, admin_id, make_user):
        make_user(home=NEARBY)
        event_id, _ = _create(session_factory, admin_id)
        for _ in range(2):
            with UnitOfWork(session_factory) as uow:
                _lifecycle(uow).deactivate(event_id)
                uow.commit()
                outbox = uow.collect_outbox()
        assert outbox == []
        assert len(_changes(session_factory, event_id)) == 2

    def test_missing_event(self, session_factory):
        with UnitOfWork(session_factory) as uow:
            assert _lifecycle(uow).deactivate(77) == NotFound("CrisisEvent", 77)


# ═══════════════════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════════════════

class TestQueries:

    def test_previews_sorted_by_severity(self, session_factory, admin_id):
        ids = {}
        for name, severity in [
            ("g1", Severity.GREEN), ("r1", Severity.RED),
            ("y1", Severity.YELLOW), ("r2", Severity.RED), ("g2", Severity.GREEN),
        ]:
            ids[name], _ = _create(session_factory, admin_id, name=name, severity=severity)

        with UnitOfWork(session_factory) as uow:
            page = _lifecycle(uow).list_active_previews(PageRequest(0, 10))

        assert [p.name for p in page.items] == ["r1", "r2", "y1", "g1", "g2"]
        assert page.items[0].severity == Severity.RED
        assert page.items[-1].severity == Severity.GREEN

    def test_previews_are_sliced_after_sorting(self, session_factory, admin_id):
        for name, severity in [("g", Severity.GREEN), ("y", Severity.YELLOW), ("r", Severity.RED)]:
            _create(session_factory, admin_id, name=name, severity=severity)

        with UnitOfWork(session_factory) as uow:
            service = _lifecycle(uow)
            first = service.list_active_previews(PageRequest(0, 2))
            second = service.list_active_previews(PageRequest(1, 2))

        assert [p.name for p in first.items] == ["r", "y"]
        assert [p.name for p in second.items] == ["g"]
        assert first.total == 3 and first.total_pages == 2

    def test_events_affecting_user(self, session_factory, admin_id, make_user):
        user = make_user(household=NEARBY)
        _create(session_factory, admin_id, name="near-green", severity=Severity.GREEN)
        _create(session_factory, admin_id, name="near-red", severity=Severity.RED)
        _create(
            session_factory, admin_id, name="far",
            latitude=Decimal("59.91"), longitude=Decimal("10.75"),
        )
        _create(session_factory, admin_id, name="no-radius", radius=None)

        with UnitOfWork(session_factory) as uow:
            service = _lifecycle(uow)
            events = service.list_affecting_user(user, PageRequest()).value
            previews = service.list_previews_affecting_user(user, PageRequest()).value

        assert [e.name for e in events.items] == ["near-red", "near-green"]
        assert [p.name for p in previews.items] == ["near-red", "near-green"]

    def test_household_without_full_location_is_ignored(self, session_factory, admin_id, make_user):
        user = make_user(household=(NEARBY[0], None))
        _create(session_factory, admin_id)

        with UnitOfWork(session_factory) as uow:
            resident = uow.users.resident(user)
            events = _lifecycle(uow).list_affecting_user(user, PageRequest()).value

        assert resident.household_latitude is None
        assert resident.household_longitude is None
        assert events.total == 0

    def test_events_affecting_unknown_user(self, session_factory):
        with UnitOfWork(session_factory) as uow:
            assert isinstance(_lifecycle(uow).list_affecting_user(999, PageRequest()), NotFound)

    def test_search(self, session_factory, admin_id):
        _create(session_factory, admin_id, name="Flood North", severity=Severity.GREEN)
        _create(session_factory, admin_id, name="flood south", severity=Severity.RED)
        _create(session_factory, admin_id, name="Wildfire")

        with UnitOfWork(session_factory) as uow:
            service = _lifecycle(uow)
            hits = service.search("FLOOD", True, PageRequest())
            inactive = service.search("flood", False, PageRequest())
            blank = service.search("  ", True, PageRequest())

        assert [p.name for p in hits.items] == ["flood south", "Flood North"]
        assert inactive.total == 0
        assert blank.total == 0 and blank.items == []

    def test_change_history_newest_first(self, session_factory, admin_id):
        event_id, _ = _create(session_factory, admin_id)
        with UnitOfWork(session_factory) as uow:
            _lifecycle(uow).update(event_id, UpdateCrisisEventInput(severity=Severity.YELLOW))
            uow.commit()

        with UnitOfWork(session_factory) as uow:
            history = _lifecycle(uow).list_changes(event_id, PageRequest()).value

        assert [c.change_type for c in history.items] == [
            ChangeType.LEVEL_CHANGE, ChangeType.CREATION,
        ]
        assert history.items[0].created_by_user_name == "Admin User1"

    def test_change_history_of_missing_event(self, session_factory):
        with UnitOfWork(session_factory) as uow:
            assert _lifecycle(uow).list_changes(5, PageRequest()) == NotFound("CrisisEvent", 5)

    def test_get_details(self, session_factory, admin_id):
        event_id, _ = _create(session_factory, admin_id)
        with UnitOfWork(session_factory) as uow:
            service = _lifecycle(uow)
            details = service.get_details(event_id).value
            missing = service.get_details(event_id + 1)
        assert details.name == "Flood A"
        assert details.radius == Decimal("5")
        assert isinstance(missing, NotFound)
