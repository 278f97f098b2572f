"""
test_messages.py — Notification text rendering.

Run with:
    pytest tests/test_messages.py -v
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal

import pytest

from crisis_backend.app.crisis.auditor import EventSnapshot
from crisis_backend.app.crisis.models import CrisisEvent, Severity
from crisis_backend.app.crisis.resolver import AffectedReason
from crisis_backend.app.notifications.messages import (
    REASON_PLACEHOLDER,
    CrisisMessageBuilder,
    personalize,
    truncate_description,
)


def _make_event(**overrides) -> CrisisEvent:
    fields = dict(
        name="Flood A",
        description="River over its banks",
        severity=Severity.RED,
        epicenter_latitude=Decimal("63.43"),
        epicenter_longitude=Decimal("10.40"),
        radius=Decimal("5"),
        start_time=datetime(2026, 10, 19, 8, 30),
        active=True,
    )
    fields.update(overrides)
    return CrisisEvent(**fields)


@pytest.fixture
def en():
    return CrisisMessageBuilder("en", description_limit=100)


@pytest.fixture
def nb():
    return CrisisMessageBuilder("nb", description_limit=100)


# ═══════════════════════════════════════════════════════════════════════════
# Severity & reasons
# ═══════════════════════════════════════════════════════════════════════════

class TestTranslations:

    @pytest.mark.parametrize("severity,word", [
        (Severity.RED, "high"), (Severity.YELLOW, "medium"), (Severity.GREEN, "low"),
    ])
    def test_severity_en(self, en, severity, word):
        assert en.translate_severity(severity) == word

    @pytest.mark.parametrize("severity,word", [
        (Severity.RED, "høy"), (Severity.YELLOW, "middels"), (Severity.GREEN, "lav"),
    ])
    def test_severity_nb(self, nb, severity, word):
        assert nb.translate_severity(severity) == word

    def test_missing_severity(self, en):
        assert en.translate_severity(None) == "unknown"

    def test_reasons_en(self, en):
        assert en.reason(AffectedReason.HOME_AND_HOUSEHOLD_SAME) == "your position/household position"
        assert en.reason(AffectedReason.HOME_AND_HOUSEHOLD) == (
            "both your position and your household's position"
        )
        assert en.reason(AffectedReason.HOUSEHOLD) == "your household's position"
        assert en.reason(AffectedReason.HOME) == "your position"

    def test_reasons_nb(self, nb):
        assert nb.reason(AffectedReason.HOME_AND_HOUSEHOLD_SAME) == "din posisjon/husholdningsposisjon"
        assert nb.reason(AffectedReason.HOME) == "din posisjon"

    def test_unknown_locale_falls_back_to_english(self):
        assert CrisisMessageBuilder("xx").locale == "en"


# ═══════════════════════════════════════════════════════════════════════════
# New event
# ═══════════════════════════════════════════════════════════════════════════

class TestNewEvent:

    def test_full_message(self, en):
        text = en.new_event(_make_event())
        assert text == (
            "🚨 Crisis alert: 'Flood A' (high severity). "
            "You are notified because {reason} is within the danger zone. "
            "Description: River over its banks. Started 19.10.2026 08:30."
        )

    def test_norwegian(self, nb):
        text = nb.new_event(_make_event(severity=Severity.GREEN))
        assert text.startswith("🚨 Kriselarsel: 'Flood A' (lav alvorlighetsgrad)")
        assert "Startet 19.10.2026 08:30." in text

    def test_blank_description_omitted(self, en):
        text = en.new_event(_make_event(description="   "))
        assert "Description" not in text

    def test_long_description_truncated(self, en):
        text = en.new_event(_make_event(description="x" * 150))
        assert "x" * 100 + "..." in text
        assert "x" * 101 not in text

    def test_missing_start_time(self, en):
        assert en.new_event(_make_event(start_time=None)).endswith("Started unknown time.")

    def test_contains_placeholder_once(self, en):
        assert en.new_event(_make_event()).count(REASON_PLACEHOLDER) == 1


# ═══════════════════════════════════════════════════════════════════════════
# Update
# ═══════════════════════════════════════════════════════════════════════════

class TestUpdate:

    def test_no_change_returns_none(self, en):
        snap = EventSnapshot.of(_make_event())
        assert en.update(snap, snap) is None

    def test_description_clause(self, en):
        old = EventSnapshot.of(_make_event())
        text = en.update(replace(old, description="Rising"), old)
        assert text == (
            "🔄 Update for 'Flood A': Description updated. "
            "You are notified because {reason} is within the affected area."
        )

    def test_clauses_in_order(self, en):
        old = EventSnapshot.of(_make_event())
        new = replace(
            old, name="Flood B", severity=Severity.YELLOW,
            latitude=Decimal("63.50"), radius=Decimal("7.50"),
        )
        text = en.update(new, old)
        assert "'Flood B': Name changed to 'Flood B'. Severity changed to medium. " \
               "Position updated. Radius changed to 7.5 km." in text

    def test_small_coordinate_jitter_is_not_a_move(self, en):
        old = EventSnapshot.of(_make_event())
        assert en.update(replace(old, latitude=Decimal("63.430001")), old) is None

    def test_active_flag(self, en):
        old = EventSnapshot.of(_make_event())
        assert "now marked as inactive" in en.update(replace(old, active=False), old)
        assert "active again" in en.update(old, replace(old, active=False))

    def test_norwegian_update(self, nb):
        old = EventSnapshot.of(_make_event())
        text = nb.update(replace(old, severity=Severity.GREEN), old)
        assert text.startswith("🔄 Oppdatering for 'Flood A': Alvorlighetsgrad endret til lav.")


# ═══════════════════════════════════════════════════════════════════════════
# Deactivation & helpers
# ═══════════════════════════════════════════════════════════════════════════

class TestDeactivationAndHelpers:

    def test_deactivation(self, en):
        text = en.deactivation(_make_event())
        assert "'Flood A' is no longer active" in text
        assert REASON_PLACEHOLDER in text

    def test_personalize(self, en):
        text = personalize(en.deactivation(_make_event()), en.reason(AffectedReason.HOME))
        assert REASON_PLACEHOLDER not in text
        assert "because your position was within" in text

    def test_braces_in_name_are_not_placeholders(self, en):
        event = _make_event(name="{severity} {reason}", description="{reason} at {start}")
        text = personalize(en.new_event(event), en.reason(AffectedReason.HOME))
        assert text.startswith("🚨 Crisis alert: '{severity} {reason}' (high severity). ")
        assert "because your position is within" in text
        assert "Description: {reason} at {start}." in text
        assert text.count("your position") == 1

    def test_braces_in_updated_name_survive(self, en):
        old = EventSnapshot.of(_make_event())
        text = personalize(en.update(replace(old, name="{name}}"), old), "your position")
        assert text.startswith("🔄 Update for '{name}}': Name changed to '{name}}'.")
        assert text.endswith("because your position is within the affected area.")

    def test_deactivation_name_with_braces(self, en):
        text = personalize(en.deactivation(_make_event(name="{{x}}")), "your position")
        assert "'{{x}}' is no longer active" in text

    def test_truncate_short_text_untouched(self):
        assert truncate_description("short", 100) == "short"

    def test_truncate_exact_limit_untouched(self):
        assert truncate_description("y" * 100, 100) == "y" * 100
