"""
messages.py — Crisis notification text.

Three shapes are rendered once per event mutation, each carrying a
``{reason}`` placeholder that is filled per recipient:

    new event      🚨 alert line, severity word, reason, description, start
    update         🔄 one clause per changed field, then the reason
    deactivation   fixed notice that the event is over, then the reason

Event names and descriptions go into templates with their braces doubled,
and ``personalize`` undoubles them in the same pass that fills ``{reason}``.
A name such as ``{severity}`` is therefore never read as a placeholder.

═══════════════════════════════════════════════════════════════════════════
LOCALES
═══════════════════════════════════════════════════════════════════════════

    en   English (default)
    nb   Norwegian bokmål

Unknown locales fall back to English.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from crisis_backend.app.core.config import settings
from crisis_backend.app.crisis.auditor import EventSnapshot, coordinates_differ
from crisis_backend.app.crisis.models import CrisisEvent, Severity
from crisis_backend.app.crisis.resolver import AffectedReason

logger = logging.getLogger(__name__)

REASON_PLACEHOLDER = "{reason}"
START_TIME_FORMAT = "%d.%m.%Y %H:%M"


# ═══════════════════════════════════════════════════════════════════════════
# Catalogue
# ═══════════════════════════════════════════════════════════════════════════

CATALOGUE: Dict[str, Dict[str, str]] = {
    "en": {
        "severity.red": "high",
        "severity.yellow": "medium",
        "severity.green": "low",
        "severity.unknown": "unknown",
        "reason.home_and_household_same": "your position/household position",
        "reason.home_and_household": "both your position and your household's position",
        "reason.household": "your household's position",
        "reason.home": "your position",
        "new.head": "🚨 Crisis alert: '{name}' ({severity} severity)",
        "new.reason": ". You are notified because {reason} is within the danger zone",
        "new.description": ". Description: {description}",
        "new.start": ". Started {start}.",
        "new.unknown_time": "unknown time",
        "update.name": "Name changed to '{name}'.",
        "update.description": "Description updated.",
        "update.severity": "Severity changed to {severity}.",
        "update.position": "Position updated.",
        "update.radius": "Radius changed to {radius} km.",
        "update.radius_unknown": "unknown",
        "update.reactivated": "The event is active again.",
        "update.deactivated": "The event is now marked as inactive.",
        "update.body": (
            "🔄 Update for '{name}': {changes} "
            "You are notified because {reason} is within the affected area."
        ),
        "deactivated": (
            "✅ The crisis event '{name}' is no longer active. "
            "You were notified because {reason} was within the affected area."
        ),
    },
    "nb": {
        "severity.red": "høy",
        "severity.yellow": "middels",
        "severity.green": "lav",
        "severity.unknown": "ukjent",
        "reason.home_and_household_same": "din posisjon/husholdningsposisjon",
        "reason.home_and_household": "både din posisjon og din husholdnings posisjon",
        "reason.household": "din husholdnings posisjon",
        "reason.home": "din posisjon",
        "new.head": "🚨 Kriselarsel: '{name}' ({severity} alvorlighetsgrad)",
        "new.reason": ". Du varsles fordi {reason} er innenfor faresonen",
        "new.description": ". Beskrivelse: {description}",
        "new.start": ". Startet {start}.",
        "new.unknown_time": "ukjent tidspunkt",
        "update.name": "Navn endret til '{name}'.",
        "update.description": "Beskrivelse oppdatert.",
        "update.severity": "Alvorlighetsgrad endret til {severity}.",
        "update.position": "Posisjon oppdatert.",
        "update.radius": "Radius endret til {radius} km.",
        "update.radius_unknown": "ukjent",
        "update.reactivated": "Hendelsen er nå aktiv igjen.",
        "update.deactivated": "Hendelsen er nå markert som inaktiv.",
        "update.body": (
            "🔄 Oppdatering for '{name}': {changes} "
            "Du varsles fordi {reason} er innenfor det berørte området."
        ),
        "deactivated": (
            "✅ Krisehendelsen '{name}' er ikke lenger aktiv. "
            "Du ble varslet fordi {reason} var innenfor det berørte området."
        ),
    },
}


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

# One pass over the template; doubled braces are escaped user text
_TOKEN = re.compile(r"\{\{|\}\}|\{(\w+)\}")


def _escape(text: str) -> str:
    return text.replace("{", "{{").replace("}", "}}")


def personalize(template: str, reason_text: str) -> str:
    """Fill the per-recipient reason into a rendered template."""
    def _sub(match: re.Match) -> str:
        token = match.group(0)
        if token == REASON_PLACEHOLDER:
            return reason_text
        if token in ("{{", "}}"):
            return token[0]
        return token

    return _TOKEN.sub(_sub, template)


def truncate_description(description: str, limit: int) -> str:
    if len(description) <= limit:
        return description
    return description[:limit] + "..."


def _fill(template: str, **values: str) -> str:
    # str.format would consume the {reason} placeholder
    def _sub(match: re.Match) -> str:
        key = match.group(1)
        return values[key] if key in values else match.group(0)

    return _TOKEN.sub(_sub, template)


def _plain_number(value: Decimal) -> str:
    return format(value.normalize(), "f") if isinstance(value, Decimal) else str(value)


# ═══════════════════════════════════════════════════════════════════════════
# Builder
# ═══════════════════════════════════════════════════════════════════════════

class CrisisMessageBuilder:
    """Renders notification templates for one locale."""

    def __init__(
        self,
        locale: Optional[str] = None,
        *,
        description_limit: Optional[int] = None,
    ):
        locale = (locale or settings.DEFAULT_LOCALE).lower()
        if locale not in CATALOGUE:
            logger.warning("Unknown locale %r, falling back to 'en'", locale)
            locale = "en"
        self.locale = locale
        self.description_limit = description_limit or settings.DESCRIPTION_PREVIEW_LENGTH
        self._text = CATALOGUE[locale]

    def translate_severity(self, severity: Optional[Severity]) -> str:
        if severity is None:
            return self._text["severity.unknown"]
        return self._text[f"severity.{Severity(severity).value}"]

    def reason(self, reason: AffectedReason) -> str:
        return self._text[f"reason.{reason.value}"]

    def new_event(self, event: CrisisEvent) -> str:
        t = self._text
        parts = [
            _fill(t["new.head"], name=_escape(event.name),
                  severity=self.translate_severity(event.severity)),
            t["new.reason"],
        ]
        if event.description and event.description.strip():
            parts.append(_fill(
                t["new.description"],
                description=_escape(truncate_description(event.description, self.description_limit)),
            ))
        start = (
            event.start_time.strftime(START_TIME_FORMAT)
            if event.start_time is not None else t["new.unknown_time"]
        )
        parts.append(_fill(t["new.start"], start=start))
        return "".join(parts)

    def update(self, updated: EventSnapshot, previous: EventSnapshot) -> Optional[str]:
        """
        Describe what changed between ``previous`` and ``updated``.

        Returns ``None`` when no watched field changed, which means no
        notification should be sent at all.
        """
        t = self._text
        clauses: List[str] = []

        if updated.name != previous.name:
            clauses.append(_fill(t["update.name"], name=_escape(updated.name)))
        if updated.description != previous.description:
            clauses.append(t["update.description"])
        if updated.severity != previous.severity:
            clauses.append(_fill(
                t["update.severity"], severity=self.translate_severity(updated.severity),
            ))
        if (coordinates_differ(updated.latitude, previous.latitude)
                or coordinates_differ(updated.longitude, previous.longitude)):
            clauses.append(t["update.position"])
        if updated.radius != previous.radius:
            radius = (
                _plain_number(updated.radius) if updated.radius is not None
                else t["update.radius_unknown"]
            )
            clauses.append(_fill(t["update.radius"], radius=radius))
        if updated.active != previous.active:
            clauses.append(t["update.reactivated"] if updated.active else t["update.deactivated"])

        if not clauses:
            return None
        return _fill(t["update.body"], name=_escape(updated.name), changes=" ".join(clauses))

    def deactivation(self, event: CrisisEvent) -> str:
        return _fill(self._text["deactivated"], name=_escape(event.name))
