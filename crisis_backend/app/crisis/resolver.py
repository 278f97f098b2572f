"""
resolver.py — Decide which residents a crisis event affects, and why.

═══════════════════════════════════════════════════════════════════════════
TARGETING RULES
═══════════════════════════════════════════════════════════════════════════

An event defines a circular zone:

    centre:  (epicenter_latitude, epicenter_longitude)
    radius:  radius_km × 1000 metres

For every resident two independent checks are made:

    home_affected      = home lat AND lon set
                         AND distance(epicenter, home) ≤ radius_m
    household_affected = household lat AND lon set
                         AND distance(epicenter, household) ≤ radius_m

    home   household   coordinates equal?   reason
    ────   ─────────   ──────────────────   ─────────────────────────
    yes    yes         yes                  HOME_AND_HOUSEHOLD_SAME
    yes    yes         no                   HOME_AND_HOUSEHOLD
    no     yes         —                    HOUSEHOLD
    yes    no          —                    HOME
    no     no          —                    (not affected)

An event without a radius or without an epicenter targets nobody; the scan
is skipped entirely.

═══════════════════════════════════════════════════════════════════════════
SCAN STRATEGY
═══════════════════════════════════════════════════════════════════════════

There is no spatial index: every mutation scans the full population. The
population is first copied into immutable ``ResidentLocation`` snapshots,
so the per-resident checks share no mutable state. With ``workers > 1`` the
snapshot is split into chunks and classified on a thread pool; results are
gathered back in population order before any notification is built.
``AffectedUserSource`` is the seam where an indexed lookup can replace the
full scan later without touching ``classify``.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional, Protocol, Sequence, Union

from crisis_backend.app.spatial.distance import distance, format_distance, is_within_radius

logger = logging.getLogger(__name__)

Coord = Optional[Union[Decimal, float]]


# ═══════════════════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════════════════

class AffectedReason(str, Enum):
    """Why a resident is inside an event's zone."""
    HOME_AND_HOUSEHOLD_SAME = "home_and_household_same"
    HOME_AND_HOUSEHOLD = "home_and_household"
    HOUSEHOLD = "household"
    HOME = "home"


@dataclass(frozen=True)
class ResidentLocation:
    """Immutable location snapshot of one user."""
    user_id: int
    home_latitude: Coord = None
    home_longitude: Coord = None
    household_latitude: Coord = None
    household_longitude: Coord = None

    @property
    def has_home(self) -> bool:
        return self.home_latitude is not None and self.home_longitude is not None

    @property
    def has_household(self) -> bool:
        return (
            self.household_latitude is not None
            and self.household_longitude is not None
        )


@dataclass(frozen=True)
class AffectedUser:
    user_id: int
    reason: AffectedReason


class AffectedUserSource(Protocol):
    """Where residents come from. The default is a full directory scan."""

    def all_residents(self) -> List[ResidentLocation]:
        ...

    def resident(self, user_id: int) -> Optional[ResidentLocation]:
        ...


# ═══════════════════════════════════════════════════════════════════════════
# Per-resident Decision
# ═══════════════════════════════════════════════════════════════════════════

def _inside(lat: Coord, lon: Coord, ep_lat, ep_lon, radius_km) -> bool:
    d = distance(ep_lat, ep_lon, lat, lon)
    return is_within_radius(d, radius_km)


def classify(
    resident: ResidentLocation,
    latitude,
    longitude,
    radius_km,
) -> Optional[AffectedReason]:
    """
    Return the reason ``resident`` is affected, or ``None``.

    Identical home/household coordinates are detected with exact equality of
    the stored values, not with a tolerance.
    """
    home = resident.has_home and _inside(
        resident.home_latitude, resident.home_longitude,
        latitude, longitude, radius_km,
    )
    household = resident.has_household and _inside(
        resident.household_latitude, resident.household_longitude,
        latitude, longitude, radius_km,
    )

    if home and household:
        same = (
            resident.home_latitude == resident.household_latitude
            and resident.home_longitude == resident.household_longitude
        )
        return (
            AffectedReason.HOME_AND_HOUSEHOLD_SAME if same
            else AffectedReason.HOME_AND_HOUSEHOLD
        )
    if household:
        return AffectedReason.HOUSEHOLD
    if home:
        return AffectedReason.HOME
    return None


def affects(resident: ResidentLocation, latitude, longitude, radius_km) -> bool:
    """True when the event zone contains the resident's home or household."""
    if radius_km is None or latitude is None or longitude is None:
        return False
    return classify(resident, latitude, longitude, radius_km) is not None


# ═══════════════════════════════════════════════════════════════════════════
# Population Scan
# ═══════════════════════════════════════════════════════════════════════════

def _scan(
    residents: Sequence[ResidentLocation], latitude, longitude, radius_km,
) -> List[AffectedUser]:
    affected: List[AffectedUser] = []
    for resident in residents:
        reason = classify(resident, latitude, longitude, radius_km)
        if reason is None:
            continue
        if logger.isEnabledFor(logging.DEBUG) and resident.has_home:
            logger.debug(
                "User %d affected (%s), home %s from epicenter",
                resident.user_id, reason.value,
                format_distance(distance(
                    latitude, longitude,
                    resident.home_latitude, resident.home_longitude,
                )),
            )
        affected.append(AffectedUser(resident.user_id, reason))
    return affected


def _chunks(items: Sequence[ResidentLocation], size: int) -> Iterable[Sequence[ResidentLocation]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def resolve_affected_users(
    latitude,
    longitude,
    radius_km,
    residents: Sequence[ResidentLocation],
    *,
    workers: int = 1,
    chunk_size: int = 5_000,
) -> List[AffectedUser]:
    """
    Scan ``residents`` and return everyone inside the event zone.

    Parameters
    ----------
    latitude, longitude : Decimal | float | None
        Event epicenter.
    radius_km : Decimal | float | None
        Zone radius in kilometres.
    residents : sequence of ResidentLocation
        Full population snapshot.
    workers : int
        Thread-pool size. ``1`` scans inline.
    chunk_size : int
        Residents per pooled task.

    Returns
    -------
    list of AffectedUser
        In the same order as ``residents``.
    """
    if radius_km is None or latitude is None or longitude is None:
        logger.info("Event has no radius or epicenter, skipping resident scan")
        return []

    residents = list(residents)
    if workers > 1 and len(residents) > chunk_size:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            parts = pool.map(
                lambda chunk: _scan(chunk, latitude, longitude, radius_km),
                _chunks(residents, chunk_size),
            )
            affected = [user for part in parts for user in part]
    else:
        affected = _scan(residents, latitude, longitude, radius_km)

    logger.info(
        "Resident scan: %d affected of %d (radius=%s km, workers=%d)",
        len(affected), len(residents), radius_km, workers,
        extra={"recipient_count": len(affected)},
    )
    return affected


class AffectedUserResolver:
    """Binds a resident source to the scan settings."""

    def __init__(
        self,
        source: AffectedUserSource,
        *,
        workers: int = 1,
        chunk_size: int = 5_000,
    ):
        self.source = source
        self.workers = workers
        self.chunk_size = chunk_size

    def resolve(self, latitude, longitude, radius_km) -> List[AffectedUser]:
        if radius_km is None or latitude is None or longitude is None:
            return []
        return resolve_affected_users(
            latitude, longitude, radius_km,
            self.source.all_residents(),
            workers=self.workers,
            chunk_size=self.chunk_size,
        )
