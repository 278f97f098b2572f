"""
distance.py — Great-circle distance between crisis epicenters and residents.

Provides:
    - Haversine distance in **metres** between two (lat, lon) points
    - Inclusive radius test with the radius given in **kilometres**
    - Human-readable distance formatting for log lines

Coordinates are decimal degrees. Values coming out of the database are
``Decimal`` (fixed-precision columns); they are converted to ``float`` here
and nowhere else.

Mathematical Foundation — Haversine Formula
============================================
Given two points P₁(φ₁, λ₁) and P₂(φ₂, λ₂):

    a = sin²(Δφ / 2) + cos(φ₁) · cos(φ₂) · sin²(Δλ / 2)
    c = 2 · atan2(√a, √(1 − a))
    d = R · c

Where R is the Earth's mean radius, 6 371 000 m. The Earth is treated as a
sphere; no ellipsoidal correction is applied. The result is not rounded, so
callers comparing against a radius see the full floating-point value.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Union

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EARTH_RADIUS_M: float = 6_371_000.0

Number = Union[float, int, Decimal]


# ---------------------------------------------------------------------------
# Haversine implementation
# ---------------------------------------------------------------------------

def distance(lat1: Number, lon1: Number, lat2: Number, lon2: Number) -> float:
    """
    Great-circle distance between two points.

    Parameters
    ----------
    lat1, lon1 : float | int | Decimal
        First point (e.g. the crisis epicenter).
    lat2, lon2 : float | int | Decimal
        Second point (e.g. a user's home).

    Returns
    -------
    float
        Distance in metres. Symmetric in its two points and exactly ``0.0``
        when both points are identical.

    Examples
    --------
    >>> distance(63.43, 10.40, 63.43, 10.40)
    0.0
    >>> round(distance(59.9139, 10.7522, 60.3913, 5.3221) / 1000)
    305
    """
    phi1 = math.radians(float(lat1))
    phi2 = math.radians(float(lat2))
    d_phi = phi2 - phi1
    d_lambda = math.radians(float(lon2)) - math.radians(float(lon1))

    a = (
        math.sin(d_phi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    )
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def is_within_radius(distance_m: float, radius_km: Number) -> bool:
    """
    True when ``distance_m`` lies inside a radius of ``radius_km``.

    The boundary is inclusive: a point exactly ``radius_km * 1000`` metres
    away is inside.
    """
    return distance_m <= float(radius_km) * 1000.0


def format_distance(metres: float) -> str:
    """
    Format a distance for display.

    >>> format_distance(450.0)
    '450 m'
    >>> format_distance(3726.6)
    '3.73 km'
    """
    if metres < 1000.0:
        return f"{int(metres)} m"
    return f"{metres / 1000.0:.2f} km"
