"""Geometry primitives — great-circle distance and chainage strings.

Chainage is the distance along a road alignment, written "K+MMM"
(kilometres + metres), e.g. "12+500" is 12.5 km from the origin.
Plain decimal strings ("12.5") are read as kilometres.
"""

from __future__ import annotations

import math
import re

EARTH_RADIUS_KM = 6371.0

_CHAINAGE_RE = re.compile(r"(\d+)\s*\+\s*(\d+)")


def to_radians(deg: float) -> float:
    return deg * math.pi / 180.0


def to_degrees(rad: float) -> float:
    return rad * 180.0 / math.pi


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two lat/lng points on a spherical Earth.

    Returns kilometres. Identical points give exactly 0.
    """
    if lat1 == lat2 and lon1 == lon2:
        return 0.0
    d_lat = to_radians(lat2 - lat1)
    d_lon = to_radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(to_radians(lat1)) * math.cos(to_radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push a a hair past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def parse_chainage(value: str | float | int | None) -> float:
    """Parse a chainage into kilometres.

    Accepts "K+MMM" (also embedded, e.g. "Ch 12+500"), a bare km number
    ("12.5"), or a number. Anything unparseable yields 0.0. The result is
    not clamped; callers clamp to the route length.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        km = float(value)
        return km if math.isfinite(km) else 0.0

    text = str(value).strip()
    if not text:
        return 0.0

    if "+" in text:
        match = _CHAINAGE_RE.search(text)
        if match is None:
            return 0.0
        return int(match.group(1)) + int(match.group(2)) / 1000.0

    try:
        km = float(text)
    except ValueError:
        return 0.0
    return km if math.isfinite(km) else 0.0


def format_chainage(km: float) -> str:
    """Format kilometres as "K+MMM"."""
    whole = math.floor(km)
    metres = round((km - whole) * 1000)
    if metres >= 1000:
        whole += 1
        metres -= 1000
    return f"{whole}+{metres:03d}"
