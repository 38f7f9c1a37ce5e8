"""
Great-circle distance between store and provider coordinates.
"""

import math
from typing import Any

EARTH_RADIUS_KM = 6371.0

# Reported for coordinates that cannot be used. Large enough to rank the
# provider last and to zero its proximity score, without raising.
UNKNOWN_DISTANCE_KM = 999999.0


def is_finite_number(value: Any) -> bool:
    """True for int/float values that are neither NaN nor infinite."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def distance(lat1: Any, lon1: Any, lat2: Any, lon2: Any) -> float:
    """
    Haversine distance in kilometers.

    Invalid inputs yield UNKNOWN_DISTANCE_KM so scoring degrades instead of
    failing.
    """
    if not all(is_finite_number(v) for v in (lat1, lon1, lat2, lon2)):
        return UNKNOWN_DISTANCE_KM

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    result = EARTH_RADIUS_KM * c

    return result if math.isfinite(result) else UNKNOWN_DISTANCE_KM
