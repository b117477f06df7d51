"""
Great-circle distance and radius filtering.

Anything with ``latitude``/``longitude`` attributes (profiles, donations) or
keys (plain dicts) can be a candidate.
"""

from math import asin, cos, radians, sin, sqrt
from typing import Any, Iterable, List, Optional, Tuple

EARTH_RADIUS_KM = 6371.0
NEARBY_RADIUS_KM = 25.0
UNKNOWN_DISTANCE_KM = 999.0

Coordinates = Tuple[float, float]


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two points, in kilometers."""
    phi1, phi2 = radians(lat1), radians(lat2)
    dlat = phi2 - phi1
    dlon = radians(lon2 - lon1)

    a = sin(dlat / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlon / 2) ** 2
    # rounding can push a a hair above 1 for antipodal points
    c = 2 * asin(sqrt(min(1.0, a)))
    return EARTH_RADIUS_KM * c


def coordinates_of(entity: Any) -> Optional[Coordinates]:
    if isinstance(entity, dict):
        lat, lon = entity.get("latitude"), entity.get("longitude")
    else:
        lat = getattr(entity, "latitude", None)
        lon = getattr(entity, "longitude", None)
    if lat is None or lon is None:
        return None
    return float(lat), float(lon)


def distance_between(origin: Optional[Coordinates], entity: Any) -> Optional[float]:
    if origin is None:
        return None
    target = coordinates_of(entity)
    if target is None:
        return None
    return distance_km(origin[0], origin[1], target[0], target[1])


def within_radius(distance: Optional[float], radius_km: float = NEARBY_RADIUS_KM) -> bool:
    """Boundary is inclusive; an unknown distance counts as nearby."""
    return distance is None or distance <= radius_km


def nearby(
    origin: Optional[Coordinates],
    candidates: Iterable[Any],
    radius_km: float = NEARBY_RADIUS_KM,
) -> List[Tuple[Any, Optional[float]]]:
    """
    Filter candidates to those within ``radius_km`` of ``origin`` and sort
    them nearest first.

    Returns (candidate, distance) pairs. Without an origin nothing is
    filtered and every distance is None. Candidates without coordinates are
    kept with a None distance and sort after every measured one. The sort is
    stable, so ties keep their input order.
    """
    scored = [(c, distance_between(origin, c)) for c in candidates]
    if origin is None:
        return scored

    kept = [(c, d) for c, d in scored if within_radius(d, radius_km)]
    kept.sort(key=lambda pair: UNKNOWN_DISTANCE_KM if pair[1] is None else pair[1])
    return kept
