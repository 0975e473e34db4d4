"""Network endpoints with a geographic position, and distances between them."""

from __future__ import annotations

import math
from dataclasses import dataclass

# Fixed locations used for testing deployments, keyed by short city code.
_CITY_LOCATIONS: dict[str, tuple[float, float]] = {
    "la": (34.05, -118.44),
    "sf": (37.77, -122.42),
    "st": (47.61, -122.33),
    "bh": (25.03, -77.40),
    "nk": (40.34, 127.51),
    "au": (30.27, -97.74),
}


@dataclass(frozen=True)
class Address:
    """An IP address (with optional port) and its latitude/longitude."""

    lat: float = 0.0
    lng: float = 0.0
    ip: str = ""

    @property
    def lat_lng(self) -> tuple[float, float]:
        return (self.lat, self.lng)


def city_location(city: str) -> tuple[float, float] | None:
    """Return the fixed (lat, lng) for a known city code, or None if unknown."""
    return _CITY_LOCATIONS.get(city)


def distance_miles(first: Address, second: Address) -> float:
    """Great-circle distance between two addresses, in miles."""
    lat1 = math.radians(first.lat)
    lat2 = math.radians(second.lat)
    theta = math.radians(first.lng - second.lng)
    cosine = math.sin(lat1) * math.sin(lat2) + math.cos(lat1) * math.cos(lat2) * math.cos(theta)
    # Rounding can push the cosine marginally outside [-1, 1].
    cosine = max(-1.0, min(1.0, cosine))
    return math.degrees(math.acos(cosine)) * 60 * 1.1515