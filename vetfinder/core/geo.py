"""Coordinate and viewport helpers used by the search adapters and the map framing."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional

EARTH_RADIUS_M = 6371000.0


@dataclass(frozen=True, slots=True)
class Coordinate:
    lat: float
    lng: float

    def is_valid(self) -> bool:
        return (
            math.isfinite(self.lat)
            and math.isfinite(self.lng)
            and -90.0 <= self.lat <= 90.0
            and -180.0 <= self.lng <= 180.0
        )


@dataclass(frozen=True, slots=True)
class Bounds:
    """Rectangular viewport defined by its north-east and south-west corners."""

    north_east: Coordinate
    south_west: Coordinate

    def is_degenerate(self) -> bool:
        # Viewports crossing the antimeridian also land here.
        return not (
            self.north_east.lat > self.south_west.lat
            and self.north_east.lng > self.south_west.lng
        )

    @property
    def center(self) -> Coordinate:
        return Coordinate(
            lat=(self.north_east.lat + self.south_west.lat) / 2,
            lng=(self.north_east.lng + self.south_west.lng) / 2,
        )

    def radius_m(self) -> float:
        """Half of the diagonal, i.e. the circle through the corners."""
        return haversine_m(self.south_west, self.north_east) / 2

    def contains(self, point: Coordinate) -> bool:
        return (
            self.south_west.lat <= point.lat <= self.north_east.lat
            and self.south_west.lng <= point.lng <= self.north_east.lng
        )


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlambda = math.radians(b.lng - a.lng)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def fit_bounds(points: Iterable[Coordinate]) -> Optional[Bounds]:
    """Smallest box around ``points``; None when it would not have any area."""
    points = list(points)
    if not points:
        return None
    bounds = Bounds(
        north_east=Coordinate(max(p.lat for p in points), max(p.lng for p in points)),
        south_west=Coordinate(min(p.lat for p in points), min(p.lng for p in points)),
    )
    if bounds.is_degenerate():
        return None
    return bounds
