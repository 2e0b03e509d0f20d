"""Core data models shared by the vet search pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from vetfinder.core.geo import Bounds, Coordinate


@dataclass(slots=True)
class Candidate:
    """Normalized snapshot of a clinic returned by a nearby search."""

    id: str
    name: str
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    icon: Optional[str] = None
    types: List[str] = field(default_factory=list)
    photo_ref: Optional[str] = None
    services: List[str] = field(default_factory=list)

    @property
    def coordinate(self) -> Optional[Coordinate]:
        if self.lat is None or self.lng is None:
            return None
        return Coordinate(self.lat, self.lng)


@dataclass(frozen=True, slots=True)
class TextQuery:
    location_text: str


@dataclass(frozen=True, slots=True)
class PointQuery:
    center: Coordinate
    radius_m: Optional[float] = None


@dataclass(frozen=True, slots=True)
class BoundsQuery:
    bounds: Bounds


Query = Union[TextQuery, PointQuery, BoundsQuery]


@dataclass(slots=True)
class ViewportState:
    center: Optional[Coordinate] = None
    zoom: Optional[float] = None
    last_fetched_bounds: Optional[Bounds] = None


@dataclass(slots=True)
class SavedVet:
    """A clinic a user added to their own list."""

    vet_id: str
    name: str
    address: str = ""
    rating: Optional[float] = None
    services: List[str] = field(default_factory=list)
    image_url: str = ""
    added_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class Identity:
    uid: str
    email: Optional[str] = None
