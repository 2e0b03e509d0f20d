"""Utilities for transforming Google Places responses into clinic candidates."""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

from vetfinder.core.geo import Coordinate, haversine_m
from vetfinder.models import Candidate, SavedVet

logger = logging.getLogger(__name__)

_IGNORE_TYPES = {"point_of_interest", "establishment", "political", "premise", "store", "health"}
PHOTO_PROXY_PATH = "/api/vets/photo"


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    try:
        if value is None:
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def _rating(value: Any) -> Optional[float]:
    rating = _safe_float(value)
    if rating is not None and not 0.0 <= rating <= 5.0:
        return None
    return rating


def _coordinate(lat_value: Any, lng_value: Any) -> Optional[Coordinate]:
    lat = _safe_float(lat_value)
    lng = _safe_float(lng_value)
    if lat is None or lng is None:
        return None
    point = Coordinate(lat, lng)
    return point if point.is_valid() else None


def _extract_location(result: Dict[str, Any]) -> Optional[Coordinate]:
    location = (result.get("geometry") or {}).get("location") or {}
    return _coordinate(location.get("lat"), location.get("lng"))


def _extract_photo_ref(result: Dict[str, Any]) -> Optional[str]:
    photos = result.get("photos") or []
    if photos and isinstance(photos[0], dict):
        return photos[0].get("photo_reference") or None
    return None


def services_from_types(types: Iterable[str]) -> List[str]:
    """Turn provider types such as ``veterinary_care`` into tags like ``Veterinary Care``."""
    return [type_name.replace("_", " ").title() for type_name in types or [] if type_name not in _IGNORE_TYPES]


def to_candidate(result: Dict[str, Any]) -> Optional[Candidate]:
    place_id = result.get("place_id")
    if not place_id:
        logger.debug("Skipping result without place_id: %s", result.get("name"))
        return None

    point = _extract_location(result)
    rating = _rating(result.get("rating"))
    types = [t for t in result.get("types") or [] if isinstance(t, str)]

    return Candidate(
        id=place_id,
        name=result.get("name") or "",
        address=result.get("vicinity") or result.get("formatted_address"),
        lat=point.lat if point else None,
        lng=point.lng if point else None,
        rating=rating,
        user_ratings_total=_safe_int(result.get("user_ratings_total")),
        icon=result.get("icon"),
        types=types,
        photo_ref=_extract_photo_ref(result),
        services=services_from_types(types),
    )


def normalize(raw_results: Optional[Iterable[Dict[str, Any]]]) -> List[Candidate]:
    """Map raw Places results to candidates, keeping the provider's order."""
    candidates: List[Candidate] = []
    for result in raw_results or []:
        if not isinstance(result, dict):
            continue
        candidate = to_candidate(result)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


def within_radius(candidates: Iterable[Candidate], center: Coordinate, radius_m: float) -> List[Candidate]:
    """Drop candidates plotted outside the circle; unplotted ones are kept."""
    kept: List[Candidate] = []
    for candidate in candidates:
        point = candidate.coordinate
        if point is not None and haversine_m(center, point) > radius_m:
            logger.debug("Dropping %s outside %.0fm radius", candidate.id, radius_m)
            continue
        kept.append(candidate)
    return kept


def filter_by_service(candidates: Iterable[Candidate], service_text: Optional[str]) -> List[Candidate]:
    needle = (service_text or "").strip().lower()
    if not needle:
        return list(candidates)
    return [c for c in candidates if any(needle in service.lower() for service in c.services)]


def photo_url(photo_ref: Optional[str]) -> str:
    if not photo_ref:
        return ""
    return f"{PHOTO_PROXY_PATH}?ref={quote(photo_ref, safe='')}"


def to_vet_json(candidate: Candidate) -> Dict[str, Any]:
    return {
        "id": candidate.id,
        "name": candidate.name,
        "address": candidate.address,
        "lat": candidate.lat,
        "lng": candidate.lng,
        "rating": candidate.rating,
        "userRatingsTotal": candidate.user_ratings_total,
        "icon": candidate.icon,
        "types": list(candidate.types),
        "photoRef": candidate.photo_ref,
    }


def from_vet_json(payload: Dict[str, Any]) -> Candidate:
    """Rebuild a candidate from the JSON shape served by ``/api/vets``."""
    vet_id = str(payload.get("id") or "").strip()
    name = str(payload.get("name") or "").strip()
    if not vet_id or not name:
        raise ValueError("id and name are required")
    types = [t for t in payload.get("types") or [] if isinstance(t, str)]
    point = _coordinate(payload.get("lat"), payload.get("lng"))
    return Candidate(
        id=vet_id,
        name=name,
        address=payload.get("address"),
        lat=point.lat if point else None,
        lng=point.lng if point else None,
        rating=_rating(payload.get("rating")),
        user_ratings_total=_safe_int(payload.get("userRatingsTotal")),
        icon=payload.get("icon"),
        types=types,
        photo_ref=payload.get("photoRef"),
        services=services_from_types(types),
    )


def to_saved_vet(candidate: Candidate, added_at: datetime) -> SavedVet:
    return SavedVet(
        vet_id=candidate.id,
        name=candidate.name,
        address=candidate.address or "",
        rating=candidate.rating,
        services=list(candidate.services),
        image_url=photo_url(candidate.photo_ref),
        added_at=added_at,
    )


def saved_vet_json(vet: SavedVet) -> Dict[str, Any]:
    return {
        "vetId": vet.vet_id,
        "name": vet.name,
        "address": vet.address,
        "rating": vet.rating,
        "services": list(vet.services),
        "imageUrl": vet.image_url,
        "addedAt": vet.added_at.isoformat() if vet.added_at else None,
    }
