"""Client utilities for the Google Places API."""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

import requests

from vetfinder.core.config import DEFAULT_RADIUS_METERS
from vetfinder.core.errors import UpstreamUnavailable, ValidationError
from vetfinder.core.geo import Bounds, Coordinate
from vetfinder.etl.transform import normalize, within_radius
from vetfinder.models import Candidate

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"
# Upper bound accepted by Nearby Search.
MAX_RADIUS_METERS = 50000


class GooglePlacesError(UpstreamUnavailable):
    """Raised when the Places API returns a non-successful response."""


def nearby_search(
    center: Coordinate,
    radius_m: float,
    api_key: str,
    place_type: str = "veterinary_care",
    timeout: int = 10,
) -> Dict[str, Any]:
    params = {
        "location": f"{center.lat},{center.lng}",
        "radius": str(int(round(min(radius_m, MAX_RADIUS_METERS)))),
        "type": place_type,
        "key": api_key,
    }
    try:
        response = _SESSION.get(f"{_BASE_URL}/nearbysearch/json", params=params, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("nearby_search request failed: %s", exc)
        raise GooglePlacesError(str(exc)) from exc

    status = payload.get("status")
    if status not in {"OK", "ZERO_RESULTS"}:
        logger.error("nearby_search failed: status=%s, error_message=%s", status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status or "unknown status")
    return payload


def search_by_point(
    center: Coordinate,
    api_key: str,
    radius_m: Optional[float] = None,
    place_type: str = "veterinary_care",
    timeout: int = 10,
) -> List[Candidate]:
    """Clinics around ``center``, limited to ``radius_m`` on our side as well."""
    if radius_m is None:
        radius_m = DEFAULT_RADIUS_METERS
    if not math.isfinite(radius_m):
        raise ValidationError("radius must be a finite number of meters")
    if radius_m <= 0:
        return []
    payload = nearby_search(center, radius_m, api_key, place_type=place_type, timeout=timeout)
    candidates = normalize(payload.get("results"))
    kept = within_radius(candidates, center, radius_m)
    logger.info(
        "Nearby search at %.5f,%.5f r=%.0fm returned %d results (%d within radius)",
        center.lat,
        center.lng,
        radius_m,
        len(candidates),
        len(kept),
    )
    return kept


def search_by_bounds(
    bounds: Bounds,
    api_key: str,
    place_type: str = "veterinary_care",
    timeout: int = 10,
) -> List[Candidate]:
    """Clinics in the circle around a map viewport; degenerate viewports never hit the API."""
    if bounds.is_degenerate():
        logger.debug("Skipping search for degenerate bounds %s", bounds)
        return []
    return search_by_point(
        bounds.center,
        api_key,
        radius_m=bounds.radius_m(),
        place_type=place_type,
        timeout=timeout,
    )


def fetch_photo(photo_ref: str, api_key: str, max_width: int = 400, timeout: int = 10) -> Tuple[bytes, str]:
    """Download a place photo; returns the body and its content type."""
    params = {"photo_reference": photo_ref, "maxwidth": str(max_width), "key": api_key}
    try:
        response = _SESSION.get(f"{_BASE_URL}/photo", params=params, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.error("photo request failed: %s", exc)
        raise GooglePlacesError(str(exc)) from exc
    return response.content, response.headers.get("Content-Type", "image/jpeg")
