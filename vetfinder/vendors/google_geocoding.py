"""Client utilities for the Google Geocoding API."""

import logging
from typing import Any, Dict

import requests

from vetfinder.core.errors import NotFound, UpstreamUnavailable, ValidationError
from vetfinder.core.geo import Coordinate

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


class GoogleGeocodingError(UpstreamUnavailable):
    """Raised when the Geocoding API cannot be reached or rejects the request."""


def _request(params: Dict[str, Any], timeout: int) -> Dict[str, Any]:
    try:
        response = _SESSION.get(_BASE_URL, params=params, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("geocode request failed: %s", exc)
        raise GoogleGeocodingError(str(exc)) from exc


def geocode(location_text: str, api_key: str, timeout: int = 10) -> Coordinate:
    """Resolve free text such as a city or zip code to its first matching point."""
    address = (location_text or "").strip()
    if not address:
        raise ValidationError("Missing location parameter")

    payload = _request({"address": address, "key": api_key}, timeout)
    status = payload.get("status")
    results = payload.get("results") or []
    if status == "ZERO_RESULTS" or (status == "OK" and not results):
        logger.info("No geocode result for %r", address)
        raise NotFound("Could not find that location")
    if status != "OK":
        logger.error("geocode failed: status=%s, error_message=%s", status, payload.get("error_message"))
        raise GoogleGeocodingError(payload.get("error_message") or status or "unknown status")

    location = (results[0].get("geometry") or {}).get("location") or {}
    try:
        point = Coordinate(float(location["lat"]), float(location["lng"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise GoogleGeocodingError("Geocode result has no usable location") from exc
    if not point.is_valid():
        raise GoogleGeocodingError(f"Geocode result out of range: {point}")
    return point
