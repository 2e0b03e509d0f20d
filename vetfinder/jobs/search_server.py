"""HTTP entrypoint serving vet searches and the saved vets list (Cloud Run friendly)."""

from __future__ import annotations

import logging
import math
import os
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request

from vetfinder.core import db
from vetfinder.core.config import get_settings
from vetfinder.core.errors import ConfigError, NotFound, Unauthenticated, UpstreamUnavailable, ValidationError
from vetfinder.core.geo import Bounds, Coordinate
from vetfinder.core.saved_vets import SavedVetBridge
from vetfinder.etl.transform import from_vet_json, saved_vet_json, to_vet_json
from vetfinder.models import Identity
from vetfinder.vendors import google_geocoding, google_places

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & bridge ----------
app = Flask(__name__)
_bridge = SavedVetBridge()

_BOUNDS_PARAMS = ("nelat", "nelng", "swlat", "swlng")

# ---------- Helpers ----------


def _error(message: str, status: int) -> Any:
    return jsonify({"error": message}), status


def _current_identity() -> Optional[Identity]:
    """Identity forwarded by the authenticating gateway in front of this service."""
    uid = (request.headers.get("X-User-Id") or "").strip()
    if not uid:
        return None
    email = (request.headers.get("X-User-Email") or "").strip() or None
    return Identity(uid=uid, email=email)


def _parse_bounds(args: Dict[str, str]) -> Bounds:
    try:
        nelat, nelng, swlat, swlng = (float(args[name]) for name in _BOUNDS_PARAMS)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Bounds parameters must be numeric") from exc
    bounds = Bounds(north_east=Coordinate(nelat, nelng), south_west=Coordinate(swlat, swlng))
    if not (bounds.north_east.is_valid() and bounds.south_west.is_valid()):
        raise ValidationError("Bounds parameters are out of range")
    return bounds


def _parse_radius(raw: Optional[str], default: int) -> float:
    if raw is None or raw == "":
        return float(default)
    try:
        radius = float(raw)
    except ValueError as exc:
        raise ValidationError("radius must be numeric") from exc
    if not math.isfinite(radius) or radius <= 0:
        raise ValidationError("radius must be a positive number")
    return radius


@app.errorhandler(ValidationError)
def _handle_validation(exc: ValidationError) -> Any:
    return _error(str(exc), 400)


@app.errorhandler(Unauthenticated)
def _handle_unauthenticated(exc: Unauthenticated) -> Any:
    return _error(str(exc), 401)


@app.errorhandler(ConfigError)
def _handle_config(exc: ConfigError) -> Any:
    logger.error("Configuration error: %s", exc)
    return _error(str(exc), 500)


@app.errorhandler(UpstreamUnavailable)
def _handle_upstream(exc: UpstreamUnavailable) -> Any:
    logger.error("Upstream failure: %s", exc)
    return _error("Upstream service unavailable", 502)


# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, no upstream calls."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "google_api_key_configured": bool(settings.google_api_key),
                "database_configured": bool(settings.database_url),
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.get("/api/vets")
def search_vets() -> Any:
    """
    Search veterinary clinics.
    Either `location` (free text, optional `radius` in meters) or all of
    `nelat`, `nelng`, `swlat`, `swlng` describing the visible map.
    """
    args = request.args
    location = (args.get("location") or "").strip()
    has_bounds = all(args.get(name) for name in _BOUNDS_PARAMS)
    if not location and not has_bounds:
        return _error("Missing location parameter", 400)

    settings = get_settings()
    api_key = settings.google_api_key
    if not api_key:
        return _error("Missing Google Maps API key", 500)

    if has_bounds:
        bounds = _parse_bounds(args)
        if bounds.is_degenerate():
            return jsonify({"vets": []}), 200
        vets = google_places.search_by_bounds(
            bounds, api_key, place_type=settings.places_type, timeout=settings.request_timeout
        )
    else:
        radius = _parse_radius(args.get("radius"), settings.search_radius_m)
        try:
            center = google_geocoding.geocode(location, api_key, timeout=settings.request_timeout)
        except NotFound:
            return _error("Could not geocode location", 404)
        vets = google_places.search_by_point(
            center,
            api_key,
            radius_m=radius,
            place_type=settings.places_type,
            timeout=settings.request_timeout,
        )

    if not vets:
        return _error("No results from Places API", 404)
    return jsonify({"vets": [to_vet_json(vet) for vet in vets]}), 200


@app.get("/api/vets/photo")
def vet_photo() -> Any:
    photo_ref = (request.args.get("ref") or "").strip()
    if not photo_ref:
        return _error("Missing ref parameter", 400)
    settings = get_settings()
    if not settings.google_api_key:
        return _error("Missing Google Maps API key", 500)
    body, content_type = google_places.fetch_photo(
        photo_ref, settings.google_api_key, timeout=settings.request_timeout
    )
    return Response(body, status=200, content_type=content_type, headers={"Cache-Control": "public, max-age=86400"})


@app.get("/api/saved-vets")
def list_saved_vets() -> Any:
    vets = _bridge.list_saved(_current_identity())
    return jsonify({"data": [saved_vet_json(vet) for vet in vets]}), 200


@app.put("/api/saved-vets/<vet_id>")
def save_vet(vet_id: str) -> Any:
    """Upsert a clinic (in the `/api/vets` JSON shape) into the caller's list."""
    identity = _current_identity()
    if identity is None:
        raise Unauthenticated("You must be logged in to save a veterinarian.")

    body = request.get_json(silent=True)
    if body is not None and not isinstance(body, dict):
        return _error("Request body must be a JSON object", 400)
    payload: Dict[str, Any] = dict(body or {})
    payload["id"] = vet_id
    try:
        candidate = from_vet_json(payload)
    except ValueError as exc:
        return _error(str(exc), 400)

    if not _bridge.save_vet(candidate, identity):
        return jsonify({"data": {"vetId": vet_id, "status": "in_progress"}}), 409
    return jsonify({"data": {"vetId": vet_id, "status": "saved"}}), 200


@app.delete("/api/saved-vets/<vet_id>")
def remove_vet(vet_id: str) -> Any:
    removed = _bridge.remove_vet(vet_id, _current_identity())
    if not removed:
        return _error("Veterinarian is not in your list", 404)
    return jsonify({"data": {"vetId": vet_id, "status": "removed"}}), 200


# ---------- Entrypoint ----------


def main() -> None:
    """Bind to $PORT (Cloud Run injects it); falls back to the configured port locally."""
    settings = get_settings()
    if settings.database_url:
        try:
            db.init_schema()
        except UpstreamUnavailable as exc:
            # Saved vet routes answer 502 until the database is reachable.
            logger.error("[BOOT] Could not ensure saved_vets schema: %s", exc)
    else:
        logger.warning("[BOOT] DATABASE_URL not set; saved vet routes are unavailable")
    port = int(os.getenv("PORT") or settings.port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
