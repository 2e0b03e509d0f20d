"""UI-facing state for the "find a vet" page."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from vetfinder.core.config import Settings, get_settings
from vetfinder.core.errors import Unauthenticated, UpstreamUnavailable, ValidationError
from vetfinder.core.geo import Bounds, Coordinate
from vetfinder.core.saved_vets import SavedVetBridge
from vetfinder.core.viewport import Notice, SearchState, ViewportSyncController
from vetfinder.etl.transform import filter_by_service, to_vet_json
from vetfinder.models import Candidate, Identity, PointQuery, TextQuery
from vetfinder.vendors import google_geocoding, google_places

logger = logging.getLogger(__name__)

NEAR_ME_ZOOM = 13


class GeolocationError(RuntimeError):
    """Raised by a locate callable when the device position is unavailable."""


def _bounds_dict(bounds: Optional[Bounds]) -> Optional[Dict[str, Any]]:
    if bounds is None:
        return None
    return {
        "northEast": {"lat": bounds.north_east.lat, "lng": bounds.north_east.lng},
        "southWest": {"lat": bounds.south_west.lat, "lng": bounds.south_west.lng},
    }


@dataclass
class RenderModel:
    query_text: str
    service_filter: str
    loading: bool
    state: str
    vets: List[Dict[str, Any]] = field(default_factory=list)
    selected_id: Optional[str] = None
    map_center: Optional[Coordinate] = None
    fit_bounds: Optional[Bounds] = None
    notice: Optional[Notice] = None
    empty: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "queryText": self.query_text,
            "serviceFilter": self.service_filter,
            "loading": self.loading,
            "state": self.state,
            "vets": self.vets,
            "selectedId": self.selected_id,
            "mapCenter": {"lat": self.map_center.lat, "lng": self.map_center.lng} if self.map_center else None,
            "fitBounds": _bounds_dict(self.fit_bounds),
            "notice": {"level": self.notice.level, "message": self.notice.message} if self.notice else None,
            "empty": self.empty,
        }


class PresentationCoordinator:
    """Owns query text, filter, selection and notices, and dispatches searches and saves."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        bridge: Optional[SavedVetBridge] = None,
        identity: Optional[Identity] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.bridge = bridge or SavedVetBridge()
        self.identity = identity
        self.controller = ViewportSyncController(executor=executor, on_change=self._on_results)
        self.query_text = ""
        self.service_filter = ""
        self.selected_id: Optional[str] = None
        self.notice: Optional[Notice] = None

    # ---------- Triggers ----------

    def search(self, location_text: str) -> Optional[Future]:
        """Geocode ``location_text`` and search around it."""
        self.query_text = location_text or ""
        text = self.query_text.strip()
        if not text:
            self.notice = Notice("warning", "Please enter a location to search.")
            return None
        self.notice = None
        settings = self.settings

        def fetch() -> List[Candidate]:
            if not settings.google_api_key:
                raise UpstreamUnavailable("Missing Google Maps API key")
            center = google_geocoding.geocode(text, settings.google_api_key, timeout=settings.request_timeout)
            return google_places.search_by_point(
                center,
                settings.google_api_key,
                radius_m=settings.search_radius_m,
                place_type=settings.places_type,
                timeout=settings.request_timeout,
            )

        return self.controller.trigger(TextQuery(text), fetch)

    def find_near_me(self, locate: Callable[[], Coordinate]) -> Optional[Future]:
        """Ask the device for its position once and search around it."""
        try:
            center = locate()
        except GeolocationError as exc:
            logger.warning("Geolocation failed: %s", exc)
            self.notice = Notice("error", "Unable to retrieve your location.")
            return None
        if not center.is_valid():
            self.notice = Notice("error", "Unable to retrieve your location.")
            return None

        self.notice = None
        self.controller.move_map(center, zoom=NEAR_ME_ZOOM)
        settings = self.settings
        radius_m = settings.search_radius_m

        def fetch() -> List[Candidate]:
            if not settings.google_api_key:
                raise UpstreamUnavailable("Missing Google Maps API key")
            return google_places.search_by_point(
                center,
                settings.google_api_key,
                radius_m=radius_m,
                place_type=settings.places_type,
                timeout=settings.request_timeout,
            )

        return self.controller.trigger(PointQuery(center, radius_m), fetch)

    def on_map_idle(self, bounds: Bounds, center: Optional[Coordinate] = None, zoom: Optional[float] = None) -> Optional[Future]:
        if center is not None:
            self.controller.move_map(center, zoom)
        settings = self.settings

        def fetch_for_bounds(idle_bounds: Bounds) -> List[Candidate]:
            if not settings.google_api_key:
                raise UpstreamUnavailable("Missing Google Maps API key")
            return google_places.search_by_bounds(
                idle_bounds,
                settings.google_api_key,
                place_type=settings.places_type,
                timeout=settings.request_timeout,
            )

        future = self.controller.on_map_idle(bounds, fetch_for_bounds)
        if future is not None:
            self.notice = None
        return future

    # ---------- Selection ----------

    def select(self, vet_id: str) -> Optional[Candidate]:
        candidate = self._find(vet_id)
        if candidate is None:
            logger.debug("Ignoring selection of unknown vet %s", vet_id)
            return None
        self.selected_id = candidate.id
        return candidate

    def clear_selection(self) -> None:
        self.selected_id = None

    @property
    def selected(self) -> Optional[Candidate]:
        return self._find(self.selected_id) if self.selected_id else None

    def set_service_filter(self, text: str) -> None:
        self.service_filter = text or ""

    def dismiss_notice(self) -> None:
        self.notice = None
        self.controller.dismiss_notice()

    # ---------- Persistence ----------

    def save(self, vet_id: str) -> bool:
        """Add a displayed clinic to the user's list; returns False when nothing was written."""
        candidate = self._find(vet_id)
        if candidate is None:
            raise ValidationError(f"Unknown veterinarian {vet_id}")
        try:
            saved = self.bridge.save_vet(candidate, self.identity)
        except Unauthenticated:
            self.notice = Notice("warning", "Please log in to save a veterinarian.")
            return False
        except UpstreamUnavailable:
            self.notice = Notice("error", "Could not save veterinarian. Please try again.")
            return False
        if saved:
            self.notice = Notice("success", f"{candidate.name} has been added to your list.")
        return saved

    # ---------- Rendering ----------

    def render_model(self) -> RenderModel:
        controller = self.controller
        visible = filter_by_service(controller.candidates, self.service_filter)
        loading = controller.state is SearchState.FETCHING
        return RenderModel(
            query_text=self.query_text,
            service_filter=self.service_filter,
            loading=loading,
            state=controller.state.value,
            vets=[to_vet_json(c) for c in visible],
            selected_id=self.selected_id,
            map_center=controller.viewport.center,
            fit_bounds=controller.framing.bounds if controller.framing else None,
            notice=self.notice or controller.notice,
            empty=controller.query is not None and controller.state is SearchState.IDLE and not visible,
        )

    def close(self) -> None:
        self.controller.close()

    def _find(self, vet_id: Optional[str]) -> Optional[Candidate]:
        for candidate in self.controller.candidates:
            if candidate.id == vet_id:
                return candidate
        return None

    def _on_results(self, controller: ViewportSyncController) -> None:
        if self.selected_id and self._find(self.selected_id) is None:
            self.selected_id = None
