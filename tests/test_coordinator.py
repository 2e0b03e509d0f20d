from concurrent.futures import Future

import pytest

from vetfinder.core import coordinator as coordinator_module
from vetfinder.core.config import Settings
from vetfinder.core.coordinator import GeolocationError, PresentationCoordinator
from vetfinder.core.errors import NotFound, UpstreamUnavailable, ValidationError
from vetfinder.core.geo import Bounds, Coordinate
from vetfinder.core.saved_vets import SavedVetBridge
from vetfinder.models import Candidate, Identity


class SyncExecutor:
    def submit(self, fn, *args):
        future = Future()
        try:
            future.set_result(fn(*args))
        except Exception as exc:  # noqa: BLE001
            future.set_exception(exc)
        return future

    def shutdown(self, wait=True):
        pass


class RecordingStore:
    def __init__(self):
        self.rows = {}

    def upsert_saved_vet(self, user_id, vet):
        self.rows[(user_id, vet.vet_id)] = vet


SETTINGS = Settings(google_api_key="key", database_url="", search_radius_m=10000)
HOME = Coordinate(34.0901, -118.4065)

FIXTURES = [
    Candidate(id="a", name="City Animal Hospital", lat=34.09, lng=-118.40, services=["Veterinary Care", "Dental"]),
    Candidate(id="b", name="Pet Emergency Center", lat=34.10, lng=-118.41, services=["Veterinary Care"]),
]


@pytest.fixture
def calls(monkeypatch):
    recorded = {"geocode": [], "point": [], "bounds": []}

    def fake_geocode(text, api_key, timeout=10):
        recorded["geocode"].append(text)
        if text == "atlantis":
            raise NotFound("Could not find that location")
        return HOME

    def fake_search_by_point(center, api_key, radius_m=None, place_type="veterinary_care", timeout=10):
        recorded["point"].append((center, radius_m))
        return list(FIXTURES)

    def fake_search_by_bounds(bounds, api_key, place_type="veterinary_care", timeout=10):
        recorded["bounds"].append(bounds)
        return [FIXTURES[1]]

    monkeypatch.setattr(coordinator_module.google_geocoding, "geocode", fake_geocode)
    monkeypatch.setattr(coordinator_module.google_places, "search_by_point", fake_search_by_point)
    monkeypatch.setattr(coordinator_module.google_places, "search_by_bounds", fake_search_by_bounds)
    return recorded


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def coordinator(store):
    return PresentationCoordinator(
        settings=SETTINGS,
        bridge=SavedVetBridge(store=store),
        identity=Identity(uid="user-1"),
        executor=SyncExecutor(),
    )


def test_search_geocodes_then_searches(coordinator, calls):
    coordinator.search("90210")

    assert calls["geocode"] == ["90210"]
    assert calls["point"] == [(HOME, 10000)]
    model = coordinator.render_model()
    assert [v["id"] for v in model.vets] == ["a", "b"]
    assert model.loading is False
    assert model.state == "idle"
    assert model.notice is None
    assert model.fit_bounds is not None


def test_blank_search_is_rejected_inline(coordinator, calls):
    assert coordinator.search("   ") is None
    assert calls["geocode"] == []
    assert coordinator.render_model().notice.level == "warning"


def test_geocode_miss_shows_message(coordinator, calls):
    coordinator.search("atlantis")

    model = coordinator.render_model()
    assert model.vets == []
    assert model.empty is True
    assert model.notice.message == "Could not find that location"
    assert calls["point"] == []


def test_missing_api_key_surfaces_error(store, calls):
    coordinator = PresentationCoordinator(
        settings=Settings(google_api_key="", database_url=""),
        bridge=SavedVetBridge(store=store),
        executor=SyncExecutor(),
    )
    coordinator.search("90210")

    model = coordinator.render_model()
    assert model.state == "error"
    assert model.notice.level == "error"
    assert calls["geocode"] == []


def test_service_filter_is_client_side(coordinator, calls):
    coordinator.search("90210")
    coordinator.set_service_filter("dental")

    assert [v["id"] for v in coordinator.render_model().vets] == ["a"]
    assert len(calls["point"]) == 1


def test_find_near_me(coordinator, calls):
    coordinator.find_near_me(lambda: HOME)

    assert calls["point"] == [(HOME, 10000)]
    assert coordinator.controller.viewport.zoom == coordinator_module.NEAR_ME_ZOOM
    assert len(coordinator.render_model().vets) == 2


def test_find_near_me_failure_does_not_fetch(coordinator, calls):
    def deny():
        raise GeolocationError("permission denied")

    assert coordinator.find_near_me(deny) is None
    assert calls["point"] == []
    assert coordinator.render_model().notice.message == "Unable to retrieve your location."


def test_map_idle_searches_bounds(coordinator, calls):
    bounds = Bounds(north_east=Coordinate(34.2, -118.3), south_west=Coordinate(34.0, -118.5))
    coordinator.on_map_idle(bounds, center=bounds.center, zoom=11)

    assert calls["bounds"] == [bounds]
    assert [v["id"] for v in coordinator.render_model().vets] == ["b"]


def test_selection_is_exclusive_and_cleared_on_new_results(coordinator, calls):
    coordinator.search("90210")
    coordinator.select("a")
    coordinator.select("b")
    assert coordinator.selected.id == "b"

    assert coordinator.select("missing") is None
    assert coordinator.selected_id == "b"

    coordinator.search("atlantis")
    assert coordinator.selected is None
    assert coordinator.render_model().selected_id is None


def test_save_selected_candidate(coordinator, calls, store):
    coordinator.search("90210")

    assert coordinator.save("a") is True
    assert coordinator.save("a") is True

    assert list(store.rows) == [("user-1", "a")]
    assert coordinator.render_model().notice.level == "success"


def test_save_without_login_prompts(store, calls):
    coordinator = PresentationCoordinator(
        settings=SETTINGS,
        bridge=SavedVetBridge(store=store),
        identity=None,
        executor=SyncExecutor(),
    )
    coordinator.search("90210")

    assert coordinator.save("a") is False
    assert store.rows == {}
    assert coordinator.render_model().notice.message == "Please log in to save a veterinarian."


def test_save_store_failure_is_reported(coordinator, calls, store):
    def fail(user_id, vet):
        raise UpstreamUnavailable("db down")

    store.upsert_saved_vet = fail
    coordinator.search("90210")

    assert coordinator.save("a") is False
    assert coordinator.render_model().notice.level == "error"


def test_save_unknown_candidate(coordinator, calls):
    with pytest.raises(ValidationError):
        coordinator.save("nope")


def test_render_model_to_dict(coordinator, calls):
    coordinator.search("90210")
    coordinator.select("a")

    payload = coordinator.render_model().to_dict()

    assert payload["selectedId"] == "a"
    assert payload["fitBounds"]["northEast"] == {"lat": 34.10, "lng": -118.40}
    assert payload["mapCenter"] is not None
    assert payload["empty"] is False


def test_map_idle_failure_replaces_earlier_notice(coordinator, calls, monkeypatch):
    coordinator.search("90210")
    assert coordinator.save("a") is True
    assert coordinator.render_model().notice.level == "success"

    def fail(bounds, api_key, place_type="veterinary_care", timeout=10):
        raise UpstreamUnavailable("places down")

    monkeypatch.setattr(coordinator_module.google_places, "search_by_bounds", fail)
    bounds = Bounds(north_east=Coordinate(34.2, -118.3), south_west=Coordinate(34.0, -118.5))
    coordinator.on_map_idle(bounds)

    model = coordinator.render_model()
    assert model.state == "error"
    assert model.notice.level == "error"
    assert model.vets == []


def test_map_idle_on_framed_bounds_keeps_notice(coordinator, calls):
    coordinator.search("90210")
    coordinator.save("a")
    framed = coordinator.controller.viewport.last_fetched_bounds

    assert coordinator.on_map_idle(framed) is None
    assert coordinator.render_model().notice.level == "success"
