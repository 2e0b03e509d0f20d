from datetime import datetime, timezone

import pytest

from vetfinder.core.geo import Coordinate
from vetfinder.etl import transform
from vetfinder.models import Candidate


def _place(place_id, lat=None, lng=None, **extra):
    result = {"place_id": place_id, "name": f"Clinic {place_id}", "vicinity": "Main St"}
    if lat is not None:
        result["geometry"] = {"location": {"lat": lat, "lng": lng}}
    result.update(extra)
    return result


def test_to_candidate_maps_places_fields():
    result = _place(
        "abc",
        34.1,
        -118.4,
        rating=4.6,
        user_ratings_total=120,
        icon="https://maps.gstatic.com/icon.png",
        types=["veterinary_care", "point_of_interest", "establishment"],
        photos=[{"photo_reference": "ref-1"}, {"photo_reference": "ref-2"}],
    )

    candidate = transform.to_candidate(result)

    assert candidate.id == "abc"
    assert candidate.name == "Clinic abc"
    assert candidate.address == "Main St"
    assert candidate.coordinate == Coordinate(34.1, -118.4)
    assert candidate.rating == 4.6
    assert candidate.user_ratings_total == 120
    assert candidate.photo_ref == "ref-1"
    assert candidate.types == ["veterinary_care", "point_of_interest", "establishment"]
    assert candidate.services == ["Veterinary Care"]


def test_missing_geometry_is_not_defaulted():
    candidate = transform.to_candidate(_place("abc"))
    assert candidate.lat is None and candidate.lng is None
    assert candidate.coordinate is None

    broken = transform.to_candidate({"place_id": "x", "name": "X", "geometry": {"location": {"lat": "n/a"}}})
    assert broken.coordinate is None


def test_out_of_range_rating_is_dropped():
    assert transform.to_candidate(_place("abc", rating=7)).rating is None


def test_normalize_preserves_order_and_skips_bad_entries():
    raw = [_place("b"), {"name": "no id"}, "junk", _place("a"), _place("c")]
    assert [c.id for c in transform.normalize(raw)] == ["b", "a", "c"]
    assert transform.normalize(None) == []


def test_within_radius_keeps_unplotted_candidates():
    center = Coordinate(0, 0)
    near = Candidate(id="near", name="Near", lat=0.01, lng=0.0)
    far = Candidate(id="far", name="Far", lat=1.0, lng=0.0)
    unplotted = Candidate(id="none", name="None")

    kept = transform.within_radius([near, far, unplotted], center, 10000)

    assert [c.id for c in kept] == ["near", "none"]


def test_filter_by_service():
    dental = Candidate(id="1", name="A", services=["Veterinary Care", "Dental"])
    general = Candidate(id="2", name="B", services=["Veterinary Care"])

    assert transform.filter_by_service([dental, general], "  DENT ") == [dental]
    assert transform.filter_by_service([dental, general], "") == [dental, general]


def test_vet_json_shape():
    candidate = transform.to_candidate(_place("abc", 1.0, 2.0, rating=4.0, photos=[{"photo_reference": "r"}]))
    payload = transform.to_vet_json(candidate)
    assert set(payload) == {"id", "name", "address", "lat", "lng", "rating", "userRatingsTotal", "icon", "types", "photoRef"}
    assert payload["photoRef"] == "r"


def test_from_vet_json_requires_id_and_name():
    with pytest.raises(ValueError):
        transform.from_vet_json({"id": "abc"})
    candidate = transform.from_vet_json({"id": "abc", "name": "Clinic", "types": ["veterinary_care"], "lat": "1.5"})
    assert candidate.lat == 1.5
    assert candidate.services == ["Veterinary Care"]


def test_to_saved_vet_uses_photo_proxy():
    added_at = datetime(2024, 5, 1, tzinfo=timezone.utc)
    candidate = Candidate(id="abc", name="Clinic", rating=4.2, services=["Dental"], photo_ref="a/b+c")

    saved = transform.to_saved_vet(candidate, added_at)

    assert saved.vet_id == "abc"
    assert saved.address == ""
    assert saved.image_url == "/api/vets/photo?ref=a%2Fb%2Bc"
    assert saved.added_at == added_at
    assert transform.saved_vet_json(saved)["addedAt"] == "2024-05-01T00:00:00+00:00"


def test_from_vet_json_applies_rating_and_coordinate_ranges():
    candidate = transform.from_vet_json({"id": "abc", "name": "Clinic", "rating": 99, "lat": 120, "lng": 1})
    assert candidate.rating is None
    assert candidate.coordinate is None

    assert transform.from_vet_json({"id": "abc", "name": "Clinic", "rating": "nan"}).rating is None
    assert transform.from_vet_json({"id": "abc", "name": "Clinic", "rating": "4.5"}).rating == 4.5
