from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from brokerage.listings.store import ListingNotFoundError, ListingQuery, ListingStore
from brokerage.scoring.models import LocationScoreResult, ScoreDetails

from helpers import make_listing


@pytest.fixture
def store():
    return ListingStore.from_listings([
        make_listing("a", city="Pune", price=4_000_000, views=10, overall=80),
        make_listing("b", city="Pune", property_type="house", price=9_000_000, views=50, featured=True),
        make_listing("c", city="Mumbai", price=5_000_000, views=30, lat=19.07, lon=72.87, overall=60),
        make_listing("d", city="Pune", status="sold", views=999),
        make_listing("e", city="Pune", price=6_000_000, lat=18.60, lon=73.85, bedrooms=4),
        make_listing("f", city="Pune", lat=None, lon=None),
    ])


def test_seed_catalogue_loads():
    seeded = ListingStore.from_csv()
    assert len(seeded) > 0
    listing = seeded.get("p-001")
    assert listing.city == "Pune"
    assert listing.location_scores.overall_score == 82
    assert "Mumbai" in seeded.cities()


def test_get_unknown_listing_raises(store):
    with pytest.raises(ListingNotFoundError):
        store.get("missing")


def test_find_only_returns_active_by_default(store):
    ids = [l.id for l in store.find(ListingQuery())]
    assert "d" not in ids
    assert len(ids) == 5


def test_default_sort_is_featured_then_views(store):
    ids = [l.id for l in store.find(ListingQuery())]
    assert ids[:3] == ["b", "c", "a"]


def test_conditions_are_anded_by_default(store):
    query = ListingQuery(property_types=["apartment"], cities=["Pune"], price_min=3_500_000, price_max=6_500_000)
    assert {l.id for l in store.find(query)} == {"a", "e", "f"}


def test_match_any_ors_conditions(store):
    query = ListingQuery(property_types=["house"], cities=["Mumbai"], match_any=True)
    assert {l.id for l in store.find(query)} == {"b", "c"}


def test_bedroom_bounds(store):
    assert [l.id for l in store.find(ListingQuery(bedrooms_min=3))] == ["e"]


def test_exclude_ids_and_limit(store):
    found = store.find(ListingQuery(exclude_ids=["b", "c"], limit=2))
    assert len(found) == 2
    assert {"b", "c"}.isdisjoint(l.id for l in found)


def test_city_contains_is_case_insensitive(store):
    assert {l.id for l in store.find(ListingQuery(city_contains="mum"))} == {"c"}


def test_min_overall_score(store):
    assert [l.id for l in store.find(ListingQuery(min_overall_score=75))] == ["a"]


def test_created_after_accepts_naive_datetimes():
    old = make_listing("old", created_at=datetime.now(timezone.utc) - timedelta(days=30))
    new = make_listing("new")
    s = ListingStore.from_listings([old, new])
    since = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=7)
    assert [l.id for l in s.find(ListingQuery(created_after=since))] == ["new"]


def test_near_sorts_by_distance_and_skips_missing_coordinates(store):
    found = store.near(18.52, 73.85, 20_000)
    ids = [listing.id for listing, _ in found]
    assert ids[-1] == "e"
    assert "f" not in ids
    assert "c" not in ids
    distances = [d for _, d in found]
    assert distances == sorted(distances)


def test_save_scores_replaces_whole_document(store):
    result = LocationScoreResult(
        amenity_score=10,
        environment_score=20,
        safety_score=30,
        pollution_score=40,
        overall_score=23,
        score_details=ScoreDetails(),
        scores_calculated_at=datetime(2026, 5, 1, tzinfo=timezone.utc),
    )
    updated = store.save_scores("a", result)
    scores = updated.location_scores
    assert (scores.amenity_score, scores.overall_score) == (10, 23)
    assert scores.scores_calculated_at == datetime(2026, 5, 1, tzinfo=timezone.utc)


def test_save_scores_unknown_listing(store):
    with pytest.raises(ListingNotFoundError):
        store.save_scores("missing", LocationScoreResult())


def test_record_view_increments(store):
    before = store.get("a").views
    assert store.record_view("a").views == before + 1


def test_concurrent_views_and_inserts_are_not_lost(store):
    before = store.get("a").views

    def view(_):
        store.record_view("a")

    def insert(n):
        store.add(make_listing(f"new-{n}"))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(view, range(200)))
        list(pool.map(insert, range(20)))
        list(pool.map(lambda n: view(n) if n % 2 else insert(100 + n), range(40)))

    assert store.get("a").views == before + 220
    assert len(store) == 6 + 20 + 20


def test_added_listing_round_trips_fields(store):
    store.add(make_listing("z", city="Nashik", property_type="villa", price=12_000_000, bedrooms=None))
    listing = store.get("z")
    assert listing.property_type.value == "villa"
    assert listing.bedrooms is None
    assert listing.location_scores is None
    assert "Nashik" in store.cities()
