from __future__ import annotations

from datetime import timedelta

import pytest

from foodshare_client.application.dto.listing import ListingCriteria
from foodshare_client.domain.entities.listing import Coordinates
from foodshare_client.domain.value_objects.enums import ListingCategory, SortDirection, SortKey
from foodshare_client.services import geo_matcher
from tests.conftest import BASE_TIME, make_listing

DHAKA = Coordinates(lat=23.81, lng=90.41)


def test_distance_is_symmetric_and_zero_on_self():
    other = Coordinates(lat=23.90, lng=90.50)
    assert geo_matcher.distance_km(DHAKA, other) == pytest.approx(geo_matcher.distance_km(other, DHAKA))
    assert geo_matcher.distance_km(DHAKA, DHAKA) == pytest.approx(0.0, abs=1e-9)


def test_distance_matches_known_value():
    # one degree of latitude is about 111.2 km
    d = geo_matcher.distance_km(Coordinates(0.0, 0.0), Coordinates(1.0, 0.0))
    assert d == pytest.approx(111.19, abs=0.05)


def test_max_distance_keeps_near_and_drops_far():
    near = make_listing(title="near", lat=23.83, lng=90.40)
    far = make_listing(title="far", lat=23.90, lng=90.50)
    criteria = ListingCriteria(max_distance_km=5, origin=DHAKA)

    result = list(geo_matcher.filter_listings([near, far], criteria))

    assert result == [near]


def test_max_distance_filter_property():
    listings = [
        make_listing(lat=23.81 + i * 0.01, lng=90.41 + i * 0.01) for i in range(20)
    ]
    limit = 7.5
    criteria = ListingCriteria(max_distance_km=limit, origin=DHAKA)

    kept = list(geo_matcher.filter_listings(listings, criteria))

    expected = [x for x in listings if geo_matcher.distance_km(DHAKA, x.location) <= limit]
    assert kept == expected


def test_listing_without_location_passes_distance_filter():
    unlocated = make_listing(lat=None, lng=None)
    criteria = ListingCriteria(max_distance_km=1, origin=DHAKA)

    assert list(geo_matcher.filter_listings([unlocated], criteria)) == [unlocated]


def test_no_origin_means_no_distance_filter():
    far = make_listing(lat=51.5, lng=-0.12)
    criteria = ListingCriteria(max_distance_km=1)

    assert list(geo_matcher.filter_listings([far], criteria)) == [far]


def test_category_and_window_filters():
    food = make_listing(category=ListingCategory.HUMAN, available_from=BASE_TIME)
    feed = make_listing(category=ListingCategory.ANIMAL, available_from=BASE_TIME)
    late = make_listing(category=ListingCategory.HUMAN, expires_at=BASE_TIME + timedelta(days=10))

    by_category = ListingCriteria(category=ListingCategory.ANIMAL)
    assert list(geo_matcher.filter_listings([food, feed, late], by_category)) == [feed]

    window = ListingCriteria(available_until=BASE_TIME + timedelta(days=2))
    assert list(geo_matcher.filter_listings([food, late], window)) == [food]


def test_distance_sort_ascending_and_stable():
    a = make_listing(title="a", lat=23.83, lng=90.40)
    b = make_listing(title="b", lat=23.90, lng=90.50)
    twin = make_listing(title="twin", lat=23.83, lng=90.40)
    nowhere = make_listing(title="nowhere", lat=None, lng=None)

    ordered = list(
        geo_matcher.sort_listings([b, nowhere, a, twin], SortKey.DISTANCE, SortDirection.ASC, DHAKA)
    )

    assert [x.title for x in ordered] == ["a", "twin", "b", "nowhere"]
    distances = [geo_matcher.distance_to(DHAKA, x) for x in ordered[:-1]]
    assert distances == sorted(distances)


def test_distance_sort_descending_keeps_ties_in_input_order():
    a = make_listing(title="a", lat=23.83, lng=90.40)
    twin = make_listing(title="twin", lat=23.83, lng=90.40)
    b = make_listing(title="b", lat=23.90, lng=90.50)

    ordered = list(geo_matcher.sort_listings([a, twin, b], SortKey.DISTANCE, SortDirection.DESC, DHAKA))

    assert [x.title for x in ordered] == ["b", "a", "twin"]


def test_distance_sort_without_origin_keeps_input_order():
    items = [make_listing(title=t) for t in ("c", "a", "b")]

    ordered = list(geo_matcher.sort_listings(items, SortKey.DISTANCE))

    assert ordered == items


def test_recency_and_title_sort():
    old = make_listing(title="beans", created_at=BASE_TIME)
    new = make_listing(title="Apples", created_at=BASE_TIME + timedelta(hours=1))

    assert list(geo_matcher.sort_listings([old, new])) == [new, old]
    assert list(geo_matcher.sort_listings([old, new], SortKey.TITLE, SortDirection.ASC)) == [new, old]


def test_projection_is_lazy_and_does_not_mutate_source():
    source = [make_listing(title="one")]
    view = geo_matcher.project_feed(source, ListingCriteria())

    source.append(make_listing(title="two", created_at=BASE_TIME + timedelta(minutes=1)))

    assert [x.title for x in view] == ["two", "one"]
    assert [x.title for x in view] == ["two", "one"]
    assert [x.title for x in source] == ["one", "two"]
