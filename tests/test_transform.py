from datetime import datetime, timezone

import pytest

from campsync.etl import transform
from campsync.models import GooglePlaceResult, Location, OcmResult

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _location(external_id, name="Site", source="google"):
    return Location(
        name=name,
        type="campsite",
        lat=51.0,
        lng=-1.0,
        external_id=external_id,
        external_source=source,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.mark.parametrize(
    "term,expected",
    [
        ("campground", "campsite"),
        ("rv_park", "campsite"),
        ("rest_stop", "rest_stop"),
        ("electric_vehicle_charging_station", "ev_charger"),
    ],
)
def test_to_location_type(term, expected):
    assert transform.to_location_type(term) == expected


def test_to_location_type_rejects_unknown_term():
    with pytest.raises(ValueError):
        transform.to_location_type("lodging")


def test_photo_proxy_url_never_contains_provider_host():
    url = transform.photo_proxy_url("Aap_uE/abc+1")
    assert url == "/api/place-photo?photo_reference=Aap_uE%2Fabc%2B1"
    assert "googleapis" not in url


def test_google_result_maps_fields():
    result = GooglePlaceResult.from_payload(
        {
            "place_id": "abc",
            "name": "Lakeside Camping",
            "formatted_address": "1 Lake Rd",
            "geometry": {"location": {"lat": 51.5, "lng": -0.1}},
            "rating": 4.6,
            "user_ratings_total": 120,
            "price_level": 2,
            "opening_hours": {"open_now": True},
            "photos": [{"photo_reference": f"tok{i}"} for i in range(7)],
        }
    )

    location = transform.google_result_to_location(result, "campground", now=NOW)

    assert location.type == "campsite"
    assert location.external_source == "google"
    assert location.external_id == location.google_place_id == "abc"
    assert location.address == location.description == "1 Lake Rd"
    assert location.rating == 4.6
    assert location.review_count == 120
    assert location.price_level == 2
    assert location.opening_hours == {"open_now": True}
    assert len(location.images) == 5
    assert location.created_at == location.updated_at == NOW


def test_google_result_without_coordinates_is_dropped():
    result = GooglePlaceResult.from_payload({"place_id": "abc", "geometry": {}})
    assert transform.google_result_to_location(result, "campground", now=NOW) is None


def test_google_result_without_place_id_is_dropped():
    result = GooglePlaceResult.from_payload({"geometry": {"location": {"lat": 1, "lng": 2}}})
    assert transform.google_result_to_location(result, "campground", now=NOW) is None


def test_google_result_name_and_address_fallbacks():
    result = GooglePlaceResult.from_payload(
        {"place_id": "abc", "vicinity": "Near the A1", "geometry": {"location": {"lat": 1, "lng": 2}}}
    )
    location = transform.google_result_to_location(result, "rest_stop", now=NOW)
    assert location.name == "Unnamed"
    assert location.address == "Near the A1"
    assert location.type == "rest_stop"


def test_ocm_result_maps_fields():
    result = OcmResult.from_payload(
        {
            "ID": 42,
            "AddressInfo": {
                "Title": "Market Car Park",
                "AddressLine1": "High St",
                "Town": "Bath",
                "Postcode": "BA1 1AA",
                "Latitude": 51.38,
                "Longitude": -2.36,
            },
            "OperatorInfo": {"Title": "ChargeCo", "WebsiteURL": "https://charge.example", "PhonePrimaryContact": "0123"},
            "NumberOfPoints": 4,
            "UsageCost": "45p/kWh",
            "Connections": [{"ConnectionType": {"Title": f"Type {i}"}} for i in range(8)],
        }
    )

    location = transform.ocm_result_to_location(result, now=NOW)

    assert location.type == "ev_charger"
    assert location.external_source == "open_charge_map"
    assert location.external_id == "42"
    assert location.name == "Market Car Park"
    assert location.address == "High St, Bath, BA1 1AA"
    assert location.description == "4 connector(s) Type 0, Type 1, Type 2 - 45p/kWh"
    assert location.facilities == [f"Type {i}" for i in range(6)]
    assert location.website == "https://charge.example"
    assert location.phone == "0123"
    assert location.images == []
    assert location.google_place_id is None


def test_ocm_zero_coordinates_are_discarded():
    result = OcmResult.from_payload({"ID": 7, "AddressInfo": {"Latitude": 0, "Longitude": 0}})
    assert transform.ocm_result_to_location(result, now=NOW) is None


def test_ocm_falls_back_to_legacy_coordinates():
    result = OcmResult.from_payload({"ID": 7, "Latitude": 52.1, "Longitude": 0.5})
    location = transform.ocm_result_to_location(result, now=NOW)
    assert (location.lat, location.lng) == (52.1, 0.5)
    assert location.name == "Charging point #7"
    assert location.address == transform.ADDRESS_NOT_LISTED
    assert location.description == "EV charging point"


def test_ocm_without_id_is_discarded():
    result = OcmResult.from_payload({"AddressInfo": {"Latitude": 52.1, "Longitude": 0.5}})
    assert transform.ocm_result_to_location(result, now=NOW) is None


def test_dedupe_keeps_last_seen_record_per_key():
    records = [
        _location("a", name="first"),
        _location("b"),
        _location("a", name="second"),
        _location("a", source="open_charge_map", name="other source"),
    ]

    unique = transform.dedupe_by_key(records)

    by_key = {record.key: record for record in unique}
    assert len(unique) == 3
    assert by_key[("google", "a")].name == "second"
    assert by_key[("open_charge_map", "a")].name == "other source"


def test_location_rejects_unknown_type():
    with pytest.raises(ValueError):
        Location(
            name="x",
            type="campground",
            lat=0.0,
            lng=0.0,
            external_id="1",
            external_source="google",
            created_at=NOW,
            updated_at=NOW,
        )
