import pytest
import requests

from campsync.core.config import UK_REGION
from campsync.core.errors import ProviderError
from campsync.core.grid import GridCell
from campsync.sync import adapters
from campsync.vendors import google_places

CELL = GridCell(center_lat=51.5, center_lng=-0.1)


@pytest.fixture
def google():
    return adapters.CommercialPlacesAdapter("key", max_radius_m=50000)


def test_fetch_page_passes_cell_and_term(monkeypatch, google):
    calls = []

    def fake_text_search(**kwargs):
        calls.append(kwargs)
        return {"status": "OK", "results": [{"place_id": "1"}], "next_page_token": "next"}

    monkeypatch.setattr(adapters.google_places, "text_search", fake_text_search)

    page = google.fetch_page(CELL, "rest_stop")

    assert page.records == [{"place_id": "1"}]
    assert page.next_page_token == "next"
    assert calls[0]["query"] == "rest stop"
    assert calls[0]["location"] == "51.5,-0.1"
    assert calls[0]["radius"] == 50000
    assert calls[0]["place_type"] == "rest_stop"
    assert calls[0]["pagetoken"] is None


def test_fetch_page_rejected_status_means_no_more_results(monkeypatch, google):
    def fake_text_search(**kwargs):
        raise google_places.GooglePlacesError("token not ready", status="INVALID_REQUEST")

    monkeypatch.setattr(adapters.google_places, "text_search", fake_text_search)

    page = google.fetch_page(CELL, "campground", page_token="early")

    assert page.records == []
    assert page.next_page_token is None


def test_fetch_page_network_error_raises_provider_error(monkeypatch, google):
    def fake_text_search(**kwargs):
        raise requests.ConnectionError("boom")

    monkeypatch.setattr(adapters.google_places, "text_search", fake_text_search)

    with pytest.raises(ProviderError):
        google.fetch_page(CELL, "campground")


def test_normalize_scenario_record(google):
    raw = {
        "place_id": "abc",
        "geometry": {"location": {"lat": 51.5, "lng": -0.1}},
        "photos": [{"photo_reference": "tok1"}],
    }

    location = google.normalize(raw, "campground")

    assert location.type == "campsite"
    assert location.images == ["/api/place-photo?photo_reference=tok1"]
    assert location.external_source == "google"


@pytest.mark.parametrize("raw", [None, "abc", {"place_id": "abc"}, {"place_id": "abc", "geometry": {"location": {"lat": "x"}}}])
def test_normalize_returns_none_without_coordinates(google, raw):
    assert google.normalize(raw, "campground") is None


def test_fetch_detail_photos_caps_at_five(monkeypatch, google):
    photos = [{"photo_reference": f"t{i}"} for i in range(8)]
    monkeypatch.setattr(adapters.google_places, "place_details", lambda place_id, api_key, fields: {"photos": photos})

    assert google.fetch_detail_photos("abc") == ["t0", "t1", "t2", "t3", "t4"]


def test_fetch_detail_photos_soft_fails_on_status(monkeypatch, google, caplog):
    def fake_details(place_id, api_key, fields):
        raise google_places.GooglePlacesError("missing", status="NOT_FOUND")

    monkeypatch.setattr(adapters.google_places, "place_details", fake_details)

    with caplog.at_level("WARNING"):
        assert google.fetch_detail_photos("abc") == []
    assert "abc" in " ".join(caplog.messages)


class BodySession:
    """Session whose responses carry a fixed JSON body."""

    def __init__(self, body):
        self.body = body

    def get(self, url, params=None, timeout=None, allow_redirects=True):
        return self

    def raise_for_status(self):
        return None

    def json(self):
        return self.body


@pytest.mark.parametrize("body", [None, [{"place_id": "1"}]])
def test_malformed_search_body_raises_provider_error(monkeypatch, google, body):
    monkeypatch.setattr(google_places, "_SESSION", BodySession(body))

    with pytest.raises(ProviderError):
        google.fetch_page(CELL, "campground")


@pytest.mark.parametrize("body", [None, ["photos"]])
def test_malformed_details_body_raises_provider_error(monkeypatch, google, body):
    monkeypatch.setattr(google_places, "_SESSION", BodySession(body))

    with pytest.raises(ProviderError):
        google.fetch_detail_photos("pid")


def test_commercial_adapter_requires_key():
    with pytest.raises(ValueError):
        adapters.CommercialPlacesAdapter("")


def test_fetch_all_passes_region(monkeypatch):
    seen = {}

    def fake_fetch(bounds, country_code=None, max_results=None, api_key=None):
        seen.update(bounds=bounds, country_code=country_code, max_results=max_results, api_key=api_key)
        return [{"ID": 1}]

    monkeypatch.setattr(adapters.open_charge_map, "fetch_pois", fake_fetch)

    records = adapters.OpenDirectoryAdapter("ocm-key", max_results=500).fetch_all(UK_REGION)

    assert records == [{"ID": 1}]
    assert seen == {"bounds": UK_REGION.bounds, "country_code": "GB", "max_results": 500, "api_key": "ocm-key"}


def test_fetch_all_non_list_payload_is_empty(monkeypatch):
    monkeypatch.setattr(adapters.open_charge_map, "fetch_pois", lambda *a, **kw: {"error": "nope"})

    assert adapters.OpenDirectoryAdapter().fetch_all(UK_REGION) == []


def test_fetch_all_network_error_raises_provider_error(monkeypatch):
    def fake_fetch(*args, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(adapters.open_charge_map, "fetch_pois", fake_fetch)

    with pytest.raises(ProviderError):
        adapters.OpenDirectoryAdapter().fetch_all(UK_REGION)


def test_open_directory_normalize_discards_zero_coordinates():
    raw = {"ID": 9, "AddressInfo": {"Latitude": 0, "Longitude": 0}}
    assert adapters.OpenDirectoryAdapter().normalize(raw) is None
