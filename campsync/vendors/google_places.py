"""Client utilities for the Google Places API."""

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"
_OK_STATUSES = {"OK", "ZERO_RESULTS"}


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""

    def __init__(self, message: str, status: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status


def _check_status(payload: Any, operation: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValueError(f"{operation} returned {type(payload).__name__} instead of an object")
    status = payload.get("status")
    if status not in _OK_STATUSES:
        logger.warning("%s failed: status=%s, error_message=%s", operation, status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or str(status), status=status)
    return payload


def text_search(
    query: str,
    api_key: str,
    location: Optional[str] = None,
    radius: Optional[int] = None,
    place_type: Optional[str] = None,
    pagetoken: Optional[str] = None,
) -> Dict[str, Any]:
    # A continuation token carries the original query; only the key goes with it.
    if pagetoken:
        params: Dict[str, Any] = {"pagetoken": pagetoken, "key": api_key}
    else:
        params = {"query": query, "key": api_key}
        if location:
            params["location"] = location
        if radius:
            params["radius"] = radius
        if place_type:
            params["type"] = place_type
    response = _SESSION.get(f"{_BASE_URL}/textsearch/json", params=params, timeout=10)
    response.raise_for_status()
    return _check_status(response.json(), "text_search")


def place_details(place_id: str, api_key: str, fields: str = "place_id,photos") -> Dict[str, Any]:
    params = {"place_id": place_id, "key": api_key, "fields": fields}
    response = _SESSION.get(f"{_BASE_URL}/details/json", params=params, timeout=10)
    response.raise_for_status()
    payload = _check_status(response.json(), "place_details")
    return payload.get("result") or {}


def place_photo(photo_reference: str, api_key: str, max_width: int = 800) -> requests.Response:
    """Request a photo without following the redirect to the image host."""
    params = {"maxwidth": max_width, "photo_reference": photo_reference, "key": api_key}
    return _SESSION.get(f"{_BASE_URL}/photo", params=params, timeout=10, allow_redirects=False)
