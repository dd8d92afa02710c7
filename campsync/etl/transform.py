"""Utilities for transforming provider responses into ``Location`` rows."""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence
from urllib.parse import quote

from campsync.models import (
    SOURCE_GOOGLE,
    SOURCE_OPEN_CHARGE_MAP,
    TYPE_CAMPSITE,
    TYPE_EV_CHARGER,
    TYPE_REST_STOP,
    GooglePlaceResult,
    Location,
    OcmResult,
)

logger = logging.getLogger(__name__)

PHOTO_PROXY_PATH = "/api/place-photo"
MAX_PHOTOS = 5
MAX_FACILITIES = 6
MAX_DESCRIBED_CONNECTORS = 3
ADDRESS_NOT_LISTED = "Address not listed"

_TYPE_BY_TERM = {
    "campground": TYPE_CAMPSITE,
    "campsite": TYPE_CAMPSITE,
    "rv_park": TYPE_CAMPSITE,
    "rest_stop": TYPE_REST_STOP,
    "rest_area": TYPE_REST_STOP,
    "electric_vehicle_charging_station": TYPE_EV_CHARGER,
    "ev_charger": TYPE_EV_CHARGER,
}


def to_location_type(term: str) -> str:
    try:
        return _TYPE_BY_TERM[term]
    except KeyError:
        raise ValueError(f"no location type for provider term {term!r}") from None


def photo_proxy_url(photo_reference: str) -> str:
    return f"{PHOTO_PROXY_PATH}?photo_reference={quote(photo_reference, safe='')}"


def photo_proxy_urls(references: Iterable[str]) -> List[str]:
    return [photo_proxy_url(ref) for ref in list(references)[:MAX_PHOTOS]]


def google_result_to_location(
    result: GooglePlaceResult,
    category_term: str,
    now: Optional[datetime] = None,
) -> Optional[Location]:
    """Map a text search result; ``None`` when it has no id or coordinates."""
    if not result.place_id or result.lat is None or result.lng is None:
        return None

    now = now or datetime.now(timezone.utc)
    address = result.formatted_address or result.vicinity or ""
    return Location(
        name=result.name or "Unnamed",
        type=to_location_type(category_term),
        lat=result.lat,
        lng=result.lng,
        description=address,
        address=address,
        images=photo_proxy_urls(result.photo_references),
        google_place_id=result.place_id,
        external_id=result.place_id,
        external_source=SOURCE_GOOGLE,
        rating=result.rating,
        review_count=result.user_ratings_total,
        price_level=result.price_level,
        opening_hours=result.opening_hours,
        created_at=now,
        updated_at=now,
    )


def format_ocm_address(result: OcmResult) -> str:
    parts = [result.address_line1, result.town, result.state_or_province, result.postcode]
    return ", ".join(part for part in parts if part) or ADDRESS_NOT_LISTED


def format_ocm_description(result: OcmResult) -> str:
    points = f"{result.number_of_points} connector(s)" if result.number_of_points is not None else ""
    connectors = ", ".join(result.connection_types[:MAX_DESCRIBED_CONNECTORS])
    cost = f"- {result.usage_cost}" if result.usage_cost else ""
    return " ".join(part for part in (points, connectors, cost) if part) or "EV charging point"


def ocm_result_to_location(result: OcmResult, now: Optional[datetime] = None) -> Optional[Location]:
    """Map a charge point; ``None`` when it has no id or sits at 0,0."""
    if result.id is None or result.lat is None or result.lng is None:
        return None
    lat, lng = result.lat, result.lng
    # The directory stores unknown positions as 0,0.
    if lat == 0 and lng == 0:
        return None

    now = now or datetime.now(timezone.utc)
    return Location(
        name=result.title or result.operator_title or f"Charging point #{result.id}",
        type=TYPE_EV_CHARGER,
        lat=lat,
        lng=lng,
        description=format_ocm_description(result),
        address=format_ocm_address(result),
        facilities=list(result.connection_types[:MAX_FACILITIES]),
        website=result.operator_website,
        phone=result.operator_phone,
        external_id=str(result.id),
        external_source=SOURCE_OPEN_CHARGE_MAP,
        created_at=now,
        updated_at=now,
    )


def dedupe_by_key(
    records: Sequence[Location],
    key: Callable[[Location], Hashable] = lambda loc: loc.key,
) -> List[Location]:
    """Collapse records sharing a key; the last one seen wins."""
    by_key: Dict[Hashable, Location] = {}
    for record in records:
        by_key[key(record)] = record
    dropped = len(records) - len(by_key)
    if dropped:
        logger.debug("Dropped %d duplicate records", dropped)
    return list(by_key.values())
