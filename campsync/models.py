"""Core data models shared by the sync pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

SOURCE_GOOGLE = "google"
SOURCE_OPEN_CHARGE_MAP = "open_charge_map"

TYPE_CAMPSITE = "campsite"
TYPE_EV_CHARGER = "ev_charger"
TYPE_REST_STOP = "rest_stop"
LOCATION_TYPES = (TYPE_CAMPSITE, TYPE_EV_CHARGER, TYPE_REST_STOP)


@dataclass(slots=True)
class Location:
    """Canonical point of interest, one row of the ``locations`` table."""

    name: str
    type: str
    lat: float
    lng: float
    external_id: str
    external_source: str
    created_at: datetime
    updated_at: datetime
    description: str = ""
    address: str = ""
    price: Optional[str] = None
    facilities: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    website: Optional[str] = None
    phone: Optional[str] = None
    google_place_id: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    price_level: Optional[int] = None
    opening_hours: Optional[Dict[str, Any]] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.type not in LOCATION_TYPES:
            raise ValueError(f"unknown location type: {self.type!r}")

    @property
    def key(self) -> Tuple[str, str]:
        return (self.external_source, self.external_id)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class GooglePlaceResult:
    """Validated subset of a Places text search / details result."""

    place_id: Optional[str]
    name: Optional[str] = None
    formatted_address: Optional[str] = None
    vicinity: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    price_level: Optional[int] = None
    opening_hours: Optional[Dict[str, Any]] = None
    photo_references: Tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> "GooglePlaceResult":
        if not isinstance(payload, Mapping):
            raise ValueError(f"expected a mapping, got {type(payload).__name__}")

        geometry = payload.get("geometry")
        location = geometry.get("location") if isinstance(geometry, Mapping) else None
        location = location if isinstance(location, Mapping) else {}

        photos = payload.get("photos")
        references: List[str] = []
        if isinstance(photos, list):
            for photo in photos:
                if isinstance(photo, Mapping):
                    ref = _strip_or_none(photo.get("photo_reference"))
                    if ref:
                        references.append(ref)

        opening_hours = payload.get("opening_hours")
        return cls(
            place_id=_strip_or_none(payload.get("place_id")),
            name=_strip_or_none(payload.get("name")),
            formatted_address=_strip_or_none(payload.get("formatted_address")),
            vicinity=_strip_or_none(payload.get("vicinity")),
            lat=_safe_float(location.get("lat")),
            lng=_safe_float(location.get("lng")),
            rating=_safe_float(payload.get("rating")),
            user_ratings_total=_safe_int(payload.get("user_ratings_total")),
            price_level=_safe_int(payload.get("price_level")),
            opening_hours=dict(opening_hours) if isinstance(opening_hours, Mapping) else None,
            photo_references=tuple(references),
        )


@dataclass(slots=True)
class OcmResult:
    """Validated subset of an Open Charge Map POI record."""

    id: Optional[int]
    title: Optional[str] = None
    address_line1: Optional[str] = None
    town: Optional[str] = None
    state_or_province: Optional[str] = None
    postcode: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    operator_title: Optional[str] = None
    operator_website: Optional[str] = None
    operator_phone: Optional[str] = None
    number_of_points: Optional[int] = None
    usage_cost: Optional[str] = None
    connection_types: Tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> "OcmResult":
        if not isinstance(payload, Mapping):
            raise ValueError(f"expected a mapping, got {type(payload).__name__}")

        address = payload.get("AddressInfo")
        address = address if isinstance(address, Mapping) else {}
        operator = payload.get("OperatorInfo")
        operator = operator if isinstance(operator, Mapping) else {}

        # AddressInfo wins whenever it carries a value, including 0.
        lat = _safe_float(address.get("Latitude"))
        if lat is None:
            lat = _safe_float(payload.get("Latitude"))
        lng = _safe_float(address.get("Longitude"))
        if lng is None:
            lng = _safe_float(payload.get("Longitude"))

        titles: List[str] = []
        connections = payload.get("Connections")
        if isinstance(connections, list):
            for connection in connections:
                if not isinstance(connection, Mapping):
                    continue
                connection_type = connection.get("ConnectionType")
                if isinstance(connection_type, Mapping):
                    title = _strip_or_none(connection_type.get("Title"))
                    if title:
                        titles.append(title)

        return cls(
            id=_safe_int(payload.get("ID")),
            title=_strip_or_none(address.get("Title")),
            address_line1=_strip_or_none(address.get("AddressLine1")),
            town=_strip_or_none(address.get("Town")),
            state_or_province=_strip_or_none(address.get("StateOrProvince")),
            postcode=_strip_or_none(address.get("Postcode")),
            lat=lat,
            lng=lng,
            operator_title=_strip_or_none(operator.get("Title")),
            operator_website=_strip_or_none(operator.get("WebsiteURL")),
            operator_phone=_strip_or_none(operator.get("PhonePrimaryContact")),
            number_of_points=_safe_int(payload.get("NumberOfPoints")),
            usage_cost=_strip_or_none(payload.get("UsageCost")),
            connection_types=tuple(titles),
        )


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def _safe_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
