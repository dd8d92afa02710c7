"""Database helpers for the ``locations`` table."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Mapping, Optional, Sequence

import psycopg2
from psycopg2 import extras, pool

from campsync.core.config import Bounds, get_settings
from campsync.core.errors import ConfigError, SinkError
from campsync.models import SOURCE_GOOGLE, TYPE_CAMPSITE, TYPE_REST_STOP, Location

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None

_COLUMNS = (
    "name",
    "type",
    "lat",
    "lng",
    "description",
    "address",
    "price",
    "facilities",
    "images",
    "website",
    "phone",
    "google_place_id",
    "external_id",
    "external_source",
    "rating",
    "review_count",
    "price_level",
    "opening_hours",
    "created_at",
    "updated_at",
)
_SELECT_COLUMNS = ", ".join(_COLUMNS)

# Columns an upsert leaves untouched when the incoming value is NULL.
KEEP_EXISTING_COLUMNS = (
    "price",
    "website",
    "phone",
    "rating",
    "review_count",
    "price_level",
    "opening_hours",
)


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise ConfigError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


def _prepare_params(location: Location) -> Dict[str, Any]:
    params = location.to_dict()
    params["facilities"] = list(location.facilities)
    params["images"] = list(location.images)
    params["opening_hours"] = extras.Json(location.opening_hours) if location.opening_hours is not None else None
    return params


def row_to_location(row: Mapping[str, Any]) -> Location:
    """Build a ``Location`` from a selected row."""
    return Location(
        name=row["name"] or "",
        type=row["type"],
        lat=float(row["lat"]),
        lng=float(row["lng"]),
        description=row.get("description") or "",
        address=row.get("address") or "",
        price=row.get("price"),
        facilities=list(row.get("facilities") or []),
        images=list(row.get("images") or []),
        website=row.get("website"),
        phone=row.get("phone"),
        google_place_id=row.get("google_place_id"),
        external_id=row["external_id"],
        external_source=row["external_source"],
        rating=float(row["rating"]) if row.get("rating") is not None else None,
        review_count=int(row["review_count"]) if row.get("review_count") is not None else None,
        price_level=int(row["price_level"]) if row.get("price_level") is not None else None,
        opening_hours=row.get("opening_hours"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


# Nullable fields only the details/enrichment path fills keep their stored
# value when a search result arrives without them. ``images`` only grows.
_UPSERT_LOCATION = """
INSERT INTO locations (
    name,
    type,
    lat,
    lng,
    description,
    address,
    price,
    facilities,
    images,
    website,
    phone,
    google_place_id,
    external_id,
    external_source,
    rating,
    review_count,
    price_level,
    opening_hours,
    created_at,
    updated_at
) VALUES (
    %(name)s,
    %(type)s,
    %(lat)s,
    %(lng)s,
    %(description)s,
    %(address)s,
    %(price)s,
    %(facilities)s::text[],
    %(images)s::text[],
    %(website)s,
    %(phone)s,
    %(google_place_id)s,
    %(external_id)s,
    %(external_source)s,
    %(rating)s,
    %(review_count)s,
    %(price_level)s,
    %(opening_hours)s,
    %(created_at)s,
    %(updated_at)s
)
ON CONFLICT (external_source, external_id) DO UPDATE SET
    name = EXCLUDED.name,
    type = EXCLUDED.type,
    lat = EXCLUDED.lat,
    lng = EXCLUDED.lng,
    description = EXCLUDED.description,
    address = EXCLUDED.address,
    price = COALESCE(EXCLUDED.price, locations.price),
    facilities = EXCLUDED.facilities,
    images = CASE
        WHEN COALESCE(cardinality(EXCLUDED.images), 0) >= COALESCE(cardinality(locations.images), 0)
        THEN EXCLUDED.images
        ELSE locations.images
    END,
    website = COALESCE(EXCLUDED.website, locations.website),
    phone = COALESCE(EXCLUDED.phone, locations.phone),
    google_place_id = EXCLUDED.google_place_id,
    rating = COALESCE(EXCLUDED.rating, locations.rating),
    review_count = COALESCE(EXCLUDED.review_count, locations.review_count),
    price_level = COALESCE(EXCLUDED.price_level, locations.price_level),
    opening_hours = COALESCE(EXCLUDED.opening_hours, locations.opening_hours),
    updated_at = EXCLUDED.updated_at;
"""

_UPDATE_IMAGES = """
UPDATE locations
SET images = %(images)s::text[], updated_at = %(updated_at)s
WHERE external_source = %(external_source)s AND external_id = %(external_id)s;
"""

_SELECT_ENRICHABLE = f"""
SELECT {_SELECT_COLUMNS}
FROM locations
WHERE type IN (%(campsite)s, %(rest_stop)s)
  AND external_source = %(source)s
  AND google_place_id IS NOT NULL;
"""

_SELECT_BY_KEY = f"""
SELECT {_SELECT_COLUMNS}
FROM locations
WHERE external_source = %(external_source)s AND external_id = %(external_id)s;
"""

_SELECT_IN_BOUNDS = f"""
SELECT id, {_SELECT_COLUMNS}
FROM locations
WHERE lat BETWEEN %(sw_lat)s AND %(ne_lat)s
  AND lng BETWEEN %(sw_lng)s AND %(ne_lng)s
ORDER BY id
LIMIT %(limit)s OFFSET %(offset)s;
"""


class LocationStore:
    """Keyed upserts and selects against ``locations``.

    Each write call runs in a single transaction: either every record lands
    or none does, and the failure surfaces as :class:`SinkError`.
    """

    def upsert(self, records: Sequence[Location]) -> None:
        """Insert or merge ``records`` keyed by ``(external_source, external_id)``."""
        if not records:
            return
        self._write(_UPSERT_LOCATION, [_prepare_params(record) for record in records], "upsert")
        logger.info("Upserted %d locations", len(records))

    def update_images(self, records: Sequence[Location]) -> None:
        """Write back only ``images`` and ``updated_at`` for each record."""
        if not records:
            return
        params = [
            {
                "images": list(record.images),
                "updated_at": record.updated_at,
                "external_source": record.external_source,
                "external_id": record.external_id,
            }
            for record in records
        ]
        self._write(_UPDATE_IMAGES, params, "image update")
        logger.info("Updated images for %d locations", len(records))

    def select_enrichable(self) -> List[Location]:
        rows = self._read(
            _SELECT_ENRICHABLE,
            {"campsite": TYPE_CAMPSITE, "rest_stop": TYPE_REST_STOP, "source": SOURCE_GOOGLE},
        )
        return [row_to_location(row) for row in rows]

    def get(self, external_source: str, external_id: str) -> Optional[Location]:
        rows = self._read(_SELECT_BY_KEY, {"external_source": external_source, "external_id": external_id})
        return row_to_location(rows[0]) if rows else None

    def select_in_bounds(self, bounds: Bounds, page_size: int = 1000) -> List[Dict[str, Any]]:
        """Return raw rows (including the surrogate ``id``) inside ``bounds``."""
        rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = self._read(
                _SELECT_IN_BOUNDS,
                {
                    "sw_lat": bounds.sw_lat,
                    "sw_lng": bounds.sw_lng,
                    "ne_lat": bounds.ne_lat,
                    "ne_lng": bounds.ne_lng,
                    "limit": page_size,
                    "offset": offset,
                },
            )
            rows.extend(page)
            if len(page) < page_size:
                return rows
            offset += page_size

    def _write(self, sql: str, params: List[Dict[str, Any]], operation: str) -> None:
        with get_connection() as conn:
            try:
                with conn.cursor() as cur:
                    extras.execute_batch(cur, sql, params, page_size=500)
                conn.commit()
            except psycopg2.Error as exc:
                conn.rollback()
                logger.exception("Location %s failed for %d records", operation, len(params))
                raise SinkError(f"location {operation} failed: {exc}") from exc

    def _read(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        with get_connection() as conn:
            try:
                with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                    cur.execute(sql, params)
                    rows = [dict(row) for row in cur.fetchall()]
                conn.commit()
            except psycopg2.Error as exc:
                conn.rollback()
                raise SinkError(f"location query failed: {exc}") from exc
        return rows
