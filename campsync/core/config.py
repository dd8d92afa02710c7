"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Bounds:
    sw_lat: float
    sw_lng: float
    ne_lat: float
    ne_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.sw_lat <= lat <= self.ne_lat and self.sw_lng <= lng <= self.ne_lng

    def clamp(self, other: "Bounds") -> "Bounds":
        """Intersect ``other`` with these bounds."""
        return Bounds(
            sw_lat=max(other.sw_lat, self.sw_lat),
            sw_lng=max(other.sw_lng, self.sw_lng),
            ne_lat=min(other.ne_lat, self.ne_lat),
            ne_lng=min(other.ne_lng, self.ne_lng),
        )


@dataclass(frozen=True)
class SyncRegion:
    code: str
    bounds: Bounds


# Great Britain and Northern Ireland.
UK_REGION = SyncRegion(code="GB", bounds=Bounds(sw_lat=49.8, sw_lng=-8.6, ne_lat=60.9, ne_lng=1.8))


@dataclass(frozen=True)
class SyncLimits:
    """Per-run ceilings and delays; immutable so each run sees one consistent set."""

    max_grid_cells: int = 24
    grid_step_m: float = 70000.0
    max_radius_m: float = 50000.0
    max_pages_per_cell: int = 2
    max_requests_per_run: int = 60
    max_requests_per_category: int = 48
    max_enrich_per_run: int = 40
    enrich_fraction: float = 0.1
    page_token_delay_seconds: float = 2.0
    detail_delay_seconds: float = 0.2
    ocm_max_results: int = 10000


@dataclass(frozen=True)
class Settings:
    google_api_key: str
    database_url: str
    ocm_api_key: str = ""
    cron_secret: str = ""
    worker_port: int = 8080
    limits: SyncLimits = field(default_factory=SyncLimits)
    region: SyncRegion = UK_REGION


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer; using %s", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number; using %s", name, raw, default)
        return default


def load_limits() -> SyncLimits:
    defaults = SyncLimits()
    return SyncLimits(
        max_grid_cells=_env_int("SYNC_MAX_GRID_CELLS", defaults.max_grid_cells),
        grid_step_m=_env_float("SYNC_GRID_STEP_M", defaults.grid_step_m),
        max_radius_m=_env_float("SYNC_MAX_RADIUS_M", defaults.max_radius_m),
        max_pages_per_cell=_env_int("SYNC_MAX_PAGES_PER_CELL", defaults.max_pages_per_cell),
        max_requests_per_run=_env_int("SYNC_MAX_GOOGLE_REQUESTS", defaults.max_requests_per_run),
        max_requests_per_category=_env_int("SYNC_MAX_CATEGORY_REQUESTS", defaults.max_requests_per_category),
        max_enrich_per_run=_env_int("SYNC_MAX_ENRICH", defaults.max_enrich_per_run),
        enrich_fraction=defaults.enrich_fraction,
        page_token_delay_seconds=_env_float("SYNC_PAGE_DELAY_SECONDS", defaults.page_token_delay_seconds),
        detail_delay_seconds=_env_float("SYNC_DETAIL_DELAY_SECONDS", defaults.detail_delay_seconds),
        ocm_max_results=_env_int("SYNC_OCM_MAX_RESULTS", defaults.ocm_max_results),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    google_api_key = os.getenv("GOOGLE_PLACES_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    ocm_api_key = os.getenv("OPEN_CHARGE_MAP_API_KEY", "")
    cron_secret = os.getenv("CRON_SECRET", "")
    worker_port = _env_int("PORT", _env_int("WORKER_PORT", 8080))

    if not database_url:
        logger.warning("DATABASE_URL is not set; sync and read endpoints will refuse to run.")
    if not google_api_key:
        logger.warning("GOOGLE_PLACES_API_KEY is not configured; Google categories will be skipped.")
    if not cron_secret:
        logger.warning("CRON_SECRET is not configured; the sync trigger accepts unauthenticated calls.")

    return Settings(
        google_api_key=google_api_key,
        database_url=database_url,
        ocm_api_key=ocm_api_key,
        cron_secret=cron_secret,
        worker_port=worker_port,
        limits=load_limits(),
    )
