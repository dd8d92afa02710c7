"""Drives one time-boxed sync invocation for a single category."""

import enum
import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from campsync.core.config import SyncLimits, SyncRegion
from campsync.core.errors import ProviderError
from campsync.core.grid import GridCell, partition
from campsync.core.quota import QuotaGovernor
from campsync.etl.transform import dedupe_by_key, photo_proxy_urls
from campsync.models import Location
from campsync.sync.adapters import CommercialPlacesAdapter, OpenDirectoryAdapter
from campsync.sync.enrichment import select_candidates

logger = logging.getLogger(__name__)


class SyncCategory(str, enum.Enum):
    EV_ONLY = "ev_only"
    CAMPSITES = "campsites"
    REST_STOPS = "rest_stops"
    ENRICH_PHOTOS = "enrich_photos"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SyncCategory":
        try:
            return cls((value or "").strip())
        except ValueError:
            raise ValueError(f"unknown sync type {value!r}; expected one of {', '.join(c.value for c in cls)}") from None


# Google place type searched for each grid-walk category.
PLACE_TERMS = {
    SyncCategory.CAMPSITES: "campground",
    SyncCategory.REST_STOPS: "rest_stop",
}


class SyncState(str, enum.Enum):
    IDLE = "idle"
    GRID_WALK = "grid_walk"
    PAGE_FETCH = "page_fetch"
    NORMALIZE = "normalize"
    DEDUP = "dedup"
    PERSISTED = "persisted"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncSummary:
    category: SyncCategory
    upserted: int = 0
    enriched: int = 0
    fetched: int = 0
    discarded: int = 0
    requests_used: int = 0
    cap_reached: bool = False
    cells: int = 0
    provider_configured: bool = True
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"ok": True, "type": self.category.value}
        if self.category is SyncCategory.ENRICH_PHOTOS:
            body["enriched"] = self.enriched
        else:
            body["upserted"] = self.upserted
        body["fetched"] = self.fetched
        body["discarded"] = self.discarded
        body["provider_configured"] = self.provider_configured
        if self.category is not SyncCategory.EV_ONLY:
            body["google_requests_used"] = self.requests_used
            body["cap_reached"] = self.cap_reached
        if self.cells:
            body["cells"] = self.cells
        if self.message:
            body["message"] = self.message
        return body


class SyncOrchestrator:
    """Runs one category sync with strictly sequential provider calls.

    ``store`` needs ``upsert``, ``select_enrichable`` and ``update_images``.
    ``sleep`` is the only delay primitive so tests can skip real waits.
    """

    def __init__(
        self,
        store,
        limits: SyncLimits,
        region: SyncRegion,
        google: Optional[CommercialPlacesAdapter] = None,
        open_directory: Optional[OpenDirectoryAdapter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._limits = limits
        self._region = region
        self._google = google
        self._open_directory = open_directory
        self._sleep = sleep
        self.state = SyncState.IDLE

    def run(self, category: SyncCategory) -> SyncSummary:
        """Run ``category`` to completion or cap; store errors propagate."""
        quota = QuotaGovernor(
            max_requests_per_run=self._limits.max_requests_per_run,
            max_requests_per_category=self._limits.max_requests_per_category,
            max_pages_per_cell=self._limits.max_pages_per_cell,
        )
        self.state = SyncState.IDLE
        logger.info("Starting %s sync", category.value)
        try:
            if category is SyncCategory.EV_ONLY:
                summary = self._sync_ev_chargers()
            elif category is SyncCategory.ENRICH_PHOTOS:
                summary = self._enrich_photos(quota)
            else:
                summary = self._sync_grid(category, quota)
        except Exception:
            self.state = SyncState.FAILED
            raise
        self.state = SyncState.DONE
        logger.info("Finished %s sync: %s", category.value, summary.to_dict())
        return summary

    def _sync_ev_chargers(self) -> SyncSummary:
        summary = SyncSummary(category=SyncCategory.EV_ONLY)
        if self._open_directory is None:
            summary.provider_configured = False
            summary.message = "Open Charge Map adapter not configured"
            return summary

        self.state = SyncState.PAGE_FETCH
        try:
            raw_records = self._open_directory.fetch_all(self._region)
        except ProviderError as exc:
            logger.warning("Charge point fetch failed; treating as empty: %s", exc)
            raw_records = []
            summary.message = "provider request failed"

        self.state = SyncState.NORMALIZE
        now = datetime.now(timezone.utc)
        records = self._normalize_all(raw_records, lambda raw: self._open_directory.normalize(raw, now=now), summary)
        self._persist(records, summary)
        return summary

    def _sync_grid(self, category: SyncCategory, quota: QuotaGovernor) -> SyncSummary:
        summary = SyncSummary(category=category)
        if self._google is None:
            summary.provider_configured = False
            summary.message = "GOOGLE_PLACES_API_KEY not configured"
            return summary

        term = PLACE_TERMS[category]
        self.state = SyncState.GRID_WALK
        cells = partition(
            self._region.bounds,
            max_cell_radius_m=self._limits.max_radius_m,
            cell_step_m=self._limits.grid_step_m,
            max_cells=self._limits.max_grid_cells,
        )
        summary.cells = len(cells)

        records: List[Location] = []
        for index, cell in enumerate(cells, start=1):
            records.extend(self._walk_cell(cell, term, category, quota, summary))
            if quota.exhausted():
                logger.info("Stopping grid walk after %d of %d cells", index, len(cells))
                break

        summary.requests_used = quota.requests_used
        summary.cap_reached = quota.cap_reached()
        self._persist(records, summary)
        return summary

    def _walk_cell(
        self,
        cell: GridCell,
        term: str,
        category: SyncCategory,
        quota: QuotaGovernor,
        summary: SyncSummary,
    ) -> List[Location]:
        records: List[Location] = []
        page_token: Optional[str] = None
        now = datetime.now(timezone.utc)
        while quota.try_consume(category.value, cell):
            if page_token:
                # Continuation tokens only become valid a short while after issue.
                self._sleep(self._limits.page_token_delay_seconds)
            self.state = SyncState.PAGE_FETCH
            try:
                page = self._google.fetch_page(cell, term, page_token)
            except ProviderError as exc:
                logger.warning("Page fetch failed for %s; skipping rest of cell: %s", cell, exc)
                break
            self.state = SyncState.NORMALIZE
            records.extend(self._normalize_all(page.records, lambda raw: self._google.normalize(raw, term, now=now), summary))
            page_token = page.next_page_token
            if not page_token:
                break
        return records

    def _enrich_photos(self, quota: QuotaGovernor) -> SyncSummary:
        category = SyncCategory.ENRICH_PHOTOS
        summary = SyncSummary(category=category)
        if self._google is None:
            summary.provider_configured = False
            summary.message = "GOOGLE_PLACES_API_KEY not configured"
            return summary

        candidates = select_candidates(
            self._store.select_enrichable(),
            self._limits.max_enrich_per_run,
            fraction=self._limits.enrich_fraction,
        )
        logger.info("Selected %d places for photo enrichment", len(candidates))

        enriched: List[Location] = []
        for index, candidate in enumerate(candidates):
            if not quota.try_consume(category.value):
                break
            if index:
                self._sleep(self._limits.detail_delay_seconds)
            self.state = SyncState.PAGE_FETCH
            try:
                tokens = self._google.fetch_detail_photos(candidate.google_place_id)
            except ProviderError as exc:
                logger.warning("Detail fetch failed for %s: %s", candidate.external_id, exc)
                continue
            summary.fetched += 1
            if not tokens:
                continue
            enriched.append(
                replace(candidate, images=photo_proxy_urls(tokens), updated_at=datetime.now(timezone.utc))
            )

        summary.requests_used = quota.requests_used
        summary.cap_reached = quota.cap_reached()
        if enriched:
            self._store.update_images(enriched)
        self.state = SyncState.PERSISTED
        summary.enriched = len(enriched)
        return summary

    def _normalize_all(self, raw_records, normalize, summary: SyncSummary) -> List[Location]:
        records: List[Location] = []
        for raw in raw_records:
            summary.fetched += 1
            location = normalize(raw)
            if location is None:
                summary.discarded += 1
                continue
            records.append(location)
        return records

    def _persist(self, records: List[Location], summary: SyncSummary) -> None:
        self.state = SyncState.DEDUP
        unique = dedupe_by_key(records)
        if unique:
            self._store.upsert(unique)
        else:
            summary.message = summary.message or "No places fetched"
        self.state = SyncState.PERSISTED
        summary.upserted = len(unique)
