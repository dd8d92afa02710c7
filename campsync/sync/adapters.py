"""Provider adapters: fetch raw pages and map them to ``Location`` records.

Adapters never sleep and never consult the quota; the orchestrator owns both
so the whole request schedule of a run is visible in one place.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from campsync.core.config import SyncRegion
from campsync.core.errors import ProviderError
from campsync.core.grid import GridCell
from campsync.etl.transform import MAX_PHOTOS, google_result_to_location, ocm_result_to_location
from campsync.models import GooglePlaceResult, Location, OcmResult
from campsync.vendors import google_places, open_charge_map

logger = logging.getLogger(__name__)


@dataclass
class PageResult:
    records: List[Dict[str, Any]] = field(default_factory=list)
    next_page_token: Optional[str] = None


class CommercialPlacesAdapter:
    """Google Places text search over one grid cell, plus photo details."""

    def __init__(self, api_key: str, max_radius_m: float = 50000) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._radius = int(max_radius_m)

    def fetch_page(self, center: GridCell, category_term: str, page_token: Optional[str] = None) -> PageResult:
        """Fetch one page of results around ``center``.

        A rejected status, including the one returned for a continuation token
        that is not active yet, means "no further results" for this cell.
        """
        try:
            payload = google_places.text_search(
                query=category_term.replace("_", " "),
                api_key=self._api_key,
                location=f"{center.center_lat},{center.center_lng}",
                radius=self._radius,
                place_type=category_term,
                pagetoken=page_token,
            )
        except google_places.GooglePlacesError as exc:
            logger.warning("Text search for %s at %s returned no data: %s", category_term, center, exc)
            return PageResult()
        except (requests.RequestException, ValueError) as exc:
            raise ProviderError(f"text search failed for {category_term} at {center}: {exc}") from exc

        results = payload.get("results")
        if not isinstance(results, list):
            results = []
        token = payload.get("next_page_token")
        return PageResult(records=results, next_page_token=token if isinstance(token, str) and token else None)

    def normalize(self, raw: Any, category_term: str, now: Optional[datetime] = None) -> Optional[Location]:
        try:
            result = GooglePlaceResult.from_payload(raw)
        except ValueError as exc:
            logger.debug("Skipping malformed place result: %s", exc)
            return None
        return google_result_to_location(result, category_term, now=now)

    def fetch_detail_photos(self, external_id: str) -> List[str]:
        """Return up to five photo tokens for a place, ``[]`` on a rejected status."""
        try:
            result = google_places.place_details(external_id, self._api_key, fields="place_id,photos")
        except google_places.GooglePlacesError as exc:
            logger.warning("Place details for %s returned no data: %s", external_id, exc)
            return []
        except (requests.RequestException, ValueError) as exc:
            raise ProviderError(f"place details failed for {external_id}: {exc}") from exc

        try:
            parsed = GooglePlaceResult.from_payload(result)
        except ValueError:
            return []
        return list(parsed.photo_references[:MAX_PHOTOS])


class OpenDirectoryAdapter:
    """Open Charge Map bulk export for a whole region."""

    def __init__(self, api_key: Optional[str] = None, max_results: int = 10000) -> None:
        self._api_key = api_key or None
        self._max_results = max_results

    def fetch_all(self, region: SyncRegion) -> List[Dict[str, Any]]:
        try:
            payload = open_charge_map.fetch_pois(
                region.bounds,
                country_code=region.code,
                max_results=self._max_results,
                api_key=self._api_key,
            )
        except (requests.RequestException, ValueError) as exc:
            raise ProviderError(f"Open Charge Map fetch failed for {region.code}: {exc}") from exc

        if not isinstance(payload, list):
            logger.warning("Open Charge Map returned %s instead of a list", type(payload).__name__)
            return []
        logger.info("Open Charge Map returned %d records for %s", len(payload), region.code)
        return payload

    def normalize(self, raw: Any, now: Optional[datetime] = None) -> Optional[Location]:
        try:
            result = OcmResult.from_payload(raw)
        except ValueError as exc:
            logger.debug("Skipping malformed charge point: %s", exc)
            return None
        return ocm_result_to_location(result, now=now)
