"""Client utilities for the Open Charge Map POI API."""

import logging
from typing import Any, Optional

import requests

from campsync.core.config import Bounds

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://api.openchargemap.io/v3/poi/"


def fetch_pois(
    bounds: Bounds,
    country_code: Optional[str] = None,
    max_results: int = 10000,
    api_key: Optional[str] = None,
) -> Any:
    """Return the raw JSON payload for every charge point inside ``bounds``.

    The endpoint answers a whole country in one call, so there is no paging.
    """
    params = {
        "output": "json",
        "boundingbox": f"({bounds.sw_lat},{bounds.sw_lng}),({bounds.ne_lat},{bounds.ne_lng})",
        "maxresults": max_results,
        "compact": "true",
        "verbose": "false",
    }
    if country_code:
        params["countrycode"] = country_code
    if api_key:
        params["key"] = api_key
    response = _SESSION.get(_BASE_URL, params=params, timeout=45)
    response.raise_for_status()
    return response.json()
