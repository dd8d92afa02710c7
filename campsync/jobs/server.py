"""HTTP entrypoint: sync trigger, photo proxy and read-only places API."""

from __future__ import annotations

import hmac
import logging
import math
import os
from dataclasses import astuple
from typing import Any, Dict, Optional

import requests
from flask import Flask, jsonify, make_response, request

from campsync.core.config import Bounds, get_settings
from campsync.core.db import LocationStore
from campsync.core.errors import AuthorizationError, ConfigError, SinkError
from campsync.jobs.run_sync import run_sync_job
from campsync.models import LOCATION_TYPES, SOURCE_OPEN_CHARGE_MAP, TYPE_CAMPSITE
from campsync.sync.orchestrator import SyncCategory
from campsync.vendors import google_places

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App ----------
app = Flask(__name__)

PHOTO_CACHE_CONTROL = "public, max-age=86400, stale-while-revalidate=604800"
PLACES_CACHE_CONTROL = "public, s-maxage=60, stale-while-revalidate=300"
DEFAULT_PHOTO_WIDTH = 800
MAX_PHOTO_WIDTH = 1600

# ---------- Routes ----------


@app.get("/healthz")
@app.get("/api/health")
def healthcheck() -> Any:
    """Liveness probe; never touches the database."""
    settings = get_settings()
    response = jsonify(
        {
            "ok": True,
            "has_places_key": bool(settings.google_api_key),
            "revision": os.getenv("K_REVISION", "unknown"),
        }
    )
    response.headers["Cache-Control"] = "no-store"
    return response, 200


@app.get("/api/sync-places")
def sync_places() -> Any:
    """Run one category sync and return its summary.

    Query: ``type`` = ev_only | campsites | rest_stops | enrich_photos.
    Credentials, the category and store configuration are all checked before
    any provider is contacted.
    """
    settings = get_settings()
    try:
        _authorize(request.headers.get("Authorization"), settings.cron_secret)
    except AuthorizationError:
        return jsonify({"error": "Unauthorized"}), 401

    try:
        category = SyncCategory.parse(request.args.get("type"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    if not settings.database_url:
        return jsonify({"error": "Missing DATABASE_URL"}), 500

    try:
        summary = run_sync_job(category, settings)
    except ConfigError as exc:
        return jsonify({"ok": False, "type": category.value, "error": str(exc)}), 500
    except SinkError as exc:
        logger.error("Sync %s failed to persist: %s", category.value, exc)
        return jsonify({"ok": False, "type": category.value, "error": str(exc)}), 500
    except Exception as exc:  # noqa: BLE001
        logger.exception("Sync %s failed: %s", category.value, exc)
        return jsonify({"ok": False, "type": category.value, "error": "Sync failed"}), 500

    return jsonify(summary.to_dict()), 200


@app.get("/api/place-photo")
def place_photo() -> Any:
    """Redirect to a place photo without exposing the API key to the client."""
    reference = (request.args.get("photo_reference") or "").strip()
    if not reference:
        return "", 400

    settings = get_settings()
    if not settings.google_api_key:
        return "", 503

    width = _parse_width(request.args.get("maxwidth"))
    try:
        upstream = google_places.place_photo(reference, settings.google_api_key, max_width=width)
    except requests.RequestException as exc:
        logger.error("Photo fetch failed: %s", exc)
        return "", 502

    location = upstream.headers.get("Location")
    if upstream.status_code in (301, 302) and location:
        response = make_response("", 302)
        response.headers["Location"] = location
        response.headers["Cache-Control"] = PHOTO_CACHE_CONTROL
        return response
    status = upstream.status_code if upstream.status_code >= 400 else 502
    return "", status


@app.get("/api/places")
def places_in_bounds() -> Any:
    """Read synced locations inside the requested map bounds."""
    try:
        requested = Bounds(
            sw_lat=float(request.args["swLat"]),
            sw_lng=float(request.args["swLng"]),
            ne_lat=float(request.args["neLat"]),
            ne_lng=float(request.args["neLng"]),
        )
        if not all(math.isfinite(value) for value in astuple(requested)):
            raise ValueError("non-finite bound")
    except (KeyError, ValueError):
        return jsonify({"error": "Invalid bounds: swLat, swLng, neLat, neLng required"}), 400

    settings = get_settings()
    if not settings.database_url:
        return jsonify({"error": "Missing DATABASE_URL"}), 500

    region = settings.region.bounds
    try:
        rows = LocationStore().select_in_bounds(region.clamp(requested))
    except SinkError as exc:
        logger.error("Places query failed: %s", exc)
        return jsonify({"error": str(exc)}), 500

    locations = [_to_client_location(row) for row in rows if region.contains(row["lat"], row["lng"])]
    response = jsonify({"locations": locations})
    response.headers["Cache-Control"] = PLACES_CACHE_CONTROL
    return response, 200


# ---------- Internals ----------


def _authorize(header: Optional[str], secret: str) -> None:
    if not secret:
        return
    expected = f"Bearer {secret}"
    if not header or not hmac.compare_digest(header.encode(), expected.encode()):
        raise AuthorizationError("missing or mismatched bearer token")


def _parse_width(raw: Optional[str]) -> int:
    try:
        width = int(raw) if raw else DEFAULT_PHOTO_WIDTH
    except ValueError:
        width = DEFAULT_PHOTO_WIDTH
    return min(max(width, 1), MAX_PHOTO_WIDTH)


def _to_client_location(row: Dict[str, Any]) -> Dict[str, Any]:
    source = row.get("external_source")
    location_type = row.get("type")
    if location_type not in LOCATION_TYPES:
        location_type = TYPE_CAMPSITE
    ocm_id: Optional[int] = None
    if source == SOURCE_OPEN_CHARGE_MAP:
        try:
            ocm_id = int(row["external_id"])
        except (TypeError, ValueError):
            ocm_id = None
    return {
        "id": str(row.get("id") or f"{source}-{row.get('external_id')}"),
        "name": row.get("name") or "",
        "type": location_type,
        "lat": row["lat"],
        "lng": row["lng"],
        "description": row.get("description") or "",
        "address": row.get("address") or "",
        "facilities": list(row.get("facilities") or []),
        "images": list(row.get("images") or []),
        "google_place_id": row.get("google_place_id"),
        "ocm_id": ocm_id,
        "website": row.get("website"),
        "phone": row.get("phone"),
        "created_at": _isoformat(row.get("created_at")),
        "updated_at": _isoformat(row.get("updated_at")),
    }


def _isoformat(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def main() -> None:
    port = get_settings().worker_port
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
