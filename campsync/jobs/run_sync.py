"""CLI job that runs one category sync and persists the result."""

import argparse
import json
import logging
from typing import Optional

from campsync.core.config import Settings, get_settings
from campsync.core.db import LocationStore
from campsync.core.errors import ConfigError
from campsync.sync.adapters import CommercialPlacesAdapter, OpenDirectoryAdapter
from campsync.sync.orchestrator import SyncCategory, SyncOrchestrator, SyncSummary

logger = logging.getLogger(__name__)


def build_orchestrator(settings: Settings) -> SyncOrchestrator:
    """Wire the store and provider adapters described by ``settings``."""
    if not settings.database_url:
        raise ConfigError("DATABASE_URL is required to sync locations")

    google = None
    if settings.google_api_key:
        google = CommercialPlacesAdapter(settings.google_api_key, max_radius_m=settings.limits.max_radius_m)
    open_directory = OpenDirectoryAdapter(settings.ocm_api_key, max_results=settings.limits.ocm_max_results)

    return SyncOrchestrator(
        store=LocationStore(),
        limits=settings.limits,
        region=settings.region,
        google=google,
        open_directory=open_directory,
    )


def run_sync_job(category: SyncCategory, settings: Optional[Settings] = None) -> SyncSummary:
    settings = settings or get_settings()
    orchestrator = build_orchestrator(settings)
    return orchestrator.run(category)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync places into the locations table")
    parser.add_argument(
        "--type",
        dest="category",
        required=True,
        choices=[category.value for category in SyncCategory],
        help="Category to sync; each runs as its own time-boxed invocation",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    try:
        summary = run_sync_job(SyncCategory(args.category))
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:  # noqa: BLE001
        logger.error("Sync failed: %s", exc, exc_info=True)
        raise SystemExit(1) from exc

    print(json.dumps(summary.to_dict()))


if __name__ == "__main__":
    main()
