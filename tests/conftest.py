from dataclasses import replace

import pytest

from campsync.core import config
from campsync.core.db import KEEP_EXISTING_COLUMNS


class MemoryStore:
    """In-memory stand-in for LocationStore with the same merge rules."""

    def __init__(self, rows=None, fail_with=None):
        self.rows = {}
        for row in rows or []:
            self.rows[row.key] = row
        self.fail_with = fail_with
        self.upsert_calls = 0
        self.image_updates = []

    def upsert(self, records):
        self.upsert_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        for record in records:
            existing = self.rows.get(record.key)
            if existing is None:
                self.rows[record.key] = record
                continue
            images = record.images if len(record.images) >= len(existing.images) else existing.images
            kept = {
                column: getattr(existing, column)
                for column in KEEP_EXISTING_COLUMNS
                if getattr(record, column) is None
            }
            self.rows[record.key] = replace(record, images=list(images), created_at=existing.created_at, **kept)

    def select_enrichable(self):
        return list(self.rows.values())

    def update_images(self, records):
        if self.fail_with is not None:
            raise self.fail_with
        for record in records:
            self.image_updates.append(record.key)
            existing = self.rows[record.key]
            self.rows[record.key] = replace(existing, images=list(record.images), updated_at=record.updated_at)

    def get(self, external_source, external_id):
        return self.rows.get((external_source, external_id))


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def store_factory():
    return MemoryStore


@pytest.fixture(autouse=True)
def clear_settings_cache():
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()
