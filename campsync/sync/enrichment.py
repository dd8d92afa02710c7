"""Pick which stored places get a photo backfill."""

import math
from typing import Dict, Iterable, List

from campsync.models import TYPE_CAMPSITE, TYPE_REST_STOP, Location

ENRICHABLE_TYPES = (TYPE_CAMPSITE, TYPE_REST_STOP)


def _quality(location: Location):
    return (location.rating or 0, location.review_count or 0)


def select_candidates(all_persisted: Iterable[Location], max_total: int, fraction: float = 0.1) -> List[Location]:
    """Return the best-rated slice of each enrichable type, capped at ``max_total``.

    Detail requests are billed, so the budget goes to the places users are
    most likely to open rather than spreading evenly.
    """
    if max_total <= 0:
        return []

    partitions: Dict[str, List[Location]] = {location_type: [] for location_type in ENRICHABLE_TYPES}
    for location in all_persisted:
        if location.type in partitions and location.google_place_id:
            partitions[location.type].append(location)

    selected: List[Location] = []
    for location_type in ENRICHABLE_TYPES:
        partition = sorted(partitions[location_type], key=_quality, reverse=True)
        if not partition:
            continue
        # round() keeps 30 * 0.1 from ceiling to 4
        take = max(1, math.ceil(round(len(partition) * fraction, 9)))
        selected.extend(partition[:take])
    return selected[:max_total]
