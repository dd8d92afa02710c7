"""Per-run request ceilings for billed provider calls."""

import logging
from collections import defaultdict
from typing import Dict, Hashable, Optional

logger = logging.getLogger(__name__)


class QuotaGovernor:
    """Counts provider requests for one run and refuses those over a ceiling.

    Every code path that issues a billed request calls :meth:`try_consume`
    first and stops when it returns ``False``. A governor lives for exactly one
    run; nothing is persisted.
    """

    def __init__(self, max_requests_per_run: int, max_requests_per_category: int, max_pages_per_cell: int) -> None:
        self._max_run = max_requests_per_run
        self._max_category = max_requests_per_category
        self._max_cell = max_pages_per_cell
        self._run_count = 0
        self._category_counts: Dict[str, int] = defaultdict(int)
        self._cell_counts: Dict[Hashable, int] = defaultdict(int)
        self._cap_reached = False
        self._exhausted = False
        self._cell_caps_hit = 0

    @property
    def requests_used(self) -> int:
        return self._run_count

    @property
    def cell_caps_hit(self) -> int:
        return self._cell_caps_hit

    def category_used(self, category: str) -> int:
        return self._category_counts.get(category, 0)

    def cell_pages(self, cell: Hashable) -> int:
        return self._cell_counts.get(cell, 0)

    def try_consume(self, category: Optional[str] = None, cell: Optional[Hashable] = None) -> bool:
        """Reserve one request against every applicable ceiling."""
        if self._run_count >= self._max_run:
            self._deny("run", self._max_run)
            return False
        if category is not None and self._category_counts[category] >= self._max_category:
            self._deny(f"category {category}", self._max_category)
            return False
        if cell is not None and self._cell_counts[cell] >= self._max_cell:
            self._cell_caps_hit += 1
            self._cap_reached = True
            logger.debug("Page ceiling %d reached for cell %s", self._max_cell, cell)
            return False

        self._run_count += 1
        if category is not None:
            self._category_counts[category] += 1
        if cell is not None:
            self._cell_counts[cell] += 1
        return True

    def cap_reached(self) -> bool:
        """``True`` once any ceiling, including a per-cell one, denied a request."""
        return self._cap_reached

    def exhausted(self) -> bool:
        """``True`` once the run or category ceiling denied a request."""
        return self._exhausted

    def _deny(self, scope: str, ceiling: int) -> None:
        if not self._exhausted:
            logger.warning("Request ceiling reached for %s scope (%d requests)", scope, ceiling)
        self._exhausted = True
        self._cap_reached = True
