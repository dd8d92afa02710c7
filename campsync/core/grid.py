"""Bounded grid of query centers covering a sync region."""

import logging
import math
from dataclasses import dataclass
from typing import List, Tuple

from campsync.core.config import Bounds

logger = logging.getLogger(__name__)

METERS_PER_DEGREE_LAT = 111320.0


@dataclass(frozen=True)
class GridCell:
    center_lat: float
    center_lng: float


def grid_dimensions(bounds: Bounds, cell_step_m: float, max_cells: int) -> Tuple[int, int]:
    """Return ``(rows, cols)`` for ``bounds`` with ``rows * cols <= max_cells``."""
    if cell_step_m <= 0:
        raise ValueError("cell_step_m must be positive")
    if max_cells < 1:
        raise ValueError("max_cells must be at least 1")
    if bounds.ne_lat < bounds.sw_lat or bounds.ne_lng < bounds.sw_lng:
        raise ValueError(f"inverted bounds: {bounds}")

    center_lat = (bounds.sw_lat + bounds.ne_lat) / 2
    lng_meters_per_degree = METERS_PER_DEGREE_LAT * math.cos(math.radians(center_lat))
    height_m = (bounds.ne_lat - bounds.sw_lat) * METERS_PER_DEGREE_LAT
    width_m = (bounds.ne_lng - bounds.sw_lng) * lng_meters_per_degree

    rows = max(1, math.ceil(height_m / cell_step_m))
    cols = max(1, math.ceil(width_m / cell_step_m))
    if rows * cols <= max_cells:
        return rows, cols

    factor = math.sqrt(max_cells / (rows * cols))
    rows = max(1, math.floor(rows * factor))
    cols = max(1, math.floor(cols * factor))
    # The floor of 1 on a thin dimension can push the other one over the cap.
    if rows * cols > max_cells:
        if rows >= cols:
            rows = max(1, max_cells // cols)
        else:
            cols = max(1, max_cells // rows)
    return rows, cols


def partition(bounds: Bounds, max_cell_radius_m: float, cell_step_m: float, max_cells: int) -> List[GridCell]:
    """Compute row-major cell centers covering ``bounds``.

    The projection is flat-earth at the center latitude, so coverage at the
    edges of a country-sized region is approximate. When the natural grid
    exceeds ``max_cells`` both dimensions shrink by the same factor, which
    widens the spacing between centers instead of dropping cells.
    """
    rows, cols = grid_dimensions(bounds, cell_step_m, max_cells)

    if cell_step_m > 2 * max_cell_radius_m:
        logger.warning(
            "Grid step %.0fm exceeds query diameter %.0fm; cells will leave gaps",
            cell_step_m,
            2 * max_cell_radius_m,
        )

    lat_span = bounds.ne_lat - bounds.sw_lat
    lng_span = bounds.ne_lng - bounds.sw_lng
    cells = [
        GridCell(
            center_lat=bounds.sw_lat + ((row + 0.5) / rows) * lat_span,
            center_lng=bounds.sw_lng + ((col + 0.5) / cols) * lng_span,
        )
        for row in range(rows)
        for col in range(cols)
    ]
    logger.info("Partitioned region into %d cells (%d rows x %d cols)", len(cells), rows, cols)
    return cells
