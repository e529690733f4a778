"""
Grid Geometry

Maps normalized layout parameters onto pixel bounding boxes for the
fixed 12 x 3 grid, and derives the per-cell name and quantity regions.

These functions never validate their inputs: malformed parameters give
degenerate (possibly negative-size) boxes. Validation happens at the
calibration boundary (see params.validate_layout).
"""

import math
from typing import List

from .params import (
    GRID_COLUMNS,
    GRID_ROWS,
    LayoutParameters,
    TextRegionParameters,
    QuantityRegionParameters,
)
from .result import BoundingBox, GridCell


def round_px(value: float) -> int:
    """
    Round half-up to the nearest pixel (2.5 -> 3, -2.5 -> -2).

    Non-finite values map to 0 so malformed parameters yield degenerate
    boxes instead of raising.
    """
    if not math.isfinite(value):
        return 0
    return int(math.floor(value + 0.5))


def _box(x: float, y: float, width: float, height: float) -> BoundingBox:
    return BoundingBox(round_px(x), round_px(y), round_px(width), round_px(height))


def compute_grid_cells(
    image_width: int,
    image_height: int,
    layout: LayoutParameters
) -> List[GridCell]:
    """
    Compute the bounding box of every grid cell.

    Cell size is the grid extent minus the total inter-cell gaps, divided
    evenly. Each value is rounded on its own, so boxes may drift by up to
    a pixel against each other.

    Args:
        image_width: Image width in pixels
        image_height: Image height in pixels
        layout: Grid placement parameters

    Returns:
        GRID_COLUMNS * GRID_ROWS cells in row-major order, 1-indexed
    """
    origin_x = image_width * layout.start_x
    origin_y = image_height * layout.start_y
    total_width = image_width * layout.grid_width
    total_height = image_height * layout.grid_height

    gap_x = layout.card_gap_x * image_width
    gap_y = layout.card_gap_y * image_height

    cell_width = (total_width - gap_x * (GRID_COLUMNS - 1)) / GRID_COLUMNS
    cell_height = (total_height - gap_y * (GRID_ROWS - 1)) / GRID_ROWS

    cells: List[GridCell] = []
    for row in range(GRID_ROWS):
        for col in range(GRID_COLUMNS):
            x = origin_x + col * (cell_width + gap_x)
            y = origin_y + row * (cell_height + gap_y)
            cells.append(GridCell(
                column=col + 1,
                row=row + 1,
                box=_box(x, y, cell_width, cell_height)
            ))

    return cells


def grid_bounds(image_width: int, image_height: int, layout: LayoutParameters) -> BoundingBox:
    """Outline of the whole grid in pixels."""
    return _box(
        image_width * layout.start_x,
        image_height * layout.start_y,
        image_width * layout.grid_width,
        image_height * layout.grid_height,
    )


def text_region(box: BoundingBox, params: TextRegionParameters) -> BoundingBox:
    """Name label region inside a cell."""
    return _box(
        box.x + box.width * params.left,
        box.y + box.height * params.top,
        box.width * params.width,
        box.height * params.height,
    )


def quantity_region(box: BoundingBox, params: QuantityRegionParameters) -> BoundingBox:
    """
    Quantity indicator strip for a cell.

    The strip is placed offset_y * box.height above the cell's top edge,
    so its y can be negative for cells in the first image row.
    """
    return _box(
        box.x + box.width * params.offset_x,
        box.y - box.height * params.offset_y,
        box.width * params.width,
        box.height * params.height,
    )
