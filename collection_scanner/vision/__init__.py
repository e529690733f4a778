"""
Vision Module for Collection Scanner

Geometry and pixel classifiers for the fixed 12 x 3 collection grid.

Usage:
    from collection_scanner.vision import (
        CalibrationSettings, compute_grid_cells, is_cell_empty, detect_quantity
    )

    settings = CalibrationSettings()
    cells = compute_grid_cells(width, height, settings.layout)

    for cell in cells:
        if is_cell_empty(image, cell.box, settings.occupancy):
            continue
        quantity = detect_quantity(image, cell.box, settings.quantity)
"""

# Public API - Parameters
from .params import (
    GRID_COLUMNS,
    GRID_ROWS,
    GRID_CELLS,
    CalibrationError,
    LayoutParameters,
    TextRegionParameters,
    QuantityRegionParameters,
    OccupancyThresholds,
    CalibrationSettings,
    validate_layout,
    validate_settings,
)

# Public API - Result types
from .result import (
    UNLIMITED,
    BoundingBox,
    GridCell,
    ZoneStat,
    QuantityReading,
    OccupancyReading,
    CardInfo,
    Correction,
    ExtractedRecord,
    ExtractionResult,
)

# Public API - Pixel buffers
from .pixels import as_rgb_array

# Public API - Geometry
from .geometry import (
    compute_grid_cells,
    grid_bounds,
    text_region,
    quantity_region,
)

# Public API - Classifiers
from .occupancy import analyze_occupancy, is_cell_empty
from .quantity import analyze_quantity, detect_quantity, render_quantity_debug

# Debug utilities
from .debug import DEBUG_DIR, save_debug_image

__all__ = [
    # Parameters
    "GRID_COLUMNS",
    "GRID_ROWS",
    "GRID_CELLS",
    "CalibrationError",
    "LayoutParameters",
    "TextRegionParameters",
    "QuantityRegionParameters",
    "OccupancyThresholds",
    "CalibrationSettings",
    "validate_layout",
    "validate_settings",
    # Result types
    "UNLIMITED",
    "BoundingBox",
    "GridCell",
    "ZoneStat",
    "QuantityReading",
    "OccupancyReading",
    "CardInfo",
    "Correction",
    "ExtractedRecord",
    "ExtractionResult",
    # Functions
    "as_rgb_array",
    "compute_grid_cells",
    "grid_bounds",
    "text_region",
    "quantity_region",
    "analyze_occupancy",
    "is_cell_empty",
    "analyze_quantity",
    "detect_quantity",
    "render_quantity_debug",
    "save_debug_image",
    # Debug
    "DEBUG_DIR",
]
