"""
Vision Debug Utilities

Functions for saving annotated debug images and managing debug output.
"""

import logging
from pathlib import Path
from typing import List, Optional

from PIL import Image, ImageDraw, ImageFont

from .geometry import text_region, quantity_region
from .params import CalibrationSettings
from .result import ExtractionResult, GridCell, UNLIMITED


# Debug settings
DEBUG_DIR = Path("./debug")
MAX_DEBUG_IMAGES = 10

logger = logging.getLogger(__name__)

# Confidence thresholds for coloring
HIGH_CONFIDENCE = 0.95
MEDIUM_CONFIDENCE = 0.80


def save_debug_image(
    image: Image.Image,
    cells: List[GridCell],
    result: Optional[ExtractionResult],
    path: str,
    settings: Optional[CalibrationSettings] = None
) -> None:
    """
    Save an annotated debug image showing the grid and extraction results.

    Annotations include:
    - Cell boxes (blue) with their (column,row) label
    - Name regions (red) and quantity regions (yellow)
    - Extracted quantity per record, coloured by confidence

    Args:
        image: Original PIL Image
        cells: Grid cells from compute_grid_cells()
        result: Extraction result (can be None)
        path: Output file path
        settings: Calibration used for the sub-regions (defaults if None)
    """
    settings = settings or CalibrationSettings()
    DEBUG_DIR.mkdir(parents=True, exist_ok=True)

    debug_img = image.convert("RGB")
    draw = ImageDraw.Draw(debug_img)

    try:
        font = ImageFont.truetype("arial.ttf", 14)
    except OSError:
        font = ImageFont.load_default()

    for cell in cells:
        box = cell.box
        draw.rectangle([box.x, box.y, box.right, box.bottom], outline="blue", width=2)

        name = text_region(box, settings.text_region)
        draw.rectangle([name.x, name.y, name.right, name.bottom], outline="red", width=1)

        qty = quantity_region(box, settings.quantity)
        draw.rectangle([qty.x, qty.y, qty.right, qty.bottom], outline="yellow", width=1)

        draw.text((box.x + 5, box.y + 5), cell.label, fill="yellow", font=font)

    if result:
        for record in result.records:
            cell = next((c for c in cells if c.column == record.column and c.row == record.row), None)
            if cell is None:
                continue
            color = get_confidence_color(record.confidence or 0.0)
            text = "inf" if record.quantity == UNLIMITED else f"x{record.quantity}"
            draw.text((cell.box.x + 5, cell.box.bottom - 20), text, fill=color, font=font)

        summary = f"Cards: {len(result.records)}, Empty: {result.empty_count}/{result.total_cells}, " \
                  f"Time: {result.processing_time_ms:.1f}ms"
        draw.text((10, 10), summary, fill="blue", font=font)

    debug_img.save(path, "PNG")

    _cleanup_debug_images()


def _cleanup_debug_images() -> None:
    """Remove old debug images, keeping only the most recent MAX_DEBUG_IMAGES."""
    if not DEBUG_DIR.exists():
        return

    debug_files = sorted(
        DEBUG_DIR.glob("debug_*.png"),
        key=lambda p: p.stat().st_mtime,
        reverse=True
    )

    for old_file in debug_files[MAX_DEBUG_IMAGES:]:
        try:
            old_file.unlink()
        except OSError as e:
            logger.debug(f"Could not remove {old_file}: {e}")


def get_confidence_color(confidence: float) -> str:
    """
    Get color code for confidence level.

    Args:
        confidence: Confidence value 0.0-1.0

    Returns:
        Hex color code string
    """
    if confidence >= HIGH_CONFIDENCE:
        return "#4CAF50"  # Green
    elif confidence >= MEDIUM_CONFIDENCE:
        return "#FFC107"  # Yellow
    else:
        return "#d32f2f"  # Red
