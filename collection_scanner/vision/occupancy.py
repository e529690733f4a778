"""
Occupancy Classifier

Decides whether a grid cell holds an item or is an empty slot.

Empty slots render as a near-uniform background texture while filled
cells show sharp edges (borders, text, artwork), so the decision is made
on edge density alone. Colour variance is measured for diagnostics but
does not take part in the decision.
"""

import logging
from typing import Optional

import numpy as np

from .geometry import round_px
from .params import OccupancyThresholds
from .pixels import ImageInput, as_rgb_array, crop
from .result import BoundingBox, OccupancyReading


# Fraction stripped from every side before sampling (keeps 70% per axis)
SAMPLE_MARGIN = 0.15

# Gradient magnitude above which a pixel counts as an edge
EDGE_MAGNITUDE_THRESHOLD = 30.0


def sample_box(box: BoundingBox) -> BoundingBox:
    """Centred sub-region of the box with SAMPLE_MARGIN stripped on each side."""
    return BoundingBox(
        x=round_px(box.x + box.width * SAMPLE_MARGIN),
        y=round_px(box.y + box.height * SAMPLE_MARGIN),
        width=round_px(box.width * (1 - 2 * SAMPLE_MARGIN)),
        height=round_px(box.height * (1 - 2 * SAMPLE_MARGIN)),
    )


def edge_density(region: np.ndarray, magnitude_threshold: float = EDGE_MAGNITUDE_THRESHOLD) -> float:
    """
    Fraction of pixels whose gradient magnitude exceeds the threshold.

    The gradient of a pixel is its difference to the pixel immediately
    right (dx) and immediately below (dy), combined as sqrt(dx^2 + dy^2).
    Only pixels that have both neighbours are sampled.

    Args:
        region: (H, W, 3) RGB array, H and W at least 2

    Returns:
        Edge density in [0, 1]
    """
    grey = region.astype(np.float32).sum(axis=2) / 3.0
    dx = grey[:-1, 1:] - grey[:-1, :-1]
    dy = grey[1:, :-1] - grey[:-1, :-1]
    magnitude = np.sqrt(dx * dx + dy * dy)
    return float(np.count_nonzero(magnitude > magnitude_threshold)) / magnitude.size


def analyze_occupancy(
    image: ImageInput,
    box: BoundingBox,
    thresholds: Optional[OccupancyThresholds] = None,
    diagnostics: Optional[logging.Logger] = None
) -> OccupancyReading:
    """
    Classify a cell as empty or filled.

    Never raises. When there is no pixel surface, or the sample region
    does not fit in the image, the cell is reported as filled.

    Args:
        image: Screenshot pixels
        box: The cell's bounding box
        thresholds: Occupancy thresholds (defaults if None)
        diagnostics: Optional logger receiving one debug line per call

    Returns:
        OccupancyReading with the decision and its measurements
    """
    thresholds = thresholds or OccupancyThresholds()
    buffer = as_rgb_array(image)

    if buffer is None:
        return _not_empty("no pixel surface", None, diagnostics)

    sample = sample_box(box)
    img_height, img_width = buffer.shape[:2]
    if not sample.is_within(img_width, img_height):
        return _not_empty("sample region out of bounds", sample, diagnostics)
    if sample.width < 2 or sample.height < 2:
        return _not_empty("sample region too small", sample, diagnostics)

    region = crop(buffer, sample)
    density = edge_density(region)
    variance = float(np.var(region.astype(np.float32)))
    empty = density < thresholds.edge_threshold

    if diagnostics is not None:
        diagnostics.debug(
            f"Cell at ({box.x},{box.y}): Edge={density * 100:.2f}%, "
            f"Variance={variance:.1f}, Empty={empty}"
        )

    return OccupancyReading(
        empty=empty,
        edge_density=density,
        variance=variance,
        sample_box=sample,
    )


def is_cell_empty(
    image: ImageInput,
    box: BoundingBox,
    thresholds: Optional[OccupancyThresholds] = None,
    diagnostics: Optional[logging.Logger] = None
) -> bool:
    """Shortcut for analyze_occupancy(...).empty."""
    return analyze_occupancy(image, box, thresholds, diagnostics).empty


def _not_empty(reason: str, sample: Optional[BoundingBox],
               diagnostics: Optional[logging.Logger]) -> OccupancyReading:
    if diagnostics is not None:
        diagnostics.debug(f"Occupancy check skipped ({reason}), assuming card present")
    return OccupancyReading(empty=False, sample_box=sample, reason=reason)
