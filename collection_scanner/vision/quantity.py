"""
Quantity Classifier

Reads the four quantity pips drawn above a cell.

The indicator strip is split into four equal-width zones (pip 1..4, left
to right). A pixel is "ink" when it is dark and desaturated; a zone is
filled when its ink ratio exceeds the fill-ratio threshold, and the
quantity is the number of filled zones.

The "unlimited" glyph does not line up with the zone boundaries the way
four discrete pips do, so it gets its own coarser test: when no zone is
filled, broad dark coverage over the whole strip means UNLIMITED (-1).
"""

import logging
from typing import List, Optional

import cv2
import numpy as np

from .geometry import quantity_region
from .params import QuantityRegionParameters
from .pixels import ImageInput, as_rgb_array, brightness_saturation, crop
from .result import BoundingBox, QuantityReading, ZoneStat, UNLIMITED


PIP_COUNT = 4

# Returned when the strip cannot be read (image edge, no surface)
DEFAULT_QUANTITY = 1

# Unlimited detection: a pixel counts as "dark" for the holistic test when
# its brightness is below brightness_threshold + this margin (any saturation)
INFINITY_BRIGHTNESS_MARGIN = 40.0
INFINITY_COVERAGE_THRESHOLD = 0.12

# Debug rendering colours (RGB)
ZONE_BORDER_COLOR = (255, 255, 0)
INK_COLOR = (0, 255, 0)
DIM_FACTOR = 0.3


def zone_bounds(region_width: int) -> List[tuple]:
    """
    Column ranges [start, end) of the four zones.

    Zone i spans floor(i * w / 4) to floor((i + 1) * w / 4).
    """
    zone_width = region_width / PIP_COUNT
    return [
        (int(np.floor(i * zone_width)), int(np.floor((i + 1) * zone_width)))
        for i in range(PIP_COUNT)
    ]


def ink_mask(region: np.ndarray, params: QuantityRegionParameters) -> np.ndarray:
    """Boolean mask of dark, desaturated ("ink") pixels."""
    brightness, saturation = brightness_saturation(region)
    return (brightness < params.brightness_threshold) & (saturation < params.saturation_threshold)


def dark_mask(region: np.ndarray, params: QuantityRegionParameters) -> np.ndarray:
    """Looser darkness mask used by the unlimited test (saturation ignored)."""
    brightness, _ = brightness_saturation(region)
    return brightness < params.brightness_threshold + INFINITY_BRIGHTNESS_MARGIN


def analyze_quantity(
    image: ImageInput,
    box: BoundingBox,
    params: Optional[QuantityRegionParameters] = None,
    diagnostics: Optional[logging.Logger] = None
) -> QuantityReading:
    """
    Classify the quantity indicator above a cell.

    Never raises. If the strip would start above or left of the image,
    runs past its right/bottom edge, is empty, or there is no pixel
    surface, DEFAULT_QUANTITY is returned with a reason.

    Args:
        image: Screenshot pixels
        box: The cell's bounding box
        params: Region and threshold parameters (defaults if None)
        diagnostics: Optional logger receiving per-zone debug lines

    Returns:
        QuantityReading with quantity 0..4 or UNLIMITED
    """
    params = params or QuantityRegionParameters()
    region_box = quantity_region(box, params)

    if region_box.x < 0 or region_box.y < 0:
        return _default("region above or left of image", region_box, diagnostics)

    buffer = as_rgb_array(image)
    if buffer is None:
        return _default("no pixel surface", region_box, diagnostics)

    img_height, img_width = buffer.shape[:2]
    if not region_box.is_within(img_width, img_height):
        return _default("region outside image", region_box, diagnostics)

    region = crop(buffer, region_box)
    ink = ink_mask(region, params)

    zones = []
    for start, end in zone_bounds(region_box.width):
        zone = ink[:, start:end]
        total = int(zone.size)
        ink_pixels = int(np.count_nonzero(zone))
        fill_ratio = ink_pixels / total if total else 0.0
        zones.append(ZoneStat(
            filled=fill_ratio > params.fill_ratio_threshold,
            fill_ratio=fill_ratio,
            ink_pixels=ink_pixels,
            total_pixels=total,
        ))

    quantity = sum(1 for z in zones if z.filled)
    ink_ratio = float(np.count_nonzero(ink)) / ink.size

    dark_ratio = 0.0
    if quantity == 0:
        dark_ratio = float(np.count_nonzero(dark_mask(region, params))) / ink.size
        if dark_ratio > INFINITY_COVERAGE_THRESHOLD:
            quantity = UNLIMITED

    if diagnostics is not None:
        ratios = ", ".join(f"{z.fill_ratio * 100:.1f}%" for z in zones)
        diagnostics.debug(
            f"Quantity region {region_box.as_tuple()}: zones=[{ratios}], "
            f"dark={dark_ratio * 100:.1f}%, quantity={quantity}"
        )

    return QuantityReading(
        quantity=quantity,
        zones=tuple(zones),
        ink_ratio=ink_ratio,
        dark_ratio=dark_ratio,
        region=region_box,
    )


def detect_quantity(
    image: ImageInput,
    box: BoundingBox,
    params: Optional[QuantityRegionParameters] = None,
    diagnostics: Optional[logging.Logger] = None
) -> int:
    """Shortcut for analyze_quantity(...).quantity."""
    return analyze_quantity(image, box, params, diagnostics).quantity


def render_quantity_debug(
    image: ImageInput,
    box: BoundingBox,
    params: Optional[QuantityRegionParameters] = None,
    zoom: int = 8
) -> Optional[np.ndarray]:
    """
    Colour-coded view of what the classifier sees in the strip.

    Yellow columns mark zone divisions, green pixels are ink, everything
    else is the original pixel dimmed to 30%. The result is upscaled by
    `zoom` with nearest-neighbour sampling so single pixels stay visible.

    Returns:
        RGB uint8 array, or None when the strip cannot be read
    """
    params = params or QuantityRegionParameters()
    region_box = quantity_region(box, params)
    buffer = as_rgb_array(image)

    if buffer is None or region_box.x < 0 or region_box.y < 0:
        return None
    if not region_box.is_within(buffer.shape[1], buffer.shape[0]):
        return None

    region = crop(buffer, region_box)
    ink = ink_mask(region, params)

    debug = (region.astype(np.float32) * DIM_FACTOR).astype(np.uint8)
    debug[ink] = INK_COLOR

    zone_step = max(1, int(np.floor(region_box.width / PIP_COUNT)))
    border_columns = (np.arange(region_box.width) % zone_step) < 2
    debug[:, border_columns] = ZONE_BORDER_COLOR

    if zoom > 1:
        debug = cv2.resize(
            debug,
            (region_box.width * zoom, region_box.height * zoom),
            interpolation=cv2.INTER_NEAREST
        )
    return debug


def _default(reason: str, region_box: BoundingBox,
             diagnostics: Optional[logging.Logger]) -> QuantityReading:
    if diagnostics is not None:
        diagnostics.debug(f"Quantity check skipped ({reason}), defaulting to {DEFAULT_QUANTITY}")
    return QuantityReading(quantity=DEFAULT_QUANTITY, region=region_box, reason=reason)
