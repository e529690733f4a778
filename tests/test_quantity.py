#!/usr/bin/env python3
"""
Tests for the quantity pip classifier on synthetic images.

The test cell is BoundingBox(20, 60, 120, 200); with default parameters
its quantity strip is (54, 44, 53, 14) and the four zones span strip
columns [0,13), [13,26), [26,39), [39,53).

Usage:
    pytest tests/test_quantity.py
"""

import logging
import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from collection_scanner.vision import (
    UNLIMITED,
    BoundingBox,
    QuantityRegionParameters,
    analyze_quantity,
    detect_quantity,
    quantity_region,
    render_quantity_debug,
)
from collection_scanner.vision.quantity import DEFAULT_QUANTITY, zone_bounds


CELL = BoundingBox(20, 60, 120, 200)
STRIP = BoundingBox(54, 44, 53, 14)


def blank_image(value=255):
    return np.full((300, 200, 3), value, dtype=np.uint8)


def paint_strip(image, color, columns=None):
    """Fill the strip (or strip-local columns [start, end)) with a colour."""
    start, end = columns if columns else (0, STRIP.width)
    image[STRIP.y:STRIP.bottom, STRIP.x + start:STRIP.x + end] = color
    return image


def test_strip_location():
    assert quantity_region(CELL, QuantityRegionParameters()) == STRIP


def test_zone_bounds():
    assert zone_bounds(53) == [(0, 13), (13, 26), (26, 39), (39, 53)]
    assert zone_bounds(8) == [(0, 2), (2, 4), (4, 6), (6, 8)]


class TestDetectQuantity:
    def test_dark_strip_is_four(self):
        image = paint_strip(blank_image(), (30, 30, 30))
        assert detect_quantity(image, CELL) == 4

    def test_bright_strip_is_zero(self):
        reading = analyze_quantity(blank_image(200), CELL)

        assert reading.quantity == 0
        assert len(reading.zones) == 4
        assert all(not z.filled for z in reading.zones)

    @pytest.mark.parametrize("zones, expected", [(1, 1), (2, 2), (3, 3)])
    def test_left_zones_filled(self, zones, expected):
        end = zone_bounds(STRIP.width)[zones - 1][1]
        image = paint_strip(blank_image(), (20, 20, 20), columns=(0, end))
        assert detect_quantity(image, CELL) == expected

    def test_saturated_dark_pixels_are_not_ink(self):
        # Brightness 30 but saturation 60: too colourful for a pip
        image = paint_strip(blank_image(), (60, 30, 0))
        reading = analyze_quantity(image, CELL)

        assert reading.ink_ratio == 0.0
        assert reading.quantity == UNLIMITED

    def test_fill_ratio_threshold(self):
        # 2 of 14 rows dark in every zone: ~14% per zone
        image = blank_image()
        image[STRIP.y:STRIP.y + 2, STRIP.x:STRIP.right] = (10, 10, 10)

        assert detect_quantity(image, CELL, QuantityRegionParameters(fill_ratio_threshold=0.1)) == 4
        assert detect_quantity(image, CELL, QuantityRegionParameters(fill_ratio_threshold=0.2)) != 4

    def test_diffuse_dark_glyph_is_unlimited(self):
        # About 1 in 7 pixels brightness 70, saturation 40: never ink,
        # but dark enough for the unlimited coverage test
        image = blank_image()
        yy, xx = np.indices(image.shape[:2])
        image[(yy * 3 + xx) % 7 == 0] = (90, 70, 50)

        reading = analyze_quantity(image, CELL)

        assert reading.quantity == UNLIMITED
        assert reading.is_unlimited
        assert reading.dark_ratio > 0.12
        assert all(not z.filled for z in reading.zones)

    def test_sparse_dark_specks_stay_zero(self):
        image = blank_image()
        image[STRIP.y, STRIP.x:STRIP.x + 5] = (90, 70, 50)
        assert detect_quantity(image, CELL) == 0


class TestSafeDefaults:
    def test_strip_above_image(self):
        reading = analyze_quantity(blank_image(0), BoundingBox(20, 5, 120, 200))

        assert reading.quantity == DEFAULT_QUANTITY == 1
        assert reading.zones == ()
        assert reading.reason

    def test_strip_left_of_image(self):
        params = QuantityRegionParameters(offset_x=-0.5)
        assert detect_quantity(blank_image(0), BoundingBox(0, 60, 120, 200), params) == 1

    def test_strip_past_right_edge(self):
        assert detect_quantity(blank_image(0), BoundingBox(180, 60, 120, 200)) == 1

    def test_no_surface(self):
        assert detect_quantity(None, CELL) == 1

    def test_empty_strip(self):
        params = QuantityRegionParameters(width=0.0)
        assert detect_quantity(blank_image(0), CELL, params) == 1

    @pytest.mark.parametrize("changes", [
        {"width": float("nan")},
        {"height": float("inf")},
        {"offset_x": float("nan"), "width": float("-inf")},
    ])
    def test_non_finite_params(self, changes):
        params = QuantityRegionParameters(**changes)
        reading = analyze_quantity(blank_image(0), CELL, params)

        assert reading.quantity == DEFAULT_QUANTITY
        assert reading.reason

    def test_diagnostics_logger(self, caplog):
        diagnostics = logging.getLogger("tests.quantity")
        caplog.set_level(logging.DEBUG, logger="tests.quantity")

        detect_quantity(blank_image(0), BoundingBox(20, 5, 120, 200), diagnostics=diagnostics)
        detect_quantity(paint_strip(blank_image(), (0, 0, 0)), CELL, diagnostics=diagnostics)

        assert "defaulting to 1" in caplog.text
        assert "quantity=4" in caplog.text


class TestDebugRender:
    def test_shape_is_zoomed_strip(self):
        debug = render_quantity_debug(blank_image(), CELL, zoom=8)
        assert debug.shape == (STRIP.height * 8, STRIP.width * 8, 3)
        assert debug.dtype == np.uint8

    def test_colours(self):
        image = paint_strip(blank_image(), (0, 0, 0), columns=(5, 6))
        debug = render_quantity_debug(image, CELL, zoom=1)

        assert tuple(debug[0, 0]) == (255, 255, 0)   # zone border
        assert tuple(debug[0, 13]) == (255, 255, 0)  # zone border
        assert tuple(debug[0, 5]) == (0, 255, 0)     # ink
        assert tuple(debug[0, 7]) == (76, 76, 76)    # dimmed background

    def test_unreadable_strip(self):
        assert render_quantity_debug(blank_image(), BoundingBox(20, 5, 120, 200)) is None
        assert render_quantity_debug(None, CELL) is None
