#!/usr/bin/env python3
"""
Tests for the empty-slot classifier on synthetic images.

Usage:
    pytest tests/test_occupancy.py
"""

import logging
import sys
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from collection_scanner.vision import (
    BoundingBox,
    OccupancyThresholds,
    analyze_occupancy,
    is_cell_empty,
)
from collection_scanner.vision.occupancy import edge_density, sample_box


def uniform_image(width=200, height=200, value=128):
    return np.full((height, width, 3), value, dtype=np.uint8)


def checkerboard_image(width=200, height=200, dark=50, light=200):
    yy, xx = np.indices((height, width))
    grey = np.where((xx + yy) % 2 == 0, dark, light).astype(np.uint8)
    return np.stack([grey, grey, grey], axis=2)


FULL_BOX = BoundingBox(0, 0, 200, 200)


class TestSampleBox:
    def test_keeps_central_70_percent(self):
        assert sample_box(BoundingBox(0, 0, 100, 200)).as_tuple() == (15, 30, 70, 140)

    def test_offset_box(self):
        assert sample_box(BoundingBox(100, 50, 40, 40)).as_tuple() == (106, 56, 28, 28)


class TestEdgeDensity:
    def test_uniform_has_no_edges(self):
        assert edge_density(uniform_image(10, 10)) == 0.0

    def test_checkerboard_is_all_edges(self):
        assert edge_density(checkerboard_image(10, 10)) == 1.0

    def test_single_vertical_line(self):
        region = uniform_image(11, 10, value=0)
        region[:, 5] = 255
        # Columns 4 and 5 see the step in dx, over 9 rows
        assert edge_density(region) == pytest.approx(18 / 90)


class TestAnalyzeOccupancy:
    def test_uniform_cell_is_empty(self):
        reading = analyze_occupancy(uniform_image(), FULL_BOX)

        assert reading.empty is True
        assert reading.edge_density == 0.0
        assert reading.variance == 0.0
        assert reading.sample_box.as_tuple() == (30, 30, 140, 140)

    def test_checkerboard_cell_is_filled(self):
        reading = analyze_occupancy(checkerboard_image(), FULL_BOX)

        assert reading.empty is False
        assert reading.edge_density > 0.9

    def test_smooth_gradient_is_empty_despite_variance(self):
        ramp = np.linspace(0, 255, 200).astype(np.uint8)
        image = np.repeat(np.tile(ramp, (200, 1))[:, :, None], 3, axis=2)

        reading = analyze_occupancy(image, FULL_BOX)

        assert reading.variance > OccupancyThresholds().variance_threshold
        assert reading.empty is True

    def test_threshold_controls_decision(self):
        image = uniform_image()
        image[:, 100] = 255  # One line: 2 columns of edges in 139
        box = FULL_BOX

        assert is_cell_empty(image, box, OccupancyThresholds(edge_threshold=0.02)) is True
        assert is_cell_empty(image, box, OccupancyThresholds(edge_threshold=0.01)) is False

    def test_accepts_pil_image(self):
        image = Image.fromarray(checkerboard_image())
        assert is_cell_empty(image, FULL_BOX) is False

    def test_accepts_rgba_array(self):
        rgba = np.dstack([uniform_image(), np.full((200, 200), 255, dtype=np.uint8)])
        assert is_cell_empty(rgba, FULL_BOX) is True

    def test_no_surface_is_not_empty(self):
        reading = analyze_occupancy(None, FULL_BOX)

        assert reading.empty is False
        assert reading.reason

    def test_out_of_bounds_is_not_empty(self):
        reading = analyze_occupancy(uniform_image(), BoundingBox(150, 150, 100, 100))

        assert reading.empty is False
        assert "out of bounds" in reading.reason

    def test_tiny_cell_is_not_empty(self):
        assert is_cell_empty(uniform_image(), BoundingBox(10, 10, 2, 2)) is False

    def test_diagnostics_logger(self, caplog):
        diagnostics = logging.getLogger("tests.occupancy")
        caplog.set_level(logging.DEBUG, logger="tests.occupancy")

        analyze_occupancy(uniform_image(), FULL_BOX, diagnostics=diagnostics)

        assert "Edge=0.00%" in caplog.text
        assert "Empty=True" in caplog.text

    def test_no_logging_without_diagnostics(self, caplog):
        caplog.set_level(logging.DEBUG)
        analyze_occupancy(uniform_image(), FULL_BOX)
        assert caplog.text == ""
