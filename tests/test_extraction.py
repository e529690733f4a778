#!/usr/bin/env python3
"""
Tests for the extraction orchestrator with fake collaborators.

Screenshots are synthetic: a flat grey background with checkerboard
texture painted into the cells that should read as occupied.

Usage:
    pytest tests/test_extraction.py
"""

import sys
from pathlib import Path
from typing import List, Optional

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from collection_scanner.extraction import CollectionExtractor, ExtractionContext
from collection_scanner.recognition import (
    CardLookup,
    NameCorrector,
    RecognitionError,
    TextRecognizer,
)
from collection_scanner.vision import (
    CalibrationSettings,
    CardInfo,
    Correction,
    LayoutParameters,
    compute_grid_cells,
    quantity_region,
)


WIDTH, HEIGHT = 1200, 700
SETTINGS = CalibrationSettings()


class FakeRecognizer(TextRecognizer):
    """Returns a fixed name per cell origin."""

    def __init__(self, names=None, default="Card", confidence=0.9, fail_at=None):
        self.names = names or {}
        self.default = default
        self.confidence = confidence
        self.fail_at = fail_at or set()
        self.calls = []

    @property
    def name(self) -> str:
        return "fake"

    def recognize(self, image, region):
        self.calls.append(region)
        for (x, y, w, h), text in self.names.items():
            if x <= region.x < x + w and y <= region.y < y + h:
                if text is None:
                    raise RecognitionError("engine crashed")
                return text, self.confidence
        return self.default, self.confidence


class FakeCorrector(NameCorrector):
    def __init__(self, mapping, confidence=0.5):
        self.mapping = mapping
        self.confidence = confidence
        self.batches: List[List[str]] = []

    def correct_batch(self, names):
        self.batches.append(list(names))
        return [Correction(self.mapping.get(n, n), self.confidence) for n in names]


class FailingCorrector(NameCorrector):
    def correct_batch(self, names):
        raise RecognitionError("correction service unavailable")


class FakeLookup(CardLookup):
    def __init__(self, cards=None, fail=False):
        self.cards = cards or {}
        self.fail = fail
        self.queries = []

    def lookup(self, name) -> Optional[CardInfo]:
        self.queries.append(name)
        if self.fail:
            raise LookupError("network down")
        return self.cards.get(name)


def cell_boxes():
    return [c.box for c in compute_grid_cells(WIDTH, HEIGHT, SETTINGS.layout)]


def screenshot(filled=(), dark_strips=()):
    """Grey screenshot with checkerboard cells at the given indices."""
    image = np.full((HEIGHT, WIDTH, 3), 120, dtype=np.uint8)
    yy, xx = np.indices((HEIGHT, WIDTH))
    texture = np.where((xx + yy) % 2 == 0, 60, 220).astype(np.uint8)

    boxes = cell_boxes()
    for index in filled:
        box = boxes[index]
        image[box.y:box.bottom, box.x:box.right] = texture[box.y:box.bottom, box.x:box.right, None]
    for index in dark_strips:
        strip = quantity_region(boxes[index], SETTINGS.quantity)
        image[strip.y:strip.bottom, strip.x:strip.right] = 0
    return image


class TestExtract:
    def test_empty_screenshot(self):
        recognizer = FakeRecognizer()
        result = CollectionExtractor(recognizer).extract(screenshot())

        assert result.records == []
        assert result.empty_count == 36
        assert result.total_cells == 36
        assert recognizer.calls == []
        assert result.cancelled is False

    def test_only_filled_cells_are_read(self):
        recognizer = FakeRecognizer()
        result = CollectionExtractor(recognizer).extract(screenshot(filled=[0, 5, 13]))

        assert [(r.column, r.row) for r in result.records] == [(1, 1), (6, 1), (2, 2)]
        assert result.empty_count == 33
        assert len(recognizer.calls) == 3

    def test_record_fields(self):
        result = CollectionExtractor(FakeRecognizer(default="  Lightning Bolt ")).extract(
            screenshot(filled=[0], dark_strips=[0])
        )

        record = result.records[0]
        assert record.raw_text == "Lightning Bolt"
        assert record.quantity == 4
        assert record.confidence == pytest.approx(0.9)
        assert record.display_name == "Lightning Bolt"
        assert record.match is None

    def test_blank_text_is_skipped(self):
        result = CollectionExtractor(FakeRecognizer(default="   ")).extract(screenshot(filled=[0, 1]))

        assert result.records == []
        assert result.empty_count == 34

    def test_recognition_failure_skips_cell(self):
        boxes = cell_boxes()
        recognizer = FakeRecognizer(names={boxes[1].as_tuple(): None})
        result = CollectionExtractor(recognizer).extract(screenshot(filled=[0, 1, 2]))

        assert [(r.column, r.row) for r in result.records] == [(1, 1), (3, 1)]
        assert result.failed_cells == [(2, 1)]

    def test_no_surface(self):
        result = CollectionExtractor(FakeRecognizer()).extract(None)

        assert result.records == []
        assert result.total_cells == 0

    def test_uses_calibrated_layout(self):
        settings = CalibrationSettings(layout=LayoutParameters(start_x=0.0, start_y=0.0))
        recognizer = FakeRecognizer()
        result = CollectionExtractor(recognizer, settings=settings).extract(screenshot())

        assert result.cells[0].box.x == 0
        assert result.cells[0].box.y == 0


class TestCorrectionAndLookup:
    def test_corrector_multiplies_confidence(self):
        corrector = FakeCorrector({"Lightnig Bolt": "Lightning Bolt"}, confidence=0.5)
        extractor = CollectionExtractor(FakeRecognizer(default="Lightnig Bolt", confidence=0.8), corrector)

        result = extractor.extract(screenshot(filled=[0, 1]))

        assert corrector.batches == [["Lightnig Bolt", "Lightnig Bolt"]]
        assert all(r.corrected_name == "Lightning Bolt" for r in result.records)
        assert all(r.confidence == pytest.approx(0.4) for r in result.records)
        assert result.records[0].raw_text == "Lightnig Bolt"

    def test_lookup_replaces_name(self):
        card = CardInfo(id="abc", name="Lightning Bolt", set_code="m11")
        lookup = FakeLookup({"Lightning Bolt": card})
        corrector = FakeCorrector({"Lightnig Bolt": "Lightning Bolt"}, confidence=1.0)
        extractor = CollectionExtractor(FakeRecognizer(default="Lightnig Bolt"), corrector, lookup)

        result = extractor.extract(screenshot(filled=[0]))

        assert lookup.queries == ["Lightning Bolt"]
        assert result.records[0].match == card
        assert result.records[0].display_name == "Lightning Bolt"

    def test_lookup_miss_keeps_record(self):
        lookup = FakeLookup()
        result = CollectionExtractor(FakeRecognizer(default="Unknown"), lookup=lookup).extract(
            screenshot(filled=[0])
        )

        assert result.records[0].match is None
        assert result.records[0].display_name == "Unknown"

    def test_corrector_errors_are_tolerated(self):
        extractor = CollectionExtractor(FakeRecognizer(default="Lightnig Bolt"), FailingCorrector())

        result = extractor.extract(screenshot(filled=[0, 1]))

        assert not result.cancelled
        assert len(result.records) == 2
        assert all(r.corrected_name is None for r in result.records)
        assert all(r.display_name == "Lightnig Bolt" for r in result.records)
        assert all(r.confidence == pytest.approx(0.9) for r in result.records)

    def test_lookup_errors_are_tolerated(self):
        lookup = FakeLookup(fail=True)
        result = CollectionExtractor(FakeRecognizer(), lookup=lookup).extract(screenshot(filled=[0, 1]))

        assert len(result.records) == 2
        assert len(lookup.queries) == 2
        assert all(r.match is None for r in result.records)


class TestContext:
    def test_progress_reaches_done(self):
        updates = []
        context = ExtractionContext(progress_callback=lambda p, m: updates.append((p, m)))

        CollectionExtractor(FakeRecognizer()).extract(screenshot(filled=[0]), context)

        percents = [p for p, _ in updates]
        assert percents == sorted(percents)
        assert updates[-1] == (1.0, "Done")

    def test_cancel_before_start(self):
        context = ExtractionContext()
        context.cancel()
        recognizer = FakeRecognizer()

        result = CollectionExtractor(recognizer).extract(screenshot(filled=[0]), context)

        assert result.cancelled is True
        assert result.records == []
        assert recognizer.calls == []

    def test_cancel_midway_keeps_partial_records(self):
        context = ExtractionContext()

        def on_progress(percent, message):
            if "(2/36)" in message:
                context.cancel()

        context.progress_callback = on_progress
        corrector = FakeCorrector({})
        result = CollectionExtractor(FakeRecognizer(), corrector).extract(
            screenshot(filled=[0, 1, 2, 3]), context
        )

        assert result.cancelled is True
        assert len(result.records) == 2
        assert corrector.batches == []
