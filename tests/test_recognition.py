#!/usr/bin/env python3
"""
Tests for the recognition collaborators: recognizer factory, Tesseract
preprocessing and result parsing, fuzzy name correction and the
Scryfall lookup (HTTP mocked).

Usage:
    pytest tests/test_recognition.py
"""

import sys
from pathlib import Path
from unittest import mock

import numpy as np
import pytest
import requests

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from collection_scanner.recognition import (
    FuzzyNameCorrector,
    RecognitionError,
    ScryfallLookup,
    TextRecognizer,
    available_recognizers,
    create_recognizer,
    register_recognizer,
)
from collection_scanner.recognition import tesseract_engine
from collection_scanner.recognition.lookup import SCRYFALL_NAMED_URL
from collection_scanner.recognition.tesseract_engine import (
    MIN_LABEL_HEIGHT,
    TesseractRecognizer,
    enhance_contrast,
)
from collection_scanner.vision import BoundingBox


class EchoRecognizer(TextRecognizer):
    def __init__(self):
        self.options = {}

    @property
    def name(self) -> str:
        return "echo"

    def configure(self, **kwargs):
        self.options.update(kwargs)

    def recognize(self, image, region):
        return "echo", 1.0


class TestFactory:
    def test_default_is_tesseract(self):
        recognizer = create_recognizer()
        assert isinstance(recognizer, TesseractRecognizer)
        assert recognizer.name == "tesseract"

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown recognizer type"):
            create_recognizer("nope")

    def test_register_and_configure(self):
        register_recognizer("echo", EchoRecognizer)

        recognizer = create_recognizer("echo", lang="deu")
        assert "echo" in available_recognizers()
        assert isinstance(recognizer, EchoRecognizer)
        assert recognizer.options == {"lang": "deu"}

    def test_register_rejects_non_recognizer(self):
        with pytest.raises(TypeError):
            register_recognizer("bad", dict)
        with pytest.raises(TypeError):
            register_recognizer("bad", "not a class")

    def test_configure_tesseract(self):
        recognizer = create_recognizer("tesseract", psm=6)
        assert "--psm 6" in recognizer.config


class TestTesseractRecognizer:
    def test_enhance_contrast(self):
        grey = np.array([[0, 128, 200, 255]], dtype=np.uint8)
        assert enhance_contrast(grey).tolist() == [[0, 128, 236, 255]]

    def test_preprocess_upscales_small_labels(self):
        image = np.full((100, 100, 3), 200, dtype=np.uint8)
        label = TesseractRecognizer().preprocess(image, BoundingBox(10, 10, 40, 16))

        assert label.ndim == 2
        assert label.shape == (MIN_LABEL_HEIGHT, 80)

    def test_preprocess_outside_image(self):
        image = np.zeros((50, 50, 3), dtype=np.uint8)
        assert TesseractRecognizer().preprocess(image, BoundingBox(40, 40, 20, 20)) is None

    def test_recognize_joins_words_and_averages_confidence(self):
        data = {
            "text": ["", "Lightning", "Bolt", " "],
            "conf": ["-1", "90", "80.0", "-1"],
        }
        image = np.full((100, 100, 3), 200, dtype=np.uint8)

        with mock.patch.object(tesseract_engine.pytesseract, "image_to_data", return_value=data) as ocr:
            text, confidence = TesseractRecognizer().recognize(image, BoundingBox(0, 0, 60, 40))

        assert text == "Lightning Bolt"
        assert confidence == pytest.approx(0.85)
        assert ocr.call_args.kwargs["lang"] == "eng"

    def test_recognize_nothing_found(self):
        data = {"text": ["", " "], "conf": ["-1", "-1"]}
        image = np.full((100, 100, 3), 200, dtype=np.uint8)

        with mock.patch.object(tesseract_engine.pytesseract, "image_to_data", return_value=data):
            assert TesseractRecognizer().recognize(image, BoundingBox(0, 0, 60, 40)) == ("", 0.0)

    def test_engine_failure_raises_recognition_error(self):
        image = np.full((100, 100, 3), 200, dtype=np.uint8)
        error = tesseract_engine.pytesseract.TesseractError(1, "boom")

        with mock.patch.object(tesseract_engine.pytesseract, "image_to_data", side_effect=error):
            with pytest.raises(RecognitionError):
                TesseractRecognizer().recognize(image, BoundingBox(0, 0, 60, 40))


class TestFuzzyNameCorrector:
    VOCABULARY = ["Lightning Bolt", "Llanowar Elves", "Counterspell", "Dark Ritual"]

    def test_close_match(self):
        correction = FuzzyNameCorrector(self.VOCABULARY).correct("Lightnig Bolt")

        assert correction.corrected_name == "Lightning Bolt"
        assert 0.8 <= correction.confidence < 1.0

    def test_exact_match(self):
        correction = FuzzyNameCorrector(self.VOCABULARY).correct("Counterspell")
        assert correction.corrected_name == "Counterspell"
        assert correction.confidence == pytest.approx(1.0)

    def test_no_match_keeps_raw_name(self):
        correction = FuzzyNameCorrector(self.VOCABULARY).correct("Zzyzx Qwerty")

        assert correction.corrected_name == "Zzyzx Qwerty"
        assert correction.confidence == 1.0

    def test_blank_and_empty_vocabulary(self):
        assert FuzzyNameCorrector(self.VOCABULARY).correct("  ").corrected_name == ""
        assert FuzzyNameCorrector([]).correct("Lightnig Bolt").corrected_name == "Lightnig Bolt"

    def test_batch_preserves_order(self):
        corrections = FuzzyNameCorrector(self.VOCABULARY).correct_batch(["Dark Ritua", "Counterspel"])
        assert [c.corrected_name for c in corrections] == ["Dark Ritual", "Counterspell"]


def make_response(status_code, payload=None):
    response = mock.Mock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return response


class TestScryfallLookup:
    CARD = {
        "id": "e3285e6b",
        "name": "Lightning Bolt",
        "set": "m11",
        "set_name": "Magic 2011",
        "rarity": "common",
        "collector_number": "149",
    }

    def test_hit(self):
        session = mock.Mock()
        session.headers = {}
        session.get.return_value = make_response(200, self.CARD)

        card = ScryfallLookup(session=session).lookup("lightnig bolt")

        assert card.name == "Lightning Bolt"
        assert card.set_code == "m11"
        assert card.collector_number == "149"
        session.get.assert_called_once_with(
            SCRYFALL_NAMED_URL, params={"fuzzy": "lightnig bolt"}, timeout=6.0
        )
        assert "User-Agent" in session.headers

    def test_results_are_cached(self):
        session = mock.Mock()
        session.headers = {}
        session.get.return_value = make_response(200, self.CARD)
        lookup = ScryfallLookup(session=session)

        lookup.lookup("Lightning Bolt")
        lookup.lookup("lightning bolt ")

        assert session.get.call_count == 1

    def test_not_found(self):
        session = mock.Mock()
        session.headers = {}
        session.get.return_value = make_response(404)
        lookup = ScryfallLookup(session=session)

        assert lookup.lookup("Not A Card") is None
        assert lookup.lookup("Not A Card") is None
        assert session.get.call_count == 1

    def test_server_error_raises_lookup_error(self):
        session = mock.Mock()
        session.headers = {}
        session.get.return_value = make_response(500)

        with pytest.raises(LookupError):
            ScryfallLookup(session=session).lookup("Lightning Bolt")

    def test_network_error_raises_lookup_error(self):
        session = mock.Mock()
        session.headers = {}
        session.get.side_effect = requests.ConnectionError("offline")

        with pytest.raises(LookupError):
            ScryfallLookup(session=session).lookup("Lightning Bolt")

    def test_blank_name(self):
        session = mock.Mock()
        session.headers = {}

        assert ScryfallLookup(session=session).lookup("  ") is None
        session.get.assert_not_called()
