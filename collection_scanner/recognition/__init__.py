"""
Recognition Module for Collection Scanner

Pluggable collaborators used by the extractor on non-empty cells:
text recognition of the name label, batch name correction and
reference lookup.

Usage:
    from collection_scanner.recognition import create_recognizer

    recognizer = create_recognizer()  # Tesseract
    text, confidence = recognizer.recognize(image, region)
"""

from .base import (
    TextRecognizer,
    NameCorrector,
    CardLookup,
    RecognitionError,
)

from .factory import (
    create_recognizer,
    register_recognizer,
    available_recognizers,
)

from .correction import FuzzyNameCorrector
from .lookup import ScryfallLookup

__all__ = [
    # Base classes
    "TextRecognizer",
    "NameCorrector",
    "CardLookup",
    "RecognitionError",
    # Factory
    "create_recognizer",
    "register_recognizer",
    "available_recognizers",
    # Implementations
    "FuzzyNameCorrector",
    "ScryfallLookup",
]
