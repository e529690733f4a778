"""
Fuzzy Name Correction

Snaps OCR output onto a known vocabulary of card names using RapidFuzz.
"""

import logging
from typing import Iterable, List

from rapidfuzz import process, fuzz

from .base import NameCorrector
from ..vision.result import Correction


logger = logging.getLogger(__name__)

# Minimum WRatio score (0-100) for a vocabulary match to be accepted
DEFAULT_SCORE_CUTOFF = 80.0


class FuzzyNameCorrector(NameCorrector):
    """
    Corrects names to the closest vocabulary entry.

    A match yields confidence score/100. Names without a match above the
    cutoff are returned unchanged with confidence 1.0, so the recognition
    confidence passes through untouched.
    """

    def __init__(self, vocabulary: Iterable[str], score_cutoff: float = DEFAULT_SCORE_CUTOFF):
        self.names = sorted({n.strip() for n in vocabulary if n and n.strip()})
        self.score_cutoff = score_cutoff

    def correct(self, name: str) -> Correction:
        query = name.strip()
        if not query or not self.names:
            return Correction(corrected_name=query, confidence=1.0)

        best = process.extractOne(query, self.names, scorer=fuzz.WRatio, score_cutoff=self.score_cutoff)
        if best is None:
            logger.debug(f"No vocabulary match for '{query}'")
            return Correction(corrected_name=query, confidence=1.0)

        matched_name, score, _ = best
        return Correction(corrected_name=matched_name, confidence=float(score) / 100.0)

    def correct_batch(self, names: List[str]) -> List[Correction]:
        return [self.correct(name) for name in names]
