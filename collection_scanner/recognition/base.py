"""
Recognition Collaborator Interfaces

Abstract base classes for the external services the extractor relies on:
name text recognition, batch name correction and reference lookup.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import numpy as np

from ..vision.result import BoundingBox, CardInfo, Correction


class RecognitionError(RuntimeError):
    """Raised by a collaborator when a single request cannot be served."""


class TextRecognizer(ABC):
    """
    Abstract base class for name text recognizers.

    All recognizer implementations must inherit from this class and
    implement recognize() for a region of an RGB pixel buffer.
    """

    @abstractmethod
    def recognize(self, image: np.ndarray, region: BoundingBox) -> Tuple[str, float]:
        """
        Read the text inside a region.

        Args:
            image: (H, W, 3) uint8 RGB screenshot
            region: Pixel region holding the name label

        Returns:
            Tuple of (text, confidence) with confidence in 0.0-1.0

        Raises:
            RecognitionError: If the underlying engine fails
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Recognizer identifier.

        Returns:
            String name identifying this recognizer type (e.g., "tesseract")
        """
        pass

    def configure(self, **kwargs) -> None:
        """
        Configure recognizer parameters.

        Override in subclasses to support runtime configuration.
        Default implementation does nothing.
        """
        pass


class NameCorrector(ABC):
    """Corrects a batch of raw recognized names."""

    @abstractmethod
    def correct_batch(self, names: List[str]) -> List[Correction]:
        """
        Correct raw names.

        Returns:
            One Correction per input name, in the same order
        """
        pass


class CardLookup(ABC):
    """Resolves a candidate name to canonical reference metadata."""

    @abstractmethod
    def lookup(self, name: str) -> Optional[CardInfo]:
        """
        Look up a name.

        Returns:
            CardInfo, or None if the name is not found

        Raises:
            LookupError: If the reference service cannot be reached
        """
        pass
