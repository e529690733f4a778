"""
Tesseract Text Recognizer

Reads card names with Tesseract via pytesseract. The name region is
cropped, greyscaled and contrast-enhanced before recognition.
"""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np
import pytesseract

from .base import TextRecognizer, RecognitionError
from ..vision.pixels import crop
from ..vision.result import BoundingBox


logger = logging.getLogger(__name__)

# Characters that can appear in a card name
NAME_WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz' -,"

# Contrast enhancement: out = in * factor + 128 * (1 - factor)
CONTRAST_FACTOR = 1.5

# Upscale small labels so Tesseract has enough pixels per glyph
MIN_LABEL_HEIGHT = 32

# Single text line
DEFAULT_PSM = 7


def enhance_contrast(grey: np.ndarray, factor: float = CONTRAST_FACTOR) -> np.ndarray:
    """Linear contrast stretch around mid-grey, clipped to 0..255."""
    return cv2.addWeighted(grey, factor, grey, 0, 128 * (1 - factor))


class TesseractRecognizer(TextRecognizer):
    """
    Name recognizer backed by the Tesseract OCR engine.

    Confidence is the mean of Tesseract's per-word confidences,
    scaled to 0.0-1.0.
    """

    def __init__(self, lang: str = "eng", psm: int = DEFAULT_PSM, tesseract_cmd: Optional[str] = None):
        """
        Initialize the recognizer.

        Args:
            lang: Tesseract language code
            psm: Page segmentation mode
            tesseract_cmd: Optional path to the tesseract executable
        """
        self._lang = lang
        self._psm = psm
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    @property
    def name(self) -> str:
        return "tesseract"

    @property
    def config(self) -> str:
        return f"--oem 3 --psm {self._psm} -c tessedit_char_whitelist=\"{NAME_WHITELIST}\""

    def configure(self, **kwargs) -> None:
        """
        Configure recognizer parameters.

        Args:
            lang: Tesseract language code
            psm: Page segmentation mode
            tesseract_cmd: Path to the tesseract executable
        """
        if "lang" in kwargs:
            self._lang = kwargs["lang"]
        if "psm" in kwargs:
            self._psm = int(kwargs["psm"])
        if kwargs.get("tesseract_cmd"):
            pytesseract.pytesseract.tesseract_cmd = kwargs["tesseract_cmd"]

    def preprocess(self, image: np.ndarray, region: BoundingBox) -> Optional[np.ndarray]:
        """Crop, greyscale, enhance and upscale the label. None if region is unusable."""
        if not region.is_within(image.shape[1], image.shape[0]):
            return None

        grey = cv2.cvtColor(crop(image, region), cv2.COLOR_RGB2GRAY)
        grey = enhance_contrast(grey)

        if region.height < MIN_LABEL_HEIGHT:
            scale = MIN_LABEL_HEIGHT / region.height
            grey = cv2.resize(grey, None, fx=scale, fy=scale, interpolation=cv2.INTER_CUBIC)
        return grey

    def recognize(self, image: np.ndarray, region: BoundingBox) -> Tuple[str, float]:
        label = self.preprocess(image, region)
        if label is None:
            logger.debug(f"Name region {region.as_tuple()} outside image, skipping OCR")
            return "", 0.0

        try:
            data = pytesseract.image_to_data(
                label,
                lang=self._lang,
                config=self.config,
                output_type=pytesseract.Output.DICT
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
            raise RecognitionError(f"Tesseract failed: {e}") from e

        words = []
        confidences = []
        for text, conf in zip(data.get("text", []), data.get("conf", [])):
            text = text.strip()
            conf = float(conf)
            if text and conf >= 0:
                words.append(text)
                confidences.append(conf)

        if not words:
            return "", 0.0

        confidence = sum(confidences) / len(confidences) / 100.0
        return " ".join(words), max(0.0, min(1.0, confidence))
