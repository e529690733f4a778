"""
Pixel Buffer Helpers

Normalizes the accepted image inputs (PIL images, RGB/RGBA numpy arrays)
into one contiguous H x W x 3 uint8 RGB array.
"""

from typing import Optional, Union

import cv2
import numpy as np
from PIL import Image

from .result import BoundingBox


ImageInput = Union[Image.Image, np.ndarray, None]


def as_rgb_array(image: ImageInput) -> Optional[np.ndarray]:
    """
    Convert an image input to an RGB uint8 array.

    Args:
        image: PIL Image, or numpy array shaped (H, W, 3) / (H, W, 4)
               with 8-bit channels

    Returns:
        Contiguous (H, W, 3) uint8 array, or None if no usable pixel
        surface is available
    """
    if image is None:
        return None

    if isinstance(image, Image.Image):
        if image.mode != "RGB":
            image = image.convert("RGB")
        array = np.asarray(image, dtype=np.uint8)
    elif isinstance(image, np.ndarray):
        array = image
    else:
        return None

    if array.dtype != np.uint8 or array.size == 0:
        return None
    if array.ndim == 2:
        return cv2.cvtColor(array, cv2.COLOR_GRAY2RGB)
    if array.ndim != 3:
        return None

    channels = array.shape[2]
    if channels == 4:
        array = cv2.cvtColor(array, cv2.COLOR_RGBA2RGB)
    elif channels != 3:
        return None

    return np.ascontiguousarray(array)


def crop(buffer: np.ndarray, box: BoundingBox) -> np.ndarray:
    """
    Return a view of the box region.

    The caller is responsible for checking that the box lies inside
    the buffer (see BoundingBox.is_within).
    """
    return buffer[box.y:box.bottom, box.x:box.right]


def brightness_saturation(region: np.ndarray):
    """
    Per-pixel brightness and saturation of an RGB region.

    brightness = (R + G + B) / 3, saturation = max(R,G,B) - min(R,G,B)

    Returns:
        Tuple of (brightness, saturation) float32 arrays shaped (H, W)
    """
    rgb = region.astype(np.float32)
    brightness = rgb.sum(axis=2) / 3.0
    saturation = rgb.max(axis=2) - rgb.min(axis=2)
    return brightness, saturation
