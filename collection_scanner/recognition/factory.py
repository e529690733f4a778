"""
Text Recognizer Factory

Factory for creating text recognizer instances.
"""

import importlib
from typing import Dict, List, Type, Union

from .base import TextRecognizer


# Registry of available recognizers: lazy "module.Class" paths or classes
_RECOGNIZER_REGISTRY: Dict[str, Union[str, Type[TextRecognizer]]] = {
    "tesseract": "tesseract_engine.TesseractRecognizer",
}

# Cache for loaded recognizer classes
_RECOGNIZER_CACHE: Dict[str, Type[TextRecognizer]] = {}


def _load_recognizer_class(engine_type: str) -> Type[TextRecognizer]:
    """Lazily load a recognizer class by type."""
    if engine_type in _RECOGNIZER_CACHE:
        return _RECOGNIZER_CACHE[engine_type]

    entry = _RECOGNIZER_REGISTRY[engine_type]
    if isinstance(entry, str):
        module_name, class_name = entry.rsplit(".", 1)
        module = importlib.import_module(f".{module_name}", package=__package__)
        recognizer_class = getattr(module, class_name)
    else:
        recognizer_class = entry

    _RECOGNIZER_CACHE[engine_type] = recognizer_class
    return recognizer_class


def create_recognizer(engine_type: str = "tesseract", **config) -> TextRecognizer:
    """
    Create a text recognizer by type.

    Args:
        engine_type: Recognizer type identifier. Available types:
            - "tesseract" (default): Tesseract OCR via pytesseract
        **config: Recognizer-specific configuration options, applied
            through TextRecognizer.configure()

    Returns:
        Configured TextRecognizer instance

    Raises:
        ValueError: If engine_type is not recognized

    Example:
        recognizer = create_recognizer("tesseract", psm=7)
        text, confidence = recognizer.recognize(image, region)
    """
    if engine_type not in _RECOGNIZER_REGISTRY:
        available = ", ".join(_RECOGNIZER_REGISTRY.keys())
        raise ValueError(f"Unknown recognizer type: {engine_type}. Available: {available}")

    recognizer = _load_recognizer_class(engine_type)()

    if config:
        recognizer.configure(**config)

    return recognizer


def register_recognizer(name: str, recognizer_class: type) -> None:
    """
    Register a custom text recognizer type.

    Args:
        name: Recognizer type identifier
        recognizer_class: TextRecognizer subclass

    Example:
        class MyRecognizer(TextRecognizer):
            ...

        register_recognizer("custom", MyRecognizer)
    """
    if not isinstance(recognizer_class, type) or not issubclass(recognizer_class, TextRecognizer):
        raise TypeError(f"{recognizer_class} must be a subclass of TextRecognizer")
    _RECOGNIZER_REGISTRY[name] = recognizer_class
    _RECOGNIZER_CACHE.pop(name, None)


def available_recognizers() -> List[str]:
    """
    List available recognizer types.

    Returns:
        List of registered recognizer type names
    """
    return list(_RECOGNIZER_REGISTRY.keys())
