"""
OCR Engine Factory

Engines are looked up by name, so settings can pick one without the
pipeline importing the backend (and its native dependencies) up front.
"""

import importlib
from typing import Dict, List, Type, Union

from .base import OCREngine


# name -> OCREngine subclass, or "module.Class" inside this package imported on first use
_ENGINE_REGISTRY: Dict[str, Union[str, Type[OCREngine]]] = {
    "tesseract": "tesseract_engine.TesseractOCREngine",
}

_RESOLVED: Dict[str, Type[OCREngine]] = {}


def _resolve(engine_type: str) -> Type[OCREngine]:
    cls = _RESOLVED.get(engine_type)
    if cls is not None:
        return cls

    entry = _ENGINE_REGISTRY[engine_type]
    if isinstance(entry, str):
        module_name, class_name = entry.rsplit(".", 1)
        cls = getattr(importlib.import_module(f".{module_name}", package=__package__), class_name)
    else:
        cls = entry

    _RESOLVED[engine_type] = cls
    return cls


def create_engine(engine_type: str = "tesseract", **config) -> OCREngine:
    """
    Build an OCR engine.

    Args:
        engine_type: Registered engine name ("tesseract" unless others were registered)
        **config: Passed to the engine constructor. For "tesseract":
            language, timeout_s, tesseract_cmd

    Raises:
        ValueError: For an unregistered engine name

    Example:
        engine = create_engine("tesseract", language="chi_sim+eng", timeout_s=10)
    """
    if engine_type not in _ENGINE_REGISTRY:
        raise ValueError(
            f"Unknown OCR engine '{engine_type}', expected one of: {', '.join(available_engines())}"
        )
    return _resolve(engine_type)(**config)


def register_engine(name: str, engine_class: type) -> None:
    """
    Make an OCREngine subclass available to create_engine under `name`.

    Re-registering a name replaces the previous engine.
    """
    if not (isinstance(engine_class, type) and issubclass(engine_class, OCREngine)):
        raise TypeError(f"{engine_class!r} is not an OCREngine subclass")
    _ENGINE_REGISTRY[name] = engine_class
    _RESOLVED.pop(name, None)


def available_engines() -> List[str]:
    """Registered engine names."""
    return list(_ENGINE_REGISTRY)
