"""
Settings Module for ImplantSnap

Provides persistent storage for user preferences using JSON.
Settings are stored in config.json in the working directory.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .ocr.factory import available_engines
from .ocr.result import PreprocessOptions
from .region import RegionRect

logger = logging.getLogger(__name__)

# Settings file location (working directory)
SETTINGS_FILE = Path("config.json")

REGION_KEYS = ("ocr_tooth", "ocr_extra", "table")

# Default settings
DEFAULT_SETTINGS: Dict[str, Any] = {
    "debug_enabled": False,
    "engine": "tesseract",
    "ocr_language": "chi_sim+eng",
    "ocr_timeout_s": 15.0,
    "tesseract_cmd": None,
    "preprocess": {
        "grayscale": True,
        "contrast": 1.0,
        "scale": 3.0,
        "threshold": 0,
        "sharpen": False,
    },
    # First and second "= N mm" value in the data block
    "positional_order": ["length", "diameter"],
    # Screen regions calibrated on a 1920x1080 display
    "regions": {
        "ocr_tooth": {"x": 85, "y": 261, "width": 72, "height": 62},
        "ocr_extra": {"x": 332, "y": 551, "width": 229, "height": 300},
        "table": {"x": 795, "y": 571, "width": 440, "height": 345},
    },
}


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlay overrides on a copy of defaults."""
    result = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def load_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load settings from config.json.

    Args:
        path: Optional settings file, defaults to SETTINGS_FILE

    Returns:
        Settings dictionary. Returns defaults if file missing or invalid.
    """
    path = Path(path) if path else SETTINGS_FILE
    if not path.exists():
        logger.debug("Settings file not found, using defaults")
        return copy.deepcopy(DEFAULT_SETTINGS)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            settings = json.load(f)

        if not isinstance(settings, dict):
            raise ValueError("top-level JSON value must be an object")

        # Merge with defaults to handle missing keys
        result = _merge(DEFAULT_SETTINGS, settings)
        logger.debug(f"Settings loaded: {result}")
        return result

    except (json.JSONDecodeError, ValueError, IOError) as e:
        logger.warning(f"Failed to load settings: {e}, using defaults")
        return copy.deepcopy(DEFAULT_SETTINGS)


def save_settings(settings: Dict[str, Any], path: Optional[Path] = None) -> None:
    """
    Save settings to config.json.

    Args:
        settings: Settings dictionary to save
        path: Optional settings file, defaults to SETTINGS_FILE
    """
    path = Path(path) if path else SETTINGS_FILE
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(settings, f, indent=2, ensure_ascii=False)
        logger.debug(f"Settings saved: {settings}")
    except IOError as e:
        logger.error(f"Failed to save settings: {e}")


def preprocess_options_from(settings: Dict[str, Any]) -> PreprocessOptions:
    """Build PreprocessOptions from settings, falling back to defaults if invalid."""
    raw = settings.get("preprocess") or {}
    try:
        return PreprocessOptions(
            grayscale=bool(raw.get("grayscale", True)),
            contrast=float(raw.get("contrast", 1.0)),
            scale=float(raw.get("scale", 3.0)),
            threshold=int(raw.get("threshold", 0)),
            sharpen=bool(raw.get("sharpen", False)),
        )
    except (TypeError, ValueError) as e:
        logger.warning(f"Invalid preprocess settings: {e}, using defaults")
        return PreprocessOptions()


def positional_order_from(settings: Dict[str, Any]) -> Tuple[str, str]:
    """Return the configured positional order, or the default when invalid."""
    order = settings.get("positional_order")
    if isinstance(order, (list, tuple)) and sorted(order) == ["diameter", "length"]:
        return (order[0], order[1])
    logger.warning(f"Invalid positional_order {order!r}, using length then diameter")
    return ("length", "diameter")


def regions_from(settings: Dict[str, Any]) -> Dict[str, RegionRect]:
    """
    Build the three crop regions from settings.

    Missing or malformed entries fall back to the default region.
    """
    configured = settings.get("regions") or {}
    regions = {}
    for key in REGION_KEYS:
        try:
            regions[key] = RegionRect.from_dict(configured[key])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Invalid region '{key}': {e}, using default")
            regions[key] = RegionRect.from_dict(DEFAULT_SETTINGS["regions"][key])
    return regions


def engine_config_from(settings: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """
    Return (engine_type, constructor options) for create_engine.

    Each invalid entry is logged and replaced by its default.
    """
    defaults = DEFAULT_SETTINGS

    engine_type = settings.get("engine", defaults["engine"])
    if engine_type not in available_engines():
        logger.warning(f"Unknown OCR engine {engine_type!r}, using {defaults['engine']}")
        engine_type = defaults["engine"]

    language = settings.get("ocr_language", defaults["ocr_language"])
    if not isinstance(language, str) or not language:
        logger.warning(f"Invalid ocr_language {language!r}, using {defaults['ocr_language']}")
        language = defaults["ocr_language"]

    timeout_s = settings.get("ocr_timeout_s", defaults["ocr_timeout_s"])
    try:
        timeout_s = float(timeout_s)
        if timeout_s <= 0:
            raise ValueError("must be > 0")
    except (TypeError, ValueError) as e:
        logger.warning(f"Invalid ocr_timeout_s {timeout_s!r}: {e}, using {defaults['ocr_timeout_s']}")
        timeout_s = defaults["ocr_timeout_s"]

    tesseract_cmd = settings.get("tesseract_cmd")
    if tesseract_cmd is not None and not isinstance(tesseract_cmd, str):
        logger.warning(f"Invalid tesseract_cmd {tesseract_cmd!r}, using PATH lookup")
        tesseract_cmd = None

    return engine_type, {"language": language, "timeout_s": timeout_s, "tesseract_cmd": tesseract_cmd}
