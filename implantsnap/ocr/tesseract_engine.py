"""
Tesseract OCR Engine

OCR adapter backed by pytesseract. Recognition calls are serialized with a
lock and bounded by Tesseract's own timeout; any failure is logged and
returned as an empty, zero-confidence result.
"""

import logging
import threading
from typing import Optional

import pytesseract
from PIL import Image

from .base import OCREngine, LAYOUT_BLOCK, LAYOUT_LINE
from .result import RawOcrOutput


logger = logging.getLogger(__name__)


DEFAULT_LANGUAGE = "chi_sim+eng"
DEFAULT_TIMEOUT_S = 15.0

# Tesseract page segmentation modes
PSM_BY_LAYOUT = {
    LAYOUT_LINE: 7,   # single text line
    LAYOUT_BLOCK: 6,  # single uniform block
}


class TesseractOCREngine(OCREngine):
    """
    OCR engine using the Tesseract binary through pytesseract.

    Example:
        engine = TesseractOCREngine(language="chi_sim+eng", timeout_s=15)
        raw = engine.recognize(image, layout="line")
    """

    def __init__(
        self,
        language: str = DEFAULT_LANGUAGE,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        tesseract_cmd: Optional[str] = None,
    ):
        """
        Initialize the Tesseract engine.

        Args:
            language: Tesseract language pack(s), e.g. "chi_sim+eng"
            timeout_s: Per-call timeout in seconds; the call fails afterwards
            tesseract_cmd: Optional path to the tesseract executable
        """
        self._language = language
        self._timeout_s = float(timeout_s)
        self._lock = threading.Lock()
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    @property
    def name(self) -> str:
        return "tesseract"

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    def configure(self, **kwargs) -> None:
        """
        Configure engine parameters.

        Args:
            language: Tesseract language pack(s)
            timeout_s: Per-call timeout in seconds
            tesseract_cmd: Path to the tesseract executable
        """
        if "language" in kwargs:
            self._language = kwargs["language"]
        if "timeout_s" in kwargs:
            self._timeout_s = float(kwargs["timeout_s"])
        if kwargs.get("tesseract_cmd"):
            pytesseract.pytesseract.tesseract_cmd = kwargs["tesseract_cmd"]

    def recognize(self, image: Image.Image, layout: str = LAYOUT_BLOCK) -> RawOcrOutput:
        config = f"--psm {PSM_BY_LAYOUT.get(layout, PSM_BY_LAYOUT[LAYOUT_BLOCK])}"

        with self._lock:
            try:
                data = pytesseract.image_to_data(
                    image,
                    lang=self._language,
                    config=config,
                    timeout=self._timeout_s,
                    output_type=pytesseract.Output.DICT,
                )
            except (RuntimeError, OSError, pytesseract.TesseractError) as e:
                # pytesseract raises RuntimeError on timeout
                logger.error(f"Tesseract recognition failed: {e}")
                return RawOcrOutput.failed()

        return RawOcrOutput(text=_join_words(data), confidence=_mean_confidence(data))


def _join_words(data: dict) -> str:
    """Rebuild text from image_to_data output, one line per Tesseract line."""
    lines = {}
    for i, word in enumerate(data.get("text", [])):
        if not word or not word.strip():
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(word.strip())
    return "\n".join(" ".join(words) for _, words in sorted(lines.items())).strip()


def _mean_confidence(data: dict) -> float:
    confs = []
    for conf in data.get("conf", []):
        try:
            value = float(conf)
        except (TypeError, ValueError):
            continue
        if value > 0:
            confs.append(value)
    return sum(confs) / len(confs) if confs else 0.0
