"""
Shared test fixtures: a scripted OCR engine and synthetic table images.
"""

import sys
import time
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import pytest
from PIL import Image

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from implantsnap.ocr import OCREngine, RawOcrOutput, LAYOUT_LINE


# Synthetic table geometry (before the reader's 3x upscale)
TABLE_WIDTH = 200
TABLE_HEIGHT = 180
HEADER_HEIGHT = 18
COL_WIDTH = 40
ROW_HEIGHT = (TABLE_HEIGHT - HEADER_HEIGHT) / 8

ORANGE = (255, 140, 0)
YELLOW = (255, 220, 0)
GREEN = (0, 180, 0)
BLUE = (0, 80, 220)
CELL_RED = (220, 30, 30)
MARKER_RED = (255, 0, 0)
WHITE = (255, 255, 255)
GRAY = (150, 150, 150)

COLUMN_COLORS = (ORANGE, YELLOW, GREEN, BLUE, CELL_RED)


class ScriptedEngine(OCREngine):
    """Returns fixed text per layout, optionally failing or stalling."""

    def __init__(self, tooth: str = "", extra: str = "", confidence: float = 90.0,
                 delay_s: float = 0.0, error: Optional[Exception] = None):
        self.tooth = tooth
        self.extra = extra
        self.confidence = confidence
        self.delay_s = delay_s
        self.error = error
        self.calls = []

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def timeout_s(self) -> float:
        return 1.0

    def recognize(self, image: Image.Image, layout: str = "block") -> RawOcrOutput:
        self.calls.append((image.size, layout))
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.error:
            raise self.error
        text = self.tooth if layout == LAYOUT_LINE else self.extra
        if not text:
            return RawOcrOutput.failed()
        return RawOcrOutput(text=text, confidence=self.confidence)


def cell_rows(row: int) -> Tuple[int, int]:
    """First and last pixel row of a table data row."""
    y0 = int(HEADER_HEIGHT + row * ROW_HEIGHT)
    y1 = int(HEADER_HEIGHT + (row + 1) * ROW_HEIGHT) - 1
    return y0, y1


def make_table(selected: Optional[Tuple[int, int]] = None, red_column: bool = True,
               thickness: int = 2) -> Image.Image:
    """
    Build a reference table image.

    Args:
        selected: (col, row) to outline in selection red, or None
        red_column: Paint the Ø5.0 column red (gray otherwise)
        thickness: Outline thickness in pixels
    """
    arr = np.full((TABLE_HEIGHT, TABLE_WIDTH, 3), WHITE, dtype=np.uint8)
    for col, color in enumerate(COLUMN_COLORS):
        if col == 4 and not red_column:
            color = GRAY
        arr[HEADER_HEIGHT:, col * COL_WIDTH:(col + 1) * COL_WIDTH] = color

    if selected is not None:
        col, row = selected
        x0, x1 = col * COL_WIDTH, (col + 1) * COL_WIDTH - 1
        y0, y1 = cell_rows(row)
        t = thickness
        arr[y0:y0 + t, x0:x1 + 1] = MARKER_RED
        arr[y1 - t + 1:y1 + 1, x0:x1 + 1] = MARKER_RED
        arr[y0:y1 + 1, x0:x0 + t] = MARKER_RED
        arr[y0:y1 + 1, x1 - t + 1:x1 + 1] = MARKER_RED

    return Image.fromarray(arr)


def text_image(width: int = 60, height: int = 20) -> Image.Image:
    """Placeholder OCR crop; the scripted engine ignores pixels."""
    return Image.new("RGB", (width, height), WHITE)


@pytest.fixture
def table_4_0_x_11_5() -> Image.Image:
    """Table with the Ø4.0 x 11.5mm cell outlined."""
    return make_table(selected=(2, 1))


@pytest.fixture
def blank_image() -> Image.Image:
    return Image.new("RGB", (120, 80), WHITE)
