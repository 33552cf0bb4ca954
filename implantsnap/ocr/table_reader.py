"""
Reference Table Reader

Reads the colour-coded implant size table independently of OCR. The
selected cell is marked with a red outline; its position gives the length
row and the fill colour inside the outline gives the diameter column.

Ø5.0 cells are themselves red, so when that column is selected there is no
outline to find and the largest red region is used instead.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from ..region import ImageSource, load_image
from .combinations import VALID_COMBINATIONS
from .result import MarkerInfo, TableAnalysisResult


logger = logging.getLogger(__name__)


# Upscale factor applied before labeling
SCALE = 3

# Ostem TSIII table layout (top -> bottom, left -> right)
LENGTHS = ("13.0", "11.5", "10.0", "8.5", "7.0", "6.0", "5.0", "4.0")
DIAMETERS = ("3.0", "3.5", "4.0", "4.5", "5.0")

# Fraction of the crop height taken by the header row
HEADER_FRAC = 0.10

# Marker classification
MIN_MARKER_BBOX_AREA = 100       # smaller bounding boxes are noise
BORDER_FILL_RATIO_MAX = 0.50     # outline: pixel_count / bbox_area below this

# Interior sampling inside a border marker
SAMPLE_INSET_FRAC = 0.20
SAMPLE_STEP = 2

# Selection red: high R, low G, low B
RED_MIN_R = 155
RED_MAX_G = 85
RED_MAX_B = 85


class ColorBand(Enum):
    """Column fill colours, valued by the diameter they encode."""
    ORANGE = "3.0"
    YELLOW = "3.5"
    GREEN = "4.0"
    BLUE = "4.5"
    RED = "5.0"
    NONE = None


# (band, R range, G range, B range); ranges are half-open [lo, hi).
# Checked in order, first match wins.
COLOR_BANDS: Tuple[Tuple[ColorBand, Tuple[int, int], Tuple[int, int], Tuple[int, int]], ...] = (
    (ColorBand.YELLOW, (156, 256), (151, 256), (0, 100)),
    (ColorBand.ORANGE, (156, 256), (75, 150), (0, 75)),
    (ColorBand.GREEN, (0, 110), (111, 256), (0, 110)),
    (ColorBand.BLUE, (0, 110), (0, 160), (121, 256)),
    (ColorBand.RED, (151, 256), (0, 85), (0, 85)),
)


def is_red(r: int, g: int, b: int) -> bool:
    """True when a pixel is selection red."""
    return r > RED_MIN_R and g < RED_MAX_G and b < RED_MAX_B


def red_mask(rgb: np.ndarray) -> np.ndarray:
    """Vectorized is_red over an HxWx3 array."""
    r = rgb[:, :, 0]
    g = rgb[:, :, 1]
    b = rgb[:, :, 2]
    return (r > RED_MIN_R) & (g < RED_MAX_G) & (b < RED_MAX_B)


def classify_color(r: int, g: int, b: int) -> ColorBand:
    """Map a pixel to the column colour band it belongs to."""
    for band, (r_lo, r_hi), (g_lo, g_hi), (b_lo, b_hi) in COLOR_BANDS:
        if r_lo <= r < r_hi and g_lo <= g < g_hi and b_lo <= b < b_hi:
            return band
    return ColorBand.NONE


@dataclass
class Component:
    """Running statistics for one connected red region."""
    pixel_count: int
    min_x: int
    max_x: int
    min_y: int
    max_y: int
    sum_x: int = 0
    sum_y: int = 0

    @property
    def bbox_width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def bbox_height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def bbox_area(self) -> int:
        return self.bbox_width * self.bbox_height

    @property
    def fill_ratio(self) -> float:
        return self.pixel_count / self.bbox_area

    @property
    def centroid(self) -> Tuple[float, float]:
        return (self.sum_x / self.pixel_count, self.sum_y / self.pixel_count)


def label_components(mask: np.ndarray) -> List[Component]:
    """
    4-connected component labeling over a boolean mask.

    Uses an explicit stack and a visited bitmap, so image size never
    affects recursion depth.

    Returns:
        Components sorted by pixel_count, largest first
    """
    height, width = mask.shape
    flat = mask.ravel().tolist()
    visited = bytearray(width * height)
    components: List[Component] = []

    for start in np.flatnonzero(mask).tolist():
        if visited[start]:
            continue

        start_y, start_x = divmod(start, width)
        comp = Component(pixel_count=0, min_x=start_x, max_x=start_x, min_y=start_y, max_y=start_y)
        visited[start] = 1
        stack = [start]

        while stack:
            idx = stack.pop()
            y, x = divmod(idx, width)

            comp.pixel_count += 1
            comp.sum_x += x
            comp.sum_y += y
            if x < comp.min_x:
                comp.min_x = x
            elif x > comp.max_x:
                comp.max_x = x
            if y < comp.min_y:
                comp.min_y = y
            elif y > comp.max_y:
                comp.max_y = y

            if x > 0:
                ni = idx - 1
                if flat[ni] and not visited[ni]:
                    visited[ni] = 1
                    stack.append(ni)
            if x < width - 1:
                ni = idx + 1
                if flat[ni] and not visited[ni]:
                    visited[ni] = 1
                    stack.append(ni)
            if y > 0:
                ni = idx - width
                if flat[ni] and not visited[ni]:
                    visited[ni] = 1
                    stack.append(ni)
            if y < height - 1:
                ni = idx + width
                if flat[ni] and not visited[ni]:
                    visited[ni] = 1
                    stack.append(ni)

        components.append(comp)

    components.sort(key=lambda c: c.pixel_count, reverse=True)
    return components


def find_red_components(rgb: np.ndarray) -> List[Component]:
    """Connected red regions of an HxWx3 image, largest first."""
    return label_components(red_mask(rgb))


def is_border_marker(comp: Component) -> bool:
    """A selection outline: big enough to not be noise and mostly hollow."""
    return comp.bbox_area >= MIN_MARKER_BBOX_AREA and comp.fill_ratio < BORDER_FILL_RATIO_MAX


def select_marker(components: List[Component]) -> Tuple[Optional[Component], bool]:
    """
    Pick the selection marker.

    Args:
        components: Red components, largest first

    Returns:
        (component, is_border). The first border-like component wins;
        otherwise the largest component is taken as a filled red cell.
    """
    for comp in components:
        if is_border_marker(comp):
            return comp, True
    if components:
        return components[0], False
    return None, False


def sample_interior_diameter(rgb: np.ndarray, comp: Component) -> Optional[str]:
    """
    Vote on the column colour inside a border marker.

    Samples every SAMPLE_STEP-th pixel of the bounding box inset by
    SAMPLE_INSET_FRAC on each side. Red only wins when nothing else was seen.
    """
    inset_x = max(1, int(comp.bbox_width * SAMPLE_INSET_FRAC + 0.5))
    inset_y = max(1, int(comp.bbox_height * SAMPLE_INSET_FRAC + 0.5))
    x0, x1 = comp.min_x + inset_x, comp.max_x - inset_x
    y0, y1 = comp.min_y + inset_y, comp.max_y - inset_y
    if x1 < x0 or y1 < y0:
        return None

    counts: Counter = Counter()
    samples = rgb[y0:y1 + 1:SAMPLE_STEP, x0:x1 + 1:SAMPLE_STEP, :3].reshape(-1, 3).tolist()
    for r, g, b in samples:
        band = classify_color(r, g, b)
        if band is not ColorBand.NONE:
            counts[band] += 1

    non_red = [(band, n) for band, n in counts.most_common() if band is not ColorBand.RED]
    if non_red:
        return non_red[0][0].value
    if counts[ColorBand.RED]:
        return ColorBand.RED.value
    return None


def diameter_from_x(center_x: float, width: int) -> str:
    """Map a horizontal position onto the diameter columns."""
    col = min(int(center_x / width * len(DIAMETERS)), len(DIAMETERS) - 1)
    return DIAMETERS[max(0, col)]


def length_from_y(center_y: float, height: int) -> str:
    """Map a vertical position (below the header) onto the length rows."""
    data_start = height * HEADER_FRAC
    data_height = height - data_start
    rel_y = max(0.0, (center_y - data_start) / data_height)
    row = min(int(rel_y * len(LENGTHS)), len(LENGTHS) - 1)
    return LENGTHS[row]


class TableReader:
    """
    Reads the selected (diameter, length) from a reference table crop.

    Example:
        reader = TableReader()
        result = reader.analyze(table_crop)
        if result.confidence == "high":
            print(result.diameter, result.length)
    """

    def analyze(self, image: ImageSource) -> TableAnalysisResult:
        """
        Analyze a table crop.

        Never raises: decode or geometry errors come back as an undetected
        result with confidence "none" and the error message.
        """
        try:
            return self._analyze(load_image(image))
        except Exception as e:
            logger.warning(f"Table analysis failed: {e}")
            return TableAnalysisResult.undetected(str(e))

    def _analyze(self, image: Image.Image) -> TableAnalysisResult:
        if image.mode == "P":
            image = image.convert("RGBA")
        if len(image.getbands()) < 3:
            return TableAnalysisResult.undetected("Image has fewer than 3 colour channels")

        rgb = np.array(image.convert("RGB"), dtype=np.uint8)
        src_h, src_w = rgb.shape[:2]
        rgb = cv2.resize(rgb, (src_w * SCALE, src_h * SCALE), interpolation=cv2.INTER_LANCZOS4)
        height, width = rgb.shape[:2]

        components = find_red_components(rgb)
        marker, is_border = select_marker(components)
        if marker is None:
            return TableAnalysisResult.undetected("No red selection marker found")

        center_x, center_y = marker.centroid

        diameter = sample_interior_diameter(rgb, marker) if is_border else None
        if diameter is None:
            diameter = diameter_from_x(center_x, width)

        length = length_from_y(center_y, height)

        combo_ok = length in VALID_COMBINATIONS.get(diameter, ())
        confidence = "high" if is_border and combo_ok else "low"

        logger.debug(
            f"Table marker: border={is_border} pixels={marker.pixel_count} "
            f"fill={marker.fill_ratio:.2f} -> Ø{diameter} x {length} ({confidence})"
        )

        return TableAnalysisResult(
            detected=True,
            diameter=diameter,
            length=length,
            confidence=confidence,
            marker=MarkerInfo(
                bbox=(marker.min_x, marker.min_y, marker.max_x, marker.max_y),
                centroid=(center_x, center_y),
                pixel_count=marker.pixel_count,
                is_border=is_border,
            ),
        )
