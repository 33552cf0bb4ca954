"""
Region Module for ImplantSnap

Rectangle helpers for cutting the OCR and table crops out of a
full-screen capture, plus a loader that accepts images in any of the
forms callers hand us.
"""

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

from PIL import Image

from .errors import RegionError

logger = logging.getLogger(__name__)

ImageSource = Union[Image.Image, bytes, str, Path]


@dataclass(frozen=True)
class RegionRect:
    """Pixel rectangle in full-screen coordinates."""
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_dict(cls, data: dict) -> "RegionRect":
        return cls(
            x=int(data["x"]),
            y=int(data["y"]),
            width=int(data["width"]),
            height=int(data["height"]),
        )

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @property
    def box(self) -> Tuple[int, int, int, int]:
        """PIL crop box (left, upper, right, lower)."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)


def load_image(source: ImageSource) -> Image.Image:
    """
    Return a decoded PIL image.

    Decode errors (PIL.UnidentifiedImageError, OSError) propagate to the caller.
    """
    if isinstance(source, Image.Image):
        return source
    if isinstance(source, (bytes, bytearray)):
        image = Image.open(io.BytesIO(source))
    else:
        image = Image.open(source)
    image.load()
    return image


def normalize_region(region: RegionRect) -> RegionRect:
    """Round to integers, pull the origin to >= 0 and force a 1px minimum size."""
    return RegionRect(
        x=max(0, int(round(region.x))),
        y=max(0, int(round(region.y))),
        width=max(1, int(round(region.width))),
        height=max(1, int(round(region.height))),
    )


def clamp_region_to_image(region: RegionRect, image_size: Tuple[int, int]) -> RegionRect:
    """
    Clamp a region so it lies inside an image of the given (width, height).

    The origin is pulled inside the image first, then width/height are
    trimmed to whatever remains.
    """
    img_w, img_h = image_size
    normalized = normalize_region(region)

    left = min(max(0, normalized.x), img_w - 1)
    top = min(max(0, normalized.y), img_h - 1)

    return RegionRect(
        x=left,
        y=top,
        width=min(normalized.width, img_w - left),
        height=min(normalized.height, img_h - top),
    )


def assert_region_within_image(region: RegionRect, image_size: Tuple[int, int], key: str) -> None:
    """Raise RegionError unless the region is non-empty and fully inside the image."""
    img_w, img_h = image_size

    if region.x < 0 or region.y < 0:
        raise RegionError(f"{key} out of image bounds: x or y below 0")

    if region.width < 1 or region.height < 1:
        raise RegionError(f"{key} out of image bounds: width or height below 1")

    if region.x + region.width > img_w or region.y + region.height > img_h:
        raise RegionError(
            f"{key} out of image bounds: region({region.x},{region.y},{region.width},{region.height}) "
            f"image({img_w}x{img_h})"
        )


def crop_region(image: Image.Image, region: RegionRect, key: str = "region") -> Image.Image:
    """
    Cut a clamped, validated region out of a full-screen image.

    Args:
        image: Full-screen capture
        region: Region in screen coordinates
        key: Region name used in error messages

    Returns:
        Cropped PIL image
    """
    clamped = clamp_region_to_image(region, image.size)
    assert_region_within_image(clamped, image.size, key)
    if clamped != region:
        logger.debug(f"{key} clamped from {region} to {clamped}")
    return image.crop(clamped.box)
