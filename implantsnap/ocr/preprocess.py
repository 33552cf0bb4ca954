"""
OCR Preprocessor

Deterministic transform pipeline applied to a crop before recognition:
grayscale -> contrast -> sharpen -> scale -> threshold.
"""

from typing import Optional

from PIL import Image, ImageFilter

from ..region import ImageSource, load_image
from .result import PreprocessOptions


# Contrast pivot (mid-gray)
CONTRAST_PIVOT = 128

# Unsharp mask settings used when sharpen is enabled
SHARPEN_RADIUS = 1.5
SHARPEN_PERCENT = 150
SHARPEN_THRESHOLD = 0


def _contrast_lut(contrast: float) -> list:
    """256-entry lookup table for out = c * in + (128 - 128 * c), clipped."""
    offset = CONTRAST_PIVOT - CONTRAST_PIVOT * contrast
    return [min(255, max(0, int(round(contrast * v + offset)))) for v in range(256)]


class Preprocessor:
    """
    Prepares cropped screenshots for OCR.

    Example:
        pre = Preprocessor(PreprocessOptions(scale=2.0, threshold=128))
        ready = pre.process(crop)
    """

    def __init__(self, options: Optional[PreprocessOptions] = None):
        self.options = options or PreprocessOptions()

    def process(self, image: ImageSource, options: Optional[PreprocessOptions] = None) -> Image.Image:
        """
        Run the preprocessing pipeline.

        Args:
            image: PIL image, encoded bytes or file path
            options: Use these instead of self.options for this call only

        Returns:
            Processed PIL image; the input is never modified in place

        Raises:
            PIL.UnidentifiedImageError / OSError if the input cannot be decoded
        """
        opts = options or self.options
        img = load_image(image)

        if img.mode not in ("L", "RGB"):
            img = img.convert("RGB")

        if opts.grayscale:
            img = img.convert("L")

        if opts.contrast != 1:
            lut = _contrast_lut(opts.contrast)
            img = img.point(lut * len(img.getbands()))

        if opts.sharpen:
            img = img.filter(ImageFilter.UnsharpMask(
                radius=SHARPEN_RADIUS, percent=SHARPEN_PERCENT, threshold=SHARPEN_THRESHOLD
            ))

        if opts.scale != 1:
            width, height = img.size
            new_size = (max(1, int(width * opts.scale + 0.5)), max(1, int(height * opts.scale + 0.5)))
            img = img.resize(new_size, Image.Resampling.LANCZOS)

        if opts.threshold > 0:
            threshold = opts.threshold
            img = img.convert("L").point(lambda p: 255 if p >= threshold else 0)

        return img
