"""
Screen Capture Module for ImplantSnap

Full-monitor screenshots via mss, converted to PIL images for cropping.
"""

import logging

import mss
from mss.exception import ScreenShotError
from PIL import Image

from .errors import ErrorCode, ImplantSnapError

logger = logging.getLogger(__name__)


def capture_screen(monitor_index: int = 1) -> Image.Image:
    """
    Capture an entire monitor as a PIL Image.

    Args:
        monitor_index: mss monitor index (1 = primary, 0 = all monitors combined)

    Returns:
        RGB PIL Image of the monitor

    Raises:
        ImplantSnapError(CAPTURE_FAILED) if the monitor does not exist or
        the grab fails

    Example:
        >>> img = capture_screen()
        >>> img.size
        (1920, 1080)
    """
    try:
        with mss.mss() as sct:
            if monitor_index >= len(sct.monitors):
                raise ImplantSnapError(
                    ErrorCode.CAPTURE_FAILED,
                    f"Monitor {monitor_index} not found ({len(sct.monitors) - 1} available)"
                )
            screenshot = sct.grab(sct.monitors[monitor_index])
            img = Image.frombytes(
                "RGB",
                (screenshot.width, screenshot.height),
                screenshot.rgb
            )
    except ScreenShotError as e:
        raise ImplantSnapError(ErrorCode.CAPTURE_FAILED, f"Screen capture failed: {e}") from e

    logger.debug(f"Captured monitor {monitor_index}: {img.width}x{img.height}")
    return img
