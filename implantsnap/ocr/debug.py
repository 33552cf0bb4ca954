"""
OCR Debug Utilities

Functions for saving annotated table crops and preprocessed OCR inputs.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

from .result import TableAnalysisResult
from .table_reader import SCALE


# Debug settings
DEBUG_DIR = Path("./debug")
MAX_DEBUG_IMAGES = 30

# Marker outline colours by confidence
CONFIDENCE_COLORS = {
    "high": "#4CAF50",  # Green
    "low": "#FFC107",   # Yellow
    "none": "#d32f2f",  # Red
}


def debug_path(prefix: str, trace_id: str, debug_dir: Optional[Path] = None) -> Path:
    """Build a timestamped debug file path."""
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return (debug_dir or DEBUG_DIR) / f"debug_{stamp}_{trace_id[:8]}_{prefix}.png"


def save_table_debug_image(
    image: Image.Image,
    result: TableAnalysisResult,
    path: Path,
) -> None:
    """
    Save the table crop annotated with the detected marker and reading.

    Annotations include:
    - Marker bounding box (coloured by confidence)
    - Marker centroid
    - Inferred diameter/length and confidence

    Args:
        image: Original table crop
        result: Table analysis result
        path: Output file path
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    debug_img = image.convert("RGB")
    draw = ImageDraw.Draw(debug_img)
    font = ImageFont.load_default()
    color = CONFIDENCE_COLORS.get(result.confidence, "blue")

    if result.marker:
        # Marker coordinates are in the upscaled image
        min_x, min_y, max_x, max_y = (v / SCALE for v in result.marker.bbox)
        draw.rectangle([min_x, min_y, max_x, max_y], outline=color, width=1)
        cx, cy = (v / SCALE for v in result.marker.centroid)
        draw.ellipse([cx - 2, cy - 2, cx + 2, cy + 2], fill=color)

    if result.detected:
        text = f"Ø{result.diameter} x {result.length} ({result.confidence})"
    else:
        text = f"none: {result.error}"
    draw.text((2, 2), text, fill=color, font=font)

    debug_img.save(path, "PNG")
    cleanup_debug_images(path.parent)


def save_debug_crop(image: Image.Image, path: Path) -> None:
    """Save a preprocessed OCR crop as-is."""
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path, "PNG")
    cleanup_debug_images(path.parent)


def cleanup_debug_images(debug_dir: Optional[Path] = None) -> None:
    """Remove old debug images, keeping only the most recent MAX_DEBUG_IMAGES."""
    debug_dir = debug_dir or DEBUG_DIR
    if not debug_dir.exists():
        return

    # Get all debug images sorted by modification time
    debug_files = sorted(
        debug_dir.glob("debug_*.png"),
        key=lambda p: p.stat().st_mtime,
        reverse=True
    )

    # Remove old files
    for old_file in debug_files[MAX_DEBUG_IMAGES:]:
        try:
            old_file.unlink()
        except OSError:
            pass
