"""
ImplantSnap - Entry Point

Reads tooth number, implant diameter and implant length from a screenshot
of the planning software and prints the cross-checked result.

Example:
    python main.py screenshot.png
    python main.py --capture --debug       # Grab the primary monitor instead
    python main.py shot.png --json --config my-config.json
"""

import sys
import json
import logging
import argparse
from pathlib import Path

from PIL import UnidentifiedImageError

from implantsnap.errors import ImplantSnapError
from implantsnap.pipeline import ExtractionPipeline, PipelineResult
from implantsnap.screen_capture import capture_screen
from implantsnap.settings import SETTINGS_FILE, load_settings, regions_from


logger = logging.getLogger(__name__)

EXIT_COMPLETE = 0
EXIT_INCOMPLETE = 1
EXIT_FAILED = 2


def configure_logging(debug: bool) -> None:
    """Log to both console and file."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[
            logging.StreamHandler(),  # Console output
            logging.FileHandler("implantsnap.log", mode='w', encoding='utf-8')  # File output
        ]
    )


def print_result(result: PipelineResult) -> None:
    """Human-readable summary of one run."""
    final = result.final
    table = result.table

    print(f"\n{'='*50}")
    print(f"Trace: {result.trace_id}")
    print('='*50)
    print(f"  Tooth:    {final.tooth or '?'}")
    print(f"  Diameter: {final.diameter or '?'}")
    print(f"  Length:   {final.length or '?'}")
    if result.corrected:
        print("  (diameter/length corrected from reference table)")

    print(f"\nOCR confidence: tooth {result.ocr.raw_tooth.confidence:.0f}%, "
          f"data {result.ocr.raw_extra.confidence:.0f}%")
    if table.detected:
        print(f"Table: Ø{table.diameter} x {table.length} ({table.confidence})")
    else:
        print(f"Table: not detected ({table.error})")

    if result.notices:
        print("\nNotices:")
        for notice in result.notices:
            print(f"  [{notice.level}] {notice.message}")

    print(f"\nDone in {result.elapsed_ms:.0f}ms")


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="ImplantSnap - implant data extraction from planning screenshots"
    )
    parser.add_argument(
        "image",
        nargs="?",
        help="Full screenshot to analyze"
    )
    parser.add_argument(
        "--capture", "-c",
        action="store_true",
        help="Capture the primary monitor instead of reading a file"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=SETTINGS_FILE,
        help=f"Settings file (default: {SETTINGS_FILE})"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging and save debug images"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON"
    )
    args = parser.parse_args(argv)
    if not args.image and not args.capture:
        parser.error("an image path or --capture is required")
    return args


def main(argv=None) -> int:
    """Run the pipeline once and return an exit code."""
    args = parse_args(argv)

    settings = load_settings(args.config)
    debug = args.debug or settings.get("debug_enabled", False)
    settings["debug_enabled"] = debug
    configure_logging(debug)

    try:
        screenshot = capture_screen() if args.capture else args.image
        with ExtractionPipeline.from_settings(settings) as pipeline:
            result = pipeline.run_on_screenshot(screenshot, regions_from(settings))
    except (ImplantSnapError, UnidentifiedImageError, OSError) as e:
        logger.error(f"Extraction failed: {e}")
        return EXIT_FAILED

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_result(result)

    return EXIT_COMPLETE if result.final.is_complete else EXIT_INCOMPLETE


if __name__ == "__main__":
    sys.exit(main())
