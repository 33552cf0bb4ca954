#!/usr/bin/env python3
"""
OCR parameter tuner for ImplantSnap.

Crops the tooth and data-block regions from each labeled screenshot, tries
every preprocessing combination, scores against ground truth and prints the
best parameters. Copy the winner into the "preprocess" section of config.json.

Usage:
    python tools/tune_preprocess.py samples/manifest.json [--lang chi_sim+eng]

See implantsnap.tuning.load_samples for the manifest format.
"""

import sys
import json
import argparse
from dataclasses import asdict
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from implantsnap.ocr import create_engine, PreprocessOptions
from implantsnap.tuning import MAX_SAMPLE_SCORE, ParameterGrid, evaluate, grid_search, load_samples


def print_progress(done: int, total: int, best: int) -> None:
    print(f"  [{done:3d}/{total}] best so far: {best}", end="\r")


def mark(got, want) -> str:
    return "ok" if got == want else f"x(got:{got or '?'} exp:{want})"


def main():
    parser = argparse.ArgumentParser(description="Grid-search OCR preprocessing parameters")
    parser.add_argument("manifest", type=Path, help="JSON manifest of labeled screenshots")
    parser.add_argument("--lang", default="chi_sim+eng", help="Tesseract language pack(s)")
    parser.add_argument("--top", type=int, default=10, help="Number of results to list")
    args = parser.parse_args()

    print("=" * 50)
    print("  ImplantSnap OCR Parameter Tuner")
    print("=" * 50)

    samples = load_samples(args.manifest)
    if not samples:
        print("No samples in manifest")
        return 1
    max_score = len(samples) * MAX_SAMPLE_SCORE
    print(f"Loaded {len(samples)} samples, max score {max_score}\n")

    engine = create_engine("tesseract", language=args.lang)
    grid = ParameterGrid()

    # Baseline: current defaults
    baseline = evaluate(PreprocessOptions(), samples, engine)
    print(f"Baseline (defaults): {baseline.score}/{max_score}\n")

    print(f"Running grid search over {len(grid)} combinations...")
    results = grid_search(samples, engine, grid, progress=print_progress)
    print()

    print(f"\n{'='*50}")
    print(f"  TOP {args.top} RESULTS")
    print('='*50)
    for result in results[:args.top]:
        bar = "#" * round(result.score / max_score * 20)
        o = result.options
        print(f"[{bar:<20}] {result.score:2d}/{max_score}  contrast={o.contrast} scale={o.scale} "
              f"threshold={o.threshold:3d} sharpen={o.sharpen}  conf={result.mean_confidence:.0f}%")

    best = results[0]
    print(f"\n{'='*50}")
    print("  BEST PARAMETERS")
    print('='*50)
    print(json.dumps(asdict(best.options), indent=2))

    print(f"\n{'='*50}")
    print("  OCR DETAIL (best params)")
    print('='*50)
    for outcome in best.outcomes:
        expected = outcome.sample.expected
        print(f"\n[{outcome.sample.name}]  score={outcome.score}/{MAX_SAMPLE_SCORE}")
        print(f"  tooth={mark(outcome.parsed.tooth, expected.tooth)}  "
              f"len={mark(outcome.parsed.length, expected.length)}  "
              f"dia={mark(outcome.parsed.diameter, expected.diameter)}")
        print(f"  Tooth OCR (conf={outcome.tooth_confidence:.0f}%): {outcome.tooth_text!r}")
        print(f"  Extra OCR (conf={outcome.extra_confidence:.0f}%): {outcome.extra_text!r}")

    engine.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
