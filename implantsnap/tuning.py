"""
Preprocessing Parameter Tuning

Offline grid search over PreprocessOptions against a small labeled set of
screenshots. Uses the same Preprocessor and TextParser as the runtime
pipeline; nothing here is used at runtime.
"""

import itertools
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

from PIL import Image

from .ocr import (
    LAYOUT_BLOCK,
    LAYOUT_LINE,
    OCREngine,
    ParsedData,
    Preprocessor,
    PreprocessOptions,
    TextParser,
)
from .region import RegionRect, crop_region, load_image


logger = logging.getLogger(__name__)


# Points per exactly-matched field
FIELD_SCORE = 2
MAX_SAMPLE_SCORE = FIELD_SCORE * 3


@dataclass(frozen=True)
class ParameterGrid:
    """Values swept for each preprocessing axis."""
    contrast: Sequence[float] = (1.0, 1.5, 2.0, 2.5, 3.0)
    scale: Sequence[float] = (2.0, 3.0, 4.0)
    threshold: Sequence[int] = (0, 80, 100, 128, 150)
    sharpen: Sequence[bool] = (True, False)

    def __iter__(self) -> Iterator[PreprocessOptions]:
        for contrast, scale, threshold, sharpen in itertools.product(
            self.contrast, self.scale, self.threshold, self.sharpen
        ):
            yield PreprocessOptions(
                grayscale=True, contrast=contrast, scale=scale, threshold=threshold, sharpen=sharpen
            )

    def __len__(self) -> int:
        return len(self.contrast) * len(self.scale) * len(self.threshold) * len(self.sharpen)


@dataclass(frozen=True)
class LabeledSample:
    """Pre-cropped OCR inputs with the values a human read off the screenshot."""
    name: str
    tooth_crop: Image.Image
    extra_crop: Image.Image
    expected: ParsedData


@dataclass
class SampleOutcome:
    sample: LabeledSample
    parsed: ParsedData
    score: int
    tooth_text: str
    extra_text: str
    tooth_confidence: float
    extra_confidence: float


@dataclass
class TuningResult:
    options: PreprocessOptions
    score: int
    outcomes: List[SampleOutcome] = field(default_factory=list)

    @property
    def mean_confidence(self) -> float:
        if not self.outcomes:
            return 0.0
        total = sum(o.tooth_confidence + o.extra_confidence for o in self.outcomes)
        return total / (len(self.outcomes) * 2)


def score_parsed(parsed: ParsedData, expected: ParsedData) -> int:
    """FIELD_SCORE points per field that matches exactly."""
    return sum(
        FIELD_SCORE
        for got, want in (
            (parsed.tooth, expected.tooth),
            (parsed.length, expected.length),
            (parsed.diameter, expected.diameter),
        )
        if got == want
    )


def evaluate(
    options: PreprocessOptions,
    samples: Sequence[LabeledSample],
    engine: OCREngine,
    parser: Optional[TextParser] = None,
    preprocessor: Optional[Preprocessor] = None,
) -> TuningResult:
    """Score one parameter combination over all samples."""
    parser = parser or TextParser()
    preprocessor = preprocessor or Preprocessor()
    result = TuningResult(options=options, score=0)

    for sample in samples:
        tooth_raw = engine.recognize(preprocessor.process(sample.tooth_crop, options), layout=LAYOUT_LINE)
        extra_raw = engine.recognize(preprocessor.process(sample.extra_crop, options), layout=LAYOUT_BLOCK)
        parsed, _ = parser.parse(tooth_raw.text, extra_raw.text)
        score = score_parsed(parsed, sample.expected)
        result.score += score
        result.outcomes.append(SampleOutcome(
            sample=sample,
            parsed=parsed,
            score=score,
            tooth_text=tooth_raw.text,
            extra_text=extra_raw.text,
            tooth_confidence=tooth_raw.confidence,
            extra_confidence=extra_raw.confidence,
        ))

    return result


def grid_search(
    samples: Sequence[LabeledSample],
    engine: OCREngine,
    grid: Optional[ParameterGrid] = None,
    parser: Optional[TextParser] = None,
    progress: Optional[Callable[[int, int, int], None]] = None,
) -> List[TuningResult]:
    """
    Evaluate every combination in the grid.

    Args:
        samples: Labeled samples
        engine: OCR engine
        grid: Parameter grid (defaults to ParameterGrid())
        parser: Text parser
        progress: Optional callback(done, total, best_score)

    Returns:
        Results sorted best first: by score, ties broken by mean OCR confidence
    """
    grid = grid or ParameterGrid()
    parser = parser or TextParser()
    preprocessor = Preprocessor()
    total = len(grid)
    results: List[TuningResult] = []
    best = 0

    for done, options in enumerate(grid, start=1):
        result = evaluate(options, samples, engine, parser, preprocessor)
        results.append(result)
        best = max(best, result.score)
        logger.debug(f"[{done}/{total}] {options} -> {result.score}")
        if progress:
            progress(done, total, best)

    results.sort(key=lambda r: (r.score, r.mean_confidence), reverse=True)
    return results


def load_samples(manifest_path: Path) -> List[LabeledSample]:
    """
    Load labeled samples from a JSON manifest.

    Manifest format:
        {
          "regions": {"ocr_tooth": {x, y, width, height}, "ocr_extra": {...}},
          "samples": [
            {"file": "shot1.png", "tooth": "21", "length": "13.0", "diameter": "4.0"}
          ]
        }

    Screenshot paths are relative to the manifest's directory.
    """
    manifest_path = Path(manifest_path)
    with open(manifest_path, 'r', encoding='utf-8') as f:
        manifest = json.load(f)

    tooth_region = RegionRect.from_dict(manifest["regions"]["ocr_tooth"])
    extra_region = RegionRect.from_dict(manifest["regions"]["ocr_extra"])

    samples = []
    for entry in manifest["samples"]:
        screenshot = load_image(manifest_path.parent / entry["file"])
        samples.append(LabeledSample(
            name=entry["file"],
            tooth_crop=crop_region(screenshot, tooth_region, "ocr_tooth"),
            extra_crop=crop_region(screenshot, extra_region, "ocr_extra"),
            expected=ParsedData(
                tooth=entry.get("tooth"),
                diameter=entry.get("diameter"),
                length=entry.get("length"),
            ),
        ))
    return samples
