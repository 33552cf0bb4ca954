"""
OCR Result Dataclasses

Shared value types passed between the preprocessor, the OCR engine,
the text parser, the table reader and the reconciler.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class PreprocessOptions:
    """Image preprocessing parameters (tuned offline, see tools/tune_preprocess.py)."""
    grayscale: bool = True
    contrast: float = 1.0
    scale: float = 3.0
    threshold: int = 0      # 0 = skip binarization
    sharpen: bool = False   # sharpen hurt recognition on the sample set

    def __post_init__(self):
        if self.contrast < 0:
            raise ValueError(f"contrast must be >= 0, got {self.contrast}")
        if self.scale <= 0:
            raise ValueError(f"scale must be > 0, got {self.scale}")
        if not 0 <= self.threshold <= 255:
            raise ValueError(f"threshold must be within 0-255, got {self.threshold}")


@dataclass(frozen=True)
class RawOcrOutput:
    """Text and 0-100 confidence returned by one recognition call."""
    text: str
    confidence: float

    @classmethod
    def failed(cls) -> "RawOcrOutput":
        """Value used when the engine errored or timed out."""
        return cls(text="", confidence=0.0)

    @property
    def is_failure(self) -> bool:
        return self.text == "" and self.confidence == 0.0


@dataclass(frozen=True)
class ParsedData:
    """Structured record: each field is a one-decimal string or None."""
    tooth: Optional[str] = None
    diameter: Optional[str] = None
    length: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.tooth and self.diameter and self.length)

    def to_dict(self) -> dict:
        return {"tooth": self.tooth, "diameter": self.diameter, "length": self.length}


@dataclass(frozen=True)
class OcrResult:
    """Raw engine output for both crops plus the parsed record."""
    raw_tooth: RawOcrOutput
    raw_extra: RawOcrOutput
    parsed: ParsedData
    errors: Tuple[str, ...] = ()

    @property
    def failed(self) -> bool:
        """True when neither crop produced any text."""
        return not self.raw_tooth.text.strip() and not self.raw_extra.text.strip()


@dataclass(frozen=True)
class MarkerInfo:
    """Red component chosen as the selection marker (scaled-image coordinates)."""
    bbox: Tuple[int, int, int, int]  # (min_x, min_y, max_x, max_y)
    centroid: Tuple[float, float]
    pixel_count: int
    is_border: bool


@dataclass(frozen=True)
class TableAnalysisResult:
    """Reading of the colour-coded reference table."""
    detected: bool
    diameter: Optional[str] = None
    length: Optional[str] = None
    confidence: str = "none"  # "high" | "low" | "none"
    error: Optional[str] = None
    marker: Optional[MarkerInfo] = field(default=None, compare=False)

    def __post_init__(self):
        if self.confidence not in ("high", "low", "none"):
            raise ValueError(f"Unknown confidence level: {self.confidence}")
        if not self.detected and (self.diameter is not None or self.length is not None):
            raise ValueError("Undetected table result cannot carry values")

    @classmethod
    def undetected(cls, error: str) -> "TableAnalysisResult":
        return cls(detected=False, confidence="none", error=error)

    def to_dict(self) -> dict:
        return {
            "detected": self.detected,
            "diameter": self.diameter,
            "length": self.length,
            "confidence": self.confidence,
            "error": self.error,
        }


@dataclass(frozen=True)
class CombinationValidation:
    valid: bool
    message: Optional[str] = None


@dataclass(frozen=True)
class ReconcileResult:
    """Final record after cross-checking OCR against the table reading."""
    parsed: ParsedData
    messages: Tuple[str, ...] = ()
    corrected: bool = False
