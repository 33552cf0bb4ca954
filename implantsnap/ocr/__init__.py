"""
OCR Module for ImplantSnap

Extraction and cross-validation of implant data from UI screenshots.

Usage:
    from implantsnap.ocr import create_engine, Preprocessor, TextParser, TableReader, Reconciler

    engine = create_engine("tesseract")
    raw = engine.recognize(Preprocessor().process(extra_crop))
    parsed, errors = TextParser().parse(tooth_text, raw.text)

    table = TableReader().analyze(table_crop)
    final = Reconciler().reconcile(parsed, table)
"""

# Public API - Result types
from .result import (
    PreprocessOptions,
    RawOcrOutput,
    ParsedData,
    OcrResult,
    MarkerInfo,
    TableAnalysisResult,
    CombinationValidation,
    ReconcileResult,
)

# Public API - Base class for custom engines
from .base import OCREngine, LAYOUT_LINE, LAYOUT_BLOCK

# Public API - Factory functions
from .factory import (
    create_engine,
    register_engine,
    available_engines,
)

# Pipeline stages
from .preprocess import Preprocessor
from .parser import TextParser, normalize_diameter, normalize_length, extract_tooth
from .table_reader import TableReader
from .reconcile import Reconciler
from .combinations import VALID_COMBINATIONS, validate_combination

# Debug utilities
from .debug import DEBUG_DIR, save_table_debug_image, save_debug_crop

__all__ = [
    # Result types
    "PreprocessOptions",
    "RawOcrOutput",
    "ParsedData",
    "OcrResult",
    "MarkerInfo",
    "TableAnalysisResult",
    "CombinationValidation",
    "ReconcileResult",
    # Base class
    "OCREngine",
    "LAYOUT_LINE",
    "LAYOUT_BLOCK",
    # Factory
    "create_engine",
    "register_engine",
    "available_engines",
    # Stages
    "Preprocessor",
    "TextParser",
    "TableReader",
    "Reconciler",
    # Functions
    "normalize_diameter",
    "normalize_length",
    "extract_tooth",
    "validate_combination",
    "VALID_COMBINATIONS",
    # Debug
    "DEBUG_DIR",
    "save_table_debug_image",
    "save_debug_crop",
]
