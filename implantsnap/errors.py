"""
Error codes and exceptions for ImplantSnap.

Only hard failures (bad regions, undecodable input, capture errors) are
raised. Everything else is reported as a Notice carrying one of these codes.
"""

from enum import Enum


class ErrorCode(str, Enum):
    CAPTURE_FAILED = "CAPTURE_FAILED"
    REGION_OUT_OF_BOUND = "REGION_OUT_OF_BOUND"
    OCR_FAILED = "OCR_FAILED"
    PARSE_INCOMPLETE = "PARSE_INCOMPLETE"
    COMBINATION_INVALID = "COMBINATION_INVALID"
    TABLE_UNREADABLE = "TABLE_UNREADABLE"
    TABLE_MISMATCH = "TABLE_MISMATCH"


ERROR_MESSAGES = {
    ErrorCode.CAPTURE_FAILED: "Screenshot failed, check screen capture permissions.",
    ErrorCode.REGION_OUT_OF_BOUND: "A configured region lies outside the screen, redefine its coordinates.",
    ErrorCode.OCR_FAILED: "OCR recognition failed on both crops.",
    ErrorCode.PARSE_INCOMPLETE: "Parsing incomplete, some fields could not be recognized.",
    ErrorCode.COMBINATION_INVALID: "Diameter and length do not form a valid implant size.",
    ErrorCode.TABLE_UNREADABLE: "Reference table could not be read.",
    ErrorCode.TABLE_MISMATCH: "OCR and reference table disagree on the implant size.",
}


class ImplantSnapError(Exception):
    """Base exception carrying an ErrorCode."""

    def __init__(self, code: ErrorCode, message: str = ""):
        super().__init__(message or ERROR_MESSAGES[code])
        self.code = code


class RegionError(ImplantSnapError):
    """Raised when a crop region cannot be placed inside the source image."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.REGION_OUT_OF_BOUND, message)
