"""
Text Parser

Turns raw OCR text from the tooth crop and the data-block crop into a
ParsedData record. Diameter and length are recovered by an ordered list
of strategies; each strategy only fills fields that are still missing.
"""

import logging
import re
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

from .result import ParsedData


logger = logging.getLogger(__name__)


# FDI tooth numbers: 11-18, 21-28, 31-38, 41-48.
# ASCII word boundaries so "牙位21" still matches but "1234" does not.
TOOTH_RE = re.compile(r"\b(1[1-8]|2[1-8]|3[1-8]|4[1-8])\b", re.ASCII)

# The value patterns keep Unicode \s (CJK OCR emits U+3000 and U+00A0 between
# tokens) but spell digits as [0-9] so fullwidth digits never reach float().

# "长度 = 13.0 mm" and garbled variants of the label ("長 度", "民 度", "代 庆", ...)
LENGTH_RE = re.compile(r"[长長民代八]\s*[度庆]\s*=\s*([0-9]+\.?[0-9]*)\s*m", re.IGNORECASE)

# "直径 = 4.0 mm" and garbled variants ("直 径", "直 人 径", "直 人 笃", ...)
DIAMETER_RE = re.compile(r"直\s*[径經徑人]?\s*[径經徑笃]?\s*=\s*([0-9]+\.?[0-9]*)\s*m", re.IGNORECASE)

# Any "= NUMBER mm". "<", "{" or "(" in front of the digits is a misread "4".
VALUE_MM_RE = re.compile(r"=\s*([<{(]?)([0-9]+\.?[0-9]*)\s*m", re.IGNORECASE)

# Legacy "DxL" layout, e.g. "4.0×13.0"
DIM_RE = re.compile(r"([0-9]+(?:\.[0-9]+)?)\s*[xX×]\s*([0-9]+(?:\.[0-9]+)?)")

# Dropped-decimal thresholds: "40" -> 4.0 diameter, "130" -> 13.0 length
DIAMETER_DECIMAL_LOSS_MIN = 10
LENGTH_DECIMAL_LOSS_MIN = 20

# Lower bound of plausible implant lengths, used to classify a lone value
MIN_PLAUSIBLE_LENGTH = 4

DEFAULT_POSITIONAL_ORDER = ("length", "diameter")


class Dimensions(NamedTuple):
    length: Optional[str] = None
    diameter: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.length is not None and self.diameter is not None

    def merge(self, other: "Dimensions") -> "Dimensions":
        """Keep existing values, take the other's only for missing fields."""
        return Dimensions(
            length=self.length if self.length is not None else other.length,
            diameter=self.diameter if self.diameter is not None else other.diameter,
        )


Strategy = Callable[[str, Dimensions], Dimensions]


def _with_one_decimal(raw: str) -> str:
    if "." not in raw:
        return f"{int(raw)}.0"
    if raw.endswith("."):
        return f"{raw}0"
    return raw


def normalize_diameter(raw: str) -> str:
    """
    Normalize a raw diameter string.

    Implant diameters are 2.5-7.0 mm, so a value >= 10 means OCR dropped
    the decimal point ("40" -> "4.0", "35" -> "3.5").
    """
    value = float(raw)
    if value >= DIAMETER_DECIMAL_LOSS_MIN:
        return f"{value / 10:.1f}"
    return _with_one_decimal(raw)


def normalize_length(raw: str) -> str:
    """
    Normalize a raw length string.

    Implant lengths are 4.0-18.0 mm, so a value > 20 means OCR dropped the
    decimal point ("130" -> "13.0"). A lost leading digit ("13.0" -> "30")
    is not repaired; the value is kept and left for validation to reject.
    """
    value = float(raw)
    if value > LENGTH_DECIMAL_LOSS_MIN:
        return f"{value / 10:.1f}"
    return _with_one_decimal(raw)


def extract_tooth(text: str) -> Optional[str]:
    """Return the first FDI tooth number in text, or None."""
    match = TOOTH_RE.search(text or "")
    return match.group(1) if match else None


def labeled_strategy(text: str, current: Dimensions) -> Dimensions:
    """Match the "长度 = N mm" / "直径 = N mm" labels."""
    length = diameter = None
    if current.length is None:
        match = LENGTH_RE.search(text)
        if match:
            length = normalize_length(match.group(1))
    if current.diameter is None:
        match = DIAMETER_RE.search(text)
        if match:
            diameter = normalize_diameter(match.group(1))
    return Dimensions(length=length, diameter=diameter)


def find_mm_values(text: str) -> List[str]:
    """All raw "= N mm" values in reading order, with misread "4"s restored."""
    values = []
    for noise, digits in VALUE_MM_RE.findall(text):
        values.append(f"4{digits}" if noise else digits)
    return values


def make_positional_strategy(order: Sequence[str] = DEFAULT_POSITIONAL_ORDER) -> Strategy:
    """
    Build the positional fallback for a given field order.

    Args:
        order: Which field the first and second "= N mm" values belong to,
            ("length", "diameter") for the standard data block layout
    """
    first, second = tuple(order)
    if {first, second} != {"length", "diameter"}:
        raise ValueError(f"positional order must name length and diameter, got {order}")

    def positional_strategy(text: str, current: Dimensions) -> Dimensions:
        values = find_mm_values(text)
        found = {"length": None, "diameter": None}

        if len(values) >= 2:
            found[first] = values[0]
            found[second] = values[1]
        elif len(values) == 1:
            # Guess which field a lone value belongs to from its magnitude
            value = float(values[0])
            normalized = value / 10 if value >= 10 else value
            if current.length is None and normalized >= MIN_PLAUSIBLE_LENGTH:
                found["length"] = values[0]
            elif current.diameter is None and normalized < 10:
                found["diameter"] = values[0]

        return Dimensions(
            length=normalize_length(found["length"]) if found["length"] and current.length is None else None,
            diameter=normalize_diameter(found["diameter"]) if found["diameter"] and current.diameter is None else None,
        )

    return positional_strategy


positional_strategy = make_positional_strategy()


def dimension_strategy(text: str, current: Dimensions) -> Dimensions:
    """Legacy "D x L" fallback, diameter first."""
    match = DIM_RE.search(text)
    if not match:
        return Dimensions()
    return Dimensions(
        length=normalize_length(match.group(2)) if current.length is None else None,
        diameter=normalize_diameter(match.group(1)) if current.diameter is None else None,
    )


class TextParser:
    """
    Parses OCR text into a ParsedData record.

    Example:
        parser = TextParser()
        parsed, errors = parser.parse("Implant 21", "长度=13.0mm 直径=4.0mm")
        # parsed == ParsedData(tooth="21", diameter="4.0", length="13.0")
    """

    def __init__(self, positional_order: Sequence[str] = DEFAULT_POSITIONAL_ORDER):
        self.strategies: List[Tuple[str, Strategy]] = [
            ("labeled", labeled_strategy),
            ("positional", make_positional_strategy(positional_order)),
            ("dimension", dimension_strategy),
        ]

    def parse(self, tooth_text: str, extra_text: str) -> Tuple[ParsedData, List[str]]:
        """
        Parse both OCR strings.

        Args:
            tooth_text: Text recognized in the tooth-number crop
            extra_text: Text recognized in the implant data block

        Returns:
            Tuple of (ParsedData, errors). One error string per field that
            could not be recovered; never raises on unmatched text.
        """
        errors: List[str] = []
        extra_text = extra_text or ""

        tooth = extract_tooth(tooth_text)
        if tooth is None:
            errors.append("tooth: unable to recognize tooth number")

        dims = Dimensions()
        for name, strategy in self.strategies:
            if dims.complete:
                break
            found = strategy(extra_text, dims)
            if found.length is not None or found.diameter is not None:
                logger.debug(f"{name} strategy found length={found.length} diameter={found.diameter}")
            dims = dims.merge(found)

        if dims.length is None:
            errors.append("extra: unable to recognize implant length")
        if dims.diameter is None:
            errors.append("extra: unable to recognize implant diameter")

        return ParsedData(tooth=tooth, diameter=dims.diameter, length=dims.length), errors
