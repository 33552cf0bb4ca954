"""
Implant Size Table

Allowed (diameter, length) pairs for Ostem TSIII implants and the
validation helper shared by the table reader and the reconciler.
"""

from typing import Dict, Optional, Tuple

from .result import CombinationValidation


# Diameter -> allowed lengths (mm), shortest first
VALID_COMBINATIONS: Dict[str, Tuple[str, ...]] = {
    "3.0": ("8.5", "10.0", "11.5", "13.0"),
    "3.5": ("8.5", "10.0", "11.5", "13.0"),
    "4.0": ("6.0", "7.0", "8.5", "10.0", "11.5", "13.0"),
    "4.5": ("6.0", "7.0", "8.5", "10.0", "11.5", "13.0"),
    "5.0": ("4.0", "5.0", "6.0", "7.0", "8.5", "10.0", "11.5", "13.0"),
}


def validate_combination(diameter: Optional[str], length: Optional[str]) -> CombinationValidation:
    """
    Check a (diameter, length) pair against VALID_COMBINATIONS.

    Args:
        diameter: Normalized diameter string, e.g. "4.0"
        length: Normalized length string, e.g. "11.5"

    Returns:
        CombinationValidation with a human-readable message when invalid
    """
    if not diameter or not length:
        return CombinationValidation(
            valid=False,
            message=f"Incomplete data: diameter={diameter or '?'}, length={length or '?'}"
        )

    allowed = VALID_COMBINATIONS.get(diameter)
    if allowed is None:
        return CombinationValidation(valid=False, message=f"Unknown implant diameter: {diameter}")

    if length not in allowed:
        return CombinationValidation(valid=False, message=f"Invalid combination: Ø{diameter} x {length}mm")

    return CombinationValidation(valid=True)
