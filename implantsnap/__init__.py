"""
ImplantSnap - implant data extraction from dental planning screenshots.

Reads the tooth number, implant diameter and implant length from cropped
UI screenshots with OCR and cross-checks them against the colour-coded
implant size table shown on the same screen.
"""

__version__ = "0.1.0"
