"""
Tests for the reference table reader.

Usage:
    python -m pytest tests/test_table_reader.py
"""

import io
import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from implantsnap.ocr import TableReader
from implantsnap.ocr.table_reader import (
    ColorBand,
    Component,
    SCALE,
    classify_color,
    diameter_from_x,
    is_border_marker,
    is_red,
    label_components,
    length_from_y,
    sample_interior_diameter,
    select_marker,
)
from conftest import (
    BLUE,
    CELL_RED,
    GREEN,
    MARKER_RED,
    ORANGE,
    WHITE,
    YELLOW,
    make_table,
)


# ── Colour classification ─────────────────────────────────────────────────────

@pytest.mark.parametrize("rgb,band", [
    (ORANGE, ColorBand.ORANGE),
    (YELLOW, ColorBand.YELLOW),
    (GREEN, ColorBand.GREEN),
    (BLUE, ColorBand.BLUE),
    (CELL_RED, ColorBand.RED),
    (WHITE, ColorBand.NONE),
    ((0, 0, 0), ColorBand.NONE),
])
def test_classify_color(rgb, band):
    assert classify_color(*rgb) is band


def test_band_values_are_diameters():
    assert [b.value for b in ColorBand if b is not ColorBand.NONE] == ["3.0", "3.5", "4.0", "4.5", "5.0"]


def test_yellow_checked_before_orange():
    # High green puts it in yellow even though R and B also fit orange
    assert classify_color(200, 160, 50) is ColorBand.YELLOW
    assert classify_color(200, 140, 50) is ColorBand.ORANGE


def test_is_red():
    assert is_red(*MARKER_RED)
    assert is_red(*CELL_RED)
    assert not is_red(155, 0, 0)
    assert not is_red(255, 85, 0)
    assert not is_red(*ORANGE)


# ── Component labeling ────────────────────────────────────────────────────────

def test_label_components_separates_blobs():
    mask = np.zeros((10, 12), dtype=bool)
    mask[1:3, 1:4] = True     # 6 px
    mask[5:9, 6:11] = True    # 20 px
    comps = label_components(mask)
    assert [c.pixel_count for c in comps] == [20, 6]
    big = comps[0]
    assert (big.min_x, big.max_x, big.min_y, big.max_y) == (6, 10, 5, 8)
    assert big.centroid == (8.0, 6.5)


def test_label_components_is_four_connected():
    mask = np.zeros((4, 4), dtype=bool)
    mask[0, 0] = True
    mask[1, 1] = True
    assert [c.pixel_count for c in label_components(mask)] == [1, 1]


def test_label_components_flip_invariant():
    rng = np.random.default_rng(7)
    mask = rng.random((40, 50)) > 0.6
    counts = sorted(c.pixel_count for c in label_components(mask))
    assert sorted(c.pixel_count for c in label_components(mask[::-1, :])) == counts
    assert sorted(c.pixel_count for c in label_components(mask[:, ::-1])) == counts
    assert sum(counts) == int(mask.sum())


def test_label_components_empty():
    assert label_components(np.zeros((5, 5), dtype=bool)) == []


def test_large_component_has_no_recursion_limit():
    mask = np.ones((400, 400), dtype=bool)
    comps = label_components(mask)
    assert len(comps) == 1
    assert comps[0].pixel_count == 160000


# ── Marker selection ──────────────────────────────────────────────────────────

def component(pixel_count, width, height):
    return Component(pixel_count=pixel_count, min_x=0, max_x=width - 1, min_y=0, max_y=height - 1)


def test_border_marker_classification():
    assert is_border_marker(component(30, 10, 10))
    assert not is_border_marker(component(95, 10, 10))
    # Hollow but below the noise floor
    assert not is_border_marker(component(5, 5, 5))


def test_select_marker_prefers_border_over_larger_fill():
    filled = component(900, 30, 30)
    ring = component(40, 10, 10)
    assert select_marker([filled, ring]) == (ring, True)


def test_select_marker_falls_back_to_largest():
    filled = component(900, 30, 30)
    small = component(20, 5, 5)
    assert select_marker([filled, small]) == (filled, False)
    assert select_marker([]) == (None, False)


def test_sample_interior_prefers_non_red():
    rgb = np.zeros((30, 30, 3), dtype=np.uint8)
    rgb[:, :] = CELL_RED
    rgb[10:20, 10:20] = BLUE
    assert sample_interior_diameter(rgb, component(100, 30, 30)) == "4.5"

    rgb[:, :] = CELL_RED
    assert sample_interior_diameter(rgb, component(100, 30, 30)) == "5.0"

    rgb[:, :] = WHITE
    assert sample_interior_diameter(rgb, component(100, 30, 30)) is None


def test_position_mapping():
    assert diameter_from_x(0, 500) == "3.0"
    assert diameter_from_x(499, 500) == "5.0"
    assert diameter_from_x(250, 500) == "4.0"
    assert length_from_y(0, 1000) == "13.0"
    assert length_from_y(999, 1000) == "4.0"
    assert length_from_y(100 + 900 * 2.5 / 8, 1000) == "10.0"


# ── Full analysis ─────────────────────────────────────────────────────────────

def test_outlined_cell(table_4_0_x_11_5):
    result = TableReader().analyze(table_4_0_x_11_5)
    assert result.detected
    assert (result.diameter, result.length) == ("4.0", "11.5")
    assert result.confidence == "high"
    assert result.error is None
    assert result.marker.is_border
    min_x, min_y, max_x, max_y = result.marker.bbox
    assert max_x - min_x + 1 >= 40 * SCALE - 6


def test_outlined_invalid_combination_is_low():
    result = TableReader().analyze(make_table(selected=(0, 6)))
    assert result.detected
    assert (result.diameter, result.length) == ("3.0", "5.0")
    assert result.confidence == "low"


def test_outline_on_other_cells():
    reader = TableReader()
    expectations = {
        (1, 0): ("3.5", "13.0"),
        (1, 3): ("3.5", "8.5"),
        (2, 5): ("4.0", "6.0"),
    }
    for cell, expected in expectations.items():
        result = reader.analyze(make_table(selected=cell))
        assert (result.diameter, result.length) == expected, cell
        assert result.confidence == "high", cell


def test_filled_red_column_without_outline():
    result = TableReader().analyze(make_table(selected=None))
    assert result.detected
    assert result.diameter == "5.0"
    assert result.confidence == "low"
    assert not result.marker.is_border


def test_no_red_anywhere():
    result = TableReader().analyze(make_table(selected=None, red_column=False))
    assert not result.detected
    assert result.confidence == "none"
    assert result.diameter is None and result.length is None
    assert result.error == "No red selection marker found"


def test_grayscale_input():
    result = TableReader().analyze(make_table(selected=(2, 1)).convert("L"))
    assert not result.detected
    assert result.confidence == "none"
    assert "colour channels" in result.error


def test_encoded_bytes_input(table_4_0_x_11_5):
    buf = io.BytesIO()
    table_4_0_x_11_5.save(buf, "PNG")
    result = TableReader().analyze(buf.getvalue())
    assert (result.diameter, result.length, result.confidence) == ("4.0", "11.5", "high")


def test_undecodable_input_never_raises():
    result = TableReader().analyze(b"\x00garbage")
    assert not result.detected
    assert result.confidence == "none"
    assert result.error


def test_rgba_input(table_4_0_x_11_5):
    result = TableReader().analyze(table_4_0_x_11_5.convert("RGBA"))
    assert (result.diameter, result.length) == ("4.0", "11.5")


def test_input_not_modified(table_4_0_x_11_5):
    before = table_4_0_x_11_5.tobytes()
    TableReader().analyze(table_4_0_x_11_5)
    assert table_4_0_x_11_5.tobytes() == before
