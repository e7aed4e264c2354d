import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

import pytest

from mangastudio.paint.canvas import ERASER, PEN, DrawingSurface

WHITE = (255, 255, 255)
RED = (220, 20, 60)


def _pixel(canvas, pos):
    return tuple(canvas.surface.get_at(pos))[:3]


def test_new_surface_is_filled_with_background():
    canvas = DrawingSurface((40, 30), background=WHITE)
    assert canvas.physical_size == (40, 30)
    assert _pixel(canvas, (0, 0)) == WHITE
    assert _pixel(canvas, (39, 29)) == WHITE


def test_pen_stroke_renders_each_segment():
    canvas = DrawingSurface((100, 100), color=RED, brush_size=4)
    canvas.begin((10, 50))
    canvas.extend((90, 50))
    assert _pixel(canvas, (50, 50)) == RED
    canvas.end()
    assert not canvas.is_drawing


def test_eraser_is_three_times_wider_and_paints_background():
    canvas = DrawingSurface((100, 100), color=RED, brush_size=4)
    canvas.set_tool(ERASER)
    style = canvas.current_style()
    assert style.width == 12
    assert style.color == WHITE

    canvas.set_tool(PEN)
    assert canvas.current_style().width == 4


def test_eraser_clears_pen_marks():
    canvas = DrawingSurface((100, 100), color=RED, brush_size=10)
    canvas.begin((20, 20))
    canvas.extend((80, 20))
    canvas.end()
    canvas.set_tool(ERASER)
    canvas.begin((50, 20))
    canvas.end()
    assert _pixel(canvas, (50, 20)) == WHITE
    assert _pixel(canvas, (25, 20)) == RED


def test_tool_switch_applies_to_next_stroke_only():
    canvas = DrawingSurface((100, 100), color=RED, brush_size=4)
    canvas.begin((10, 10))
    canvas.set_tool(ERASER)
    canvas.extend((90, 10))
    assert _pixel(canvas, (50, 10)) == RED
    canvas.end()
    assert canvas.current_style().tool == ERASER


def test_set_tool_rejects_unknown_tool():
    canvas = DrawingSurface((10, 10))
    with pytest.raises(ValueError):
        canvas.set_tool("bucket")


def test_extend_without_begin_is_ignored():
    canvas = DrawingSurface((20, 20), color=RED)
    canvas.extend((10, 10))
    assert _pixel(canvas, (10, 10)) == WHITE


def test_pixel_ratio_scales_backing_surface_and_strokes():
    canvas = DrawingSurface((50, 40), pixel_ratio=2.0, color=RED, brush_size=4)
    assert canvas.physical_size == (100, 80)
    assert canvas.current_style().width == 8
    canvas.begin((25, 20))
    assert _pixel(canvas, (50, 40)) == RED
    assert canvas.view().get_size() == (50, 40)


def test_clear_and_resize_discard_content():
    canvas = DrawingSurface((60, 60), color=RED, brush_size=6)
    canvas.begin((30, 30))
    canvas.end()
    canvas.clear()
    assert _pixel(canvas, (30, 30)) == WHITE

    canvas.begin((30, 30))
    canvas.resize((80, 70), 1.5)
    assert canvas.physical_size == (120, 105)
    assert not canvas.is_drawing
    assert _pixel(canvas, (45, 45)) == WHITE


def test_export_returns_png_and_ends_stroke():
    canvas = DrawingSurface((32, 32), color=RED)
    canvas.begin((16, 16))
    payload = canvas.export()
    assert payload.mime_type == "image/png"
    assert payload.data.startswith(b"\x89PNG")
    assert not canvas.is_drawing
