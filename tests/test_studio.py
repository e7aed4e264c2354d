import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

import asyncio
import io

import pygame
from PIL import Image

from mangastudio.bubbles import EditPhase
from mangastudio.codec import ImagePayload
from mangastudio.config import DEFAULT_CONFIG
from mangastudio.models import BoundingBox, Bubble, HistoryItem
from mangastudio.paths import ensure_directories
from mangastudio.state import INPUT_DRAW, INPUT_UPLOAD
from mangastudio.studio.app import StudioApp


def _png_url(color=(0, 200, 0)):
    buffer = io.BytesIO()
    Image.new("RGB", (40, 20), color).save(buffer, format="PNG")
    return ImagePayload(buffer.getvalue(), "image/png").to_data_url()


def _app(tmp_path):
    return StudioApp(DEFAULT_CONFIG, ensure_directories(tmp_path))


def test_dropped_files_are_filtered_and_added(tmp_path):
    app = _app(tmp_path)
    image = tmp_path / "drop.png"
    Image.new("RGB", (10, 10)).save(image, format="PNG")
    notes = tmp_path / "notes.txt"
    notes.write_text("x", encoding="utf-8")
    app.state.input_mode = INPUT_DRAW

    async def scenario():
        app._handle_dropped([image, notes])
        await asyncio.gather(*app._tasks)

    asyncio.run(scenario())

    assert app.state.gallery.files == [image]
    assert app.state.input_mode == INPUT_UPLOAD
    assert app.state.error is None


def test_failed_task_surfaces_its_message(tmp_path):
    app = _app(tmp_path)
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"nope")

    async def scenario():
        app._handle_dropped([bad])
        await asyncio.gather(*app._tasks, return_exceptions=True)

    asyncio.run(scenario())
    assert app.state.error == "Could not display the image previews."


def test_history_selection_resets_edit_fields_and_prompt(tmp_path):
    app = _app(tmp_path)
    url = _png_url()
    app.history.record(
        HistoryItem(id="h1", image_url=url, style="shojo", genre="romance", prompt="sunset", timestamp=1)
    )
    app.bubble_fields = {"bubble-1": object()}

    app.orchestrator.select_history("h1")

    assert app.state.result == url
    assert app.prompt_field.text == "sunset"
    assert app.bubble_fields == {}


def test_render_lays_out_bubble_fields_over_the_result(tmp_path):
    app = _app(tmp_path)
    app.state.result = _png_url()
    app.editor.phase = EditPhase.EDITING
    app.editor.original = app.state.result
    app.editor.bubbles = [Bubble(id="bubble-1", box=BoundingBox(0.0, 0.0, 0.0, 0.0), text="Hi")]
    app.editor.texts = {"bubble-1": "Hi"}

    app._render()

    field = app.bubble_fields["bubble-1"]
    image_rect = app._result_rect()
    assert field.text == "Hi"
    assert field.rect.topleft == image_rect.topleft
    assert field.rect.size == (80, 30)


def test_resize_rebuilds_layout(tmp_path):
    app = _app(tmp_path)
    pygame.display.set_mode((1000, 700), pygame.RESIZABLE)
    app._on_resize()
    assert app.screen_rect.size == (1000, 700)
    assert app.history_rect.right == 1000 - 16
