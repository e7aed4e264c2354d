import asyncio

import pytest
from PIL import Image

from mangastudio.codec import ImagePayload
from mangastudio.errors import IntakeError
from mangastudio.intake import PREVIEW_ERROR, READ_ERROR, ImageGallery, ReferenceStyle, is_image, load_payloads


def _write_image(path, color=(10, 120, 200)):
    Image.new("RGB", (40, 30), color).save(path, format="PNG")
    return path


def test_is_image():
    assert is_image("a.PNG")
    assert is_image("b.jpeg")
    assert not is_image("notes.txt")


def test_add_keeps_files_and_previews_aligned(tmp_path):
    gallery = ImageGallery(preview_size=16)
    first = [_write_image(tmp_path / "a.png"), _write_image(tmp_path / "b.png")]
    second = [_write_image(tmp_path / "c.png")]

    asyncio.run(gallery.add(first))
    asyncio.run(gallery.add(second))

    assert [path.name for path in gallery.files] == ["a.png", "b.png", "c.png"]
    assert len(gallery.previews) == 3
    assert all(preview.startswith("data:image/png;base64,") for preview in gallery.previews)


def test_failed_preview_batch_keeps_files_with_empty_slots(tmp_path):
    gallery = ImageGallery(preview_size=16)
    good = _write_image(tmp_path / "good.png")
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"not an image")

    with pytest.raises(IntakeError) as excinfo:
        asyncio.run(gallery.add([good, bad]))

    assert str(excinfo.value) == PREVIEW_ERROR
    assert gallery.files == [good, bad]
    assert gallery.previews == [None, None]


def test_remove_drops_file_and_preview_at_index(tmp_path):
    gallery = ImageGallery(preview_size=16)
    paths = [_write_image(tmp_path / f"{name}.png") for name in "abc"]
    asyncio.run(gallery.add(paths))
    kept_previews = [gallery.previews[0], gallery.previews[2]]

    gallery.remove(1)

    assert [path.name for path in gallery.files] == ["a.png", "c.png"]
    assert gallery.previews == kept_previews
    with pytest.raises(IndexError):
        gallery.remove(5)


def test_remove_during_add_does_not_misalign(tmp_path):
    gallery = ImageGallery(preview_size=16)
    existing = _write_image(tmp_path / "old.png")
    asyncio.run(gallery.add([existing]))
    new = _write_image(tmp_path / "new.png", color=(0, 0, 0))

    async def scenario():
        task = asyncio.create_task(gallery.add([new]))
        await asyncio.sleep(0)
        gallery.remove(0)
        await task

    asyncio.run(scenario())

    assert gallery.files == [new]
    assert len(gallery.previews) == 1
    assert gallery.previews[0] is not None


def test_payloads_fail_as_a_batch(tmp_path):
    good = _write_image(tmp_path / "good.png")
    missing = tmp_path / "gone.png"

    with pytest.raises(IntakeError) as excinfo:
        asyncio.run(load_payloads([good, missing]))
    assert str(excinfo.value) == READ_ERROR

    payloads = asyncio.run(load_payloads([good]))
    assert payloads[0].mime_type == "image/png"


def test_reference_style_set_and_restore(tmp_path):
    reference = ReferenceStyle(preview_size=16)
    asyncio.run(reference.set(_write_image(tmp_path / "ref.png")))
    assert reference.is_set
    assert reference.preview.startswith("data:image/png;base64,")

    restored = ImagePayload(b"bytes", "image/jpeg")
    reference.set_payload(restored)
    assert reference.payload == restored
    assert reference.preview == restored.to_data_url()

    reference.clear()
    assert not reference.is_set and reference.preview is None


def test_reference_style_rejects_unreadable_file(tmp_path):
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"nope")
    reference = ReferenceStyle()
    with pytest.raises(IntakeError):
        asyncio.run(reference.set(bad))
    assert not reference.is_set
