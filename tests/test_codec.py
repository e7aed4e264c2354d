import base64
import io

import pytest
from PIL import Image

from mangastudio.codec import (
    ImagePayload,
    extension_for_mime,
    make_preview,
    read_image_payload,
    split_data_url,
)
from mangastudio.errors import CodecError


def _write_image(path, size=(64, 32), fmt="PNG", color=(200, 20, 20)):
    Image.new("RGB", size, color).save(path, format=fmt)
    return path


def test_data_url_round_trip():
    payload = ImagePayload(b"\x89PNG fake", "image/png")
    url = payload.to_data_url()
    assert url.startswith("data:image/png;base64,")
    assert ImagePayload.from_data_url(url) == payload


def test_from_data_url_rejects_malformed_input():
    with pytest.raises(CodecError):
        ImagePayload.from_data_url("not a data url")
    with pytest.raises(CodecError):
        ImagePayload.from_data_url("data:;base64,AAAA")
    with pytest.raises(CodecError):
        ImagePayload.from_data_url("data:image/png;base64,@@not-base64@@")


def test_split_data_url_ignores_extra_parameters():
    encoded = base64.b64encode(b"abc").decode("ascii")
    mime, data = split_data_url(f"data:image/jpeg;name=x.jpg;base64,{encoded}")
    assert mime == "image/jpeg"
    assert data == encoded


def test_read_image_payload_sniffs_real_format(tmp_path):
    # A JPEG saved under a .png name is still reported as JPEG.
    path = _write_image(tmp_path / "photo.png", fmt="JPEG")
    payload = read_image_payload(path)
    assert payload.mime_type == "image/jpeg"
    assert payload.data == path.read_bytes()


def test_read_image_payload_rejects_empty_file(tmp_path):
    path = tmp_path / "empty.png"
    path.write_bytes(b"")
    with pytest.raises(CodecError):
        read_image_payload(path)


def test_make_preview_fits_within_size(tmp_path):
    path = _write_image(tmp_path / "wide.png", size=(400, 100))
    url = make_preview(path, 64)
    payload = ImagePayload.from_data_url(url)
    assert payload.mime_type == "image/png"
    with Image.open(io.BytesIO(payload.data)) as preview:
        assert preview.size == (64, 16)


def test_extension_for_mime():
    assert extension_for_mime("image/png") == ".png"
    assert extension_for_mime("image/jpeg") == ".jpg"
    assert extension_for_mime("application/x-unknown-thing") == ".png"
