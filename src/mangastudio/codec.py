from __future__ import annotations

import base64
import binascii
import io
import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from mangastudio.errors import CodecError

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^;,]*)*?);base64,(?P<data>.*)$", re.DOTALL)

DEFAULT_MIME = "image/png"


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    mime_type: str = DEFAULT_MIME

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"

    @classmethod
    def from_base64(cls, encoded: str, mime_type: str = DEFAULT_MIME) -> "ImagePayload":
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise CodecError("Image data is not valid base64.") from exc
        return cls(data=data, mime_type=mime_type)

    @classmethod
    def from_data_url(cls, url: str) -> "ImagePayload":
        mime_type, encoded = split_data_url(url)
        return cls.from_base64(encoded, mime_type)


def split_data_url(url: str) -> Tuple[str, str]:
    match = _DATA_URL_RE.match((url or "").strip())
    if not match:
        raise CodecError("Invalid data URL.")
    mime_type = match.group("mime")
    if not mime_type:
        raise CodecError("Invalid data URL: missing mime type.")
    return mime_type, match.group("data")


def extension_for_mime(mime_type: str) -> str:
    if mime_type == "image/jpeg":
        return ".jpg"
    return mimetypes.guess_extension(mime_type) or ".png"


def sniff_mime_type(data: bytes, filename: Optional[str] = None) -> str:
    try:
        with Image.open(io.BytesIO(data)) as image:
            fmt = image.format
    except (UnidentifiedImageError, OSError):
        fmt = None
    if fmt and fmt in Image.MIME:
        return Image.MIME[fmt]
    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed:
            return guessed
    return DEFAULT_MIME


def read_image_payload(path: Path) -> ImagePayload:
    data = Path(path).read_bytes()
    if not data:
        raise CodecError(f"{Path(path).name} is empty.")
    return ImagePayload(data=data, mime_type=sniff_mime_type(data, Path(path).name))


def make_preview(path: Path, size: int) -> str:
    with Image.open(path) as image:
        image.load()
        preview = image.convert("RGBA") if image.mode not in {"RGB", "RGBA"} else image.copy()
    preview.thumbnail((size, size))
    buffer = io.BytesIO()
    preview.save(buffer, format="PNG")
    return ImagePayload(buffer.getvalue(), "image/png").to_data_url()
