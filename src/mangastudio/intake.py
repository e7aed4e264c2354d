from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from PIL import UnidentifiedImageError

from mangastudio.codec import ImagePayload, make_preview, read_image_payload
from mangastudio.errors import CodecError, IntakeError

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp"}

PREVIEW_ERROR = "Could not display the image previews."
READ_ERROR = "Could not read the selected images."


def is_image(path: Path) -> bool:
    return Path(path).suffix.lower() in IMAGE_SUFFIXES


async def _load_preview(path: Path, size: int) -> str:
    return await asyncio.to_thread(make_preview, path, size)


async def load_payloads(paths: Iterable[Path]) -> List[ImagePayload]:
    try:
        return list(await asyncio.gather(*(asyncio.to_thread(read_image_payload, path) for path in paths)))
    except (OSError, CodecError) as exc:
        logger.error("Failed to encode images: %s", exc)
        raise IntakeError(READ_ERROR) from exc


class ImageGallery:
    """Ordered source images with a preview slot per file.

    ``files`` is authoritative. A file gets an empty preview slot the moment
    it is added; previews for a batch are filled in together once every read
    in that batch has finished, or left empty if any of them failed.
    """

    def __init__(self, preview_size: int = 256) -> None:
        self.preview_size = preview_size
        self.files: List[Path] = []
        self.previews: List[Optional[str]] = []

    def __len__(self) -> int:
        return len(self.files)

    @property
    def is_empty(self) -> bool:
        return not self.files

    async def add(self, paths: Iterable[Path]) -> None:
        new_files = [Path(path) for path in paths]
        if not new_files:
            return
        start = len(self.files)
        self.files.extend(new_files)
        self.previews.extend([None] * len(new_files))
        batch = list(new_files)

        try:
            previews = await asyncio.gather(*(_load_preview(path, self.preview_size) for path in batch))
        except (OSError, UnidentifiedImageError, ValueError) as exc:
            logger.error("Error creating image previews: %s", exc)
            raise IntakeError(PREVIEW_ERROR) from exc

        # Entries may have been removed while the batch was loading; match the
        # previews back to the files by identity rather than by position.
        for file_path, preview in zip(batch, previews):
            idx = self._index_of(file_path, start)
            if idx is not None:
                self.previews[idx] = preview

    def _index_of(self, path: Path, hint: int) -> Optional[int]:
        if hint < len(self.files) and self.files[hint] is path:
            return hint
        for idx, candidate in enumerate(self.files):
            if candidate is path:
                return idx
        return None

    def remove(self, index: int) -> None:
        if index < 0 or index >= len(self.files):
            raise IndexError(index)
        del self.files[index]
        del self.previews[index]

    def clear(self) -> None:
        self.files = []
        self.previews = []

    async def payloads(self) -> List[ImagePayload]:
        return await load_payloads(self.files)


class ReferenceStyle:
    def __init__(self, preview_size: int = 256) -> None:
        self.preview_size = preview_size
        self.payload: Optional[ImagePayload] = None
        self.preview: Optional[str] = None

    @property
    def is_set(self) -> bool:
        return self.payload is not None

    async def set(self, path: Path) -> None:
        try:
            payload, preview = await asyncio.gather(
                asyncio.to_thread(read_image_payload, Path(path)),
                _load_preview(Path(path), self.preview_size),
            )
        except (OSError, CodecError, UnidentifiedImageError, ValueError) as exc:
            logger.error("Error loading reference image %s: %s", path, exc)
            raise IntakeError("Could not read the reference image.") from exc
        self.payload = payload
        self.preview = preview

    def set_payload(self, payload: ImagePayload) -> None:
        self.payload = payload
        self.preview = payload.to_data_url()

    def clear(self) -> None:
        self.payload = None
        self.preview = None
