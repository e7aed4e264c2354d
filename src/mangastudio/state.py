from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from mangastudio.intake import ImageGallery, ReferenceStyle
from mangastudio.presets import DEFAULT_GENRE, DEFAULT_STYLE

INPUT_UPLOAD = "upload"
INPUT_DRAW = "draw"


@dataclass
class AppState:
    gallery: ImageGallery = field(default_factory=ImageGallery)
    reference: ReferenceStyle = field(default_factory=ReferenceStyle)
    style: str = DEFAULT_STYLE
    genre: str = DEFAULT_GENRE
    prompt: str = ""
    result: Optional[str] = None
    is_generating: bool = False
    error: Optional[str] = None
    input_mode: str = INPUT_UPLOAD

    @classmethod
    def with_preview_size(cls, preview_size: int) -> "AppState":
        return cls(gallery=ImageGallery(preview_size), reference=ReferenceStyle(preview_size))

    def clear_error(self) -> None:
        self.error = None
