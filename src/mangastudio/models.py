from __future__ import annotations

import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def _clamp_unit(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class BoundingBox:
    # Fractions of the image size, origin top-left.
    x1: float
    y1: float
    x2: float
    y2: float

    @classmethod
    def from_raw(cls, x1: float, y1: float, x2: float, y2: float) -> "BoundingBox":
        # Detected boxes may fall outside the image or come back with swapped
        # corners; clamp into [0, 1] and reorder instead of rejecting them.
        xs = sorted((_clamp_unit(float(x1)), _clamp_unit(float(x2))))
        ys = sorted((_clamp_unit(float(y1)), _clamp_unit(float(y2))))
        return cls(x1=xs[0], y1=ys[0], x2=xs[1], y2=ys[1])

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def is_empty(self) -> bool:
        return self.width <= 0.0 or self.height <= 0.0


@dataclass(frozen=True)
class Bubble:
    id: str
    box: BoundingBox
    text: str


@dataclass(frozen=True)
class EditedBubble:
    id: str
    box: BoundingBox
    text: str
    new_text: str

    @classmethod
    def from_bubble(cls, bubble: Bubble, new_text: str) -> "EditedBubble":
        return cls(id=bubble.id, box=bubble.box, text=bubble.text, new_text=new_text)


def new_history_id(now: Optional[datetime] = None) -> str:
    stamp = now or datetime.now(timezone.utc)
    return stamp.isoformat(timespec="microseconds")


@dataclass
class HistoryItem:
    id: str
    image_url: str
    style: str
    genre: str
    prompt: str
    timestamp: int
    reference_image_url: Optional[str] = None

    @classmethod
    def create(
        cls,
        image_url: str,
        style: str,
        genre: str,
        prompt: str,
        reference_image_url: Optional[str] = None,
    ) -> "HistoryItem":
        return cls(
            id=new_history_id(),
            image_url=image_url,
            style=style,
            genre=genre,
            prompt=prompt,
            timestamp=int(time.time() * 1000),
            reference_image_url=reference_image_url,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "imageUrl": self.image_url,
            "style": self.style,
            "genre": self.genre,
            "prompt": self.prompt,
            "timestamp": self.timestamp,
            "referenceImageUrl": self.reference_image_url,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "HistoryItem":
        if not isinstance(payload, dict):
            raise TypeError("history entry must be an object")
        item_id = payload["id"]
        image_url = payload["imageUrl"]
        if not isinstance(item_id, str) or not isinstance(image_url, str):
            raise TypeError("history entry id and imageUrl must be strings")
        reference = payload.get("referenceImageUrl")
        return cls(
            id=item_id,
            image_url=image_url,
            style=str(payload.get("style", "")),
            genre=str(payload.get("genre", "")),
            prompt=str(payload.get("prompt") or ""),
            timestamp=int(payload.get("timestamp") or 0),
            reference_image_url=reference if isinstance(reference, str) else None,
        )
