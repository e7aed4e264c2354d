from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from mangastudio.codec import ImagePayload
from mangastudio.errors import EDIT_MESSAGES, DetectionError, MangaStudioError
from mangastudio.models import BoundingBox, Bubble, EditedBubble
from mangastudio.state import AppState

logger = logging.getLogger(__name__)

# (left, top, width, height) in screen pixels, unrounded.
ScreenRect = Tuple[float, float, float, float]


class EditPhase(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    EDITING = "editing"
    SAVING = "saving"


class BubbleService(Protocol):
    async def detect_bubbles(self, image: ImagePayload) -> List[Bubble]: ...

    async def edit_text(self, image: ImagePayload, bubbles: Sequence[EditedBubble]) -> str: ...


def fit_image_rect(image_size: Tuple[int, int], area: ScreenRect) -> ScreenRect:
    img_w, img_h = image_size
    left, top, width, height = area
    if img_w <= 0 or img_h <= 0 or width <= 0 or height <= 0:
        return (left, top, 0.0, 0.0)
    scale = min(width / img_w, height / img_h)
    out_w = img_w * scale
    out_h = img_h * scale
    return (left + (width - out_w) / 2, top + (height - out_h) / 2, out_w, out_h)


def box_to_rect(box: BoundingBox, image_rect: ScreenRect) -> ScreenRect:
    left, top, width, height = image_rect
    return (
        left + box.x1 * width,
        top + box.y1 * height,
        box.width * width,
        box.height * height,
    )


def rect_to_box(rect: ScreenRect, image_rect: ScreenRect) -> BoundingBox:
    left, top, width, height = image_rect
    if width <= 0 or height <= 0:
        raise ValueError("image rectangle has no area")
    r_left, r_top, r_width, r_height = rect
    return BoundingBox(
        x1=(r_left - left) / width,
        y1=(r_top - top) / height,
        x2=(r_left + r_width - left) / width,
        y2=(r_top + r_height - top) / height,
    )


def edited_subset(bubbles: Sequence[Bubble], texts: Dict[str, str]) -> List[EditedBubble]:
    subset = []
    for bubble in bubbles:
        new_text = texts.get(bubble.id, bubble.text)
        if new_text != bubble.text:
            subset.append(EditedBubble.from_bubble(bubble, new_text))
    return subset


class BubbleEditor:
    """Edit session for the text in the currently displayed result.

    A session starts in ``enter`` and ends on a successful save, an empty
    save, a detection failure or ``cancel``. Remote calls are tagged with the
    session token they started under; a reply that arrives after the token
    moved on is dropped.
    """

    def __init__(
        self,
        state: AppState,
        service: BubbleService,
        *,
        on_saved: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.state = state
        self.service = service
        self.on_saved = on_saved
        self.phase = EditPhase.IDLE
        self.original: Optional[str] = None
        self.bubbles: List[Bubble] = []
        self.texts: Dict[str, str] = {}
        self._token = 0

    @property
    def session(self) -> int:
        return self._token

    @property
    def is_active(self) -> bool:
        return self.phase is not EditPhase.IDLE

    @property
    def is_busy(self) -> bool:
        return self.phase in {EditPhase.DETECTING, EditPhase.SAVING}

    def _reset(self) -> None:
        self.phase = EditPhase.IDLE
        self.original = None
        self.bubbles = []
        self.texts = {}

    async def enter(self) -> bool:
        if self.phase is not EditPhase.IDLE or not self.state.result:
            return False
        self._token += 1
        token = self._token
        self.phase = EditPhase.DETECTING
        self.original = self.state.result
        self.bubbles = []
        self.texts = {}
        self.state.error = None

        try:
            image = ImagePayload.from_data_url(self.original)
            bubbles = await self.service.detect_bubbles(image)
        except MangaStudioError as exc:
            if token == self._token:
                self.state.error = str(exc)
                self._reset()
            return False
        except Exception:
            logger.exception("Bubble detection failed")
            if token == self._token:
                self.state.error = str(DetectionError())
                self._reset()
            return False

        if token != self._token:
            logger.debug("Discarding bubble detection for a cancelled session")
            return False
        self.bubbles = list(bubbles)
        self.texts = {bubble.id: bubble.text for bubble in self.bubbles}
        self.phase = EditPhase.EDITING
        return True

    def set_text(self, bubble_id: str, text: str) -> None:
        if self.phase is not EditPhase.EDITING:
            return
        if bubble_id not in self.texts:
            raise KeyError(bubble_id)
        self.texts[bubble_id] = text

    def edited_subset(self) -> List[EditedBubble]:
        return edited_subset(self.bubbles, self.texts)

    def layout(self, image_rect: ScreenRect) -> List[Tuple[Bubble, ScreenRect]]:
        return [(bubble, box_to_rect(bubble.box, image_rect)) for bubble in self.bubbles]

    async def save(self) -> bool:
        if self.phase is not EditPhase.EDITING or self.original is None:
            return False
        subset = self.edited_subset()
        if not subset:
            self._reset()
            return True

        token = self._token
        self.phase = EditPhase.SAVING
        self.state.error = None
        try:
            image = ImagePayload.from_data_url(self.original)
            new_image = await self.service.edit_text(image, subset)
        except MangaStudioError as exc:
            if token == self._token:
                self.state.error = str(exc)
                self.phase = EditPhase.EDITING
            return False
        except Exception as exc:
            logger.exception("Text edit failed")
            if token == self._token:
                self.state.error = str(exc) or EDIT_MESSAGES["unknown"]
                self.phase = EditPhase.EDITING
            return False

        if token != self._token:
            logger.debug("Discarding edited image for a cancelled session")
            return False
        self.state.result = new_image
        self._reset()
        if self.on_saved is not None:
            self.on_saved(new_image)
        return True

    def cancel(self) -> None:
        self._token += 1
        self._reset()
        self.state.error = None
