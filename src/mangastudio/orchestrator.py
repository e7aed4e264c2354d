from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

from mangastudio.codec import ImagePayload, extension_for_mime
from mangastudio.errors import GENERATE_MESSAGES, CodecError, MangaStudioError, ValidationError
from mangastudio.history import HistoryStore
from mangastudio.models import HistoryItem
from mangastudio.presets import (
    MANGA_GENRES,
    MANGA_STYLES,
    REFERENCE_STYLE,
    REFERENCE_STYLE_PROMPT,
    is_known_genre,
    is_known_style,
)
from mangastudio.state import AppState, INPUT_UPLOAD

logger = logging.getLogger(__name__)

NO_IMAGES_ERROR = "Please upload at least one image."
NO_REFERENCE_ERROR = "Please upload a reference image for the style."


class PanelGenerator(Protocol):
    async def generate_panel(self, images: Sequence[ImagePayload], instruction: str) -> str: ...


def build_generation_prompt(style: str, genre: str, prompt: str) -> str:
    if style == REFERENCE_STYLE:
        style_prompt = REFERENCE_STYLE_PROMPT
    else:
        style_prompt = MANGA_STYLES[style].prompt
    genre_prompt = MANGA_GENRES[genre].prompt
    return (
        "Task: Generate a single manga panel.\n"
        f"Style Guideline: {style_prompt}\n"
        f"Genre Guideline: {genre_prompt}\n"
        f"User's additional instructions: {prompt or 'None'}.\n"
        "Please combine the uploaded images and these instructions to create a cohesive and visually "
        "appealing manga panel."
    )


class GenerationOrchestrator:
    def __init__(
        self,
        state: AppState,
        client: PanelGenerator,
        history: HistoryStore,
        *,
        on_history_selected: Optional[Callable[[HistoryItem], None]] = None,
    ) -> None:
        self.state = state
        self.client = client
        self.history = history
        self.on_history_selected = on_history_selected

    def validate(self) -> None:
        state = self.state
        if not is_known_style(state.style):
            raise ValidationError(f"Unknown style: {state.style}")
        if not is_known_genre(state.genre):
            raise ValidationError(f"Unknown genre: {state.genre}")
        if state.style == REFERENCE_STYLE:
            # The reference image alone is enough to drive a generation.
            if not state.reference.is_set:
                raise ValidationError(NO_REFERENCE_ERROR)
        elif state.gallery.is_empty and state.input_mode == INPUT_UPLOAD:
            raise ValidationError(NO_IMAGES_ERROR)

    @property
    def can_generate(self) -> bool:
        return not self.state.is_generating

    async def generate(self) -> bool:
        state = self.state
        if state.is_generating:
            return False
        try:
            self.validate()
        except ValidationError as exc:
            state.error = str(exc)
            return False

        state.is_generating = True
        state.error = None
        state.result = None
        style, genre, prompt = state.style, state.genre, state.prompt
        try:
            images: List[ImagePayload] = await state.gallery.payloads()
            reference_url: Optional[str] = None
            if style == REFERENCE_STYLE and state.reference.payload is not None:
                images.append(state.reference.payload)
                reference_url = state.reference.preview
            if not images:
                raise ValidationError(NO_IMAGES_ERROR)

            instruction = build_generation_prompt(style, genre, prompt)
            result = await self.client.generate_panel(images, instruction)
        except MangaStudioError as exc:
            state.error = str(exc)
            return False
        except Exception as exc:
            logger.exception("Manga generation failed")
            state.error = str(exc) or GENERATE_MESSAGES["unknown"]
            return False
        finally:
            state.is_generating = False

        state.result = result
        self.history.record(
            HistoryItem.create(
                image_url=result,
                style=style,
                genre=genre,
                prompt=prompt,
                reference_image_url=reference_url,
            )
        )
        return True

    async def regenerate(self) -> bool:
        return await self.generate()

    def record_edit(self, image_url: str) -> None:
        state = self.state
        reference_url = state.reference.preview if state.style == REFERENCE_STYLE else None
        self.history.record(
            HistoryItem.create(
                image_url=image_url,
                style=state.style,
                genre=state.genre,
                prompt=state.prompt,
                reference_image_url=reference_url,
            )
        )

    def select_history(self, item_id: str) -> Optional[HistoryItem]:
        item = self.history.select(item_id)
        if item is None:
            return None
        state = self.state
        state.result = item.image_url
        if is_known_style(item.style):
            state.style = item.style
        if is_known_genre(item.genre):
            state.genre = item.genre
        state.prompt = item.prompt
        state.error = None
        if item.style == REFERENCE_STYLE and item.reference_image_url:
            try:
                state.reference.set_payload(ImagePayload.from_data_url(item.reference_image_url))
            except CodecError as exc:
                logger.warning("Stored reference image is unreadable: %s", exc)
                state.reference.clear()
        state.gallery.clear()
        if self.on_history_selected is not None:
            self.on_history_selected(item)
        return item

    def delete_history(self, item_id: str) -> bool:
        return self.history.remove(item_id)

    def download(self, directory: Path) -> Optional[Path]:
        if not self.state.result:
            return None
        try:
            payload = ImagePayload.from_data_url(self.state.result)
        except CodecError as exc:
            self.state.error = str(exc)
            return None
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / f"manga-studio-{int(time.time() * 1000)}{extension_for_mime(payload.mime_type)}"
        try:
            target.write_bytes(payload.data)
        except OSError as exc:
            logger.error("Failed to save %s: %s", target, exc)
            self.state.error = f"Could not save the image: {exc}"
            return None
        logger.info("Saved result to %s", target)
        return target
