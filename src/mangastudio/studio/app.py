from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Dict, List, Optional, Set, Tuple

import pygame

from mangastudio.bubbles import BubbleEditor, EditPhase, fit_image_rect
from mangastudio.config import coerce_int, get_api_key, load_config
from mangastudio.errors import CodecError, MangaStudioError
from mangastudio.gemini import GeminiClient, GeminiConfig
from mangastudio.history import HistoryStore
from mangastudio.intake import is_image
from mangastudio.logs import setup_logger
from mangastudio.models import HistoryItem
from mangastudio.orchestrator import GenerationOrchestrator
from mangastudio.paint.app import ACTION_CANCEL, ACTION_SAVE, DrawingPanel
from mangastudio.paths import ensure_directories, get_data_root
from mangastudio.presets import MANGA_GENRES, MANGA_STYLES, REFERENCE_STYLE
from mangastudio.state import INPUT_DRAW, INPUT_UPLOAD, AppState
from mangastudio.storage import JsonFileStorage
from mangastudio.ui.common import (
    ACCENT_COLOR,
    MUTED_COLOR,
    Button,
    TextField,
    ask_image_paths,
    create_window,
    draw_text_block,
    is_pointer_motion,
    is_primary_pointer_event,
    pointer_event_pos,
    scale_to_fit,
    surface_from_data_url,
)

logger = logging.getLogger(__name__)

Point = Tuple[int, int]

BACKGROUND = (252, 248, 240)
PANEL_BG = (238, 234, 226)
ERROR_BG = (255, 226, 226)
ERROR_FG = (150, 30, 30)

LEFT_WIDTH = 360
HISTORY_WIDTH = 190
MARGIN = 16
GAP = 8
ROW_H = 34
THUMB = 72
# Smallest on-screen edit box, for detected bubbles with little or no area.
MIN_FIELD_SIZE = (80, 30)


class StudioApp:
    def __init__(self, config: Dict[str, Any], dirs: Dict[str, Path]) -> None:
        self.config = config
        self.dirs = dirs
        window_cfg = config.get("window", {})
        width = coerce_int(window_cfg.get("width"), 1280, minimum=640)
        height = coerce_int(window_cfg.get("height"), 800, minimum=480)
        self.frame_delay = 1.0 / coerce_int(window_cfg.get("fps"), 60, minimum=1)

        self.screen, self.screen_rect = create_window((width, height))

        storage = JsonFileStorage(dirs["storage"], coerce_int(config.get("storage", {}).get("quota_bytes"), 5 * 1024 * 1024))
        self.history = HistoryStore(storage, limit=coerce_int(config.get("history", {}).get("limit"), 50, minimum=1))
        self.history.load()

        preview_size = coerce_int(config.get("intake", {}).get("preview_size"), 256, minimum=16)
        self.state = AppState.with_preview_size(preview_size)
        self.client = GeminiClient(GeminiConfig.from_config(config, get_api_key(config)))
        self.orchestrator = GenerationOrchestrator(
            self.state,
            self.client,
            self.history,
            on_history_selected=self._on_history_selected,
        )
        self.editor = BubbleEditor(self.state, self.client, on_saved=self.orchestrator.record_edit)

        self.font = pygame.font.SysFont("sans", 16)
        self.small_font = pygame.font.SysFont("sans", 13)
        self.title_font = pygame.font.SysFont("sans", 22, bold=True)

        self.status: Optional[str] = None
        self.history_scroll = 0
        self.bubble_fields: Dict[str, TextField] = {}
        self._fields_session = -1
        self._tasks: Set[asyncio.Task] = set()
        self._thumb_cache: Dict[Tuple[str, Tuple[int, int]], Optional[pygame.Surface]] = {}

        self.prompt_field = TextField(
            pygame.Rect(0, 0, 1, 1),
            placeholder="Additional instructions (optional)",
            multiline=True,
        )
        self.drawing_panel = DrawingPanel(pygame.Rect(0, 0, 200, 200), config, dirs["drawings"])
        self._build_layout()

    # ----- layout -----

    def _build_layout(self) -> None:
        screen = self.screen_rect
        self.left_rect = pygame.Rect(MARGIN, MARGIN, LEFT_WIDTH, screen.height - 2 * MARGIN)
        self.history_rect = pygame.Rect(
            screen.right - MARGIN - HISTORY_WIDTH, MARGIN, HISTORY_WIDTH, screen.height - 2 * MARGIN
        )
        center_left = self.left_rect.right + MARGIN
        self.center_rect = pygame.Rect(
            center_left,
            MARGIN,
            max(1, self.history_rect.left - MARGIN - center_left),
            screen.height - 2 * MARGIN,
        )

        inner = self.left_rect.inflate(-2 * GAP, -2 * GAP)
        left, width = inner.left, inner.width
        half = (width - GAP) // 2
        top = inner.top
        self.mode_buttons = {
            INPUT_UPLOAD: Button(rect=pygame.Rect(left, top, half, ROW_H), label="Upload"),
            INPUT_DRAW: Button(rect=pygame.Rect(left + half + GAP, top, half, ROW_H), label="Draw"),
        }
        top += ROW_H + GAP

        # Fixed-height controls are stacked from the bottom up; the gallery
        # (or sketch pad) gets whatever is left in between.
        bottom = inner.bottom
        self.generate_button = Button(
            rect=pygame.Rect(left, bottom - 44, width, 44), label="Generate", fill=(255, 190, 120)
        )
        bottom -= 44 + GAP
        self.prompt_field.rect = pygame.Rect(left, bottom - 70, width, 70)
        bottom -= 70 + GAP

        genre_cols = 4
        genre_rows = (len(MANGA_GENRES) + genre_cols - 1) // genre_cols
        genre_top = bottom - genre_rows * ROW_H - (genre_rows - 1) * GAP
        self.genre_buttons = self._grid(list(MANGA_GENRES), genre_cols, left, genre_top, width)
        for key, button in self.genre_buttons.items():
            button.label = MANGA_GENRES[key].name
        bottom = genre_top - GAP

        self.reference_rect = pygame.Rect(left, bottom - 64, width, 64)
        bottom -= 64 + GAP

        style_keys = list(MANGA_STYLES) + [REFERENCE_STYLE]
        style_cols = 3
        style_rows = (len(style_keys) + style_cols - 1) // style_cols
        style_top = bottom - style_rows * ROW_H - (style_rows - 1) * GAP
        self.style_buttons = self._grid(style_keys, style_cols, left, style_top, width)
        for key, button in self.style_buttons.items():
            button.label = "Reference" if key == REFERENCE_STYLE else MANGA_STYLES[key].name
        bottom = style_top - GAP

        self.add_button = Button(rect=pygame.Rect(left, bottom - ROW_H, width, ROW_H), label="Add images")
        bottom -= ROW_H + GAP
        self.gallery_rect = pygame.Rect(left, top, width, max(1, bottom - top))
        self.drawing_panel.layout(pygame.Rect(left, top, width, max(1, bottom + ROW_H + GAP - top)))

        actions_top = self.center_rect.bottom - ROW_H
        action_w = 130
        self.action_buttons = {
            "download": Button(rect=pygame.Rect(self.center_rect.left, actions_top, action_w, ROW_H), label="Download"),
            "regenerate": Button(
                rect=pygame.Rect(self.center_rect.left + action_w + GAP, actions_top, action_w, ROW_H),
                label="Regenerate",
            ),
            "edit": Button(
                rect=pygame.Rect(self.center_rect.left + 2 * (action_w + GAP), actions_top, action_w, ROW_H),
                label="Edit text",
            ),
        }
        self.edit_buttons = {
            "save": Button(
                rect=pygame.Rect(self.center_rect.left, actions_top, action_w, ROW_H), label="Save", fill=(190, 230, 190)
            ),
            "cancel": Button(rect=pygame.Rect(self.center_rect.left + action_w + GAP, actions_top, action_w, ROW_H), label="Cancel"),
        }
        self.error_rect = pygame.Rect(self.center_rect.left, self.center_rect.top + 40, self.center_rect.width, 48)
        self.display_rect = pygame.Rect(
            self.center_rect.left,
            self.center_rect.top + 40,
            self.center_rect.width,
            max(1, actions_top - GAP - self.center_rect.top - 40),
        )

    @staticmethod
    def _grid(keys: List[str], cols: int, left: int, top: int, width: int) -> Dict[str, Button]:
        cell_w = (width - GAP * (cols - 1)) // cols
        buttons = {}
        for idx, key in enumerate(keys):
            row, col = divmod(idx, cols)
            rect = pygame.Rect(left + col * (cell_w + GAP), top + row * (ROW_H + GAP), cell_w, ROW_H)
            buttons[key] = Button(rect=rect)
        return buttons

    def _on_resize(self) -> None:
        surface = pygame.display.get_surface()
        if surface is None:
            return
        self.screen = surface
        self.screen_rect = surface.get_rect()
        self._build_layout()

    # ----- tasks -----

    def _spawn(self, coro: Awaitable[Any], name: str) -> None:
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        if isinstance(exc, MangaStudioError):
            self.state.error = str(exc)
            return
        logger.error("Task %s failed", task.get_name(), exc_info=exc)
        self.state.error = str(exc) or "An unknown error occurred."

    async def _add_files(self, paths: List[Path]) -> None:
        self.state.clear_error()
        await self.state.gallery.add(paths)

    async def _set_reference(self, path: Path) -> None:
        self.state.clear_error()
        await self.state.reference.set(path)

    # ----- actions -----

    def _on_history_selected(self, item: HistoryItem) -> None:
        self.editor.cancel()
        self.bubble_fields = {}
        self.prompt_field.text = item.prompt
        self.state.input_mode = INPUT_UPLOAD

    def _open_picker(self) -> None:
        paths = [path for path in ask_image_paths("Select images") if is_image(path)]
        if paths:
            self._spawn(self._add_files(paths), "add-images")

    def _open_reference_picker(self) -> None:
        paths = ask_image_paths("Select a style reference", multiple=False)
        if paths:
            self._spawn(self._set_reference(paths[0]), "set-reference")

    def _handle_dropped(self, paths: List[Path]) -> None:
        images = [path for path in paths if is_image(path)]
        skipped = len(paths) - len(images)
        if skipped:
            logger.warning("Ignored %d dropped file(s) that are not images", skipped)
        if not images:
            return
        self.state.input_mode = INPUT_UPLOAD
        self._spawn(self._add_files(images), "drop-images")

    def _generate(self) -> None:
        if self.state.is_generating or self.editor.is_active:
            return
        self.status = None
        self._spawn(self.orchestrator.generate(), "generate")

    def _download(self) -> None:
        target = self.orchestrator.download(self.dirs["downloads"])
        if target is not None:
            self.status = f"Saved to {target}"

    def _save_sketch(self) -> None:
        try:
            path = self.drawing_panel.save()
        except (OSError, pygame.error) as exc:
            logger.error("Failed to save sketch: %s", exc)
            self.state.error = f"Could not save the drawing: {exc}"
            return
        self.state.input_mode = INPUT_UPLOAD
        self._spawn(self._add_files([path]), "add-sketch")

    def _save_edits(self) -> None:
        self._spawn(self.editor.save(), "save-edits")

    def _cancel_edits(self) -> None:
        self.editor.cancel()
        self.bubble_fields = {}

    # ----- input -----

    def _focus(self, field: Optional[TextField]) -> None:
        self.prompt_field.focused = field is self.prompt_field
        for bubble_field in self.bubble_fields.values():
            bubble_field.focused = bubble_field is field

    def _focused_field(self) -> Optional[TextField]:
        if self.prompt_field.focused:
            return self.prompt_field
        for field in self.bubble_fields.values():
            if field.focused:
                return field
        return None

    def _handle_text_event(self, event: pygame.event.Event) -> None:
        field = self._focused_field()
        if field is None or not field.handle_event(event):
            return
        if field is self.prompt_field:
            self.state.prompt = field.text
            return
        for bubble_id, bubble_field in self.bubble_fields.items():
            if bubble_field is field:
                self.editor.set_text(bubble_id, field.text)

    def _busy(self) -> bool:
        return self.state.is_generating or self.editor.is_busy

    def _handle_click(self, pos: Point) -> None:
        if self.state.error and self.error_rect.collidepoint(pos):
            self.state.clear_error()
            return

        if self.editor.phase is EditPhase.EDITING:
            for field in self.bubble_fields.values():
                if field.rect.collidepoint(pos):
                    self._focus(field)
                    return
            if self.edit_buttons["save"].hit(pos):
                self._save_edits()
                return
            if self.edit_buttons["cancel"].hit(pos):
                self._cancel_edits()
                return

        if self.prompt_field.rect.collidepoint(pos):
            self._focus(self.prompt_field)
            return
        self._focus(None)

        for mode, button in self.mode_buttons.items():
            if button.hit(pos):
                if mode != self.state.input_mode:
                    self.state.input_mode = mode
                    self.drawing_panel.reset()
                return

        if self.state.input_mode == INPUT_UPLOAD:
            if self.add_button.hit(pos):
                self._open_picker()
                return
            for index, (_, remove_rect) in enumerate(self._gallery_rects()):
                if remove_rect.collidepoint(pos):
                    self.state.gallery.remove(index)
                    return

        for key, button in self.style_buttons.items():
            if button.hit(pos):
                self.state.style = key
                return
        if self.state.style == REFERENCE_STYLE and self.reference_rect.collidepoint(pos):
            self._open_reference_picker()
            return
        for key, button in self.genre_buttons.items():
            if button.hit(pos):
                self.state.genre = key
                return

        if self.generate_button.hit(pos) and not self._busy():
            self._generate()
            return

        if self.state.result and not self._busy() and not self.editor.is_active:
            if self.action_buttons["download"].hit(pos):
                self._download()
                return
            if self.action_buttons["regenerate"].hit(pos):
                self._generate()
                return
            if self.action_buttons["edit"].hit(pos):
                self.status = None
                self._spawn(self.editor.enter(), "detect-bubbles")
                return

        if self.history_rect.collidepoint(pos) and not self._busy():
            for item, rect, delete_rect in self._history_rects():
                if delete_rect.collidepoint(pos):
                    self.orchestrator.delete_history(item.id)
                    return
                if rect.collidepoint(pos):
                    self.orchestrator.select_history(item.id)
                    return

    def _route_to_panel(self, event: pygame.event.Event) -> bool:
        if self.state.input_mode != INPUT_DRAW:
            return False
        panel = self.drawing_panel
        if is_primary_pointer_event(event, is_down=True):
            pos = pointer_event_pos(event, self.screen_rect)
            if pos is None or not panel.rect.collidepoint(pos):
                return False
        elif is_pointer_motion(event) or is_primary_pointer_event(event, is_down=False):
            if not panel.pointer_down:
                return False
        else:
            return False
        action = panel.handle_event(event, self.screen_rect)
        if action == ACTION_SAVE:
            self._save_sketch()
        elif action == ACTION_CANCEL:
            panel.reset()
            self.state.input_mode = INPUT_UPLOAD
        return True

    # ----- geometry -----

    def _gallery_rects(self) -> List[Tuple[pygame.Rect, pygame.Rect]]:
        rects = []
        cols = max(1, (self.gallery_rect.width + GAP) // (THUMB + GAP))
        for index in range(len(self.state.gallery)):
            row, col = divmod(index, cols)
            rect = pygame.Rect(
                self.gallery_rect.left + col * (THUMB + GAP),
                self.gallery_rect.top + 20 + row * (THUMB + GAP),
                THUMB,
                THUMB,
            )
            if rect.bottom > self.gallery_rect.bottom:
                break
            remove_rect = pygame.Rect(rect.right - 18, rect.top, 18, 18)
            rects.append((rect, remove_rect))
        return rects

    def _history_rects(self) -> List[Tuple[HistoryItem, pygame.Rect, pygame.Rect]]:
        size = self.history_rect.width - 2 * GAP
        top = self.history_rect.top + 36 - self.history_scroll
        rects = []
        for item in self.history.items:
            rect = pygame.Rect(self.history_rect.left + GAP, top, size, size)
            top += size + GAP
            if rect.bottom < self.history_rect.top + 36 or rect.top > self.history_rect.bottom:
                continue
            rects.append((item, rect, pygame.Rect(rect.right - 22, rect.top, 22, 22)))
        return rects

    def _scroll_history(self, delta: int) -> None:
        size = self.history_rect.width - 2 * GAP
        content = len(self.history) * (size + GAP)
        max_scroll = max(0, content - (self.history_rect.height - 36))
        self.history_scroll = max(0, min(max_scroll, self.history_scroll - delta * 40))

    def _thumbnail(self, url: str, size: Tuple[int, int]) -> Optional[pygame.Surface]:
        key = (url, size)
        if key not in self._thumb_cache:
            try:
                self._thumb_cache[key] = scale_to_fit(surface_from_data_url(url), size)
            except (CodecError, pygame.error) as exc:
                logger.warning("Could not decode image for display: %s", exc)
                self._thumb_cache[key] = None
            if len(self._thumb_cache) > 256:
                self._thumb_cache.pop(next(iter(self._thumb_cache)))
        return self._thumb_cache[key]

    def _result_rect(self) -> Optional[pygame.Rect]:
        if not self.state.result:
            return None
        try:
            image = surface_from_data_url(self.state.result)
        except (CodecError, pygame.error):
            return None
        left, top, width, height = fit_image_rect(image.get_size(), tuple(self.display_rect))
        return pygame.Rect(int(left), int(top), max(1, int(width)), max(1, int(height)))

    def _sync_bubble_fields(self, image_rect: pygame.Rect) -> None:
        if self.editor.phase not in {EditPhase.EDITING, EditPhase.SAVING}:
            self.bubble_fields = {}
            return
        if self._fields_session != self.editor.session:
            self._fields_session = self.editor.session
            self.bubble_fields = {
                bubble_id: TextField(pygame.Rect(0, 0, 1, 1), text) for bubble_id, text in self.editor.texts.items()
            }
        # Positions are recomputed from the normalized boxes every frame.
        for bubble, (left, top, width, height) in self.editor.layout(tuple(image_rect)):
            rect = pygame.Rect(int(left), int(top), max(MIN_FIELD_SIZE[0], int(width)), max(MIN_FIELD_SIZE[1], int(height)))
            self.bubble_fields[bubble.id].rect = rect

    # ----- drawing -----

    def _render_left(self) -> None:
        state = self.state
        pygame.draw.rect(self.screen, PANEL_BG, self.left_rect, border_radius=12)
        for mode, button in self.mode_buttons.items():
            button.selected = mode == state.input_mode
            button.draw(self.screen, self.font)

        if state.input_mode == INPUT_DRAW:
            self.drawing_panel.draw(self.screen)
        else:
            label = f"{len(state.gallery)} image(s)" if len(state.gallery) else "Drop images here or use Add images"
            self.screen.blit(self.small_font.render(label, True, MUTED_COLOR), self.gallery_rect.topleft)
            for index, (rect, remove_rect) in enumerate(self._gallery_rects()):
                preview = state.gallery.previews[index]
                thumb = self._thumbnail(preview, rect.size) if preview else None
                pygame.draw.rect(self.screen, (225, 225, 225), rect, border_radius=6)
                if thumb is not None:
                    self.screen.blit(thumb, thumb.get_rect(center=rect.center))
                else:
                    draw_text_block(self.screen, self.small_font, "...", rect, center=True)
                pygame.draw.rect(self.screen, (60, 60, 60), remove_rect, border_radius=4)
                draw_text_block(self.screen, self.small_font, "x", remove_rect, color=(255, 255, 255), center=True)
            self.add_button.draw(self.screen, self.font)

        for key, button in self.style_buttons.items():
            button.selected = key == state.style
            button.draw(self.screen, self.small_font)

        if state.style == REFERENCE_STYLE:
            pygame.draw.rect(self.screen, (248, 248, 248), self.reference_rect, border_radius=8)
            preview = state.reference.preview
            thumb = self._thumbnail(preview, (56, 56)) if preview else None
            text_rect = self.reference_rect.inflate(-16, -8)
            if thumb is not None:
                self.screen.blit(thumb, (self.reference_rect.left + 4, self.reference_rect.top + 4))
                text_rect.left += 60
                text_rect.width -= 60
                draw_text_block(self.screen, self.small_font, "Style reference (click to change)", text_rect)
            else:
                draw_text_block(self.screen, self.small_font, "Click to choose a style reference image", text_rect)
        else:
            preset = MANGA_STYLES.get(state.style)
            if preset is not None:
                draw_text_block(
                    self.screen, self.small_font, preset.description, self.reference_rect, color=MUTED_COLOR
                )

        for key, button in self.genre_buttons.items():
            button.selected = key == state.genre
            button.draw(self.screen, self.small_font)

        self.prompt_field.draw(self.screen, self.small_font)
        self.generate_button.enabled = not self._busy() and not self.editor.is_active
        self.generate_button.label = "Generating..." if state.is_generating else "Generate"
        self.generate_button.draw(self.screen, self.font)

    def _render_center(self) -> None:
        state = self.state
        title = self.title_font.render("Manga Studio", True, (30, 30, 30))
        self.screen.blit(title, (self.center_rect.left, self.center_rect.top))

        image_rect = self._result_rect()
        if state.is_generating:
            draw_text_block(self.screen, self.font, "Generating your manga panel...", self.display_rect, center=True)
        elif image_rect is not None:
            image = self._thumbnail(state.result, image_rect.size)
            if image is not None:
                self.screen.blit(image, image.get_rect(center=image_rect.center))
            self._render_bubbles(image_rect)
        elif not state.error:
            draw_text_block(
                self.screen,
                self.font,
                "Your generated manga panel will appear here.",
                self.display_rect,
                color=MUTED_COLOR,
                center=True,
            )

        if self.editor.phase is EditPhase.DETECTING:
            draw_text_block(self.screen, self.font, "Detecting text bubbles...", self.display_rect, center=True)
        elif self.editor.phase is EditPhase.SAVING:
            draw_text_block(self.screen, self.font, "Applying text edits...", self.display_rect, center=True)

        if self.editor.phase is EditPhase.EDITING:
            for button in self.edit_buttons.values():
                button.draw(self.screen, self.font)
        elif state.result and not state.is_generating:
            available = not self._busy() and not self.editor.is_active
            for button in self.action_buttons.values():
                button.enabled = available
                button.draw(self.screen, self.font)

        if self.status and not state.error:
            status_rect = pygame.Rect(
                self.action_buttons["edit"].rect.right + GAP,
                self.action_buttons["edit"].rect.top,
                max(1, self.center_rect.right - self.action_buttons["edit"].rect.right - GAP),
                ROW_H,
            )
            draw_text_block(self.screen, self.small_font, self.status, status_rect, color=MUTED_COLOR)

        if state.error:
            pygame.draw.rect(self.screen, ERROR_BG, self.error_rect, border_radius=8)
            draw_text_block(self.screen, self.small_font, state.error, self.error_rect.inflate(-16, -8), color=ERROR_FG)

    def _render_bubbles(self, image_rect: pygame.Rect) -> None:
        self._sync_bubble_fields(image_rect)
        for field in self.bubble_fields.values():
            field.draw(self.screen, self.small_font)
            pygame.draw.rect(self.screen, ACCENT_COLOR, field.rect, width=1, border_radius=6)

    def _render_history(self) -> None:
        pygame.draw.rect(self.screen, PANEL_BG, self.history_rect, border_radius=12)
        header = self.font.render("History", True, (30, 30, 30))
        self.screen.blit(header, (self.history_rect.left + GAP, self.history_rect.top + GAP))
        clip = self.screen.get_clip()
        self.screen.set_clip(pygame.Rect(self.history_rect.left, self.history_rect.top + 36, self.history_rect.width, self.history_rect.height - 36))
        for item, rect, delete_rect in self._history_rects():
            pygame.draw.rect(self.screen, (225, 225, 225), rect, border_radius=6)
            thumb = self._thumbnail(item.image_url, rect.size)
            if thumb is not None:
                self.screen.blit(thumb, thumb.get_rect(center=rect.center))
            if item.image_url == self.state.result:
                pygame.draw.rect(self.screen, ACCENT_COLOR, rect, width=3, border_radius=6)
            pygame.draw.rect(self.screen, (60, 60, 60), delete_rect, border_radius=4)
            draw_text_block(self.screen, self.small_font, "x", delete_rect, color=(255, 255, 255), center=True)
        self.screen.set_clip(clip)
        if not len(self.history):
            draw_text_block(
                self.screen,
                self.small_font,
                "No panels yet.",
                self.history_rect.inflate(-2 * GAP, -80),
                color=MUTED_COLOR,
                center=True,
            )

    def _render(self) -> None:
        self.screen.fill(BACKGROUND)
        self._render_left()
        self._render_center()
        self._render_history()

    # ----- loop -----

    async def run(self) -> None:
        pygame.key.start_text_input()
        running = True
        while running:
            dropped: List[Path] = []
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                    continue
                if event.type == pygame.VIDEORESIZE:
                    self._on_resize()
                elif event.type == pygame.DROPFILE:
                    dropped.append(Path(event.file))
                elif event.type == pygame.MOUSEWHEEL:
                    if self.history_rect.collidepoint(pygame.mouse.get_pos()):
                        self._scroll_history(event.y)
                elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                    if self.editor.phase in {EditPhase.DETECTING, EditPhase.EDITING}:
                        self._cancel_edits()
                    else:
                        self._focus(None)
                elif event.type in {pygame.TEXTINPUT, pygame.KEYDOWN}:
                    self._handle_text_event(event)
                elif self._route_to_panel(event):
                    continue
                elif is_primary_pointer_event(event, is_down=True):
                    pos = pointer_event_pos(event, self.screen_rect)
                    if pos is not None:
                        self._handle_click(pos)

            # A multi-file drop arrives as one DROPFILE per file in the same frame.
            if dropped:
                self._handle_dropped(dropped)

            self._render()
            pygame.display.flip()
            await asyncio.sleep(self.frame_delay)

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


def main() -> None:
    config = load_config()
    dirs = ensure_directories(get_data_root(config))
    log_cfg = config.get("logging", {})
    setup_logger(log_cfg.get("level", "INFO"), dirs["logs"] if log_cfg.get("to_file", True) else None)
    logger.info("Data directory: %s", get_data_root(config))
    try:
        asyncio.run(StudioApp(config, dirs).run())
    except Exception:
        logger.exception("Manga Studio stopped on an unexpected error")
    finally:
        pygame.quit()


if __name__ == "__main__":
    main()
