from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pygame

from mangastudio.codec import ImagePayload
from mangastudio.config import coerce_float, coerce_int
from mangastudio.paint.canvas import ERASER, PEN, Color, DrawingSurface
from mangastudio.ui.common import Button, is_pointer_motion, is_primary_pointer_event, pointer_event_pos

Point = Tuple[int, int]

ACTION_CANCEL = "cancel"
ACTION_SAVE = "save"


def save_payload_atomic(payload: ImagePayload, directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S_%f")
    path = directory / f"sketch-{timestamp}.png"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_bytes(payload.data)
    os.replace(tmp_path, path)
    return path


class DrawingPanel:
    def __init__(self, rect: pygame.Rect, config: Dict[str, Any], drawings_dir: Path) -> None:
        draw_cfg = config.get("draw", {})
        window_cfg = config.get("window", {})
        self.drawings_dir = drawings_dir
        self.pixel_ratio = coerce_float(window_cfg.get("pixel_ratio"), 1.0, minimum=0.1)
        self.palette: List[Color] = [tuple(color) for color in draw_cfg.get("palette", [])] or [(0, 0, 0)]
        self.size_values: List[int] = [coerce_int(size, 5, minimum=1) for size in draw_cfg.get("brush_sizes", [])]
        brush_size = coerce_int(draw_cfg.get("brush_size"), 5, minimum=1)
        if not self.size_values:
            self.size_values = [brush_size]
        self.background: Color = tuple(draw_cfg.get("background", (255, 255, 255)))

        self.font = pygame.font.SysFont("sans", 16)
        self.rect = rect
        self.canvas_rect = pygame.Rect(0, 0, 1, 1)
        self.surface = DrawingSurface(
            (1, 1),
            pixel_ratio=self.pixel_ratio,
            background=self.background,
            color=self.palette[0],
            brush_size=brush_size,
            eraser_scale=coerce_int(draw_cfg.get("eraser_scale"), 3, minimum=1),
        )
        self.tool_buttons: Dict[str, Button] = {}
        self.size_buttons: Dict[int, Button] = {}
        self.palette_buttons: List[Button] = []
        self.action_buttons: Dict[str, Button] = {}
        self.pointer_down = False
        self.layout(rect)

    def layout(self, rect: pygame.Rect) -> None:
        self.rect = rect
        gap = 8
        row_h = 34
        top = rect.top
        tool_w = (rect.width - gap) // 2
        self.tool_buttons = {
            PEN: Button(rect=pygame.Rect(rect.left, top, tool_w, row_h), label="Pen"),
            ERASER: Button(rect=pygame.Rect(rect.left + tool_w + gap, top, tool_w, row_h), label="Eraser"),
        }
        top += row_h + gap

        count = len(self.size_values)
        size_w = max(1, (rect.width - gap * (count - 1)) // count)
        self.size_buttons = {}
        for idx, size in enumerate(self.size_values):
            button_rect = pygame.Rect(rect.left + idx * (size_w + gap), top, size_w, row_h)
            self.size_buttons[size] = Button(rect=button_rect, label=str(size))
        top += row_h + gap

        swatch = max(16, min(row_h, (rect.width - gap * (len(self.palette) - 1)) // len(self.palette)))
        self.palette_buttons = [
            Button(rect=pygame.Rect(rect.left + idx * (swatch + gap), top, swatch, swatch), fill=color)
            for idx, color in enumerate(self.palette)
        ]
        top += swatch + gap

        bottom = rect.bottom - row_h
        action_w = (rect.width - 2 * gap) // 3
        self.action_buttons = {
            "clear": Button(rect=pygame.Rect(rect.left, bottom, action_w, row_h), label="Clear"),
            ACTION_CANCEL: Button(rect=pygame.Rect(rect.left + action_w + gap, bottom, action_w, row_h), label="Cancel"),
            ACTION_SAVE: Button(
                rect=pygame.Rect(rect.left + 2 * (action_w + gap), bottom, action_w, row_h),
                label="Add sketch",
                fill=(255, 214, 170),
            ),
        }

        self.canvas_rect = pygame.Rect(rect.left, top, rect.width, max(1, bottom - gap - top))
        self.surface.resize(self.canvas_rect.size, self.pixel_ratio)
        self.pointer_down = False

    def _local(self, pos: Point) -> Point:
        return (pos[0] - self.canvas_rect.left, pos[1] - self.canvas_rect.top)

    def _handle_pointer_down(self, pos: Point) -> Optional[str]:
        if self.canvas_rect.collidepoint(pos):
            self.surface.begin(self._local(pos))
            return None
        for tool, button in self.tool_buttons.items():
            if button.hit(pos):
                self.surface.set_tool(tool)
                return None
        for size, button in self.size_buttons.items():
            if button.hit(pos):
                self.surface.set_brush_size(size)
                return None
        for idx, button in enumerate(self.palette_buttons):
            if button.hit(pos):
                self.surface.set_color(self.palette[idx])
                self.surface.set_tool(PEN)
                return None
        if self.action_buttons["clear"].hit(pos):
            self.surface.clear()
            return None
        for action in (ACTION_CANCEL, ACTION_SAVE):
            if self.action_buttons[action].hit(pos):
                return action
        return None

    def handle_event(self, event: pygame.event.Event, screen_rect: pygame.Rect) -> Optional[str]:
        if is_primary_pointer_event(event, is_down=True):
            pos = pointer_event_pos(event, screen_rect)
            if pos is None:
                return None
            self.pointer_down = True
            return self._handle_pointer_down(pos)
        if is_pointer_motion(event):
            if event.type == pygame.MOUSEMOTION:
                if not (self.pointer_down or event.buttons[0]):
                    return None
            elif not self.pointer_down:
                return None
            pos = pointer_event_pos(event, screen_rect)
            if pos is not None and self.surface.is_drawing:
                self.surface.extend(self._local(pos))
            return None
        if is_primary_pointer_event(event, is_down=False):
            self.pointer_down = False
            self.surface.end()
        return None

    def save(self) -> Path:
        payload = self.surface.export()
        path = save_payload_atomic(payload, self.drawings_dir)
        self.surface.clear()
        return path

    def reset(self) -> None:
        self.pointer_down = False
        self.surface.clear()

    def draw(self, screen: pygame.Surface) -> None:
        for tool, button in self.tool_buttons.items():
            button.selected = tool == self.surface.tool
            button.draw(screen, self.font)
        for size, button in self.size_buttons.items():
            button.selected = size == self.surface.brush_size
            button.draw(screen, self.font)
        for idx, button in enumerate(self.palette_buttons):
            button.selected = self.palette[idx] == self.surface.color and self.surface.tool == PEN
            button.draw(screen)
        for button in self.action_buttons.values():
            button.draw(screen, self.font)
        screen.blit(self.surface.view(), self.canvas_rect.topleft)
        pygame.draw.rect(screen, (200, 200, 200), self.canvas_rect, width=2)
