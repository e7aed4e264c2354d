from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pygame

from mangastudio.codec import ImagePayload
from mangastudio.intake import IMAGE_SUFFIXES

Color = Tuple[int, int, int]

FINGERDOWN = getattr(pygame, "FINGERDOWN", None)
FINGERMOTION = getattr(pygame, "FINGERMOTION", None)
FINGERUP = getattr(pygame, "FINGERUP", None)
FINGER_EVENTS = {event for event in (FINGERDOWN, FINGERMOTION, FINGERUP) if event is not None}

TEXT_COLOR: Color = (20, 20, 20)
MUTED_COLOR: Color = (120, 120, 120)
ACCENT_COLOR: Color = (200, 60, 60)
DISABLED_FILL: Color = (205, 205, 205)

_DATA_URL_CACHE: Dict[str, pygame.Surface] = {}
_DATA_URL_CACHE_LIMIT = 64


@dataclass
class Button:
    rect: pygame.Rect
    label: str = ""
    image: Optional[pygame.Surface] = None
    fill: Optional[Color] = (240, 240, 240)
    border_color: Optional[Color] = (30, 30, 30)
    border_width: int = 0
    enabled: bool = True
    selected: bool = False

    def draw(self, surface: pygame.Surface, font: Optional[pygame.font.Font] = None) -> None:
        fill = self.fill if self.enabled else DISABLED_FILL
        if fill is not None:
            pygame.draw.rect(surface, fill, self.rect, border_radius=10)
        if self.image is not None:
            image_rect = self.image.get_rect(center=self.rect.center)
            surface.blit(self.image, image_rect)
        if self.selected:
            pygame.draw.rect(surface, ACCENT_COLOR, self.rect, width=3, border_radius=10)
        elif self.border_color is not None and self.border_width > 0:
            pygame.draw.rect(
                surface,
                self.border_color,
                self.rect,
                width=self.border_width,
                border_radius=10,
            )
        if self.label and font is not None:
            color = TEXT_COLOR if self.enabled else MUTED_COLOR
            text = font.render(self.label, True, color)
            if self.image is not None:
                text_rect = text.get_rect(center=(self.rect.centerx, self.rect.bottom - 12))
            else:
                text_rect = text.get_rect(center=self.rect.center)
            surface.blit(text, text_rect)

    def hit(self, pos: Tuple[int, int]) -> bool:
        return self.enabled and self.rect.collidepoint(pos)


def create_window(size: Tuple[int, int], title: str = "Manga Studio") -> Tuple[pygame.Surface, pygame.Rect]:
    pygame.init()
    pygame.display.set_caption(title)
    screen = pygame.display.set_mode(size, pygame.RESIZABLE)
    pygame.mouse.set_visible(True)
    return screen, screen.get_rect()


def is_primary_pointer_event(event: pygame.event.Event, *, is_down: bool) -> bool:
    expected_type = pygame.MOUSEBUTTONDOWN if is_down else pygame.MOUSEBUTTONUP
    if event.type == expected_type:
        # Some touch stacks can emit emulated mouse events with button 0.
        button = getattr(event, "button", 1)
        if button in {0, 1}:
            return True
        return bool(getattr(event, "touch", False))
    finger_type = FINGERDOWN if is_down else FINGERUP
    return finger_type is not None and event.type == finger_type


def is_pointer_motion(event: pygame.event.Event) -> bool:
    return event.type == pygame.MOUSEMOTION or (FINGERMOTION is not None and event.type == FINGERMOTION)


def pointer_event_pos(event: pygame.event.Event, screen_rect: pygame.Rect) -> Optional[Tuple[int, int]]:
    if hasattr(event, "pos"):
        return event.pos
    if event.type in FINGER_EVENTS:
        return (
            int(event.x * screen_rect.width),
            int(event.y * screen_rect.height),
        )
    return None


def scale_to_fit(surface: pygame.Surface, size: Tuple[int, int]) -> pygame.Surface:
    target_w, target_h = size
    src_w, src_h = surface.get_size()
    scale = min(target_w / src_w, target_h / src_h)
    new_size = (max(1, int(src_w * scale)), max(1, int(src_h * scale)))
    return pygame.transform.smoothscale(surface, new_size)


def surface_from_data_url(url: str) -> pygame.Surface:
    cached = _DATA_URL_CACHE.get(url)
    if cached is not None:
        return cached
    payload = ImagePayload.from_data_url(url)
    surface = pygame.image.load(io.BytesIO(payload.data), "image" + _hint_suffix(payload.mime_type))
    if pygame.display.get_surface() is not None:
        surface = surface.convert_alpha()
    if len(_DATA_URL_CACHE) >= _DATA_URL_CACHE_LIMIT:
        _DATA_URL_CACHE.pop(next(iter(_DATA_URL_CACHE)))
    _DATA_URL_CACHE[url] = surface
    return surface


def _hint_suffix(mime_type: str) -> str:
    subtype = mime_type.split("/", 1)[-1].lower()
    return ".jpg" if subtype == "jpeg" else f".{subtype}"


def wrap_lines(font: pygame.font.Font, text: str, max_width: int, max_lines: int = 0) -> List[str]:
    lines: List[str] = []
    for paragraph in text.split("\n"):
        current = ""
        for word in paragraph.split(" "):
            candidate = word if not current else f"{current} {word}"
            if font.size(candidate)[0] <= max_width or not current:
                current = candidate
                continue
            lines.append(current)
            current = word
        lines.append(current)
    if max_lines and len(lines) > max_lines:
        lines = lines[:max_lines]
    return lines


def draw_text_block(
    surface: pygame.Surface,
    font: pygame.font.Font,
    text: str,
    rect: pygame.Rect,
    *,
    color: Color = TEXT_COLOR,
    center: bool = False,
) -> None:
    line_height = font.get_linesize()
    max_lines = max(1, rect.height // line_height)
    lines = wrap_lines(font, text, rect.width, max_lines)
    top = rect.top
    if center:
        top = rect.centery - (len(lines) * line_height) // 2
    for line in lines:
        rendered = font.render(line, True, color)
        line_rect = rendered.get_rect(top=top)
        if center:
            line_rect.centerx = rect.centerx
        else:
            line_rect.left = rect.left
        surface.blit(rendered, line_rect)
        top += line_height


class TextField:
    def __init__(self, rect: pygame.Rect, text: str = "", *, placeholder: str = "", multiline: bool = False) -> None:
        self.rect = rect
        self.text = text
        self.placeholder = placeholder
        self.multiline = multiline
        self.focused = False

    def handle_event(self, event: pygame.event.Event) -> bool:
        if not self.focused:
            return False
        if event.type == pygame.TEXTINPUT:
            if event.text and event.text.isprintable():
                self.text += event.text
                return True
            return False
        if event.type != pygame.KEYDOWN:
            return False
        if event.key == pygame.K_BACKSPACE:
            if self.text:
                self.text = self.text[:-1]
                return True
            return False
        if event.key in {pygame.K_RETURN, pygame.K_KP_ENTER} and self.multiline:
            self.text += "\n"
            return True
        return False

    def draw(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        pygame.draw.rect(surface, (255, 255, 255), self.rect, border_radius=6)
        border = ACCENT_COLOR if self.focused else (170, 170, 170)
        pygame.draw.rect(surface, border, self.rect, width=2, border_radius=6)
        inner = self.rect.inflate(-10, -8)
        if self.text:
            shown = self.text + ("|" if self.focused else "")
            draw_text_block(surface, font, shown, inner)
        elif self.focused:
            draw_text_block(surface, font, "|", inner)
        else:
            draw_text_block(surface, font, self.placeholder, inner, color=MUTED_COLOR)


def ask_image_paths(title: str = "Select images", *, multiple: bool = True) -> List[Path]:
    import tkinter as tk
    from tkinter import filedialog

    patterns = " ".join(f"*{suffix}" for suffix in sorted(IMAGE_SUFFIXES))
    root = tk.Tk()
    root.withdraw()
    try:
        if multiple:
            chosen: Sequence[str] = filedialog.askopenfilenames(
                title=title, filetypes=[("Images", patterns), ("All", "*.*")]
            )
        else:
            single = filedialog.askopenfilename(title=title, filetypes=[("Images", patterns), ("All", "*.*")])
            chosen = [single] if single else []
    finally:
        root.destroy()
    return [Path(path) for path in chosen if path]
