from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Optional, Tuple

import pygame

from mangastudio.codec import ImagePayload

Color = Tuple[int, int, int]
Point = Tuple[float, float]

PEN = "pen"
ERASER = "eraser"
TOOLS = (PEN, ERASER)


@dataclass(frozen=True)
class StrokeStyle:
    tool: str
    color: Color
    width: int


def _scale_point(point: Point, ratio: float) -> Tuple[int, int]:
    return (int(round(point[0] * ratio)), int(round(point[1] * ratio)))


def _draw_segment(surface: pygame.Surface, style: StrokeStyle, start: Tuple[int, int], end: Tuple[int, int]) -> None:
    # Line plus round caps at both ends gives the look of a round-joined path.
    radius = max(1, style.width // 2)
    if start != end:
        pygame.draw.line(surface, style.color, start, end, max(1, style.width))
    pygame.draw.circle(surface, style.color, start, radius)
    pygame.draw.circle(surface, style.color, end, radius)


class DrawingSurface:
    def __init__(
        self,
        size: Tuple[int, int],
        *,
        pixel_ratio: float = 1.0,
        background: Color = (255, 255, 255),
        color: Color = (0, 0, 0),
        brush_size: int = 5,
        eraser_scale: int = 3,
    ) -> None:
        self.background = tuple(background)
        self.color = tuple(color)
        self.brush_size = max(1, int(brush_size))
        self.eraser_scale = max(1, int(eraser_scale))
        self.tool = PEN
        self.size = (0, 0)
        self.pixel_ratio = 1.0
        self.surface = pygame.Surface((1, 1))
        self._stroke: Optional[StrokeStyle] = None
        self._last: Optional[Tuple[int, int]] = None
        self.resize(size, pixel_ratio)

    @property
    def physical_size(self) -> Tuple[int, int]:
        return self.surface.get_size()

    @property
    def is_drawing(self) -> bool:
        return self._stroke is not None

    def set_tool(self, tool: str) -> None:
        if tool not in TOOLS:
            raise ValueError(f"Unknown drawing tool: {tool}")
        self.tool = tool

    def set_color(self, color: Color) -> None:
        self.color = tuple(color)

    def set_brush_size(self, size: int) -> None:
        self.brush_size = max(1, int(size))

    def current_style(self) -> StrokeStyle:
        width = self.brush_size * self.pixel_ratio
        if self.tool == ERASER:
            return StrokeStyle(tool=ERASER, color=self.background, width=max(1, int(round(width * self.eraser_scale))))
        return StrokeStyle(tool=PEN, color=self.color, width=max(1, int(round(width))))

    def begin(self, point: Point) -> None:
        self._stroke = self.current_style()
        self._last = _scale_point(point, self.pixel_ratio)
        _draw_segment(self.surface, self._stroke, self._last, self._last)

    def extend(self, point: Point) -> None:
        if self._stroke is None or self._last is None:
            return
        target = _scale_point(point, self.pixel_ratio)
        _draw_segment(self.surface, self._stroke, self._last, target)
        self._last = target

    def end(self) -> None:
        self._stroke = None
        self._last = None

    def clear(self) -> None:
        self.end()
        self.surface.fill(self.background)

    def resize(self, size: Tuple[int, int], pixel_ratio: Optional[float] = None) -> None:
        if pixel_ratio is not None:
            self.pixel_ratio = max(0.1, float(pixel_ratio))
        width = max(1, int(size[0]))
        height = max(1, int(size[1]))
        self.size = (width, height)
        physical = (max(1, int(round(width * self.pixel_ratio))), max(1, int(round(height * self.pixel_ratio))))
        self.surface = pygame.Surface(physical)
        self.clear()

    def export(self) -> ImagePayload:
        self.end()
        buffer = io.BytesIO()
        pygame.image.save(self.surface, buffer, "drawing.png")
        return ImagePayload(data=buffer.getvalue(), mime_type="image/png")

    def view(self) -> pygame.Surface:
        if self.surface.get_size() == self.size:
            return self.surface
        return pygame.transform.smoothscale(self.surface, self.size)
