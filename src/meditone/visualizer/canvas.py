"""
2D drawing surface for the visualizer.

Canvas is the small drawing vocabulary the styles use. PygameCanvas
implements it on a pygame Surface, drawing each translucent primitive on
its own SRCALPHA layer sized to the primitive's bounding box and blending
that onto the target.
"""

from typing import Optional, Protocol, Sequence

import numpy as np
import pygame

from .colors import RGBA, to_rgba

Point = tuple[float, float]
GradientStops = Sequence[tuple[float, str]]


class Canvas(Protocol):
    """Drawing capability consumed by the render styles."""

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def resize(self, width: int, height: int) -> None: ...

    def clear(self) -> None: ...

    def fill_circle(
        self, center: Point, radius: float, color: str, alpha: float = 1.0
    ) -> None: ...

    def fill_circle_radial_gradient(
        self,
        center: Point,
        radius: float,
        stops: GradientStops,
        inner_radius: float,
        outer_radius: float,
        alpha: float = 1.0,
    ) -> None: ...

    def fill_polygon_linear_gradient(
        self,
        points: Sequence[Point],
        stops: GradientStops,
        x_start: float,
        x_end: float,
        alpha: float = 1.0,
    ) -> None: ...

    def stroke_polyline(
        self,
        points: Sequence[Point],
        color: str,
        width: float = 1.0,
        alpha: float = 1.0,
        closed: bool = False,
    ) -> None: ...

    def line(
        self, start: Point, end: Point, color: str, width: float = 1.0, alpha: float = 1.0
    ) -> None: ...


def gradient_color(stops: Sequence[tuple[float, RGBA]], t: float) -> tuple[float, float, float, float]:
    """Interpolate RGBA (alpha 0-1) at position t along sorted gradient stops."""
    if t <= stops[0][0]:
        c = stops[0][1]
        return (c.r, c.g, c.b, c.a)
    for (t0, c0), (t1, c1) in zip(stops, stops[1:]):
        if t <= t1:
            span = t1 - t0
            f = 0.0 if span <= 0 else (t - t0) / span
            return (
                c0.r + (c1.r - c0.r) * f,
                c0.g + (c1.g - c0.g) * f,
                c0.b + (c1.b - c0.b) * f,
                c0.a + (c1.a - c0.a) * f,
            )
    c = stops[-1][1]
    return (c.r, c.g, c.b, c.a)


def _parse_stops(stops: GradientStops) -> list[tuple[float, RGBA]]:
    return sorted(((offset, to_rgba(color)) for offset, color in stops), key=lambda s: s[0])


def _rgba255(color: RGBA, alpha: float) -> tuple[int, int, int, int]:
    a = int(max(0.0, min(1.0, color.a * alpha)) * 255)
    return (color.r, color.g, color.b, a)


class PygameCanvas:
    """Canvas backed by a pygame Surface (the window or an off-screen surface)."""

    def __init__(
        self,
        surface: pygame.Surface,
        background: tuple[int, int, int] = (15, 23, 42),
    ):
        self.surface = surface
        self.background = background

    @property
    def width(self) -> int:
        return self.surface.get_width()

    @property
    def height(self) -> int:
        return self.surface.get_height()

    def resize(self, width: int, height: int) -> None:
        """Match the pixel surface to new dimensions."""
        width, height = max(1, int(width)), max(1, int(height))
        if (width, height) == self.surface.get_size():
            return
        if self.surface is pygame.display.get_surface():
            self.surface = pygame.display.set_mode((width, height), pygame.RESIZABLE)
        else:
            self.surface = pygame.Surface((width, height), self.surface.get_flags() & pygame.SRCALPHA)

    def clear(self) -> None:
        self.surface.fill(self.background)

    # Layers ----------------------------------------------------------------

    def _layer_rect(self, xs: Sequence[float], ys: Sequence[float], pad: float) -> Optional[pygame.Rect]:
        left = int(np.floor(min(xs) - pad))
        top = int(np.floor(min(ys) - pad))
        right = int(np.ceil(max(xs) + pad))
        bottom = int(np.ceil(max(ys) + pad))
        rect = pygame.Rect(left, top, max(1, right - left), max(1, bottom - top))
        rect = rect.clip(self.surface.get_rect())
        if rect.width <= 0 or rect.height <= 0:
            return None
        return rect

    def _new_layer(self, rect: pygame.Rect) -> pygame.Surface:
        return pygame.Surface(rect.size, pygame.SRCALPHA)

    # Primitives ------------------------------------------------------------

    def fill_circle(self, center: Point, radius: float, color: str, alpha: float = 1.0) -> None:
        if radius <= 0:
            return
        cx, cy = center
        rect = self._layer_rect([cx], [cy], radius + 1)
        if rect is None:
            return
        layer = self._new_layer(rect)
        pygame.draw.circle(
            layer,
            _rgba255(to_rgba(color), alpha),
            (cx - rect.x, cy - rect.y),
            max(1, round(radius)),
        )
        self.surface.blit(layer, rect.topleft)

    def fill_circle_radial_gradient(
        self,
        center: Point,
        radius: float,
        stops: GradientStops,
        inner_radius: float,
        outer_radius: float,
        alpha: float = 1.0,
    ) -> None:
        if radius <= 0:
            return
        cx, cy = center
        rect = self._layer_rect([cx], [cy], radius + 1)
        if rect is None:
            return
        layer = self._new_layer(rect)
        parsed = _parse_stops(stops)
        span = max(1e-6, outer_radius - inner_radius)
        local = (cx - rect.x, cy - rect.y)

        # Concentric rings from the edge inwards, each overwriting the last
        step = max(1.0, radius / 48)
        r = radius
        while r > 0:
            t = max(0.0, min(1.0, (r - inner_radius) / span))
            red, green, blue, a = gradient_color(parsed, t)
            pygame.draw.circle(
                layer,
                (int(red), int(green), int(blue), int(max(0.0, min(1.0, a * alpha)) * 255)),
                local,
                max(1, round(r)),
            )
            r -= step
        self.surface.blit(layer, rect.topleft)

    def fill_polygon_linear_gradient(
        self,
        points: Sequence[Point],
        stops: GradientStops,
        x_start: float,
        x_end: float,
        alpha: float = 1.0,
    ) -> None:
        if len(points) < 3:
            return
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        rect = self._layer_rect(xs, ys, 1)
        if rect is None:
            return

        local_points = [(x - rect.x, y - rect.y) for x, y in points]
        mask = self._new_layer(rect)
        pygame.draw.polygon(mask, (255, 255, 255, 255), local_points)
        coverage = pygame.surfarray.array_alpha(mask).astype(np.float32) / 255.0

        parsed = _parse_stops(stops)
        span = max(1e-6, x_end - x_start)
        columns = np.array(
            [
                gradient_color(parsed, (rect.x + col - x_start) / span)
                for col in range(rect.width)
            ],
            dtype=np.float32,
        )

        layer = self._new_layer(rect)
        rgb = pygame.surfarray.pixels3d(layer)
        rgb[:] = columns[:, None, :3].astype(np.uint8)
        del rgb
        layer_alpha = pygame.surfarray.pixels_alpha(layer)
        layer_alpha[:] = (
            np.clip(columns[:, None, 3] * alpha, 0.0, 1.0) * coverage * 255
        ).astype(np.uint8)
        del layer_alpha
        self.surface.blit(layer, rect.topleft)

    def stroke_polyline(
        self,
        points: Sequence[Point],
        color: str,
        width: float = 1.0,
        alpha: float = 1.0,
        closed: bool = False,
    ) -> None:
        if len(points) < 2:
            return
        pixels = max(1, round(width))
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        rect = self._layer_rect(xs, ys, pixels + 1)
        if rect is None:
            return
        layer = self._new_layer(rect)
        pygame.draw.lines(
            layer,
            _rgba255(to_rgba(color), alpha),
            closed,
            [(x - rect.x, y - rect.y) for x, y in points],
            pixels,
        )
        self.surface.blit(layer, rect.topleft)

    def line(
        self, start: Point, end: Point, color: str, width: float = 1.0, alpha: float = 1.0
    ) -> None:
        self.stroke_polyline([start, end], color, width=width, alpha=alpha)
