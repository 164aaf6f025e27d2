"""
Render styles for the audio visualizer.

Each style draws one frequency frame (byte values 0-255, one per bin) onto
a Canvas. Intensity in [0, 1] scales how far the shapes react to the signal.
"""

import math
from enum import Enum
from typing import Callable, Sequence

import numpy as np

from .canvas import Canvas, Point
from .colors import adjust_color

# Points sampled per quadratic segment of the waveform outline
CURVE_SEGMENTS = 8

PARTICLE_COUNT = 50

SYNTHETIC_FRAME_LENGTH = 128


class VisualizerStyle(str, Enum):
    WAVE = "wave"
    CIRCLE = "circle"
    PARTICLES = "particles"

    @classmethod
    def parse(cls, tag) -> "VisualizerStyle":
        """Resolve a style tag, falling back to WAVE for unknown tags."""
        try:
            return cls(tag)
        except ValueError:
            return cls.WAVE


def quadratic_curve(start: Point, control: Point, end: Point, segments: int = CURVE_SEGMENTS) -> list[Point]:
    """Sample a quadratic Bezier curve, excluding the start point."""
    points = []
    for step in range(1, segments + 1):
        t = step / segments
        u = 1 - t
        points.append(
            (
                u * u * start[0] + 2 * u * t * control[0] + t * t * end[0],
                u * u * start[1] + 2 * u * t * control[1] + t * t * end[1],
            )
        )
    return points


def waveform_outline(data: Sequence[float], width: float, height: float, intensity: float) -> list[Point]:
    """Smoothed top edge of the waveform, one quadratic segment per bin."""
    n = len(data)
    if n == 0:
        return []
    bar_width = width / n

    def point(i: int) -> Point:
        return (i * bar_width, height - (float(data[i]) / 255) * height * intensity)

    outline = [point(0)]
    for i in range(1, n):
        prev = point(i - 1)
        current = point(i)
        control = ((prev[0] + current[0]) / 2, prev[1])
        outline.extend(quadratic_curve(prev, control, current))
    return outline


def draw_waveform(canvas: Canvas, data: Sequence[float], color: str, intensity: float) -> None:
    """Filled frequency curve along the bottom edge."""
    width, height = canvas.width, canvas.height
    outline = waveform_outline(data, width, height, intensity)
    if not outline:
        return
    shape = outline + [(width, height), (0, height)]

    stops = [(0.0, color), (0.5, adjust_color(color, 20)), (1.0, adjust_color(color, -20))]
    canvas.fill_polygon_linear_gradient(shape, stops, 0, width, alpha=0.7)
    canvas.stroke_polyline(shape, adjust_color(color, 50), width=2, alpha=0.8, closed=True)


def draw_radial(canvas: Canvas, data: Sequence[float], color: str, intensity: float) -> None:
    """Dots on a ring pushed outwards by each bin, spoked to a glowing centre."""
    width, height = canvas.width, canvas.height
    cx, cy = width / 2, height / 2
    radius = min(width, height) / 4
    n = len(data)

    if n:
        angle_step = 2 * math.pi / n
        for i, raw in enumerate(data):
            value = float(raw) / 255
            dynamic_radius = radius + value * radius * intensity
            angle = i * angle_step
            x = cx + math.cos(angle) * dynamic_radius
            y = cy + math.sin(angle) * dynamic_radius

            canvas.fill_circle((x, y), 2 + value * 5 * intensity, adjust_color(color, value * 30))
            canvas.line(
                (cx, cy),
                (x, y),
                adjust_color(color, value * 20),
                width=1 + value * 2,
                alpha=0.3 + value * 0.3,
            )

    stops = [
        (0.0, adjust_color(color, 50)),
        (0.5, color),
        (1.0, "rgba(0, 0, 0, 0)"),
    ]
    canvas.fill_circle_radial_gradient(
        (cx, cy), radius * 0.3, stops, radius * 0.5, radius * 2, alpha=0.7
    )


def draw_particles(canvas: Canvas, data: Sequence[float], color: str, intensity: float) -> None:
    """A ring of particles that swells with the average level."""
    width, height = canvas.width, canvas.height
    cx, cy = width / 2, height / 2
    level = (float(np.mean(data)) / 255) if len(data) else 0.0

    distance = level * 100 * intensity + 50
    size = 2 + level * 8 * intensity
    link_color = adjust_color(color, -20)

    previous = None
    for i in range(PARTICLE_COUNT):
        angle = (i / PARTICLE_COUNT) * math.pi * 2
        point = (cx + math.cos(angle) * distance, cy + math.sin(angle) * distance)

        canvas.fill_circle(point, size, adjust_color(color, i % 30), alpha=0.5 + level * 0.5)
        if previous is not None:
            canvas.line(
                previous,
                point,
                link_color,
                width=1 + level * 2 * intensity,
                alpha=0.2 + level * 0.3,
            )
        previous = point


def draw_placeholder(canvas: Canvas, color: str, t: float) -> None:
    """Slow pulsing circle shown while nothing plays; t is seconds."""
    max_radius = min(canvas.width, canvas.height) / 6
    radius = max_radius * (0.8 + 0.2 * math.sin(t * 2))
    canvas.fill_circle(
        (canvas.width / 2, canvas.height / 2), radius, adjust_color(color, -30), alpha=0.2
    )


def synthetic_frame(rng: np.random.Generator, length: int = SYNTHETIC_FRAME_LENGTH) -> np.ndarray:
    """Stand-in frame when playback runs without a signal tap."""
    return rng.random(length) * 100


STYLE_RENDERERS: dict[VisualizerStyle, Callable[[Canvas, Sequence[float], str, float], None]] = {
    VisualizerStyle.WAVE: draw_waveform,
    VisualizerStyle.CIRCLE: draw_radial,
    VisualizerStyle.PARTICLES: draw_particles,
}
