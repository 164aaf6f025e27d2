"""Visualizer - real-time drawing of the frequency signal.

This package handles:
- Colour parsing and palette derivation
- The 2D canvas abstraction and its pygame implementation
- Render styles (waveform, radial, particle cloud) and the render loop
- The pygame window host
"""

from .canvas import Canvas, PygameCanvas
from .colors import RGBA, adjust_color, parse_color, to_rgba
from .host import PygameHost
from .renderer import Visualizer
from .styles import (
    VisualizerStyle,
    draw_particles,
    draw_placeholder,
    draw_radial,
    draw_waveform,
    synthetic_frame,
)

__all__ = [
    # Colors
    "RGBA",
    "adjust_color",
    "parse_color",
    "to_rgba",
    # Canvas
    "Canvas",
    "PygameCanvas",
    # Styles
    "VisualizerStyle",
    "draw_particles",
    "draw_placeholder",
    "draw_radial",
    "draw_waveform",
    "synthetic_frame",
    # Rendering
    "PygameHost",
    "Visualizer",
]
