"""Tests for the render styles, drawn onto a recording canvas."""

import math

import numpy as np
import pytest

from meditone.visualizer.styles import (
    PARTICLE_COUNT,
    VisualizerStyle,
    draw_particles,
    draw_placeholder,
    draw_radial,
    draw_waveform,
    quadratic_curve,
    synthetic_frame,
    waveform_outline,
)

COLOR = "rgba(100, 100, 100, 0.5)"


class TestVisualizerStyle:
    """Test style tag parsing."""

    @pytest.mark.parametrize("tag", ["wave", "circle", "particles"])
    def test_known_tags(self, tag):
        """Test each documented tag resolves to its style."""
        assert VisualizerStyle.parse(tag).value == tag

    def test_unknown_falls_back_to_wave(self):
        """Test unknown tags render as the waveform."""
        assert VisualizerStyle.parse("spiral") is VisualizerStyle.WAVE
        assert VisualizerStyle.parse(None) is VisualizerStyle.WAVE


class TestWaveform:
    """Test the waveform style."""

    def test_curve_endpoints(self):
        """Test a sampled quadratic ends on its end point."""
        points = quadratic_curve((0, 0), (5, 0), (10, 10), segments=4)
        assert len(points) == 4
        assert points[-1] == (10, 10)

    def test_outline_heights(self):
        """Test bin height is value/255 x height x intensity."""
        outline = waveform_outline([255, 0], width=200, height=100, intensity=0.5)
        assert outline[0] == (0.0, 50.0)
        assert outline[-1] == (100.0, 100.0)

    def test_draws_gradient_fill_and_outline(self, canvas):
        """Test a gradient silhouette plus a lighter outline stroke."""
        draw_waveform(canvas, np.full(128, 128), COLOR, 0.5)

        (fill_args, fill_kwargs), = canvas.of("fill_polygon_linear_gradient")
        points, stops, x_start, x_end = fill_args
        assert points[-2:] == [(canvas.width, canvas.height), (0, canvas.height)]
        assert stops == [
            (0.0, COLOR),
            (0.5, "rgba(120, 120, 120, 0.5)"),
            (1.0, "rgba(80, 80, 80, 0.5)"),
        ]
        assert (x_start, x_end) == (0, canvas.width)
        assert fill_kwargs["alpha"] == 0.7

        (stroke_args, stroke_kwargs), = canvas.of("stroke_polyline")
        assert stroke_args[1] == "rgba(150, 150, 150, 0.5)"
        assert stroke_kwargs["width"] == 2
        assert stroke_kwargs["alpha"] == 0.8

    def test_empty_frame_draws_nothing(self, canvas):
        """Test an empty frame is skipped."""
        draw_waveform(canvas, [], COLOR, 0.5)
        assert canvas.calls == []


class TestRadial:
    """Test the radial style."""

    def test_dot_and_spoke_per_bin(self, canvas):
        """Test each bin draws one dot and one line to the centre."""
        draw_radial(canvas, np.zeros(16), COLOR, 1.0)
        assert len(canvas.of("fill_circle")) == 16
        assert len(canvas.of("line")) == 16
        assert len(canvas.of("fill_circle_radial_gradient")) == 1

    def test_full_bin_pushes_outwards(self, canvas):
        """Test a full-scale bin sits at base x (1 + intensity) from centre."""
        draw_radial(canvas, [255], COLOR, 1.0)
        base = min(canvas.width, canvas.height) / 4

        (center, radius, color), _ = canvas.of("fill_circle")[0]
        assert center[0] == pytest.approx(canvas.width / 2 + 2 * base)
        assert center[1] == pytest.approx(canvas.height / 2)
        assert radius == pytest.approx(7.0)
        assert color == "rgba(130, 130, 130, 0.5)"

        _, line_kwargs = canvas.of("line")[0]
        assert line_kwargs["alpha"] == pytest.approx(0.6)
        assert line_kwargs["width"] == pytest.approx(3.0)

    def test_centre_glow(self, canvas):
        """Test the centre circle uses the radial gradient stops."""
        draw_radial(canvas, [0], COLOR, 0.5)
        base = min(canvas.width, canvas.height) / 4
        (center, radius, stops, inner, outer), kwargs = canvas.of("fill_circle_radial_gradient")[0]
        assert center == (canvas.width / 2, canvas.height / 2)
        assert radius == pytest.approx(0.3 * base)
        assert (inner, outer) == (pytest.approx(0.5 * base), pytest.approx(2 * base))
        assert stops[-1] == (1.0, "rgba(0, 0, 0, 0)")
        assert kwargs["alpha"] == 0.7


class TestParticles:
    """Test the particle cloud style."""

    def test_fixed_particle_count(self, canvas):
        """Test 50 particles joined by 49 links."""
        draw_particles(canvas, np.zeros(128), COLOR, 0.5)
        assert len(canvas.of("fill_circle")) == PARTICLE_COUNT
        assert len(canvas.of("line")) == PARTICLE_COUNT - 1

    def test_silence_ring(self, canvas):
        """Test a silent frame places particles at radius 50 with size 2."""
        draw_particles(canvas, np.zeros(8), COLOR, 1.0)
        (center, size, color), kwargs = canvas.of("fill_circle")[0]
        assert center == (canvas.width / 2 + 50, canvas.height / 2)
        assert size == 2
        assert kwargs["alpha"] == 0.5

    def test_mean_drives_radius(self, canvas):
        """Test a full-scale frame grows the ring and particles."""
        draw_particles(canvas, np.full(8, 255), COLOR, 1.0)
        (center, size, _), kwargs = canvas.of("fill_circle")[0]
        assert center[0] - canvas.width / 2 == pytest.approx(150)
        assert size == pytest.approx(10)
        assert kwargs["alpha"] == pytest.approx(1.0)

    def test_colour_varies_per_particle(self, canvas):
        """Test particle i is lightened by i mod 30."""
        draw_particles(canvas, np.zeros(8), COLOR, 1.0)
        colors = [args[2] for args, _ in canvas.of("fill_circle")]
        assert colors[0] == COLOR
        assert colors[29] == "rgba(129, 129, 129, 0.5)"
        assert colors[30] == COLOR


class TestPlaceholder:
    """Test the idle placeholder."""

    def test_pulsing_circle(self, canvas):
        """Test radius follows min(w, h)/6 x (0.8 + 0.2 sin 2t)."""
        t = 0.3
        draw_placeholder(canvas, COLOR, t)
        (center, radius, color), kwargs = canvas.of("fill_circle")[0]
        expected = min(canvas.width, canvas.height) / 6 * (0.8 + 0.2 * math.sin(2 * t))
        assert center == (canvas.width / 2, canvas.height / 2)
        assert radius == pytest.approx(expected)
        assert color == "rgba(70, 70, 70, 0.5)"
        assert kwargs["alpha"] == 0.2


class TestSyntheticFrame:
    """Test stand-in data."""

    def test_shape_and_range(self):
        """Test 128 values in [0, 100)."""
        frame = synthetic_frame(np.random.default_rng(7))
        assert frame.shape == (128,)
        assert frame.min() >= 0
        assert frame.max() < 100
