"""
Colour strings for the visualizer palette.

Every style derives its palette from one base colour by lightening or
darkening it. Accepted formats are rgba(r, g, b, a), rgb(r, g, b), #rrggbb
and #rgb. Anything else is passed through unchanged.
"""

import re
from dataclasses import dataclass
from typing import Optional

_RGBA_PATTERN = re.compile(
    r"^rgba\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*,\s*([.\d]+)\s*\)$", re.IGNORECASE
)
_RGB_PATTERN = re.compile(r"^rgb\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*\)$", re.IGNORECASE)
_HEX_PATTERN = re.compile(r"^#([0-9a-f]{3}|[0-9a-f]{6})$", re.IGNORECASE)


@dataclass(frozen=True)
class RGBA:
    """Canonical colour record; channels 0-255, alpha 0-1."""

    r: int
    g: int
    b: int
    a: float = 1.0
    format: str = "hex"  # Source format, used when rendering back to a string

    def shifted(self, amount: float) -> "RGBA":
        """Add `amount` to each channel, clamping to [0, 255]."""
        return RGBA(
            r=_clamp_channel(self.r + amount),
            g=_clamp_channel(self.g + amount),
            b=_clamp_channel(self.b + amount),
            a=self.a,
            format=self.format,
        )

    def to_string(self) -> str:
        if self.format == "rgba":
            return f"rgba({self.r}, {self.g}, {self.b}, {_format_alpha(self.a)})"
        if self.format == "rgb":
            return f"rgb({self.r}, {self.g}, {self.b})"
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    @property
    def rgb(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)


def _clamp_channel(value: float) -> int:
    return int(max(0, min(255, round(value))))


def _format_alpha(alpha: float) -> str:
    return f"{alpha:g}"


def parse_color(color: str) -> Optional[RGBA]:
    """Parse a colour string.

    Returns:
        RGBA record, or None if the format is not recognised
    """
    text = color.strip()

    match = _RGBA_PATTERN.match(text)
    if match:
        r, g, b = (_clamp_channel(int(v)) for v in match.groups()[:3])
        try:
            alpha = float(match.group(4))
        except ValueError:
            return None
        return RGBA(r, g, b, max(0.0, min(1.0, alpha)), format="rgba")

    match = _RGB_PATTERN.match(text)
    if match:
        r, g, b = (_clamp_channel(int(v)) for v in match.groups())
        return RGBA(r, g, b, 1.0, format="rgb")

    match = _HEX_PATTERN.match(text)
    if match:
        digits = match.group(1)
        if len(digits) == 3:
            # Convert 3-digit hex to 6-digit
            digits = "".join(ch * 2 for ch in digits)
        r, g, b = (int(digits[i : i + 2], 16) for i in (0, 2, 4))
        return RGBA(r, g, b, 1.0, format="hex")

    return None


def adjust_color(color: str, amount: float) -> str:
    """Lighten (positive amount) or darken (negative) a colour string.

    Pure function of its inputs; unrecognised colours come back unchanged.
    """
    parsed = parse_color(color)
    if parsed is None:
        return color
    return parsed.shifted(amount).to_string()


def to_rgba(color: str, fallback: tuple[int, int, int] = (255, 255, 255)) -> RGBA:
    """Parse for drawing, falling back to an opaque `fallback` colour."""
    parsed = parse_color(color)
    if parsed is None:
        return RGBA(*fallback, 1.0)
    return parsed
