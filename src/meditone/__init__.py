"""meditone - dual-track meditation audio engine with live visualization."""

__version__ = "0.1.0"
