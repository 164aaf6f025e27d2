"""Domain layer - playback and signal analysis."""
