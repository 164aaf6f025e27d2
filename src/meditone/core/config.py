"""
Configuration management for meditone
"""

import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

from loguru import logger

VALID_STYLES = ("wave", "circle", "particles")


@dataclass
class PlayerConfig:
    """Configuration for the mpv-backed media tracks."""

    mpv_path: str = "mpv"
    socket_dir: Optional[str] = None  # Defaults to the system temp dir
    volume: float = 0.8  # Initial session volume; background follows at a fixed ratio
    load_timeout: float = 10.0  # Seconds before a pending load counts as failed

    def validate(self) -> None:
        """Validate player configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if not 0.0 <= self.volume <= 1.0:
            raise ValueError(f"volume must be within [0, 1], got {self.volume}")
        if self.load_timeout <= 0:
            raise ValueError(f"load_timeout must be positive, got {self.load_timeout}")


@dataclass
class AnalyzerConfig:
    """Configuration for the frequency analyser behind the signal tap."""

    fft_size: int = 256
    smoothing_time_constant: float = 0.8
    min_decibels: float = -100.0
    max_decibels: float = -30.0

    def validate(self) -> None:
        """Validate analyser configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        size = self.fft_size
        if size < 32 or size > 32768 or size & (size - 1):
            raise ValueError(
                f"fft_size must be a power of two in [32, 32768], got {size}"
            )
        if not 0.0 <= self.smoothing_time_constant <= 1.0:
            raise ValueError(
                f"smoothing_time_constant must be within [0, 1], "
                f"got {self.smoothing_time_constant}"
            )
        if self.min_decibels >= self.max_decibels:
            raise ValueError(
                f"min_decibels ({self.min_decibels}) must be below "
                f"max_decibels ({self.max_decibels})"
            )


@dataclass
class VisualizerConfig:
    """Configuration for the visualizer window and render loop."""

    style: str = "wave"  # wave, circle, particles
    color: str = "rgba(255, 255, 255, 0.5)"
    intensity: float = 0.5
    width: int = 800
    height: int = 400
    fps: int = 60
    background_color: tuple[int, int, int] = (15, 23, 42)

    def validate(self) -> None:
        """Validate visualizer configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.style not in VALID_STYLES:
            raise ValueError(
                f"Invalid style: {self.style}. Valid styles are: {VALID_STYLES}"
            )
        if not 0.0 <= self.intensity <= 1.0:
            raise ValueError(f"intensity must be within [0, 1], got {self.intensity}")
        if self.width <= 0 or self.height <= 0 or self.fps <= 0:
            raise ValueError("width, height and fps must be positive")


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/meditone/meditone.log)
    )
    console_output: bool = False  # Also output to stderr (for debugging)


@dataclass
class Config:
    """Main configuration object."""

    player: PlayerConfig = field(default_factory=PlayerConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    visualizer: VisualizerConfig = field(default_factory=VisualizerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "meditone"
    return Path.home() / ".config" / "meditone"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            if config_path.exists():
                return config_path
            # Found project root but no config.toml there
            return None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/meditone (or ~/.config/meditone)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "meditone"
    return Path.home() / ".local" / "share" / "meditone"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# meditone Configuration

[player]
# mpv executable used for narration and background tracks
mpv_path = "mpv"

# Directory for mpv IPC sockets (system temp dir if not specified)
# socket_dir = "/tmp"

# Initial narration volume (0.0-1.0); background plays at 60% of it
volume = 0.8

# Seconds to wait for a track to report its duration before failing the load
load_timeout = 10.0

[analyzer]
# Transform size (power of two). Larger is smoother but laggier.
fft_size = 256

# Averaging between successive frames (0.0-1.0)
smoothing_time_constant = 0.8

# Decibel range mapped onto 0-255
min_decibels = -100.0
max_decibels = -30.0

[visualizer]
# Visual style: wave, circle, particles
style = "wave"

# Base colour, rgba(r, g, b, a) or #rrggbb / #rgb
color = "rgba(255, 255, 255, 0.5)"

# Amplitude scaling (0.0-1.0)
intensity = 0.5

# Window size and frame rate
width = 800
height = 400
fps = 60

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/meditone/meditone.log)
# log_file = "/path/to/custom/meditone.log"

# Also output logs to stderr (useful for debugging)
console_output = false
""".strip()


def _load_section(section_cls, defaults, data: dict):
    """Build a config section from TOML data, falling back to defaults when invalid."""
    values = {
        f.name: data.get(f.name, getattr(defaults, f.name))
        for f in fields(defaults)
    }
    section = section_cls(**values)
    try:
        section.validate()
    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid [{section_cls.__name__}] configuration: {e}")
        logger.warning("Using default configuration for this section.")
        return section_cls()
    return section


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or fall back to defaults.

    Environment variables override TOML values:
    - MEDITONE_MPV_PATH
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = config_path or get_config_path()
    config = Config()

    if config_path.exists():
        try:
            with open(config_path, "rb") as f:
                toml_data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error(f"Error loading configuration from {config_path}: {e}")
            logger.info("Using default configuration.")
            toml_data = {}

        if "player" in toml_data:
            config.player = _load_section(
                PlayerConfig, config.player, toml_data["player"]
            )

        if "analyzer" in toml_data:
            config.analyzer = _load_section(
                AnalyzerConfig, config.analyzer, toml_data["analyzer"]
            )

        if "visualizer" in toml_data:
            visualizer_data = dict(toml_data["visualizer"])
            if "background_color" in visualizer_data:
                visualizer_data["background_color"] = tuple(
                    visualizer_data["background_color"]
                )
            config.visualizer = _load_section(
                VisualizerConfig, config.visualizer, visualizer_data
            )

        if "logging" in toml_data:
            logging_data = dict(toml_data["logging"])
            log_file = logging_data.get("log_file")
            if log_file:
                logging_data["log_file"] = str(Path(log_file).expanduser())
            logging_data["level"] = str(
                logging_data.get("level", config.logging.level)
            ).upper()
            config.logging = LoggingConfig(
                level=logging_data["level"],
                log_file=logging_data.get("log_file"),
                console_output=logging_data.get(
                    "console_output", config.logging.console_output
                ),
            )

    mpv_path = os.environ.get("MEDITONE_MPV_PATH")
    if mpv_path:
        config.player.mpv_path = mpv_path

    return config


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
