"""Core infrastructure layer - no domain dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging (Loguru)
- Frame scheduling for the single-threaded UI loop
"""

# Configuration
from .config import (
    AnalyzerConfig,
    Config,
    LoggingConfig,
    PlayerConfig,
    VisualizerConfig,
    create_default_config,
    ensure_directories,
    get_config_dir,
    get_config_path,
    get_data_dir,
    load_config,
)

# Frames
from .frames import FrameScheduler

# Output
from .output import log, setup_from_config, setup_loguru

__all__ = [
    # Config
    "AnalyzerConfig",
    "Config",
    "LoggingConfig",
    "PlayerConfig",
    "VisualizerConfig",
    "create_default_config",
    "ensure_directories",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "load_config",
    # Frames
    "FrameScheduler",
    # Output
    "log",
    "setup_from_config",
    "setup_loguru",
]
