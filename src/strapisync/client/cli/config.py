"""Configuration utilities for the strapisync CLI.

This module provides shared configuration and logging helpers used across
CLI commands.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

from strapisync.core.config import SyncConfig


def get_config_dir() -> Path:
    """Get the configuration directory for strapisync.

    Returns:
        Path to ~/.strapisync.
    """
    return Path.home() / ".strapisync"


def get_config_file() -> Path:
    """Get the path to the default config file."""
    return get_config_dir() / "config.json"


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load plugin-style options from a JSON file.

    Args:
        path: Config file (defaults to ~/.strapisync/config.json).

    Returns:
        The options, or an empty dict if the file does not exist.
    """
    config_file = path or get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def load_sync_config(path: Path | None = None) -> SyncConfig:
    """Load and parse the sync configuration.

    Raises:
        ValueError: If required options are missing.
    """
    return SyncConfig.from_options(load_config(path))


def setup_logging(level: int = logging.INFO, log_path: Path | None = None) -> None:
    """Configure logging to stdout and optionally to a file.

    Args:
        level: Log level of the strapisync logger.
        log_path: Optional path to a log file.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    root_logger = logging.getLogger("strapisync")
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is not None:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
