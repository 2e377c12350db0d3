"""
Environment configuration.

Defaults for command-line runs and logging, read from the environment (and
a ``.env`` file if present). Simulation parameters passed explicitly always
win over these.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def get_default_iterations() -> int:
    return _int_env("MANASIM_ITERATIONS", 10_000)


def get_default_turns() -> int:
    return _int_env("MANASIM_TURNS", 7)


def get_default_hand_size() -> int:
    return _int_env("MANASIM_HAND_SIZE", 7)


def get_default_seed() -> Optional[int]:
    return _int_env("MANASIM_SEED", None)


def get_log_level() -> str:
    return os.getenv("MANASIM_LOG_LEVEL", "INFO").upper()


def get_log_dir() -> Optional[Path]:
    """
    Directory for rotating JSON log files.

    Priority order:
    1. MANASIM_LOG_DIR
    2. None (console logging only)
    """
    env_path = os.getenv("MANASIM_LOG_DIR")
    return Path(env_path).expanduser() if env_path else None
