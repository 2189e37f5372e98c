# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Idempotent .env loading for settings files.

``!env`` tags in YAML settings are resolved from the process environment.
Before a settings file is parsed, ``.env`` files are loaded from two
locations (in order):

1. the directory containing the settings file
2. the current working directory

Each file is loaded at most once per process.  Variables set by an earlier
file are **not** overwritten by a later one (``python-dotenv`` respects
existing env vars by default).
"""

import logging
from pathlib import Path

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

_loaded_paths: set[Path] = set()


def load_dotenv_for(settings_path: Path) -> list[Path]:
    """Load the .env files relevant to *settings_path*, once each.

    Args:
        settings_path: Path of the settings file about to be parsed.

    Returns:
        The .env files loaded by this call (already loaded ones excluded).
    """
    candidates = [
        settings_path.resolve().parent / ".env",
        Path.cwd().resolve() / ".env",
    ]

    loaded: list[Path] = []
    for env_path in candidates:
        if env_path in _loaded_paths:
            continue
        _loaded_paths.add(env_path)
        if env_path.is_file():
            load_dotenv(env_path)
            logger.debug("Loaded .env from %s", env_path)
            loaded.append(env_path)
    return loaded


def reset_dotenv_state() -> None:
    """Forget which .env files were loaded. For testing only."""
    _loaded_paths.clear()
