"""
Path utilities for configuration directory resolution.

Provides consistent path resolution for the listsync configuration
directory across all modules.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".listsync"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "LISTSYNC_CONFIG_DIR"

# Default database file name inside the configuration directory
DEFAULT_DB_FILE = "listsync.db"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. LISTSYNC_CONFIG_DIR environment variable
        3. Default directory (~/.listsync)

    Args:
        config_dir: Optional explicit configuration directory path.
                   Can be a Path object or string.

    Returns:
        Resolved Path to the configuration directory (expanduser and resolve applied)
    """
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()

    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    return DEFAULT_CONFIG_DIR.expanduser().resolve()


def resolve_db_path(db_path: str | None, config_dir: Path) -> str:
    """
    Resolve the SQLite database path.

    ':memory:' is passed through untouched. Relative paths are taken
    relative to the configuration directory.
    """
    if not db_path:
        return str(config_dir / DEFAULT_DB_FILE)
    if db_path == ":memory:":
        return db_path
    path = Path(db_path).expanduser()
    if not path.is_absolute():
        path = config_dir / path
    return str(path)
