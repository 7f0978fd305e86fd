"""
listsync.utils - Utility module

Common utilities including logging configuration.
"""

from listsync.utils.normalization import (
    normalize_email,
    split_display_name,
    to_field_string,
)
from listsync.utils.paths import DEFAULT_CONFIG_DIR, resolve_config_dir
from listsync.utils.timeutil import from_epoch_millis, utcnow

__all__ = [
    "normalize_email",
    "split_display_name",
    "to_field_string",
    "resolve_config_dir",
    "DEFAULT_CONFIG_DIR",
    "utcnow",
    "from_epoch_millis",
]
