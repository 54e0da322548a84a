"""Shared modules for testplane.

Paths, environment variable names and logging setup used by the
fixtures, the pytest plugin and the CLI.
"""

from .logging import configure_logging, get_logger
from .paths import (
    ASSETS_DIR_ENV_VAR,
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_FILE,
    asset_env_var,
    get_assets_dir,
    get_config_file,
    temp_dir_prefix,
)

__all__ = [
    # Paths
    "ASSETS_DIR_ENV_VAR",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_FILE",
    "asset_env_var",
    "get_assets_dir",
    "get_config_file",
    "temp_dir_prefix",
    # Logging
    "configure_logging",
    "get_logger",
]
