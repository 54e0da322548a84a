"""Path and environment names used by testplane.

Binary lookup, temporary directories and the optional config file all
resolve from here.
"""

import os
import re
from pathlib import Path

# Config file looked up in the working directory when none is given
DEFAULT_CONFIG_FILE = Path("testplane.yaml")

# Environment variable naming an explicit config file
CONFIG_ENV_VAR = "TESTPLANE_CONFIG"

# Directory holding test binaries (etcd, kube-apiserver, ...)
ASSETS_DIR_ENV_VAR = "TEST_ASSETS_DIR"

# Per-binary override, e.g. TEST_ASSET_KUBE_APISERVER
ASSET_ENV_PREFIX = "TEST_ASSET_"

# Prefix for directories created by the fixtures
TEMP_DIR_PREFIX = "testplane-"

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def asset_env_var(component: str) -> str:
    """Get the environment variable that overrides a component's binary.

    Args:
        component: Component name (e.g., "etcd", "kube-apiserver")

    Returns:
        Variable name such as TEST_ASSET_KUBE_APISERVER
    """
    return ASSET_ENV_PREFIX + _NON_ALNUM.sub("_", component).upper()


def get_assets_dir() -> Path | None:
    """Get the assets directory from the environment, if set."""
    value = os.environ.get(ASSETS_DIR_ENV_VAR)
    return Path(value) if value else None


def get_config_file() -> Path | None:
    """Get the config file to load.

    TESTPLANE_CONFIG wins over ./testplane.yaml. Returns None when
    neither is present.
    """
    if os.environ.get(CONFIG_ENV_VAR):
        return Path(os.environ[CONFIG_ENV_VAR])
    if DEFAULT_CONFIG_FILE.exists():
        return DEFAULT_CONFIG_FILE
    return None


def temp_dir_prefix(component: str) -> str:
    """Prefix for a component's self-created temporary directory."""
    return f"{TEMP_DIR_PREFIX}{component}-"
