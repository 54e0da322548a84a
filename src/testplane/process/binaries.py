"""Binary lookup for managed components.

Resolution order, first hit wins:
- explicit path from the config
- TEST_ASSET_<COMPONENT> environment variable
- $TEST_ASSETS_DIR/<component>
- <component> on PATH
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from ..errors import BinaryNotFoundError
from ..shared.paths import asset_env_var, get_assets_dir

logger = logging.getLogger(__name__)


def candidate_paths(component: str, path: str = "") -> list[str]:
    """List lookup candidates for a component, in priority order.

    Args:
        component: Component name (e.g., "etcd")
        path: Explicit path from the config (may be empty)

    Returns:
        Candidate paths; the PATH lookup is included only when it hits.
    """
    if path:
        return [path]

    candidates = []
    env_value = os.environ.get(asset_env_var(component))
    if env_value:
        candidates.append(env_value)

    assets_dir = get_assets_dir()
    if assets_dir:
        candidates.append(str(assets_dir / component))

    on_path = shutil.which(component)
    if on_path:
        candidates.append(on_path)

    return candidates


def find_binary(component: str, path: str = "") -> Path:
    """Resolve the executable for a component.

    An explicit path is used as-is and never falls back to the lookup
    locations.

    Args:
        component: Component name, also the binary name for PATH lookup
        path: Explicit path from the config

    Returns:
        Absolute path with symlinks resolved.

    Raises:
        BinaryNotFoundError: If no candidate is an executable file.
    """
    candidates = candidate_paths(component, path)
    for candidate in candidates:
        resolved = _resolve_executable(candidate)
        if resolved is not None:
            logger.debug(f"Resolved {component} binary to {resolved}")
            return resolved
        if path:
            break

    if candidates:
        message = f"No executable binary found (tried: {', '.join(candidates)})"
    else:
        message = (
            f"No binary found. Set {asset_env_var(component)}, "
            f"TEST_ASSETS_DIR, or put '{component}' on PATH"
        )
    raise BinaryNotFoundError(message=message, component=component, candidates=candidates)


def _resolve_executable(candidate: str) -> Path | None:
    real = Path(candidate).expanduser().resolve()
    if not real.is_file():
        return None
    if not os.access(real, os.X_OK):
        logger.debug(f"{real} exists but is not executable")
        return None
    return real
