"""Defaulting of process inputs.

Turns the partially filled fields of a component config into concrete
values. A caller-supplied value always wins; defaults only fill gaps.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from ..errors import ConfigurationError, DirectoryCreationError, InvalidBindURLError
from ..shared.paths import temp_dir_prefix
from .binaries import find_binary
from .ports import DEFAULT_HOST, PortAllocator
from .templates import BoundURL

logger = logging.getLogger(__name__)

DEFAULT_START_TIMEOUT = 20.0
DEFAULT_STOP_TIMEOUT = 5.0


@dataclass(frozen=True)
class DefaultedProcessInput:
    """Fully resolved inputs for one managed process."""

    url: BoundURL
    dir: Path
    dir_needs_cleanup: bool
    path: Path
    start_timeout: float
    stop_timeout: float


def do_defaulting(
    name: str,
    bind_url: str = "",
    data_dir: str | Path = "",
    binary_path: str | Path = "",
    start_timeout: float | None = None,
    stop_timeout: float | None = None,
    ports: PortAllocator | None = None,
    default_start_timeout: float = DEFAULT_START_TIMEOUT,
    default_stop_timeout: float = DEFAULT_STOP_TIMEOUT,
) -> DefaultedProcessInput:
    """Compute concrete process inputs.

    Args:
        name: Component name, used for binary lookup and directory names
        bind_url: URL to bind, or empty to allocate a free local port
        data_dir: Directory for the process, or empty for a fresh temp dir
        binary_path: Executable path, or empty to search lookup locations
        start_timeout: Seconds to wait for readiness (0/None for default)
        stop_timeout: Seconds to wait for graceful exit (0/None for default)
        ports: Allocator for the free port (a private one if omitted)
        default_start_timeout: Component default for start_timeout
        default_stop_timeout: Component default for stop_timeout

    Returns:
        DefaultedProcessInput

    Raises:
        ConfigurationError: For an invalid URL or timeout, a missing binary,
            or a directory that cannot be created.
    """
    start = _default_timeout(name, "start_timeout", start_timeout, default_start_timeout)
    stop = _default_timeout(name, "stop_timeout", stop_timeout, default_stop_timeout)

    if bind_url:
        try:
            url = BoundURL.parse(bind_url)
        except InvalidBindURLError as e:
            e.component = name
            raise
    else:
        url = _allocate_url(name, ports or PortAllocator())

    path = find_binary(name, str(binary_path) if binary_path else "")

    directory, created = _default_dir(name, data_dir)

    logger.debug(
        f"Defaulted {name}: url={url} dir={directory} (owned={created}) "
        f"path={path} start_timeout={start}s stop_timeout={stop}s"
    )
    return DefaultedProcessInput(
        url=url,
        dir=directory,
        dir_needs_cleanup=created,
        path=path,
        start_timeout=start,
        stop_timeout=stop,
    )


def remove_owned_dir(defaulted: DefaultedProcessInput) -> None:
    """Remove the process directory if defaulting created it.

    Best-effort: failures are logged, never raised.
    """
    if not defaulted.dir_needs_cleanup:
        return
    try:
        shutil.rmtree(defaulted.dir)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove {defaulted.dir}: {e}")


def _default_timeout(name: str, field: str, value: float | None, default: float) -> float:
    if value is None or value == 0:
        return default
    if value < 0:
        raise ConfigurationError(
            message=f"{field} must be positive, got {value}",
            component=name,
        )
    return float(value)


def _allocate_url(name: str, ports: PortAllocator) -> BoundURL:
    try:
        port = ports.suggest(DEFAULT_HOST)
    except OSError as e:
        raise ConfigurationError(
            message=f"Cannot allocate a free port: {e}", component=name
        ) from e
    return BoundURL.from_host_port(DEFAULT_HOST, port)


def _default_dir(name: str, data_dir: str | Path) -> tuple[Path, bool]:
    if data_dir:
        directory = Path(data_dir).expanduser()
        if directory.is_dir():
            return directory, False
        try:
            directory.mkdir(parents=True)
        except OSError as e:
            raise DirectoryCreationError(
                message=f"Cannot create directory {directory}: {e}",
                component=name,
                path=str(directory),
            ) from e
        return directory, True

    try:
        return Path(tempfile.mkdtemp(prefix=temp_dir_prefix(name))), True
    except OSError as e:
        raise DirectoryCreationError(
            message=f"Cannot create temporary directory: {e}",
            component=name,
        ) from e
