"""Fixture configuration.

Configs are frozen: build one per test suite and derive variations with
the with_* helpers, which return new values. Fields left empty are filled
in by defaulting when a fixture starts.

load_config() reads an optional YAML file and environment overrides.
Precedence (highest to lowest):
1. Environment variables
2. Config file (TESTPLANE_CONFIG or ./testplane.yaml)
3. Defaults
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import IO, Any, Union

import yaml

from .errors import ConfigurationError
from .shared.paths import get_config_file

ExtraArgs = tuple[tuple[str, Union[str, None]], ...]
ArgsInput = Union[Mapping[str, Any], Iterable[Any], None]

# Environment variable mappings
ENV_VARS = {
    "etcd.path": "TESTPLANE_ETCD_PATH",
    "api_server.path": "TESTPLANE_APISERVER_PATH",
    "start_timeout": "TESTPLANE_START_TIMEOUT",
    "stop_timeout": "TESTPLANE_STOP_TIMEOUT",
}

_PROCESS_KEYS = {"path", "start_timeout", "stop_timeout", "out", "err"}


def normalize_args(args: ArgsInput) -> ExtraArgs:
    """Normalize extra arguments to an ordered tuple of (flag, value) pairs.

    Accepts a mapping ({"--flag": "value"}) or a sequence whose items are
    bare flag strings, (flag, value) pairs, or single-key mappings (the
    shape a YAML list of "- --flag: value" entries loads as). A bare string
    is one flag. A None value means a flag without a value.

    Raises:
        ConfigurationError: If an item has none of those shapes
    """
    if not args:
        return ()
    if isinstance(args, str):
        return ((args, None),)
    items = args.items() if isinstance(args, Mapping) else args
    pairs = []
    for item in items:
        if isinstance(item, str):
            pairs.append((item, None))
            continue
        if isinstance(item, Mapping) and len(item) == 1:
            item = next(iter(item.items()))
        elif not _is_pair(item):
            raise ConfigurationError(
                message=f"Extra argument {item!r} must be a flag, a (flag, value) pair "
                "or a single-key mapping"
            )
        key, value = item
        pairs.append((str(key), None if value is None else str(value)))
    return tuple(pairs)


def _is_pair(item: Any) -> bool:
    return isinstance(item, (tuple, list)) and len(item) == 2


def flatten_args(args: ExtraArgs) -> list[str]:
    """Turn (flag, value) pairs into command-line arguments.

    >>> flatten_args((("--a", "1"), ("--b", None)))
    ['--a=1', '--b']
    """
    return [key if value is None else f"{key}={value}" for key, value in args]


@dataclass(frozen=True)
class ProcessConfig:
    """How to run a binary. Empty/zero fields are defaulted on start."""

    path: str = ""
    start_timeout: float = 0
    stop_timeout: float = 0
    out: IO[Any] | None = field(default=None, compare=False)
    err: IO[Any] | None = field(default=None, compare=False)


@dataclass(frozen=True)
class EtcdConfig:
    """Configuration for the etcd fixture."""

    bind_url: str = ""
    data_dir: str = ""
    extra_args: ExtraArgs = ()
    process: ProcessConfig = field(default_factory=ProcessConfig)

    def with_extra_args(self, args: ArgsInput) -> EtcdConfig:
        """Return a copy with args appended to the extra arguments."""
        return replace(self, extra_args=self.extra_args + normalize_args(args))

    def with_process(self, **changes: Any) -> EtcdConfig:
        """Return a copy with process fields replaced."""
        return replace(self, process=replace(self.process, **changes))


@dataclass(frozen=True)
class APIServerConfig:
    """Configuration for the API server fixture."""

    bind_url: str = ""
    cert_dir: str = ""
    etcd_url: str = ""
    health_check_path: str = "/healthz"
    extra_args: ExtraArgs = ()
    process: ProcessConfig = field(default_factory=ProcessConfig)

    def with_extra_args(self, args: ArgsInput) -> APIServerConfig:
        """Return a copy with args appended to the extra arguments."""
        return replace(self, extra_args=self.extra_args + normalize_args(args))

    def with_process(self, **changes: Any) -> APIServerConfig:
        """Return a copy with process fields replaced."""
        return replace(self, process=replace(self.process, **changes))


@dataclass(frozen=True)
class ClusterConfig:
    """Configuration for a control plane: etcd plus API server."""

    etcd: EtcdConfig = field(default_factory=EtcdConfig)
    api_server: APIServerConfig = field(default_factory=APIServerConfig)

    # Track where each value came from
    sources: dict[str, str] = field(default_factory=dict, compare=False)

    def get_source(self, key: str) -> str:
        """Get the source of a config value (e.g., "etcd.path")."""
        return self.sources.get(key, "default")

    def with_etcd(self, **changes: Any) -> ClusterConfig:
        """Return a copy with etcd fields (or process fields) replaced."""
        return replace(self, etcd=_apply(self.etcd, changes))

    def with_api_server(self, **changes: Any) -> ClusterConfig:
        """Return a copy with API server fields (or process fields) replaced."""
        return replace(self, api_server=_apply(self.api_server, changes))

    def to_dict(self) -> dict[str, Any]:
        """Effective values as plain data (sinks omitted)."""
        return {
            "etcd": _component_dict(self.etcd),
            "api_server": _component_dict(self.api_server),
        }


def _apply(component: Any, changes: dict[str, Any]) -> Any:
    process_changes = {k: v for k, v in changes.items() if k in _PROCESS_KEYS}
    own_changes = {k: v for k, v in changes.items() if k not in _PROCESS_KEYS}
    if "extra_args" in own_changes:
        own_changes["extra_args"] = normalize_args(own_changes["extra_args"])
    if process_changes:
        own_changes["process"] = replace(component.process, **process_changes)
    return replace(component, **own_changes)


def _component_dict(component: Any) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for f in fields(component):
        value = getattr(component, f.name)
        if f.name == "process":
            data["path"] = value.path
            data["start_timeout"] = value.start_timeout
            data["stop_timeout"] = value.stop_timeout
        elif f.name == "extra_args":
            data["extra_args"] = flatten_args(value)
        else:
            data[f.name] = value
    return data


def load_config(path: str | Path | None = None) -> ClusterConfig:
    """Load cluster configuration.

    Args:
        path: YAML file to read. Defaults to TESTPLANE_CONFIG, then
            ./testplane.yaml; no file at all means defaults only.

    Returns:
        ClusterConfig with values and sources

    Raises:
        ConfigurationError: If the file is unreadable or malformed, or an
            environment override has the wrong type.
    """
    config = ClusterConfig()
    sources: dict[str, str] = {}

    config_path = Path(path) if path else get_config_file()
    if config_path is not None:
        file_config = _read_file(config_path)
        for section, attr in (("etcd", "etcd"), ("api_server", "api_server")):
            changes = _section_changes(file_config, section, config_path)
            if changes:
                config = _with_component(config, attr, changes)
                for key in changes:
                    sources[f"{section}.{key}"] = "config file"

    # Override with environment variables
    for key in ("etcd.path", "api_server.path"):
        value = os.environ.get(ENV_VARS[key])
        if value:
            section = key.split(".")[0]
            config = _with_component(config, section, {"path": value})
            sources[key] = "environment"

    for key in ("start_timeout", "stop_timeout"):
        raw = os.environ.get(ENV_VARS[key])
        if not raw:
            continue
        try:
            value = float(raw)
        except ValueError:
            raise ConfigurationError(
                message=f"{ENV_VARS[key]} must be a number of seconds, got '{raw}'"
            ) from None
        config = config.with_etcd(**{key: value}).with_api_server(**{key: value})
        sources[f"etcd.{key}"] = "environment"
        sources[f"api_server.{key}"] = "environment"

    return replace(config, sources=sources)


def _with_component(config: ClusterConfig, section: str, changes: dict[str, Any]) -> ClusterConfig:
    if section == "etcd":
        return config.with_etcd(**changes)
    return config.with_api_server(**changes)


def _read_file(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(message=f"Cannot read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(message=f"Invalid YAML in {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(message=f"Config file {config_path} must contain a mapping")
    return data


def _section_changes(data: dict[str, Any], section: str, config_path: Path) -> dict[str, Any]:
    raw = data.get(section) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(message=f"'{section}' in {config_path} must be a mapping")

    allowed = {"path", "start_timeout", "stop_timeout", "bind_url", "extra_args"}
    allowed |= {"data_dir"} if section == "etcd" else {"cert_dir", "etcd_url", "health_check_path"}
    unknown = set(raw) - allowed
    if unknown:
        raise ConfigurationError(
            message=f"Unknown keys in '{section}' of {config_path}: {', '.join(sorted(unknown))}"
        )

    changes: dict[str, Any] = {}
    for key, value in raw.items():
        if key in ("start_timeout", "stop_timeout"):
            try:
                changes[key] = float(value)
            except (TypeError, ValueError):
                raise ConfigurationError(
                    message=f"'{section}.{key}' in {config_path} must be a number of seconds"
                ) from None
        elif key == "extra_args":
            changes[key] = _file_extra_args(value, section, config_path)
        else:
            changes[key] = "" if value is None else str(value)
    return changes


def _file_extra_args(value: Any, section: str, config_path: Path) -> ExtraArgs:
    """Validate extra_args from the config file.

    Either a mapping of flag to value, or a list whose items are flag
    strings or single-key mappings.
    """
    if value is None:
        return ()
    invalid = ConfigurationError(
        message=f"'{section}.extra_args' in {config_path} must be a mapping or a list of "
        "flags and single-key mappings"
    )
    if isinstance(value, list):
        for item in value:
            if not (isinstance(item, str) or (isinstance(item, dict) and len(item) == 1)):
                raise invalid
    elif not isinstance(value, dict):
        raise invalid
    return normalize_args(value)
