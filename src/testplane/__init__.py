"""testplane - ephemeral etcd and API server fixtures for tests."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("testplane")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"  # Fallback for editable installs without metadata

from .config import APIServerConfig, ClusterConfig, EtcdConfig, ProcessConfig, load_config
from .errors import (
    BinaryNotFoundError,
    ConfigurationError,
    EarlyExitError,
    FixtureError,
    StartTimeoutError,
    StopError,
    TemplateResolutionError,
)
from .lightweight import APIServer, ControlPlane, Etcd

__all__ = [
    "__version__",
    # Config
    "ProcessConfig",
    "EtcdConfig",
    "APIServerConfig",
    "ClusterConfig",
    "load_config",
    # Fixtures
    "Etcd",
    "APIServer",
    "ControlPlane",
    # Errors
    "FixtureError",
    "ConfigurationError",
    "BinaryNotFoundError",
    "TemplateResolutionError",
    "StartTimeoutError",
    "EarlyExitError",
    "StopError",
]
