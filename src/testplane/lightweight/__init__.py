"""Lightweight fixtures: real binaries run as local child processes."""

from .apiserver import APISERVER_DEFAULT_ARGS, APIServer
from .control_plane import ControlPlane
from .etcd import ETCD_DEFAULT_ARGS, Etcd, etcd_start_message
from .fixture import ProcessFixture

__all__ = [
    "ProcessFixture",
    "Etcd",
    "ETCD_DEFAULT_ARGS",
    "etcd_start_message",
    "APIServer",
    "APISERVER_DEFAULT_ARGS",
    "ControlPlane",
]
