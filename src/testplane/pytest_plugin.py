"""pytest fixtures for testplane.

Registered through the pytest11 entry point, so installing testplane
makes these fixtures available to any test suite:

    def test_something(control_plane):
        assert control_plane.api_url.startswith("http://")
"""

from __future__ import annotations

from collections.abc import Generator

import pytest

from .config import ClusterConfig, load_config
from .lightweight import ControlPlane, Etcd


@pytest.fixture(scope="session")
def testplane_config() -> ClusterConfig:
    """Cluster config for the session: ./testplane.yaml plus environment.

    Override this fixture in a conftest.py to build the config in code.
    """
    return load_config()


@pytest.fixture
def etcd_fixture(testplane_config: ClusterConfig) -> Generator[Etcd, None, None]:
    """A running etcd, stopped after the test."""
    etcd = Etcd(testplane_config.etcd)
    etcd.start()
    try:
        yield etcd
    finally:
        etcd.stop()


@pytest.fixture
def control_plane(testplane_config: ClusterConfig) -> Generator[ControlPlane, None, None]:
    """A running etcd and API server, stopped after the test."""
    plane = ControlPlane(testplane_config)
    plane.start()
    try:
        yield plane
    finally:
        plane.stop()
