"""Control plane fixture: etcd plus API server."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from ..config import ClusterConfig
from ..errors import FixtureError
from ..process.ports import PortAllocator
from .apiserver import APIServer
from .etcd import Etcd

logger = logging.getLogger(__name__)


class ControlPlane:
    """Start etcd, then an API server wired to it.

    The two are started in sequence: the API server's --etcd-servers flag
    is rendered from the URL etcd reported when it became ready. Both
    share one port allocator so their defaulted ports never collide.
    """

    def __init__(self, config: ClusterConfig | None = None):
        self.config = config or ClusterConfig()
        self.ports = PortAllocator()
        self.etcd: Etcd | None = None
        self.api_server: APIServer | None = None

    @property
    def etcd_url(self) -> str | None:
        return self.etcd.url if self.etcd else None

    @property
    def api_url(self) -> str | None:
        return self.api_server.url if self.api_server else None

    def start(self) -> None:
        """Start etcd and the API server.

        If the API server fails to start, etcd is stopped before the
        error propagates.

        Raises:
            FixtureError: If the control plane is already running
        """
        if any(f is not None and f.is_ready for f in (self.etcd, self.api_server)):
            raise FixtureError(
                message="Control plane is already running", component="control-plane"
            )

        etcd = Etcd(self.config.etcd, ports=self.ports)
        etcd.start()
        self.etcd = etcd

        api_config = replace(self.config.api_server, etcd_url=etcd.url or "")
        api_server = APIServer(api_config, ports=self.ports)
        self.api_server = api_server
        try:
            api_server.start()
        except BaseException:
            try:
                etcd.stop()
            except FixtureError as e:
                logger.error(f"Failed to stop etcd after API server start failure: {e}")
            raise

        logger.info(f"Control plane ready: api={self.api_url} etcd={self.etcd_url}")

    def stop(self) -> None:
        """Stop the API server, then etcd.

        Both are always attempted; the first error is raised afterwards.
        """
        errors: list[FixtureError] = []
        for fixture in (self.api_server, self.etcd):
            if fixture is None:
                continue
            try:
                fixture.stop()
            except FixtureError as e:
                logger.error(f"Failed to stop {fixture.component}: {e}")
                errors.append(e)
        if errors:
            raise errors[0]

    def client_config(self) -> dict[str, Any]:
        """Connection settings for clients of the API server."""
        if self.api_url is None:
            raise FixtureError(message="Control plane is not running", component="control-plane")
        return {"server": self.api_url}

    def __enter__(self) -> ControlPlane:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
