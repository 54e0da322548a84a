"""API server fixture."""

from __future__ import annotations

import re

from ..config import APIServerConfig
from ..errors import ConfigurationError, InvalidBindURLError
from ..process.defaulting import DefaultedProcessInput, do_defaulting
from ..process.ports import PortAllocator
from ..process.templates import BoundURL, TemplateContext
from .fixture import ProcessFixture

APISERVER_DEFAULT_ARGS = [
    "--etcd-servers={{ etcd_url }}",
    "--cert-dir={{ cert_dir }}",
    "--insecure-port={{ url.port }}",
    "--insecure-bind-address={{ url.hostname }}",
    "--secure-port=0",
]

# Used when health_check_path is empty
APISERVER_START_MESSAGE = re.compile(r"Serving (?:in)?securely on")


class APIServer(ProcessFixture):
    """Run a kube-apiserver against an already running etcd.

    The API server is ready once GET <url><health_check_path> returns 200.
    With an empty health_check_path it is ready when its log says it is
    serving.
    """

    component = "kube-apiserver"

    def __init__(
        self, config: APIServerConfig | None = None, ports: PortAllocator | None = None
    ):
        super().__init__(config or APIServerConfig(), ports)

    @property
    def cert_dir(self):
        """Certificate directory, None until ready."""
        return self.dir

    def do_defaulting(self) -> DefaultedProcessInput:
        self._etcd_url()
        process = self.config.process
        return do_defaulting(
            self.component,
            bind_url=self.config.bind_url,
            data_dir=self.config.cert_dir,
            binary_path=process.path,
            start_timeout=process.start_timeout,
            stop_timeout=process.stop_timeout,
            ports=self.ports,
        )

    def default_args(self) -> list[str]:
        return list(APISERVER_DEFAULT_ARGS)

    def template_context(self, defaulted: DefaultedProcessInput) -> TemplateContext:
        return TemplateContext(
            url=defaulted.url,
            cert_dir=str(defaulted.dir),
            etcd_url=self._etcd_url(),
        )

    def readiness(self, defaulted: DefaultedProcessInput) -> tuple[re.Pattern | None, str]:
        if self.config.health_check_path:
            path = self.config.health_check_path
            if not path.startswith("/"):
                path = "/" + path
            return None, f"{defaulted.url}{path}"
        return APISERVER_START_MESSAGE, ""

    def _etcd_url(self) -> BoundURL:
        if not self.config.etcd_url:
            raise ConfigurationError(
                message="etcd_url is required; start etcd first", component=self.component
            )
        try:
            return BoundURL.parse(self.config.etcd_url)
        except InvalidBindURLError as e:
            e.component = self.component
            raise
