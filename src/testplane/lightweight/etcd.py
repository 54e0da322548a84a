"""Etcd fixture."""

from __future__ import annotations

import re

from ..config import EtcdConfig
from ..process.defaulting import DefaultedProcessInput, do_defaulting
from ..process.ports import PortAllocator
from ..process.templates import BoundURL, TemplateContext
from .fixture import ProcessFixture

ETCD_DEFAULT_ARGS = [
    "--data-dir={{ data_dir }}",
    "--listen-client-urls={{ url }}",
    "--advertise-client-urls={{ url }}",
    "--listen-peer-urls=http://localhost:0",
]

# etcd >= 3.4 logs JSON: {"msg":"serving client traffic insecurely; ..."}
_MODERN_START_MESSAGE = r"serving client traffic (?:in)?securely"


def etcd_start_message(url: BoundURL) -> re.Pattern:
    """Readiness marker for an etcd serving on url.

    etcd 3.3 logs "serving insecure client requests on <host>" for http
    and "serving client requests on <host>" for https.
    """
    if url.scheme == "https":
        legacy = f"serving client requests on {re.escape(url.hostname)}"
    else:
        legacy = f"serving insecure client requests on {re.escape(url.hostname)}"
    return re.compile(f"{legacy}|{_MODERN_START_MESSAGE}")


class Etcd(ProcessFixture):
    """Run an etcd server for the duration of a test."""

    component = "etcd"

    def __init__(self, config: EtcdConfig | None = None, ports: PortAllocator | None = None):
        super().__init__(config or EtcdConfig(), ports)

    @property
    def data_dir(self):
        """Data directory, None until ready."""
        return self.dir

    def do_defaulting(self) -> DefaultedProcessInput:
        process = self.config.process
        return do_defaulting(
            self.component,
            bind_url=self.config.bind_url,
            data_dir=self.config.data_dir,
            binary_path=process.path,
            start_timeout=process.start_timeout,
            stop_timeout=process.stop_timeout,
            ports=self.ports,
        )

    def default_args(self) -> list[str]:
        return list(ETCD_DEFAULT_ARGS)

    def template_context(self, defaulted: DefaultedProcessInput) -> TemplateContext:
        return TemplateContext(url=defaulted.url, data_dir=str(defaulted.dir))

    def readiness(self, defaulted: DefaultedProcessInput) -> tuple[re.Pattern, str]:
        return etcd_start_message(defaulted.url), ""
