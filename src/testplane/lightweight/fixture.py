"""Base class for single-binary fixtures."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ..config import ProcessConfig, flatten_args
from ..errors import FixtureError
from ..process.defaulting import DefaultedProcessInput, remove_owned_dir
from ..process.ports import PortAllocator
from ..process.state import ProcessPhase, ProcessState, ReadinessMarker
from ..process.templates import TemplateContext, render_templates

logger = logging.getLogger(__name__)


class ProcessFixture:
    """A managed binary with a start()/stop() contract.

    Subclasses supply the component name, defaulting inputs, default
    argument templates, template context and readiness signal. Caller
    extra arguments are rendered after the defaults, so a binary whose
    flag parsing is last-wins lets them override a default.
    """

    component = ""

    def __init__(self, config: Any, ports: PortAllocator | None = None):
        self.config = config
        self.ports = ports
        self._state: ProcessState | None = None

    @property
    def process_config(self) -> ProcessConfig:
        return self.config.process

    @property
    def state(self) -> ProcessState | None:
        """State of the current (or last) run."""
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is not None and self._state.phase is ProcessPhase.READY

    @property
    def url(self) -> str | None:
        """Endpoint URL, None until the process is ready."""
        return self._state.ready_url if self.is_ready else None

    @property
    def dir(self) -> Path | None:
        """Directory the process runs with, None until ready."""
        return self._state.input.dir if self.is_ready else None

    @property
    def pid(self) -> int | None:
        return self._state.pid if self._state else None

    def start(self) -> None:
        """Default, render arguments, launch and wait for readiness.

        Raises:
            FixtureError: If the fixture is running, or any start failure
                (see ProcessState.start).
        """
        if self._state is not None and self._state.phase not in (
            ProcessPhase.STOPPED,
            ProcessPhase.FAILED,
        ):
            raise FixtureError(message="Fixture is already running", component=self.component)

        defaulted = self.do_defaulting()
        try:
            templates = [*self.default_args(), *flatten_args(self.config.extra_args)]
            args = render_templates(templates, self.template_context(defaulted))
            start_message, health_check_url = self.readiness(defaulted)
            state = ProcessState(
                self.component,
                defaulted,
                args=args,
                start_message=start_message,
                health_check_url=health_check_url,
            )
        except FixtureError as e:
            remove_owned_dir(defaulted)
            if not e.component:
                e.component = self.component
            raise

        self._state = state
        state.start(self.process_config.out, self.process_config.err)

    def stop(self) -> None:
        """Stop the process and clean up. Safe to call repeatedly."""
        if self._state is not None:
            self._state.stop()

    def __enter__(self) -> ProcessFixture:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def do_defaulting(self) -> DefaultedProcessInput:
        raise NotImplementedError

    def default_args(self) -> list[str]:
        raise NotImplementedError

    def template_context(self, defaulted: DefaultedProcessInput) -> TemplateContext:
        raise NotImplementedError

    def readiness(self, defaulted: DefaultedProcessInput) -> tuple[ReadinessMarker | None, str]:
        """Return (start message, health check URL); one of them is set."""
        raise NotImplementedError
