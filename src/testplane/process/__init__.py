"""Process management for fixtures.

This package turns a partial component config into a running, ready child
process and back:
1. Defaults bind URL, directory, binary and timeouts
2. Renders argument templates against the defaulted values
3. Spawns the binary and waits for its readiness signal
4. Stops it gracefully and removes what defaulting created
"""

from .binaries import candidate_paths, find_binary
from .defaulting import (
    DEFAULT_START_TIMEOUT,
    DEFAULT_STOP_TIMEOUT,
    DefaultedProcessInput,
    do_defaulting,
    remove_owned_dir,
)
from .health import HealthCheckResult, HealthProbe
from .ports import PortAllocator
from .state import OutputPump, ProcessPhase, ProcessState
from .templates import BoundURL, TemplateContext, render_template, render_templates

__all__ = [
    # Defaulting
    "DEFAULT_START_TIMEOUT",
    "DEFAULT_STOP_TIMEOUT",
    "DefaultedProcessInput",
    "do_defaulting",
    "remove_owned_dir",
    "PortAllocator",
    "candidate_paths",
    "find_binary",
    # Templates
    "BoundURL",
    "TemplateContext",
    "render_template",
    "render_templates",
    # Lifecycle
    "ProcessPhase",
    "ProcessState",
    "OutputPump",
    "HealthProbe",
    "HealthCheckResult",
]
