"""Error taxonomy for testplane fixtures.

Every failure of start() or stop() is raised as one of these. Configuration
problems are detected before any process is spawned; the remaining errors
describe what the managed process did.
"""

from dataclasses import dataclass, field, fields
from typing import Any


@dataclass(eq=False)
class FixtureError(Exception):
    """Base error class for fixture errors."""

    message: str
    component: str = ""

    def __str__(self) -> str:
        if self.component:
            return f"{self.component}: {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict for reporting.

        Diagnostic fields of subclasses (exit_code, timeout, candidates, ...)
        are reported under "data".
        """
        error: dict[str, Any] = {"type": type(self).__name__, "message": self.message}
        if self.component:
            error["component"] = self.component
        data = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in ("message", "component")
        }
        if data:
            error["data"] = data
        return error


@dataclass(eq=False)
class ConfigurationError(FixtureError):
    """Invalid or unusable configuration. Fatal to start, never retried."""


@dataclass(eq=False)
class BinaryNotFoundError(ConfigurationError):
    """No executable binary could be resolved for a component."""

    candidates: list[str] = field(default_factory=list)


@dataclass(eq=False)
class InvalidBindURLError(ConfigurationError):
    """Bind URL is not an http(s) URL with a host and a port."""

    url: str = ""


@dataclass(eq=False)
class DirectoryCreationError(ConfigurationError):
    """Data or certificate directory could not be created."""

    path: str = ""


@dataclass(eq=False)
class TemplateResolutionError(ConfigurationError):
    """An argument template referenced a name missing from the context."""

    template: str = ""


@dataclass(eq=False)
class StartTimeoutError(FixtureError):
    """Process did not become ready in time. It was killed before raising."""

    timeout: float = 0.0
    output_tail: str = ""


@dataclass(eq=False)
class EarlyExitError(FixtureError):
    """Process exited before it became ready."""

    exit_code: int | None = None
    output_tail: str = ""


@dataclass(eq=False)
class StopError(FixtureError):
    """Process could not be killed during stop."""

    pid: int | None = None


def tail_message(message: str, output_tail: str) -> str:
    """Append captured process output to an error message."""
    if not output_tail:
        return message
    return f"{message}\n---[ output ]---\n{output_tail}\n----------------"
