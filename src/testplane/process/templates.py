"""Argument template rendering.

Arguments are Jinja2 templates rendered against a TemplateContext, e.g.
"--listen-client-urls={{ url }}" or "--insecure-port={{ url.port }}".
Rendering is strict: a name missing from the context fails the whole
render instead of producing an empty flag.

Every argument is parsed as Jinja syntax, so a literal "{{", "{%" or "{#"
has to be escaped, e.g. "{% raw %}{#{% endraw %}".
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import jinja2

from ..errors import InvalidBindURLError, TemplateResolutionError

SUPPORTED_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class BoundURL:
    """A validated bind URL, renders as the full URL string.

    The empty BoundURL stands in for an optional URL that is not known
    yet; it renders as "" and so do all of its components.
    """

    scheme: str = ""
    hostname: str = ""
    port: int | None = None
    path: str = ""

    @classmethod
    def parse(cls, url: str) -> BoundURL:
        """Parse and validate a bind URL.

        Args:
            url: URL such as http://127.0.0.1:2379

        Returns:
            BoundURL

        Raises:
            InvalidBindURLError: If scheme, host or port is missing or invalid,
                or the URL carries credentials, a query or a fragment.
        """
        parts = urlsplit(url)
        if parts.scheme not in SUPPORTED_SCHEMES:
            raise InvalidBindURLError(
                message=f"Invalid bind URL '{url}': scheme must be http or https", url=url
            )
        if "@" in parts.netloc:
            raise InvalidBindURLError(
                message=f"Invalid bind URL '{url}': must not carry credentials", url=url
            )
        if "?" in url or "#" in url:
            raise InvalidBindURLError(
                message=f"Invalid bind URL '{url}': must not carry a query or fragment", url=url
            )
        if not parts.hostname:
            raise InvalidBindURLError(message=f"Invalid bind URL '{url}': missing host", url=url)
        try:
            port = parts.port
        except ValueError:
            raise InvalidBindURLError(
                message=f"Invalid bind URL '{url}': port out of range", url=url
            ) from None
        if not port:
            raise InvalidBindURLError(message=f"Invalid bind URL '{url}': missing port", url=url)
        # hostname is lowercased by urlsplit; keep the spelling from the URL
        host = parts.netloc.rpartition(":")[0].removeprefix("[").removesuffix("]")
        return cls(parts.scheme, host, port, parts.path)

    @classmethod
    def from_host_port(cls, hostname: str, port: int, scheme: str = "http") -> BoundURL:
        """Build a URL for an allocated host and port."""
        return cls(scheme, hostname, port)

    @classmethod
    def empty(cls) -> BoundURL:
        """Placeholder for an optional URL that is not set."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.scheme

    @property
    def host_port(self) -> str:
        """host:port, with IPv6 hosts in brackets."""
        if self.is_empty:
            return ""
        host = f"[{self.hostname}]" if ":" in self.hostname else self.hostname
        return f"{host}:{self.port}"

    @property
    def string(self) -> str:
        return str(self)

    def __str__(self) -> str:
        if self.is_empty:
            return ""
        return f"{self.scheme}://{self.host_port}{self.path}"


class TemplateContext(Mapping[str, Any]):
    """Read-only set of named values available to argument templates."""

    def __init__(self, **values: Any):
        self._values = dict(values)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"TemplateContext({self._values!r})"


def _finalize(value: Any) -> Any:
    # None renders as empty, like an unset optional field
    return "" if value is None else value


_environment = jinja2.Environment(
    undefined=jinja2.StrictUndefined,
    finalize=_finalize,
    autoescape=False,
    keep_trailing_newline=True,
)


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """Render a single argument template.

    Raises:
        TemplateResolutionError: If the template references an unknown
            name, is not valid template syntax, or an expression in it
            fails (e.g. division by zero).
    """
    try:
        return _environment.from_string(template).render(**context)
    except Exception as e:
        raise TemplateResolutionError(
            message=f"Cannot render argument template '{template}': {e}",
            template=template,
        ) from e


def render_templates(templates: Iterable[str], context: Mapping[str, Any]) -> list[str]:
    """Render argument templates against a context.

    Each template is rendered independently; the first failure aborts the
    render and names the offending template.

    Args:
        templates: Argument templates in order
        context: Values available to the templates

    Returns:
        Rendered arguments, same order and length as the input.
    """
    return [render_template(template, context) for template in templates]
