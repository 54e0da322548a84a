"""HTTP health probing for processes that signal readiness over HTTP.

The API server is considered ready once its health endpoint answers 200,
independent of what it writes to its logs.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

DEFAULT_REQUEST_TIMEOUT = 1.0


@dataclass
class HealthCheckResult:
    """Result of a single health check."""

    healthy: bool
    status_code: int | None = None
    error: str | None = None


class HealthProbe:
    """Probe a health endpoint."""

    def __init__(self, url: str, request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        """Initialize health probe.

        Args:
            url: Full health endpoint URL (e.g., http://127.0.0.1:8080/healthz).
            request_timeout: Timeout for each HTTP request.
        """
        self.url = url
        self.request_timeout = request_timeout
        # The probed process is always a local child; proxies never apply
        self._client = httpx.Client(timeout=request_timeout, trust_env=False)

    def check(self) -> HealthCheckResult:
        """Perform one health check. Never raises for connection problems."""
        try:
            response = self._client.get(self.url)
        except httpx.ConnectError:
            return HealthCheckResult(healthy=False, error="Connection refused")
        except httpx.TimeoutException:
            return HealthCheckResult(healthy=False, error="Request timeout")
        except httpx.HTTPError as e:
            return HealthCheckResult(healthy=False, error=str(e))

        if response.status_code == 200:
            return HealthCheckResult(healthy=True, status_code=200)
        return HealthCheckResult(
            healthy=False,
            status_code=response.status_code,
            error=f"HTTP {response.status_code}",
        )

    def close(self) -> None:
        """Release the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> HealthProbe:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
