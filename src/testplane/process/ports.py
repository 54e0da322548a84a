"""Free port allocation for fixtures without a bind URL."""

from __future__ import annotations

import socket
import time

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT_TTL = 60.0
MAX_ATTEMPTS = 10


class PortAllocator:
    """Hand out free localhost ports.

    The kernel picks the port: a socket is bound to port 0, the assigned
    port is read back and the socket is closed before the caller launches
    its process. Ports handed out by the same allocator are remembered for
    `ttl` seconds and never issued twice within that window.
    """

    def __init__(self, ttl: float = DEFAULT_PORT_TTL):
        """Initialize port allocator.

        Args:
            ttl: Seconds a handed-out port stays reserved.
        """
        self.ttl = ttl
        self._issued: dict[tuple[str, int], float] = {}

    def suggest(self, host: str = DEFAULT_HOST) -> int:
        """Get a port that was free at the time of the call.

        Args:
            host: Interface to probe.

        Returns:
            Port number.

        Raises:
            OSError: If the host cannot be bound or no fresh port was found.
        """
        self._expire()
        for _ in range(MAX_ATTEMPTS):
            port = self._probe(host)
            if (host, port) not in self._issued:
                self._issued[(host, port)] = time.monotonic() + self.ttl
                return port
        raise OSError(f"No unreserved port found on {host} after {MAX_ATTEMPTS} attempts")

    def is_reserved(self, host: str, port: int) -> bool:
        """Whether a port was issued by this allocator and is still reserved."""
        self._expire()
        return (host, port) in self._issued

    def _expire(self) -> None:
        now = time.monotonic()
        for key in [k for k, deadline in self._issued.items() if deadline <= now]:
            del self._issued[key]

    @staticmethod
    def _probe(host: str) -> int:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, 0))
            return sock.getsockname()[1]
