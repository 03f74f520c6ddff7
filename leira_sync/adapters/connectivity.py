"""Connectivity probes.

The probe answers one question before every pass: can we reach the sync
host right now? It is fail-closed: any error while finding out means
"offline", so a pass is never attempted when state is unknown.
"""

from __future__ import annotations

import logging
import socket
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)


class SocketConnectivityProbe:
    """Checks reachability by opening a TCP connection to the sync host.

    No result is cached; every call re-checks.

    Args:
        host: Hostname or IP to connect to.
        port: TCP port.
        timeout: Connect timeout in seconds.
    """

    def __init__(self, host: str, port: int, timeout: float = 3.0) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout

    @classmethod
    def for_url(
        cls,
        url: str,
        host: str | None = None,
        port: int | None = None,
        timeout: float = 3.0,
    ) -> SocketConnectivityProbe:
        """Build a probe targeting the host of a base URL.

        Args:
            url: Remote base URL, e.g. "https://yard.example.com".
            host: Overrides the URL's host.
            port: Overrides the URL's port (default 443 for https, else 80).
            timeout: Connect timeout in seconds.
        """
        parts = urlsplit(url)
        default_port = 443 if parts.scheme == "https" else 80
        return cls(
            host=host or parts.hostname or "localhost",
            port=port or parts.port or default_port,
            timeout=timeout,
        )

    def is_online(self) -> bool:
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout):
                return True
        except Exception as e:
            logger.debug(f"Connectivity check to {self.host}:{self.port} failed: {e}")
            return False


class StaticConnectivityProbe:
    """Probe with a fixed answer, for forcing online/offline from the CLI."""

    def __init__(self, online: bool) -> None:
        self.online = online

    def is_online(self) -> bool:
        return self.online
