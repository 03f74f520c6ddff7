"""
Remote sync client - low-level HTTP client for the sync functions.

Each record type has its own serverless function under a common prefix,
e.g. ``POST {base_url}/.netlify/functions/sync-leiras``. This client only
moves bytes: it posts JSON, applies the request timeout and reports the
status and body. Deciding whether a reply means success is left to the
submission routines, and retrying is left to the queues.
"""

import json
import logging
from typing import Any

import requests
from requests.adapters import HTTPAdapter

from leira_sync.core.errors import RemoteSubmissionError
from leira_sync.core.models import HttpReply


class RemoteSyncClient:
    """
    HTTP client for the sync endpoints.

    Features:
    - Explicit per-request timeout (no call can hang a pass forever)
    - Connection pooling through a shared requests.Session
    - Network failures surfaced as RemoteSubmissionError
    """

    DEFAULT_TIMEOUT = 30.0
    DEFAULT_POOL_CONNECTIONS = 4
    DEFAULT_POOL_MAXSIZE = 4

    def __init__(
        self,
        base_url: str,
        endpoint_prefix: str = "/.netlify/functions",
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Host serving the functions (e.g. https://yard.example.com)
            endpoint_prefix: Path prefix before the function name
            timeout: Request timeout in seconds
            session: Optional pre-configured session (tests inject a mock)
        """
        self.base_url = base_url.rstrip("/")
        self.endpoint_prefix = endpoint_prefix.rstrip("/")
        self.timeout = timeout
        self.logger = logging.getLogger("RemoteSyncClient")

        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(
                pool_connections=self.DEFAULT_POOL_CONNECTIONS,
                pool_maxsize=self.DEFAULT_POOL_MAXSIZE,
            )
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        self._session = session
        self._session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )

    def url_for(self, function_name: str) -> str:
        """Full URL of a sync function."""
        return f"{self.base_url}{self.endpoint_prefix}/{function_name.lstrip('/')}"

    def post_json(self, function_name: str, body: dict[str, Any]) -> HttpReply:
        """
        POST a JSON body to a sync function.

        Args:
            function_name: Function name, e.g. 'sync-leiras'
            body: JSON-serializable request body

        Returns:
            HttpReply with the status code, parsed JSON body (None if the
            server did not answer JSON) and the raw text

        Raises:
            RemoteSubmissionError: On connection errors and timeouts
        """
        url = self.url_for(function_name)
        try:
            response = self._session.post(url, json=body, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise RemoteSubmissionError(
                function_name, f"request timed out after {self.timeout}s"
            ) from e
        except requests.exceptions.RequestException as e:
            raise RemoteSubmissionError(function_name, str(e)) from e

        text = response.text or ""
        parsed: Any = None
        if text.strip():
            try:
                parsed = json.loads(text)
            except ValueError:
                self.logger.debug(
                    f"Non-JSON response from {function_name} "
                    f"(HTTP {response.status_code}): {text[:200]}"
                )

        self.logger.debug(f"POST {function_name} -> HTTP {response.status_code}")
        return HttpReply(status_code=response.status_code, body=parsed, text=text)

    def close(self) -> None:
        """Close the underlying session."""
        self._session.close()
