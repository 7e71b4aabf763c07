"""
Blocking HTTP transport on top of a *requests* session.

Non-2xx responses are returned, not raised: the protocol layer branches on
status codes (409, 404) and on response headers.  Connection errors and
timeouts surface as `requests.RequestException`.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

USER_AGENT = "acmeclient/1.0"
DEFAULT_TIMEOUT = 30


class HttpTransport:
    def __init__(
        self,
        timeout: int = DEFAULT_TIMEOUT,
        ca_bundle: str = "",
        insecure: bool = False,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT})

        if insecure:
            import urllib3
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            self._session.verify = False
        elif ca_bundle:
            self._session.verify = ca_bundle

    def send(
        self,
        method: str,
        url: str,
        json: Optional[dict[str, Any]] = None,
        allow_redirects: bool = True,
    ) -> requests.Response:
        """Perform one request and return the response whatever its status."""
        resp = self._session.request(
            method,
            url,
            json=json,
            timeout=self.timeout,
            allow_redirects=allow_redirects,
        )
        logger.debug("%s %s -> %d", method, url, resp.status_code)
        return resp

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
