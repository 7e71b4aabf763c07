"""
Directory resolution: the one unsigned GET that maps resource names to URLs.
"""
from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Mapping, Optional

import requests

from acmeclient.errors import DirectoryUnavailable, UnknownOperation
from acmeclient.nonce import NonceManager
from acmeclient.transport import HttpTransport

logger = logging.getLogger(__name__)

NEW_REG = "new-reg"
REG = "reg"
NEW_AUTHZ = "new-authz"
CHALLENGE = "challenge"
NEW_CERT = "new-cert"


class Directory:
    """Read-only snapshot of the authority's directory object."""

    def __init__(self, resources: Mapping[str, Any]) -> None:
        self._resources = MappingProxyType(dict(resources))

    @property
    def resources(self) -> Mapping[str, Any]:
        return self._resources

    def url_for(self, name: str) -> str:
        url = self._resources.get(name)
        if not isinstance(url, str):
            raise UnknownOperation(name)
        return url

    def __contains__(self, name: object) -> bool:
        return isinstance(self._resources.get(name), str)  # type: ignore[arg-type]

    @property
    def terms_of_service(self) -> Optional[str]:
        meta = self._resources.get("meta")
        if isinstance(meta, Mapping):
            return meta.get("terms-of-service")
        return None

    def __repr__(self) -> str:
        return f"Directory({sorted(k for k in self._resources if k in self)!r})"


def resolve_directory(
    transport: HttpTransport,
    url: str,
    nonces: NonceManager,
) -> Directory:
    """
    GET the directory at *url* and record the first nonce.

    Raises DirectoryUnavailable on any transport failure, error status or
    unparsable body; there is no degraded mode.
    """
    try:
        resp = transport.send("GET", url)
    except requests.RequestException as exc:
        raise DirectoryUnavailable(f"Could not fetch directory {url}: {exc}") from exc

    nonces.observe(resp)

    if not resp.ok:
        raise DirectoryUnavailable(f"Directory {url} returned HTTP {resp.status_code}")
    try:
        body = resp.json()
    except ValueError as exc:
        raise DirectoryUnavailable(f"Directory {url} is not valid JSON: {exc}") from exc
    if not isinstance(body, dict):
        raise DirectoryUnavailable(f"Directory {url} is not a JSON object")

    directory = Directory(body)
    logger.info("Resolved ACME directory %s: %r", url, directory)
    if nonces.current() is None:
        logger.warning("Directory response carried no Replay-Nonce header")
    return directory
