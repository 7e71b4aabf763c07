"""
Request plumbing shared by the account, authorization, validation and
issuance steps: sign with the current nonce, send, observe the next nonce.

Every response from the authority passes through `NonceManager.observe`
before it is inspected, so a rejected request still refreshes the nonce.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import requests
from josepy.jwk import JWKRSA
from requests.utils import parse_header_links

from acmeclient import jws as jwslib
from acmeclient.directory import Directory
from acmeclient.errors import AuthorityRejected
from acmeclient.nonce import NonceManager
from acmeclient.transport import HttpTransport

logger = logging.getLogger(__name__)


class AcmeSession:
    def __init__(
        self,
        transport: HttpTransport,
        directory: Directory,
        nonces: NonceManager,
        account_key: JWKRSA,
    ) -> None:
        self.transport = transport
        self.directory = directory
        self.nonces = nonces
        self.account_key = account_key
        self._thumbprint: Optional[str] = None

    @property
    def thumbprint(self) -> str:
        if self._thumbprint is None:
            self._thumbprint = jwslib.compute_jwk_thumbprint(self.account_key)
        return self._thumbprint

    def post(
        self,
        resource: str,
        payload: dict[str, Any],
        url: Optional[str] = None,
    ) -> requests.Response:
        """
        Sign *payload* for *resource* and POST it.

        The target is *url* when given, otherwise the directory entry for
        *resource*.  The response is returned whatever its status.
        """
        if url is None:
            url = self.directory.url_for(resource)
        body = jwslib.sign_request(payload, resource, self.account_key, self.nonces.current())
        logger.debug("POST %s (%s)", url, resource)
        resp = self.transport.send("POST", url, json=body)
        self.nonces.observe(resp)
        return resp

    def get(self, url: str) -> requests.Response:
        """Unsigned GET of an authority resource."""
        resp = self.transport.send("GET", url)
        self.nonces.observe(resp)
        return resp

    @staticmethod
    def check(resp: requests.Response) -> requests.Response:
        """Raise AuthorityRejected unless *resp* has a 2xx status."""
        if 200 <= resp.status_code < 300:
            return resp
        raise AuthorityRejected(resp.status_code, problem_body(resp), resp)


def problem_body(resp: requests.Response) -> dict:
    """Decode an error body, falling back to the raw text."""
    try:
        body = resp.json()
    except ValueError:
        return {"detail": resp.text}
    if isinstance(body, dict):
        return body
    return {"detail": resp.text}


def parse_links(resp: requests.Response) -> list[dict[str, str]]:
    """Parse every Link header entry into ``{"url": ..., "rel": ...}`` dicts."""
    value = resp.headers.get("Link")
    if not value:
        return []
    return parse_header_links(value)


def find_link(resp: requests.Response, rel: str) -> Optional[str]:
    """Return the URL of the first Link entry whose rel is *rel*, angle brackets stripped."""
    for link in parse_links(resp):
        if link.get("rel") == rel:
            return link.get("url")
    return None
