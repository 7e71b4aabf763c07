"""
new-authz requests: one authorization (with its challenge set) per domain.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Sequence

import pyrfc3339

from acmeclient.directory import NEW_AUTHZ
from acmeclient.models import Authorization, Challenge, Identifier, IDENTIFIER_DNS
from acmeclient.session import AcmeSession

logger = logging.getLogger(__name__)


class AuthorizationRetriever:
    def __init__(self, session: AcmeSession) -> None:
        self.session = session

    def authorize(self, domains: Sequence[str]) -> list[Authorization]:
        """
        Request an authorization for every domain, in order.

        Nothing is retried: transport errors and rejections propagate.
        """
        return [self.authorize_one(domain) for domain in domains]

    def authorize_one(self, domain: str) -> Authorization:
        payload = {"identifier": {"type": IDENTIFIER_DNS, "value": domain}}
        resp = self.session.check(self.session.post(NEW_AUTHZ, payload))
        authorization = parse_authorization(resp.json(), self.session.thumbprint)
        logger.info(
            "Authorization for %s offers challenges: %s",
            domain,
            ", ".join(c.type for c in authorization.challenges) or "none",
        )
        return authorization


def parse_authorization(body: dict[str, Any], thumbprint: str) -> Authorization:
    return Authorization(
        identifier=Identifier.from_json(body["identifier"]),
        expires=_parse_expires(body.get("expires")),
        challenges=[Challenge.from_json(c) for c in body.get("challenges", [])],
        thumbprint=thumbprint,
    )


def _parse_expires(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return pyrfc3339.parse(value)
    except ValueError as exc:
        logger.warning("Ignoring unparseable authorization expiry %r: %s", value, exc)
        return None
