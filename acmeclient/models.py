"""
Value objects exchanged between the client facade and its callers.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

import requests

HTTP_01 = "http-01"
IDENTIFIER_DNS = "dns"
STATUS_VALID = "valid"


@dataclass
class Account:
    # Created by registration, mutated by agreement
    account_reference: str
    terms_of_service: Optional[str] = None
    has_agreement: bool = False


@dataclass(frozen=True)
class Identifier:
    value: str
    type: str = IDENTIFIER_DNS

    @staticmethod
    def from_json(data: dict[str, Any]) -> "Identifier":
        return Identifier(type=data.get("type", IDENTIFIER_DNS), value=data["value"])


@dataclass(frozen=True)
class Challenge:
    type: str
    status: str
    token: str
    uri: str

    @staticmethod
    def from_json(data: dict[str, Any]) -> "Challenge":
        # ACME v1 names the challenge location "uri"; later drafts use "url"
        return Challenge(
            type=data["type"],
            status=data.get("status", "pending"),
            token=data.get("token", ""),
            uri=data.get("uri") or data.get("url", ""),
        )


@dataclass(frozen=True)
class KeyAuthorizationFile:
    """The file a web server must expose at /.well-known/acme-challenge/<filename>."""

    filename: str
    contents: str

    @property
    def path(self) -> str:
        return f"/.well-known/acme-challenge/{self.filename}"


@dataclass
class Authorization:
    identifier: Identifier
    expires: Optional[datetime]
    challenges: list[Challenge]
    thumbprint: str

    @property
    def domain(self) -> str:
        return self.identifier.value

    def challenge_for(self, challenge_type: str = HTTP_01) -> Optional[Challenge]:
        """Return the first challenge of *challenge_type*, or None."""
        for challenge in self.challenges:
            if challenge.type == challenge_type:
                return challenge
        return None

    def key_authorization(self, challenge: Challenge) -> str:
        return f"{challenge.token}.{self.thumbprint}"

    def get_file(self, challenge_type: str = HTTP_01) -> Optional[KeyAuthorizationFile]:
        """
        Build the key-authorization file for the HTTP challenge.

        Recomputed on every call; returns None when the authority offered no
        challenge of that type.
        """
        challenge = self.challenge_for(challenge_type)
        if challenge is None:
            return None
        return KeyAuthorizationFile(
            filename=challenge.token,
            contents=self.key_authorization(challenge),
        )


@dataclass
class Certificate:
    private_key: str
    csr: str
    certificate: str
    expiry_date: datetime


# ─── Registration outcome ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Created:
    location: str
    response: requests.Response = field(repr=False, compare=False)


@dataclass(frozen=True)
class AlreadyExists:
    location: str


@dataclass(frozen=True)
class Rejected:
    status_code: int
    body: dict
    response: Optional[requests.Response] = field(default=None, repr=False, compare=False)


RegistrationOutcome = Union[Created, AlreadyExists, Rejected]
