"""
Challenge validation: self-check, trigger, poll, repeat.

Each authorization goes through

    pending -> publishing -> self_checking -> requesting -> polling -> valid | failed

for at most ``max_retries`` rounds.  Publishing the key-authorization file
is the caller's job (see acmeclient/http_challenge.py); this module only
checks that it is reachable and asks the authority to verify it.

Authorizations are processed one after the other and the first one that
exhausts its rounds aborts the whole call.
"""
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Sequence

import requests

from acmeclient.directory import CHALLENGE
from acmeclient.errors import ValidationExhausted
from acmeclient.models import HTTP_01, STATUS_VALID, Authorization, Challenge
from acmeclient.session import AcmeSession

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 5
DEFAULT_RETRY_DELAY = 1.0


class ValidationState(str, Enum):
    PENDING = "pending"
    PUBLISHING = "publishing"
    SELF_CHECKING = "self_checking"
    REQUESTING = "requesting"
    POLLING = "polling"
    VALID = "valid"
    FAILED = "failed"


def well_known_url(domain: str, token: str, scheme: str = "http") -> str:
    return f"{scheme}://{domain}/.well-known/acme-challenge/{token}"


class ValidationEngine:
    def __init__(
        self,
        session: AcmeSession,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if retry_delay < 0:
            raise ValueError(f"retry_delay must be >= 0, got {retry_delay}")
        self.session = session
        self.retry_delay = retry_delay
        self._sleep = sleep

    def validate(
        self,
        authorizations: Sequence[Authorization],
        max_retries: int = DEFAULT_MAX_RETRIES,
        challenge_type: str = HTTP_01,
    ) -> None:
        """
        Drive every authorization to ``valid``.

        Raises ValidationExhausted for the first authorization that is still
        not valid after *max_retries* rounds; the remaining ones are skipped.
        """
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")
        for authorization in authorizations:
            self.validate_one(authorization, max_retries, challenge_type)

    def validate_one(
        self,
        authorization: Authorization,
        max_retries: int = DEFAULT_MAX_RETRIES,
        challenge_type: str = HTTP_01,
    ) -> None:
        domain = authorization.domain
        self._transition(domain, ValidationState.PENDING)
        for attempt in range(1, max_retries + 1):
            if self.attempt(authorization, challenge_type):
                self._transition(domain, ValidationState.VALID)
                return
            logger.info("Validation round %d/%d for %s did not succeed", attempt, max_retries, domain)
            if attempt < max_retries:
                self._sleep(self.retry_delay)

        self._transition(domain, ValidationState.FAILED)
        logger.error("Giving up on %s after %d round(s)", domain, max_retries)
        raise ValidationExhausted(domain, max_retries)

    def attempt(self, authorization: Authorization, challenge_type: str = HTTP_01) -> bool:
        """Run one round; True only when the authority reports the challenge valid."""
        domain = authorization.domain
        challenge = authorization.challenge_for(challenge_type)
        if challenge is None:
            logger.warning("Authorization for %s has no %s challenge", domain, challenge_type)
            return False

        self._transition(domain, ValidationState.PUBLISHING)
        if challenge_type == HTTP_01:
            self._transition(domain, ValidationState.SELF_CHECKING)
            if not self.self_check(authorization, challenge):
                return False

        self._transition(domain, ValidationState.REQUESTING)
        self.request_validation(authorization, challenge)

        self._transition(domain, ValidationState.POLLING)
        return self.poll(challenge) == STATUS_VALID

    def self_check(self, authorization: Authorization, challenge: Challenge) -> bool:
        """
        Fetch the published file the way the authority will.

        A 404 (or no answer at all) means the file is not visible yet; any
        other status counts as visible.
        """
        url = well_known_url(authorization.domain, challenge.token)
        try:
            resp = self.session.transport.send("GET", url, allow_redirects=True)
        except requests.RequestException as exc:
            logger.warning("Self-check of %s failed: %s", url, exc)
            return False
        if resp.status_code == 404:
            logger.info("Challenge file not reachable yet at %s", url)
            return False
        return True

    def request_validation(self, authorization: Authorization, challenge: Challenge) -> None:
        """POST the key-authorization to the challenge URI."""
        payload = {
            "type": challenge.type,
            "keyAuthorization": authorization.key_authorization(challenge),
        }
        self.session.check(self.session.post(CHALLENGE, payload, url=challenge.uri))

    def poll(self, challenge: Challenge) -> str:
        """GET the challenge URI once and return its status."""
        resp = self.session.check(self.session.get(challenge.uri))
        status = resp.json().get("status", "pending")
        logger.debug("Challenge %s status: %s", challenge.uri, status)
        return status

    @staticmethod
    def _transition(domain: str, state: ValidationState) -> None:
        logger.debug("%s -> %s", domain, state.value)
