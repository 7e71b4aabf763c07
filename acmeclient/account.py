"""
Account registration and terms-of-service agreement.

Registering a key that is already known makes the authority answer 409 with
the existing account in the Location header.  That case is an ordinary
branch here: the outcome is reified as `AlreadyExists` and the current
agreement state is read back from the account resource.
"""
from __future__ import annotations

import logging
from typing import Optional

import requests

from acmeclient.directory import NEW_REG, REG
from acmeclient.errors import AuthorityRejected
from acmeclient.models import (
    Account,
    AlreadyExists,
    Created,
    RegistrationOutcome,
    Rejected,
)
from acmeclient.session import AcmeSession, parse_links, problem_body

logger = logging.getLogger(__name__)

TERMS_OF_SERVICE_REL = "terms-of-service"


def contact_uri(identity: str) -> str:
    """Turn an e-mail address into a ``mailto:`` contact URI (idempotent)."""
    if identity.startswith("mailto:"):
        return identity
    return f"mailto:{identity}"


class AccountManager:
    def __init__(self, session: AcmeSession, contact: str) -> None:
        self.session = session
        self.contact = contact_uri(contact)

    def submit_registration(self) -> RegistrationOutcome:
        """POST new-reg once and classify the answer."""
        resp = self.session.post(NEW_REG, {"contact": [self.contact]})
        location = resp.headers.get("Location", "")
        if resp.status_code == 409:
            return AlreadyExists(location)
        if 200 <= resp.status_code < 300:
            return Created(location, resp)
        return Rejected(resp.status_code, problem_body(resp), resp)

    def register(self) -> Account:
        """
        Register the account key, or re-identify the account it belongs to.

        Raises AuthorityRejected for any status other than success or 409.
        """
        outcome = self.submit_registration()

        if isinstance(outcome, Created):
            logger.info("Registered new ACME account: %s", outcome.location)
            account = Account(account_reference=outcome.location)
            resp = outcome.response
        elif isinstance(outcome, AlreadyExists):
            logger.info("Account already exists for this key: %s", outcome.location)
            resp = self.session.check(
                self.session.post(REG, {"contact": [self.contact]}, url=outcome.location)
            )
            account = Account(
                account_reference=outcome.location,
                has_agreement=bool(_json_or_empty(resp).get("agreement")),
            )
        else:
            raise AuthorityRejected(outcome.status_code, outcome.body, outcome.response)

        account.terms_of_service = (
            terms_of_service_link(resp) or self.session.directory.terms_of_service
        )
        return account

    def agree(self, account: Account) -> Account:
        """Accept the terms of service; no request at all when already agreed."""
        if account.has_agreement:
            return account

        payload = {
            "contact": [self.contact],
            "agreement": account.terms_of_service,
        }
        self.session.check(self.session.post(REG, payload, url=account.account_reference))
        account.has_agreement = True
        logger.info("Agreed to terms of service %s", account.terms_of_service)
        return account


def terms_of_service_link(resp: requests.Response) -> Optional[str]:
    """Scan every Link header for the terms-of-service entry."""
    tos = None
    for link in parse_links(resp):
        if link.get("rel") == TERMS_OF_SERVICE_REL:
            tos = link.get("url")
    return tos


def _json_or_empty(resp: requests.Response) -> dict:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
