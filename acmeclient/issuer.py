"""
new-cert requests and certificate-bundle assembly.

The authority answers a new-cert request with the DER leaf certificate and
a ``Link: <...>;rel="up"`` header pointing at the issuer certificate.  The
bundle returned to the caller is leaf PEM followed by intermediate PEM.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

import requests

from acmeclient import crypto
from acmeclient.directory import NEW_CERT
from acmeclient.encoding import b64url, der_to_pem
from acmeclient.errors import CertificateRequestFailure
from acmeclient.models import Certificate
from acmeclient.session import AcmeSession, find_link

logger = logging.getLogger(__name__)


class CertificateIssuer:
    def __init__(self, session: AcmeSession, key_size: int = crypto.CERTIFICATE_KEY_SIZE) -> None:
        self.session = session
        self.key_size = key_size

    def issue(self, domains: Sequence[str], primary_domain: Optional[str] = None) -> Certificate:
        """
        Request a certificate covering *domains*.

        Assumes every domain was validated beforehand; the authority's
        rejection (if not) propagates as AuthorityRejected.
        """
        if not domains:
            raise CertificateRequestFailure("Could not create a CSR: no domains given")
        if primary_domain is None:
            primary_domain = domains[0]

        key = crypto.generate_rsa_key(self.key_size)
        private_key_pem = crypto.private_key_to_pem(key)
        csr_pem = crypto.create_csr(key, domains, primary_domain)
        csr_der = crypto.csr_to_der(csr_pem)

        logger.info("Requesting certificate for %s (primary %s)", ", ".join(domains), primary_domain)
        resp = self.session.check(self.session.post(NEW_CERT, {"csr": b64url(csr_der)}))

        leaf = to_pem(resp)
        bundle = leaf
        issuer_url = find_link(resp, "up")
        if issuer_url:
            logger.info("Fetching issuer certificate from %s", issuer_url)
            bundle += to_pem(self.session.check(self.session.get(issuer_url)))
        else:
            logger.warning("No issuer link on certificate response; bundle holds the leaf only")

        expiry = crypto.parse_expiry(leaf)
        logger.info("Issued certificate for %s, expires %s", primary_domain, expiry.isoformat())
        return Certificate(
            private_key=private_key_pem,
            csr=csr_pem,
            certificate=bundle,
            expiry_date=expiry,
        )


def to_pem(resp: requests.Response) -> str:
    """Certificate body as PEM; DER bodies are converted, PEM bodies kept."""
    content = resp.content
    if content.lstrip().startswith(b"-----BEGIN"):
        text = content.decode("ascii").strip()
        return text + "\n"
    return der_to_pem(content)
